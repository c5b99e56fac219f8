from __future__ import annotations

import logging

from azure.devops.connection import Connection
from msrest.authentication import BasicTokenAuthentication

from prreview_core.auth import TokenProvider

logger = logging.getLogger(__name__)

_ORG_URL_TEMPLATE = "https://dev.azure.com/{organization}"


class AzureDevOpsClient:
    """Owns the connection to one Azure DevOps organization.

    The connection is created on first use and memoized for the lifetime of
    this instance. It is never reset: if creating it fails (bad token, no
    network), build a new client rather than calling again on this one.
    """

    def __init__(self, organization: str, get_token: TokenProvider):
        if not organization:
            raise ValueError("Organization name is required")
        self.org_url = _ORG_URL_TEMPLATE.format(organization=organization)
        self._get_token = get_token
        self._connection: Connection | None = None

    def get_connection(self) -> Connection:
        if self._connection is None:
            token = self._get_token()
            credentials = BasicTokenAuthentication({"access_token": token})
            self._connection = Connection(base_url=self.org_url, creds=credentials)
            logger.debug("Opened Azure DevOps connection to %s", self.org_url)
        return self._connection

    def get_git_client(self):
        return self.get_connection().clients.get_git_client()
