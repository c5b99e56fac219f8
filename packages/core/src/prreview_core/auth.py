"""Token providers for Azure DevOps.

A token provider is a zero-argument callable returning a bearer token
string. The client calls it once, the first time it needs a connection.
"""

from __future__ import annotations

import os
from typing import Callable

from prreview_core.exceptions import ConfigurationError

TokenProvider = Callable[[], str]

DEFAULT_PAT_ENV_VAR = "AZURE_DEVOPS_PAT"


def create_pat_authenticator(env_var: str = DEFAULT_PAT_ENV_VAR) -> TokenProvider:
    """Return a token provider that reads a Personal Access Token from ``env_var``.

    The variable is read lazily, so the provider can be built before the
    environment is populated. Raises ConfigurationError on call when the
    variable is unset or empty.
    """

    def get_token() -> str:
        token = os.environ.get(env_var)
        if not token:
            raise ConfigurationError(
                f"Environment variable '{env_var}' is not set or empty. "
                "Please set it with a valid Azure DevOps Personal Access Token."
            )
        return token

    return get_token


def static_token(token: str) -> TokenProvider:
    """Wrap an already resolved token (e.g. from the Azure CLI) as a provider."""
    if not token:
        raise ConfigurationError("An empty Azure DevOps token was supplied.")
    return lambda: token
