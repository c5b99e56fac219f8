"""Azure DevOps token resolution with Azure CLI fallback.

Resolution order (stops at first success):
  1. AZURE_DEVOPS_PAT environment variable (CI / explicit override)
  2. `az account get-access-token` for the Azure DevOps resource
     (works after `az login`)
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

PAT_ENV_VAR = "AZURE_DEVOPS_PAT"

# Well-known application id of Azure DevOps in Microsoft Entra ID.
AZURE_DEVOPS_RESOURCE = "499b84ac-1321-427f-aa17-267ca6975798"


def resolve_azure_devops_token() -> str | None:
    """Return an Azure DevOps token or None if no source is available.

    Never raises; callers should check for None and emit a UsageError.
    """
    token = os.environ.get(PAT_ENV_VAR)
    if token:
        return token

    try:
        result = subprocess.run(
            [
                "az",
                "account",
                "get-access-token",
                "--resource",
                AZURE_DEVOPS_RESOURCE,
                "--query",
                "accessToken",
                "--output",
                "tsv",
            ],
            capture_output=True,
            text=True,
            timeout=15,
        )
        if result.returncode == 0:
            az_token = result.stdout.strip()
            if az_token:
                logger.debug("Resolved Azure DevOps token via Azure CLI session.")
                return az_token
        else:
            logger.debug("az account get-access-token failed: %s", result.stderr.strip())
    except (FileNotFoundError, subprocess.TimeoutExpired):
        # az is not installed or timed out.
        pass

    return None
