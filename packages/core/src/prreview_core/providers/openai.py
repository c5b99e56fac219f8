from __future__ import annotations

try:
    from openai import AzureOpenAI as _AzureOpenAI
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]
    _AzureOpenAI = None  # type: ignore[assignment,misc]

from prreview_core.exceptions import ConfigurationError, ResponseParseError
from prreview_core.providers.base import BaseReviewer

_MISSING_SDK = "The 'openai' package is required for this provider. Install it with: pip install 'pr-review[openai]'"


class OpenAIReviewer(BaseReviewer):
    DEFAULT_MODEL = "gpt-4o"

    def __init__(self, api_key: str, model: str | None = None):
        super().__init__(api_key, model)
        if _OpenAI is None:
            raise ImportError(_MISSING_SDK)
        self.client = _OpenAI(api_key=api_key)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            response_format={"type": "json_object"},
            max_tokens=self.MAX_TOKENS,
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ResponseParseError(f"{self.__class__.__name__}: empty response", "")
        return content


class AzureOpenAIReviewer(OpenAIReviewer):
    """OpenAI chat completions served from an Azure OpenAI resource.

    ``model`` is the deployment name on that resource.
    """

    DEFAULT_API_VERSION = "2024-10-21"

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        endpoint: str | None = None,
        api_version: str | None = None,
    ):
        BaseReviewer.__init__(self, api_key, model)
        if _AzureOpenAI is None:
            raise ImportError(_MISSING_SDK)
        if not endpoint:
            raise ConfigurationError(
                "Azure OpenAI requires an endpoint. Set AZURE_OPENAI_ENDPOINT or 'endpoint' in the config file."
            )
        self.endpoint = endpoint
        self.client = _AzureOpenAI(
            api_key=api_key,
            azure_endpoint=endpoint,
            api_version=api_version or self.DEFAULT_API_VERSION,
        )
