"""Provider selection.

The provider set is closed: a Provider value maps to exactly one reviewer
class, and anything else is a configuration error rather than a fallback.
"""

from __future__ import annotations

from enum import Enum

from prreview_core.exceptions import ConfigurationError
from prreview_core.providers.anthropic import ClaudeReviewer
from prreview_core.providers.base import BaseReviewer
from prreview_core.providers.openai import AzureOpenAIReviewer, OpenAIReviewer


class Provider(str, Enum):
    CLAUDE = "claude"
    OPENAI = "openai"
    AZURE_OPENAI = "azure-openai"


_REVIEWERS: dict[Provider, type[BaseReviewer]] = {
    Provider.CLAUDE: ClaudeReviewer,
    Provider.OPENAI: OpenAIReviewer,
    Provider.AZURE_OPENAI: AzureOpenAIReviewer,
}

PROVIDER_NAMES = tuple(p.value for p in Provider)


def parse_provider(name: str) -> Provider:
    try:
        return Provider(name)
    except ValueError:
        raise ConfigurationError(
            f"Unknown LLM provider: {name!r}. Choose one of: {', '.join(PROVIDER_NAMES)}."
        ) from None


def default_model(provider: str | Provider) -> str:
    return _REVIEWERS[parse_provider(provider)].DEFAULT_MODEL


def get_reviewer(
    provider: str | Provider,
    api_key: str,
    model: str | None = None,
    endpoint: str | None = None,
    api_version: str | None = None,
) -> BaseReviewer:
    kind = parse_provider(provider)
    reviewer_cls = _REVIEWERS[kind]
    if kind is Provider.AZURE_OPENAI:
        return reviewer_cls(api_key=api_key, model=model, endpoint=endpoint, api_version=api_version)
    return reviewer_cls(api_key=api_key, model=model)
