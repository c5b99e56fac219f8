from __future__ import annotations

from prreview_core.exceptions import ResponseParseError
from prreview_core.providers.base import BaseReviewer


class ClaudeReviewer(BaseReviewer):
    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(self, api_key: str, model: str | None = None):
        super().__init__(api_key, model)
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'pr-review[anthropic]'"
            )
        self.client = Anthropic(api_key=api_key)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        # Imported here because the anthropic package is optional;
        # __init__ already checked it is installed.
        from anthropic.types import TextBlock

        response = self.client.messages.create(
            model=self.model,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            max_tokens=self.MAX_TOKENS,
        )
        text = "".join(block.text for block in response.content if isinstance(block, TextBlock)).strip()
        if not text:
            raise ResponseParseError("ClaudeReviewer: response contained no text block", "")
        return text
