"""Base reviewer shared by every LLM provider.

All providers run the same algorithm:
    review() → _build_system_prompt() + _build_user_prompt()
             → _call_with_retry() → _call_api()   ← only this differs per provider
             → _parse()

Subclasses implement two things only:
  - __init__: build and store the SDK client
  - _call_api: make one raw API call and return the text response

The set of providers is closed; see prreview_core.providers.registry.
"""

from __future__ import annotations

import json
import logging
import re
import time
from abc import ABC, abstractmethod

from prreview_core.exceptions import ResponseParseError
from prreview_core.providers.models import ReviewIssue, ReviewPrompt, ReviewResult, Severity

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_TOKENS = 4096

DEFAULT_SUMMARY = "Review complete."

# Greedy: from the first "{" to the last "}" so nested objects stay intact.
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

SYSTEM_PROMPT = """You are a Senior Principal Engineer conducting a code review. You are direct, blunt, and pragmatic.

Your task is to review the PR diff and identify issues. For each issue, provide:
- file: The file path
- line: The line number where the issue occurs
- severity: BLOCK (must fix before merge), HIGH (should fix), or MEDIUM (nice to fix)
- category: Type of issue (Security, Architecture, Naming, Performance, Clean Code, etc.)
- message: A witty, memorable comment about the issue
- fix: The specific action to fix the issue

IMPORTANT: Return your response as valid JSON in this exact format:
{
  "issues": [
    {
      "file": "/path/to/file.cs",
      "line": 42,
      "severity": "HIGH",
      "category": "Naming",
      "message": "Your creative roast here",
      "fix": "The actual fix they need"
    }
  ],
  "summary": "Review complete. BLOCK: X | HIGH: X | MEDIUM: X"
}

If there are no issues, return:
{
  "issues": [],
  "summary": "Ship it! Clean code detected."
}"""


class BaseReviewer(ABC):
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS
    DEFAULT_MODEL: str = ""

    def __init__(self, api_key: str, model: str | None = None):
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def review(self, prompt: ReviewPrompt) -> ReviewResult:
        """Review the whole PR in one call and return the structured result.

        Raises whatever the provider SDK raised on the final attempt, or
        ResponseParseError when the response holds no usable JSON.
        """
        system = self._build_system_prompt(prompt.rules)
        user = self._build_user_prompt(prompt)
        raw = self._call_with_retry(system, user)
        return self._parse(raw)

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        It should raise on failure; _call_with_retry handles retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> str:
        """Retry _call_api up to MAX_RETRIES times with exponential backoff.

        The last failure is re-raised; there is no fallback to another provider.
        """
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._call_api(system_prompt, user_prompt)
            except ResponseParseError:
                raise
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    raise
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        raise RuntimeError("MAX_RETRIES must be at least 1")

    def _build_system_prompt(self, rules: str) -> str:
        return SYSTEM_PROMPT + "\n\n" + rules

    def _build_user_prompt(self, prompt: ReviewPrompt) -> str:
        meta = prompt.pr_metadata
        parts = [
            f"""## PR Metadata
- ID: {meta.id}
- Title: {meta.title}
- Author: {meta.author}
- Source Branch: {meta.source_branch}
- Target Branch: {meta.target_branch}
- Description: {meta.description or "No description"}

## File Diffs
"""
        ]
        for path, diff in prompt.diffs:
            parts.append(f"\n### {path}\n```diff\n{diff}\n```\n")

        if prompt.clean_code_guide:
            parts.append(f"\n## Clean Code Guidelines Reference\n{prompt.clean_code_guide}\n")

        return "".join(parts)

    def _parse(self, raw: str) -> ReviewResult:
        """Parse the model's text into a ReviewResult.

        The JSON object may be surrounded by prose or markdown fences, so the
        outermost {...} span is extracted first.
        """
        name = self.__class__.__name__
        match = _JSON_OBJECT_RE.search(raw or "")
        if not match:
            raise ResponseParseError(f"{name}: could not locate a JSON object in the response", raw)
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ResponseParseError(f"{name}: failed to parse response JSON: {e}", raw) from e
        if not isinstance(parsed, dict):
            raise ResponseParseError(f"{name}: response JSON is not an object", raw)

        issues = parsed.get("issues") or []
        if not isinstance(issues, list):
            raise ResponseParseError(f"{name}: 'issues' is not a list", raw)

        summary = parsed.get("summary") or DEFAULT_SUMMARY
        if not isinstance(summary, str):
            raise ResponseParseError(f"{name}: 'summary' is not a string", raw)

        return ReviewResult(
            issues=[_to_issue(item, raw, name) for item in issues],
            summary=summary,
        )


def _to_issue(item, raw: str, provider_name: str) -> ReviewIssue:
    if not isinstance(item, dict):
        raise ResponseParseError(f"{provider_name}: issue entry is not an object: {item!r}", raw)

    severity = str(item.get("severity", "")).strip().upper()
    try:
        severity = Severity(severity)
    except ValueError:
        raise ResponseParseError(f"{provider_name}: unknown severity {item.get('severity')!r}", raw)

    line = _to_line(item.get("line"))
    if line is None:
        raise ResponseParseError(f"{provider_name}: invalid line {item.get('line')!r}", raw)

    return ReviewIssue(
        file=str(item.get("file") or ""),
        line=line,
        severity=severity,
        category=str(item.get("category") or ""),
        message=str(item.get("message") or ""),
        fix=str(item.get("fix") or ""),
    )


def _to_line(value) -> int | None:
    """Return value as a 1-based line number, or None if it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    try:
        line = int(value)
    except (TypeError, ValueError):
        return None
    return line if line >= 1 else None
