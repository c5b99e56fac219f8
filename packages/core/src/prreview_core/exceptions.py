"""Error taxonomy for a review run.

Everything upstream of comment posting is all-or-nothing: a
ConfigurationError, UpstreamFetchError or AnalysisError ends the run.
PostingError is the only recoverable kind; the orchestrator records it
and keeps going.
"""

from __future__ import annotations


class PRReviewError(Exception):
    """Base class for every error raised by pr-review."""


class ConfigurationError(PRReviewError):
    """Missing credential, unknown provider or otherwise unusable config."""


class UpstreamFetchError(PRReviewError):
    """A source-control call needed to build the diff failed."""


class ResponseParseError(PRReviewError):
    """The model's response did not contain a usable review JSON object."""

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.raw = raw


class AnalysisError(PRReviewError):
    """The LLM step failed. Carries the provider that was asked."""

    def __init__(self, message: str, provider: str):
        super().__init__(message)
        self.provider = provider


class PostingError(PRReviewError):
    """A single comment thread could not be created."""

    def __init__(self, message: str, file_path: str | None = None, line: int | None = None):
        super().__init__(message)
        self.file_path = file_path
        self.line = line
