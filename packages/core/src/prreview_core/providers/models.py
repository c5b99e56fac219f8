"""Review request/response types shared by every provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Severity(str, Enum):
    BLOCK = "BLOCK"  # must fix before merge
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.BLOCK: 3, Severity.HIGH: 2, Severity.MEDIUM: 1}


@dataclass
class ReviewIssue:
    file: str
    line: int  # 1-based, in the modified file
    severity: Severity
    category: str
    message: str
    fix: str


@dataclass
class ReviewResult:
    issues: list[ReviewIssue] = field(default_factory=list)
    summary: str = ""

    def count(self, severity: Severity) -> int:
        return sum(1 for issue in self.issues if issue.severity is severity)


@dataclass(frozen=True)
class PromptMetadata:
    id: int
    title: str
    description: str
    source_branch: str
    target_branch: str
    author: str


@dataclass(frozen=True)
class ReviewPrompt:
    """Read-only input handed to a provider.

    ``diffs`` is an ordered sequence of (path, diff text) pairs.
    ``clean_code_guide`` is already truncated by the caller.
    """

    pr_metadata: PromptMetadata
    diffs: tuple[tuple[str, str], ...]
    rules: str
    clean_code_guide: str | None = None
