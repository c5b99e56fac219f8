"""Core PR review orchestration.

One run is a straight line that stops at the first unrecoverable step:

    fetch diff → load rules → analyze → dry-run report | post comments

Only comment posting is best-effort; every step before it is all-or-nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from rich.console import Console
from rich.markup import escape

from prreview_core.auth import TokenProvider, create_pat_authenticator
from prreview_core.client import AzureDevOpsClient
from prreview_core.config import load_rules, load_style_guide
from prreview_core.exceptions import AnalysisError, PostingError, UpstreamFetchError
from prreview_core.pr.comment import CommentPoster, InlineComment
from prreview_core.pr.fetch import PullRequestFetcher
from prreview_core.pr.models import PullRequestDiff
from prreview_core.providers.base import BaseReviewer
from prreview_core.providers.models import PromptMetadata, ReviewIssue, ReviewPrompt, ReviewResult, Severity
from prreview_core.providers.registry import get_reviewer

console = Console()
logger = logging.getLogger(__name__)

_SEVERITY_COLOR = {Severity.BLOCK: "red", Severity.HIGH: "yellow", Severity.MEDIUM: "blue"}


@dataclass
class ReviewOptions:
    repository_id: str
    pull_request_id: int
    dry_run: bool = False


@dataclass
class PostingReport:
    """Running tally of the best-effort posting loop."""

    posted: int = 0
    failures: list[PostingError] = field(default_factory=list)

    def record(self, error: PostingError | None) -> PostingReport:
        if error is None:
            self.posted += 1
        else:
            self.failures.append(error)
        return self


@dataclass
class ReviewOutput:
    result: ReviewResult
    posted_comments: int = 0
    summary_posted: bool = False
    failures: list[PostingError] = field(default_factory=list)

    @property
    def has_blockers(self) -> bool:
        return any(issue.severity is Severity.BLOCK for issue in self.result.issues)


def format_comment(issue: ReviewIssue) -> str:
    return f"**[{issue.severity.value}] {issue.category}**\n\n> {issue.message}\n\n**Fix:** {issue.fix}"


def build_prompt(pr_diff: PullRequestDiff, rules: str, clean_code_guide: str | None = None) -> ReviewPrompt:
    pr = pr_diff.pr
    return ReviewPrompt(
        pr_metadata=PromptMetadata(
            id=pr.id,
            title=pr.title,
            description=pr.description,
            source_branch=pr.source_branch,
            target_branch=pr.target_branch,
            author=pr.author.display_name,
        ),
        diffs=tuple((d.path, d.diff) for d in pr_diff.diffs),
        rules=rules,
        clean_code_guide=clean_code_guide,
    )


def print_dry_run(result: ReviewResult) -> None:
    """Print the review to the terminal without touching the pull request."""
    if not result.issues:
        console.print("[yellow]Dry run: no issues found.[/yellow]")
    else:
        console.print(f"\n[bold]Dry run: {len(result.issues)} comment(s) would be posted[/bold]\n")
    for issue in result.issues:
        color = _SEVERITY_COLOR[issue.severity]
        console.print(
            f"  [{color}][{issue.severity.value}][/{color}] {escape(issue.category)} "
            f"([bold cyan]{escape(issue.file)}[/bold cyan]:{issue.line})"
        )
        console.print(f"    {escape(issue.message)}")
        console.print(f"    [dim]Fix:[/dim] {escape(issue.fix)}\n")
    console.print(f"Summary: {escape(result.summary)}")


def _attempt(post: Callable[[], int], file_path: str | None = None, line: int | None = None) -> PostingError | None:
    """Run one post and turn any failure into a PostingError value."""
    try:
        post()
    except Exception as e:
        where = f" on {file_path}:{line}" if file_path else ""
        logger.warning("Failed to post comment%s: %s", where, e)
        error = PostingError(f"Failed to post comment{where}: {e}", file_path=file_path, line=line)
        error.__cause__ = e
        return error
    return None


class PRReviewer:
    def __init__(
        self,
        config: dict,
        organization: str,
        project: str,
        get_token: TokenProvider | None = None,
        client: AzureDevOpsClient | None = None,
    ):
        self.config = config
        self.project = project
        self.client = client or AzureDevOpsClient(organization, get_token or create_pat_authenticator())
        self.fetcher = PullRequestFetcher(self.client, project)
        self.poster = CommentPoster(self.client, project)

    def review(self, options: ReviewOptions) -> ReviewOutput:
        # Configuration errors surface here, before any network call.
        llm = self._build_reviewer()

        pr_diff = self._fetch_diff(options)

        rules = load_rules(self.config)
        guide = load_style_guide(self.config)

        result = self._analyze(llm, build_prompt(pr_diff, rules, guide))

        if options.dry_run:
            print_dry_run(result)
            return ReviewOutput(result=result)

        return self._post(options, result)

    def _fetch_diff(self, options: ReviewOptions) -> PullRequestDiff:
        console.print(f"Fetching PR #{options.pull_request_id}...")
        try:
            pr_diff = self.fetcher.fetch_full_diff(options.repository_id, options.pull_request_id)
        except Exception as e:
            raise UpstreamFetchError(
                f"Could not fetch PR #{options.pull_request_id} from {options.repository_id}: {e}"
            ) from e
        console.print(f"Found {len(pr_diff.files)} changed file(s)")
        return pr_diff

    def _build_reviewer(self) -> BaseReviewer:
        return get_reviewer(
            self.config.get("provider", ""),
            api_key=self.config.get("api_key"),
            model=self.config.get("model"),
            endpoint=self.config.get("endpoint"),
            api_version=self.config.get("api_version"),
        )

    def _analyze(self, llm: BaseReviewer, prompt: ReviewPrompt) -> ReviewResult:
        provider = self.config["provider"]
        console.print(f"Analyzing with {provider}...")
        try:
            return llm.review(prompt)
        except Exception as e:
            raise AnalysisError(f"{provider} review failed: {e}", provider=provider) from e

    def _post(self, options: ReviewOptions, result: ReviewResult) -> ReviewOutput:
        repo_id, pr_id = options.repository_id, options.pull_request_id
        console.print("\nPosting comments...")

        report = PostingReport()
        for issue in result.issues:
            comment = InlineComment(file_path=issue.file, line=issue.line, content=format_comment(issue))
            error = _attempt(
                lambda: self.poster.post_inline_comment(repo_id, pr_id, comment),
                file_path=issue.file,
                line=issue.line,
            )
            report = report.record(error)
            status = "[green]posted[/green]" if error is None else "[red]failed[/red]"
            location = escape(f"{issue.file}:{issue.line}")
            console.print(f"  [{issue.severity.value}] {escape(issue.category)} ({location}) {status}")

        summary_error = _attempt(lambda: self.poster.post_summary_comment(repo_id, pr_id, result.summary))
        if summary_error is None:
            console.print("Summary posted.")
        else:
            report.failures.append(summary_error)

        return ReviewOutput(
            result=result,
            posted_comments=report.posted,
            summary_posted=summary_error is None,
            failures=report.failures,
        )
