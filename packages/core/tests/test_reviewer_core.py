"""Tests for the review pipeline: PRReviewer.review and its helpers."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from prreview_core.exceptions import (
    AnalysisError,
    ConfigurationError,
    PostingError,
    ResponseParseError,
    UpstreamFetchError,
)
from prreview_core.pr.models import Author, ChangeType, FileChange, FileDiff, PullRequestDiff, PullRequestInfo
from prreview_core.providers.models import ReviewIssue, ReviewResult, Severity
from prreview_core.reviewer import (
    PostingReport,
    PRReviewer,
    ReviewOptions,
    ReviewOutput,
    build_prompt,
    format_comment,
    print_dry_run,
)

OPTIONS = ReviewOptions(repository_id="repo", pull_request_id=42)
DRY_RUN = ReviewOptions(repository_id="repo", pull_request_id=42, dry_run=True)


def make_issue(severity=Severity.HIGH, file="/src/a.cs", line=3):
    return ReviewIssue(
        file=file,
        line=line,
        severity=severity,
        category="Security",
        message="Token logged in plain text",
        fix="Remove the log line",
    )


def make_pr_diff():
    pr = PullRequestInfo(
        id=42,
        title="Add login",
        description="",
        source_branch="feature/login",
        target_branch="main",
        author=Author(display_name="Ada", email="ada@example.com"),
        created_date=datetime(2024, 5, 1, tzinfo=timezone.utc),
        status="active",
        repository_id="repo",
        project_name="Proj",
    )
    return PullRequestDiff(
        pr=pr,
        files=(FileChange(path="/src/a.cs", change_type=ChangeType.EDIT),),
        diffs=(FileDiff(path="/src/a.cs", diff="--- a/src/a.cs\n+++ b/src/a.cs\n"),),
    )


def _base_config(tmp_path):
    return {
        "provider": "claude",
        "model": "claude-sonnet-4-20250514",
        "api_key": "key",
        "endpoint": None,
        "api_version": None,
        "rules": {"path": None, "style_guide": str(tmp_path / "no-guide.md")},
    }


@pytest.fixture
def build_reviewer(mocker, tmp_path):
    """Return a factory for a PRReviewer whose fetcher, LLM and poster are mocks."""

    def _build(result=None, config=None):
        reviewer = PRReviewer(config or _base_config(tmp_path), "contoso", "Proj", client=MagicMock())
        reviewer.fetcher = MagicMock()
        reviewer.fetcher.fetch_full_diff.return_value = make_pr_diff()
        reviewer.poster = MagicMock()
        llm = MagicMock()
        llm.review.return_value = result if result is not None else ReviewResult(issues=[], summary="ok")
        get_reviewer = mocker.patch("prreview_core.reviewer.get_reviewer", return_value=llm)
        return reviewer, llm, get_reviewer

    return _build


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_format_comment_template():
    body = format_comment(make_issue(Severity.BLOCK))
    assert body == "**[BLOCK] Security**\n\n> Token logged in plain text\n\n**Fix:** Remove the log line"


def test_build_prompt_uses_diffs_in_order():
    prompt = build_prompt(make_pr_diff(), "rules", "guide")
    assert prompt.pr_metadata.author == "Ada"
    assert prompt.pr_metadata.source_branch == "feature/login"
    assert prompt.diffs == (("/src/a.cs", "--- a/src/a.cs\n+++ b/src/a.cs\n"),)
    assert prompt.rules == "rules"
    assert prompt.clean_code_guide == "guide"


def test_posting_report_fold():
    report = PostingReport()
    report.record(None).record(PostingError("x")).record(None)
    assert report.posted == 2
    assert len(report.failures) == 1


def test_has_blockers():
    assert ReviewOutput(result=ReviewResult(issues=[make_issue(Severity.BLOCK)])).has_blockers
    assert not ReviewOutput(result=ReviewResult(issues=[make_issue(Severity.HIGH)])).has_blockers


def test_print_dry_run_handles_markup_characters(capsys):
    issue = make_issue()
    issue.message = "Use [bold] carefully"
    print_dry_run(ReviewResult(issues=[issue], summary="[done]"))
    out = capsys.readouterr().out
    assert "[bold]" in out
    assert "[done]" in out


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class TestProviderSetup:
    def _reviewer(self, tmp_path, **overrides):
        config = dict(_base_config(tmp_path), **overrides)
        reviewer = PRReviewer(config, "contoso", "Proj", client=MagicMock())
        reviewer.fetcher = MagicMock()
        reviewer.poster = MagicMock()
        return reviewer

    def test_unknown_provider_fails_before_fetching(self, tmp_path):
        reviewer = self._reviewer(tmp_path, provider="bard")

        with pytest.raises(ConfigurationError, match="bard"):
            reviewer.review(OPTIONS)

        reviewer.fetcher.fetch_full_diff.assert_not_called()
        assert reviewer.poster.method_calls == []

    def test_missing_azure_endpoint_fails_before_fetching(self, tmp_path):
        reviewer = self._reviewer(tmp_path, provider="azure-openai", endpoint=None)

        with pytest.raises(ConfigurationError, match="endpoint"):
            reviewer.review(OPTIONS)

        reviewer.fetcher.fetch_full_diff.assert_not_called()

    def test_configuration_error_from_dispatch_is_not_wrapped(self, tmp_path, mocker):
        mocker.patch("prreview_core.reviewer.get_reviewer", side_effect=ConfigurationError("no key"))
        reviewer = self._reviewer(tmp_path)

        with pytest.raises(ConfigurationError) as exc:
            reviewer.review(DRY_RUN)

        assert not isinstance(exc.value, AnalysisError)
        reviewer.fetcher.fetch_full_diff.assert_not_called()


class TestFetchStep:
    def test_fetch_failure_is_fatal_and_wrapped(self, build_reviewer):
        reviewer, llm, _ = build_reviewer()
        reviewer.fetcher.fetch_full_diff.side_effect = ConnectionError("no route")

        with pytest.raises(UpstreamFetchError) as exc:
            reviewer.review(OPTIONS)

        assert isinstance(exc.value.__cause__, ConnectionError)
        llm.review.assert_not_called()
        reviewer.poster.post_summary_comment.assert_not_called()


class TestAnalyzeStep:
    def test_prompt_carries_rules_and_truncated_guide(self, build_reviewer, tmp_path):
        guide = tmp_path / "guide.md"
        guide.write_text("g" * 25_000)
        rules = tmp_path / "rules.md"
        rules.write_text("Team rules")
        config = _base_config(tmp_path)
        config["rules"] = {"path": str(rules), "style_guide": str(guide)}
        reviewer, llm, _ = build_reviewer(config=config)

        reviewer.review(DRY_RUN)

        prompt = llm.review.call_args.args[0]
        assert prompt.rules == "Team rules"
        assert len(prompt.clean_code_guide) == 20_000

    def test_missing_guide_means_no_guide(self, build_reviewer):
        reviewer, llm, _ = build_reviewer()

        reviewer.review(DRY_RUN)

        assert llm.review.call_args.args[0].clean_code_guide is None

    def test_reviewer_built_from_config(self, build_reviewer):
        reviewer, _, get_reviewer = build_reviewer()

        reviewer.review(DRY_RUN)

        args, kwargs = get_reviewer.call_args
        assert args[0] == "claude"
        assert kwargs["api_key"] == "key"
        assert kwargs["model"] == "claude-sonnet-4-20250514"

    def test_parse_error_wrapped_with_provider(self, build_reviewer):
        reviewer, llm, _ = build_reviewer()
        llm.review.side_effect = ResponseParseError("no json", "garbage")

        with pytest.raises(AnalysisError) as exc:
            reviewer.review(OPTIONS)

        assert exc.value.provider == "claude"
        assert isinstance(exc.value.__cause__, ResponseParseError)
        assert exc.value.__cause__.raw == "garbage"
        reviewer.poster.post_inline_comment.assert_not_called()
        reviewer.poster.post_summary_comment.assert_not_called()

    def test_api_failure_wrapped_and_no_other_provider_tried(self, build_reviewer):
        reviewer, llm, get_reviewer = build_reviewer()
        llm.review.side_effect = RuntimeError("overloaded")

        with pytest.raises(AnalysisError):
            reviewer.review(OPTIONS)

        get_reviewer.assert_called_once()


class TestDryRun:
    def test_dry_run_never_posts(self, build_reviewer):
        result = ReviewResult(issues=[make_issue(Severity.BLOCK), make_issue(Severity.MEDIUM)], summary="s")
        reviewer, _, _ = build_reviewer(result)

        output = reviewer.review(DRY_RUN)

        assert reviewer.poster.method_calls == []
        assert output.result is result
        assert output.posted_comments == 0
        assert output.summary_posted is False


class TestPostComments:
    def test_posts_every_issue_then_summary(self, build_reviewer):
        issues = [make_issue(Severity.HIGH, line=1), make_issue(Severity.MEDIUM, line=2)]
        reviewer, _, _ = build_reviewer(ReviewResult(issues=issues, summary="Two issues"))

        output = reviewer.review(OPTIONS)

        calls = reviewer.poster.post_inline_comment.call_args_list
        assert [c.args[2].line for c in calls] == [1, 2]
        assert calls[0].args[:2] == ("repo", 42)
        assert calls[0].args[2].content == format_comment(issues[0])
        reviewer.poster.post_summary_comment.assert_called_once_with("repo", 42, "Two issues")
        assert output.posted_comments == 2
        assert output.summary_posted is True
        assert output.failures == []

    def test_failed_block_post_does_not_stop_high_post(self, build_reviewer):
        block = make_issue(Severity.BLOCK, line=1)
        high = make_issue(Severity.HIGH, line=2)
        reviewer, _, _ = build_reviewer(ReviewResult(issues=[block, high], summary="s"))

        def post(repo, pr_id, comment):
            if comment.line == 1:
                raise RuntimeError("thread rejected")
            return 99

        reviewer.poster.post_inline_comment.side_effect = post

        output = reviewer.review(OPTIONS)

        assert reviewer.poster.post_inline_comment.call_count == 2
        assert output.posted_comments == 1
        assert output.summary_posted is True
        assert len(output.failures) == 1
        assert output.failures[0].line == 1
        assert isinstance(output.failures[0].__cause__, RuntimeError)
        assert output.has_blockers

    def test_summary_failure_is_not_fatal(self, build_reviewer):
        reviewer, _, _ = build_reviewer(ReviewResult(issues=[make_issue()], summary="s"))
        reviewer.poster.post_summary_comment.side_effect = RuntimeError("down")

        output = reviewer.review(OPTIONS)

        assert output.posted_comments == 1
        assert output.summary_posted is False
        assert len(output.failures) == 1

    def test_no_issues_still_posts_summary(self, build_reviewer):
        reviewer, _, _ = build_reviewer(ReviewResult(issues=[], summary="Ship it!"))

        output = reviewer.review(OPTIONS)

        reviewer.poster.post_inline_comment.assert_not_called()
        reviewer.poster.post_summary_comment.assert_called_once()
        assert output.summary_posted is True
