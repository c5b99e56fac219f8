"""review command — run AI review on an Azure DevOps pull request."""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.markup import escape

from prreview_core.auth import static_token
from prreview_core.exceptions import PRReviewError
from prreview_core.providers.models import Severity
from prreview_core.providers.registry import PROVIDER_NAMES
from prreview_core.reviewer import PRReviewer, ReviewOptions, ReviewOutput

console = Console()
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_BLOCKED = 1
EXIT_ERROR = 2


def exit_code_for(output: ReviewOutput) -> int:
    """Any BLOCK issue gates the merge."""
    return EXIT_BLOCKED if output.has_blockers else EXIT_OK


def _print_result(output: ReviewOutput, dry_run: bool) -> None:
    result = output.result
    block = result.count(Severity.BLOCK)
    high = result.count(Severity.HIGH)
    medium = result.count(Severity.MEDIUM)

    block_text = f"[red]{block} BLOCK[/red]" if block else "[green]0 BLOCK[/green]"
    high_text = f"[yellow]{high} HIGH[/yellow]" if high else "[green]0 HIGH[/green]"

    console.print("\n[bold]Result:[/bold]")
    console.print(f"{block_text} | {high_text} | {medium} MEDIUM")

    if not dry_run:
        console.print(f"[dim]\nPosted {output.posted_comments} inline comment(s)[/dim]")
        if output.summary_posted:
            console.print("[dim]Summary comment posted[/dim]")
        if output.failures:
            console.print(f"[yellow]{len(output.failures)} comment(s) could not be posted.[/yellow]")


@click.command("review")
@click.option("--org", "-o", "organization", default=None, help="Azure DevOps organization name.")
@click.option("--project", "-p", default=None, help="Azure DevOps project name.")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request ID.")
@click.option("--repo", "-r", default=None, help="Repository name or ID (defaults to the project name).")
@click.option(
    "--provider",
    type=click.Choice(PROVIDER_NAMES),
    default=None,
    help="LLM provider. Overrides config file.",
)
@click.option("--model", "-m", default=None, help="Model (or Azure deployment) name. Overrides config file.")
@click.option("--dry-run", is_flag=True, help="Show the review without posting comments.")
@click.option("--config", "-c", "config_path", default=None, help="Path to a config file.")
@click.pass_context
def review_cmd(
    ctx,
    organization: str | None,
    project: str | None,
    pr_number: int,
    repo: str | None,
    provider: str | None,
    model: str | None,
    dry_run: bool,
    config_path: str | None,
):
    """Review a pull request with an LLM and post the findings.

    Exits 0 when no BLOCK issue was found, 1 when at least one was, and 2 on error.

    \b
    Environment variables:
      AZURE_DEVOPS_PAT       Azure DevOps token (or use `az login`)
      ANTHROPIC_API_KEY      Required with --provider claude
      OPENAI_API_KEY         Required with --provider openai
      AZURE_OPENAI_API_KEY   Required with --provider azure-openai
      AZURE_OPENAI_ENDPOINT  Required with --provider azure-openai
    """
    from prreview_cli.auth import resolve_azure_devops_token
    from prreview_core.config import load_config, validate_config

    config = load_config(config_path, cli_overrides={"provider": provider, "model": model})

    organization = organization or config.get("organization")
    project = project or config.get("project")
    if not organization or not project:
        raise click.UsageError("Both --org and --project are required (or set organization/project in the config).")

    token = resolve_azure_devops_token()
    if not token:
        raise click.UsageError(
            "No Azure DevOps token found. Set AZURE_DEVOPS_PAT or run `az login` first."
        )

    console.print("[bold]PR Review[/bold]")
    try:
        validate_config(config)
        reviewer = PRReviewer(config, organization, project, get_token=static_token(token))
        output = reviewer.review(
            ReviewOptions(repository_id=repo or project, pull_request_id=pr_number, dry_run=dry_run)
        )
    except PRReviewError as e:
        console.print(f"[red]\nError:[/red] {escape(str(e))}")
        ctx.exit(EXIT_ERROR)
    except Exception as e:
        logger.debug("Unexpected failure", exc_info=True)
        console.print(f"[red]\nFatal error:[/red] {escape(str(e))}")
        ctx.exit(EXIT_ERROR)

    _print_result(output, dry_run)
    ctx.exit(exit_code_for(output))
