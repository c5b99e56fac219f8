"""init command — interactive setup wizard.

Writes .pr-review.yml and optionally an Azure Pipelines definition that
runs the review on every pull request.
"""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path

import click
import yaml
from rich.console import Console

from prreview_core.config import API_KEY_ENV_VARS, CONFIG_FILENAME
from prreview_core.providers.registry import PROVIDER_NAMES, Provider

console = Console()
logger = logging.getLogger(__name__)

PIPELINE_FILENAME = "azure-pipelines-pr-review.yml"

# https://dev.azure.com/{org}/{project}/_git/{repo}  or  {org}@vs-ssh.visualstudio.com:v3/{org}/{project}/{repo}
_HTTPS_REMOTE_RE = re.compile(r"dev\.azure\.com/(?P<org>[^/]+)/(?P<project>[^/]+)/_git/(?P<repo>[^/]+?)/?$")
_SSH_REMOTE_RE = re.compile(r"ssh\.dev\.azure\.com:v3/(?P<org>[^/]+)/(?P<project>[^/]+)/(?P<repo>[^/]+?)/?$")

_PIPELINE_TEMPLATE = """\
trigger: none

pr:
  branches:
    include:
      - '*'

pool:
  vmImage: ubuntu-latest

steps:
  - task: UsePythonVersion@0
    inputs:
      versionSpec: "3.12"

  - script: pip install "pr-review[{extra}]=={version}"
    displayName: Install pr-review

  - script: |
      pr-review review \\
        --org {organization} \\
        --project "$(System.TeamProject)" \\
        --repo "$(Build.Repository.Name)" \\
        --pr "$(System.PullRequest.PullRequestId)"
    displayName: Run PR review
    env:
      AZURE_DEVOPS_PAT: $(System.AccessToken)
{env_lines}"""


@click.command("init")
def init_cmd():
    """Set up pr-review for this repository.

    Creates .pr-review.yml and optionally an Azure Pipelines definition.
    """
    console.print("\n[bold cyan]pr-review init[/bold cyan]: setup wizard\n")

    detected = _detect_remote()
    if detected:
        console.print(f"[dim]Detected {detected['org']}/{detected['project']} ({detected['repo']})[/dim]")

    organization = click.prompt("Azure DevOps organization", default=detected["org"] if detected else None)
    project = click.prompt("Azure DevOps project", default=detected["project"] if detected else None)
    provider = click.prompt("LLM provider", type=click.Choice(PROVIDER_NAMES), default=Provider.CLAUDE.value)

    config: dict = {"organization": organization, "project": project, "provider": provider}

    if provider == Provider.AZURE_OPENAI.value:
        config["model"] = click.prompt("Azure OpenAI deployment name", default="gpt-4o")

    rules_path = click.prompt("Path to a custom rules file (blank for built-in rules)", default="", show_default=False)
    if rules_path:
        config["rules"] = {"path": rules_path}

    _write_config(config)
    console.print(f"[green]Created {CONFIG_FILENAME}[/green]")

    if click.confirm(f"\nGenerate {PIPELINE_FILENAME} for Azure Pipelines?", default=True):
        secrets = _write_pipeline(organization, Provider(provider))
        console.print(f"[green]Created {PIPELINE_FILENAME}[/green]")
        console.print(
            f"\n[yellow]Add [bold]{', '.join(secrets)}[/bold] as secret pipeline variables, "
            "and allow the build service to contribute to pull requests.[/yellow]"
        )

    console.print("\n[bold green]Setup complete![/bold green]")
    console.print("Run a review with: [bold]pr-review review --pr <id>[/bold]")


def _detect_remote() -> dict | None:
    """Read org/project/repo from the git origin remote if it points at Azure DevOps."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return parse_remote_url(result.stdout.strip())


def parse_remote_url(url: str) -> dict | None:
    url = url.removesuffix(".git")
    match = _HTTPS_REMOTE_RE.search(url) or _SSH_REMOTE_RE.search(url)
    return match.groupdict() if match else None


def _write_config(config: dict) -> None:
    """Write or update .pr-review.yml, preserving any existing keys."""
    path = Path(CONFIG_FILENAME)
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    existing.update(config)
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))


def _get_version() -> str:
    try:
        from importlib.metadata import version

        return version("pr-review")
    except Exception:
        return "0.1.0"


def _write_pipeline(organization: str, provider: Provider) -> list[str]:
    """Write the pipeline file and return the secret variables it expects."""
    secrets = [API_KEY_ENV_VARS[provider]]
    if provider is Provider.AZURE_OPENAI:
        secrets.append("AZURE_OPENAI_ENDPOINT")
    env_lines = "".join(f"      {name}: $({name})\n" for name in secrets)
    extra = "anthropic" if provider is Provider.CLAUDE else "openai"
    Path(PIPELINE_FILENAME).write_text(
        _PIPELINE_TEMPLATE.format(extra=extra, version=_get_version(), organization=organization, env_lines=env_lines)
    )
    return secrets
