"""CLI entry point for pr-review.

Commands:
  review   — run AI review on a pull request
  init     — interactive setup wizard
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.logging import RichHandler

from prreview_cli.commands.init import init_cmd
from prreview_cli.commands.review import review_cmd


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )
    # SDK transport chatter drowns out our own debug output.
    for noisy in ("msrest", "urllib3", "httpx", "anthropic", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@click.group()
@click.version_option(
    version=importlib.metadata.version("pr-review"),
    prog_name="pr-review",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """AI-powered Azure DevOps pull request reviewer."""
    _configure_logging(verbose)


main.add_command(review_cmd)
main.add_command(init_cmd)
