"""
PRT CLI - GitHub PR Tracker.

Commands:
    scan      - Scan local repositories and show open PRs
    init      - Write a starter configuration file
    config    - Show, locate or edit the configuration (show | path | edit)
"""

from __future__ import annotations

import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor

import click
import yaml
from dotenv import load_dotenv

from .config import config_dir

# Load .env from the current directory, then from ~/.prt
load_dotenv()
load_dotenv(config_dir() / ".env")

from . import __version__
from .categorizer import categorize
from .config import (
    GROUP_BY_AUTHOR,
    GROUP_BY_PROJECT,
    ConfigError,
    Flags,
    PrtConfig,
    config_path,
    ensure_config_dir,
)
from .display import ProgressPrinter, render_json, render_text
from .errors import GhError
from .github import GhClient
from .log import setup_logging
from .orchestrator import Orchestrator
from .retry import RetryPolicy
from .scanner import Scanner


SAMPLE_CONFIG = """\
# PRT Configuration

# Your GitHub username (auto-detected through `gh api user` when empty)
github_username: ""

# Where to look for local Git repositories
search_paths:
  - ~/code
  # - ~/work

# Only include repositories whose name matches one of these globs (empty = all)
include_repos: []
  # - "myorg-*"
  # - "*-api"

# How many directory levels below each search path to look for repositories
scan_depth: 3

# Teammates whose PRs get their own section
team_members: []

# Display
default_group_by: project   # project | author
default_sort: oldest        # oldest | newest
show_branch_name: true
show_icons: true
show_other_prs: false
max_pr_age_days: 0          # hide PRs older than N days (0 = show all)

# Fetching
fetch:
  concurrency: 10   # max gh calls in flight
  max_attempts: 3   # attempts per repository for transient failures
  initial_wait: 1.0 # seconds before the first retry, doubled each time
  max_wait: 10.0    # cap on the wait between retries
"""


@click.group()
@click.version_option(version=__version__)
def main():
    """PRT - track GitHub PRs across your local repositories."""
    pass


@main.command()
@click.option("--path", "-p", default=None, help="Search path (overrides config)")
@click.option("--filter", "-f", "repo_filter", default=None, help="Filter repos by name pattern (glob)")
@click.option(
    "--group", "-g",
    type=click.Choice([GROUP_BY_PROJECT, GROUP_BY_AUTHOR]),
    default=None,
    help="Group PRs by project or author",
)
@click.option("--depth", "-d", default=0, type=int, help="Scan depth (0 uses config default)")
@click.option("--max-age", default=0, type=int, help="Hide PRs older than N days (0 uses config default)")
@click.option("--concurrency", "-c", default=0, type=int, help="Max concurrent gh calls (0 uses config default)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--all", "show_all", is_flag=True, help="Include the Other PRs section")
@click.option("--ascii", "ascii_only", is_flag=True, help="Use ASCII instead of Unicode icons")
@click.option("--no-color", is_flag=True, help="Disable colored output (also set by NO_COLOR)")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def scan(
    path: str | None,
    repo_filter: str | None,
    group: str | None,
    depth: int,
    max_age: int,
    concurrency: int,
    as_json: bool,
    show_all: bool,
    ascii_only: bool,
    no_color: bool,
    verbose: bool,
):
    """Scan local repositories and show open PRs."""
    start = time.monotonic()
    setup_logging(verbose)
    color = not no_color and not os.environ.get("NO_COLOR")

    flags = Flags(
        path=path,
        filter=repo_filter,
        group=group,
        depth=depth,
        max_age=max_age,
        concurrency=concurrency,
    )
    try:
        config = PrtConfig.load(flags=flags)
    except ConfigError as e:
        raise click.ClickException(str(e))

    if config.needs_setup():
        raise click.ClickException(
            f"No search paths configured. Run `prt init` and edit {config_path()}, "
            "or pass --path."
        )

    client = GhClient(
        retry_policy=RetryPolicy(
            max_attempts=config.fetch.max_attempts,
            initial_wait=config.fetch.initial_wait,
            max_wait=config.fetch.max_wait,
        )
    )
    scanner = Scanner(config.scan_depth, config.include_repos)

    # gh checks and the filesystem walk are independent; run them together
    with ThreadPoolExecutor(max_workers=2) as pool:
        if config.github_username:
            gh_future = pool.submit(client.check)
        else:
            gh_future = pool.submit(client.check_and_get_user)
        scan_future = pool.submit(scanner.scan, config.search_paths)

        gh_error = gh_future.exception()
        scan_error = scan_future.exception()

    if gh_error is not None:
        if isinstance(gh_error, GhError):
            raise click.ClickException(str(gh_error))
        raise gh_error
    if scan_error is not None:
        raise click.ClickException(f"scan error: {scan_error}")

    if not config.github_username:
        config.github_username = gh_future.result()

    try:
        config.validate()
    except ConfigError as e:
        raise click.ClickException(str(e))

    repos = scan_future.result()
    if not repos:
        click.echo("No Git repositories found in configured paths.")
        return

    show_progress = not as_json and sys.stderr.isatty()
    progress = ProgressPrinter(ascii_only=ascii_only, color=color) if show_progress else None
    Orchestrator(client, config.fetch.concurrency).fetch_all_prs(repos, progress)

    result = categorize(repos, config, config.github_username)
    result.scan_duration = time.monotonic() - start

    show_other = show_all or config.show_other_prs
    if as_json:
        click.echo(render_json(result, show_other_prs=show_other), nl=False)
    else:
        click.echo(render_text(
            result,
            group_by=config.default_group_by,
            show_icons=config.show_icons and not ascii_only,
            show_branches=config.show_branch_name,
            show_other_prs=show_other,
            color=color,
        ), nl=False)


@main.command()
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Write a starter configuration to ~/.prt/config.yaml."""
    ensure_config_dir()
    path = config_path()
    if path.exists() and not force:
        click.echo(f"  Skipped: {path} (already exists, use --force to overwrite)")
        return
    path.write_text(SAMPLE_CONFIG, encoding="utf-8")
    click.echo(f"  Created: {path}")
    click.echo("Edit search_paths, then run: prt scan")


@main.group("config")
def config_group():
    """View and manage the PRT configuration."""
    pass


@config_group.command("show")
def config_show():
    """Show the effective configuration as YAML."""
    try:
        config = PrtConfig.load()
    except ConfigError as e:
        raise click.ClickException(str(e))
    click.echo(f"# {config_path()}")
    click.echo(yaml.safe_dump(config.to_dict(), sort_keys=False), nl=False)


@config_group.command("path")
def config_show_path():
    """Show the path of the configuration file."""
    path = config_path()
    if path.exists():
        click.echo(str(path))
    else:
        click.echo(f"{path} (not created yet)")


@config_group.command("edit")
def config_edit():
    """Open the configuration file in $EDITOR (or $VISUAL, falling back to vi)."""
    ensure_config_dir()
    path = config_path()
    if not path.exists():
        path.write_text(SAMPLE_CONFIG, encoding="utf-8")
        click.echo(f"Created new config file at {path}")
    click.edit(filename=str(path))


if __name__ == "__main__":
    main()
