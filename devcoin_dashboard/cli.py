"""Command-line interface for devcoin-dashboard."""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import Settings, load_config, settings_from_env
from .errors import DashboardError, PermissionOrRateLimitError
from .models import TimeFrame
from .report import (
    build_leaderboard_markdown,
    build_members_markdown,
    build_repositories_markdown,
    write_markdown,
)
from .service import OrgDashboard

app = typer.Typer(help="Dev Coins leaderboard and member directory for a GitHub organization")
console = Console()

T = TypeVar("T")

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to configuration file (defaults to GITHUB_TOKEN / GITHUB_ORG)",
    exists=True,
    file_okay=True,
    dir_okay=False,
)
OUTPUT_OPTION = typer.Option(
    None,
    "--output",
    "-o",
    help="Also write the result as a Markdown file",
)


def main():
    """Entry point for the CLI application."""
    app()


@app.callback()
def setup(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show progress and request logs"),
):
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_settings(config_file: Path | None) -> Settings:
    try:
        return load_config(config_file) if config_file else settings_from_env()
    except Exception as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(1)


def _run(settings: Settings, description: str, operation: Callable[[OrgDashboard], Awaitable[T]]) -> tuple[T, OrgDashboard]:
    """Run one dashboard operation behind a spinner, exiting on typed errors."""
    dashboard = OrgDashboard(settings)

    async def runner() -> T:
        async with dashboard:
            return await operation(dashboard)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(description, total=None)
        try:
            result = asyncio.run(runner())
        except PermissionOrRateLimitError as e:
            console.print(f"[red]GitHub refused the request:[/red] {e}")
            if e.rate_limited:
                console.print("[yellow]Rate limit exhausted, try again later.[/yellow]")
            raise typer.Exit(1)
        except DashboardError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)

    if dashboard.last_report.total:
        console.print(
            f"[yellow]Warning: {dashboard.last_report.total} items could not be fetched; "
            f"results may be incomplete.[/yellow]"
        )
    return result, dashboard


@app.command()
def leaderboard(
    timeframe: TimeFrame = typer.Option(TimeFrame.ALL, "--timeframe", "-t", help="Contribution window"),
    config_file: Path = CONFIG_OPTION,
    output: Path = OUTPUT_OPTION,
):
    """Rank contributors by Dev Coins."""
    settings = _load_settings(config_file)
    rows, dashboard = _run(
        settings,
        f"Building {timeframe.value} leaderboard for {settings.github.org}...",
        lambda d: d.fetch_leaderboard_data(timeframe),
    )

    table = Table(title=f"Dev Coins Leaderboard - {settings.github.org} ({timeframe.value})")
    for column in ("Rank", "User", "Dev Coins", "Merged PRs", "Open PRs", "Commits", "Lines of Code"):
        table.add_column(column, justify="left" if column == "User" else "right")
    for rank, stats in enumerate(rows, start=1):
        table.add_row(
            str(rank),
            stats.name or stats.username,
            str(stats.dev_coins),
            str(stats.merged_pull_requests),
            str(stats.open_pull_requests),
            str(stats.total_commits),
            str(stats.total_lines_of_code),
        )
    console.print(table)

    if output:
        write_markdown(
            build_leaderboard_markdown(settings.github.org, timeframe.value, rows, dashboard.last_report),
            output,
        )
        console.print(f"[bold green]Report generated:[/bold green] {output}")


@app.command()
def members(
    config_file: Path = CONFIG_OPTION,
    output: Path = OUTPUT_OPTION,
):
    """List organization members, collaborators and their Dev Coins."""
    settings = _load_settings(config_file)
    roster, dashboard = _run(
        settings,
        f"Fetching members of {settings.github.org}...",
        lambda d: d.fetch_organization_members(),
    )

    table = Table(title=f"Members - {settings.github.org}")
    for column in ("Username", "Name", "Role", "Teams", "Dev Coins"):
        table.add_column(column)
    for member in roster:
        table.add_row(
            member.username,
            member.name,
            member.role,
            ", ".join(member.team_names),
            str(member.dev_coins),
        )
    console.print(table)

    if output:
        write_markdown(build_members_markdown(settings.github.org, roster, dashboard.last_report), output)
        console.print(f"[bold green]Report generated:[/bold green] {output}")


@app.command()
def repos(
    config_file: Path = CONFIG_OPTION,
    output: Path = OUTPUT_OPTION,
):
    """List the organization's repositories with recent pull requests."""
    settings = _load_settings(config_file)
    repositories, _ = _run(
        settings,
        f"Fetching repositories of {settings.github.org}...",
        lambda d: d.fetch_repositories(),
    )

    table = Table(title=f"Repositories - {settings.github.org}")
    for column in ("Name", "Language", "Stars", "Open Issues", "Recent PRs", "Fork of"):
        table.add_column(column)
    for repo in repositories:
        parent = f"{repo.parent_repo.owner}/{repo.parent_repo.name}" if repo.parent_repo else ""
        table.add_row(
            repo.name,
            repo.language,
            str(repo.stars),
            str(repo.open_issues),
            str(len(repo.pull_requests)),
            parent,
        )
    console.print(table)

    if output:
        write_markdown(build_repositories_markdown(settings.github.org, repositories), output)
        console.print(f"[bold green]Report generated:[/bold green] {output}")


@app.command()
def commits(
    username: str = typer.Argument(..., help="GitHub username"),
    timeframe: TimeFrame = typer.Option(TimeFrame.ALL, "--timeframe", "-t", help="Commit window"),
    config_file: Path = CONFIG_OPTION,
):
    """Show a user's recent commits across the organization."""
    settings = _load_settings(config_file)
    records, _ = _run(
        settings,
        f"Fetching commits by {username}...",
        lambda d: d.fetch_user_commits(username, timeframe),
    )

    table = Table(title=f"Commits by {username} ({timeframe.value})")
    for column in ("Date", "Repository", "SHA", "+", "-", "Message"):
        table.add_column(column)
    for record in records:
        table.add_row(
            record.date.strftime("%Y-%m-%d"),
            record.repository,
            record.sha[:7],
            str(record.additions),
            str(record.deletions),
            record.message.splitlines()[0] if record.message else "",
        )
    console.print(table)


@app.command()
def contributions(
    username: str = typer.Argument(..., help="GitHub username"),
    config_file: Path = CONFIG_OPTION,
):
    """Show the issues and pull requests a user opened, with points."""
    settings = _load_settings(config_file)
    items, _ = _run(
        settings,
        f"Fetching contributions by {username}...",
        lambda d: d.fetch_user_contributions(username),
    )

    table = Table(title=f"Contributions by {username}")
    for column in ("Date", "Type", "Repository", "Status", "Points", "Title"):
        table.add_column(column)
    for item in items:
        table.add_row(
            item.created_at.strftime("%Y-%m-%d"),
            item.type,
            item.repository,
            item.status,
            str(item.points),
            item.title,
        )
    console.print(table)
    console.print(f"Total points: [bold]{sum(item.points for item in items)}[/bold]")


@app.command("rate-limit")
def rate_limit(config_file: Path = CONFIG_OPTION):
    """Show the remaining GitHub API quota."""
    settings = _load_settings(config_file)
    status, _ = _run(settings, "Checking rate limit...", lambda d: d.rate_limit())
    console.print(f"Remaining: {status.get('remaining', '?')} / {status.get('limit', '?')}")


@app.command()
def validate(config_file: Path = CONFIG_OPTION):
    """Validate the configuration without calling GitHub."""
    settings = _load_settings(config_file)
    console.print("[green]Configuration is valid[/green]")
    console.print(f"\nOrganization: {settings.github.org}")
    console.print(f"Endpoint: {settings.github.endpoint}")
    console.print(f"Token: {'configured' if settings.github.token else 'missing'}")
    console.print(
        f"Cache: members {settings.cache.members_ttl:.0f}s, leaderboard {settings.cache.leaderboard_ttl:.0f}s"
    )
    if not settings.github.token:
        raise typer.Exit(1)


if __name__ == "__main__":
    main()
