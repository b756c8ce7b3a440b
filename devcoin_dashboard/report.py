"""Markdown report generation."""

from datetime import datetime
from pathlib import Path

from .models import GithubMember, Repository, UserStats
from .outcome import SkipReport


def write_markdown(content: str, output_path: str | Path) -> None:
    """Write a Markdown document to a file.

    Args:
        content: Markdown text
        output_path: Path where the report should be written
    """
    output_path = Path(output_path)

    with open(output_path, "w") as f:
        f.write(content)


def _footer(report: SkipReport | None) -> list[str]:
    lines = ["---", ""]
    if report is not None and report.total:
        skipped = ", ".join(f"{reason.value}: {count}" for reason, count in sorted(report.counts.items()))
        lines.append(f"*{report.total} items could not be fetched ({skipped}).*")
        lines.append("")
    lines.append(f"*Report generated on {datetime.now().strftime('%B %d, %Y at %I:%M %p')}*")
    return lines


def build_leaderboard_markdown(
    org: str,
    timeframe: str,
    leaderboard: list[UserStats],
    report: SkipReport | None = None,
) -> str:
    """Build the complete Markdown content for a leaderboard.

    Args:
        org: Organization login
        timeframe: "all", "month" or "week"
        leaderboard: Ranked leaderboard rows
        report: Skipped items of the run, summarised in the footer

    Returns:
        Complete Markdown document as a string
    """
    lines = []

    lines.append(f"# Dev Coins Leaderboard - {org}")
    lines.append("")
    lines.append(f"**Timeframe:** {timeframe}")
    lines.append("")

    lines.append("## Overall Summary")
    lines.append("")
    lines.extend(_build_summary_table(leaderboard))
    lines.append("")

    lines.append("## Rankings")
    lines.append("")
    if leaderboard:
        lines.extend(_build_leaderboard_table(leaderboard))
    else:
        lines.append("*No contributions found.*")
    lines.append("")

    lines.extend(_footer(report))
    return "\n".join(lines)


def build_members_markdown(org: str, members: list[GithubMember], report: SkipReport | None = None) -> str:
    """Build the Markdown member directory."""
    lines = [f"# Members - {org}", ""]

    lines.append("| Member | Role | Teams | Dev Coins | Merged PRs | Commits |")
    lines.append("|--------|------|-------|-----------|------------|---------|")
    for member in members:
        display = f"{member.name} (@{member.username})" if member.name else f"@{member.username}"
        teams = ", ".join(member.team_names) or "-"
        lines.append(
            f"| {display} | {member.role} | {teams} | {member.dev_coins} | "
            f"{member.contributions.merged_pull_requests} | {member.contributions.total_commits} |"
        )
    lines.append("")

    lines.extend(_footer(report))
    return "\n".join(lines)


def build_repositories_markdown(org: str, repositories: list[Repository]) -> str:
    """Build the Markdown project list with recent pull requests."""
    lines = [f"# Repositories - {org}", ""]

    for repo in repositories:
        title = f"{repo.name} (fork of {repo.parent_repo.owner}/{repo.parent_repo.name})" if repo.parent_repo else repo.name
        lines.append(f"## {title}")
        lines.append("")
        if repo.description:
            lines.append(repo.description)
            lines.append("")
        lines.append(f"Language: {repo.language or '-'} | Stars: {repo.stars} | Open issues: {repo.open_issues}")
        lines.append("")

        if repo.pull_requests:
            lines.append("| PR | Author | Status | +/- |")
            lines.append("|----|--------|--------|-----|")
            for pr in repo.pull_requests:
                lines.append(f"| [{pr.title}]({pr.url}) | {pr.author} | {pr.status} | +{pr.additions}/-{pr.deletions} |")
            lines.append("")

    return "\n".join(lines)


def _build_summary_table(leaderboard: list[UserStats]) -> list[str]:
    """Build a summary statistics table.

    Args:
        leaderboard: Leaderboard rows

    Returns:
        List of Markdown table lines
    """
    lines = []
    lines.append("| Metric | Total |")
    lines.append("|--------|-------|")

    lines.append(f"| Contributors | {len(leaderboard)} |")
    lines.append(f"| Merged PRs | {sum(s.merged_pull_requests for s in leaderboard)} |")
    lines.append(f"| Open PRs | {sum(s.open_pull_requests for s in leaderboard)} |")
    lines.append(f"| Commits | {sum(s.total_commits for s in leaderboard)} |")
    lines.append(f"| Lines of Code (PRs) | {sum(s.total_lines_of_code for s in leaderboard)} |")
    lines.append(f"| Dev Coins | {sum(s.dev_coins for s in leaderboard)} |")

    return lines


def _build_leaderboard_table(leaderboard: list[UserStats]) -> list[str]:
    """Build the ranked table, one row per user."""
    lines = []
    lines.append("| Rank | User | Dev Coins | Merged PRs | Open PRs | Commits | Lines of Code |")
    lines.append("|------|------|-----------|------------|----------|---------|---------------|")

    for rank, stats in enumerate(leaderboard, start=1):
        user = f"{stats.name} (@{stats.username})" if stats.name else f"@{stats.username}"
        lines.append(
            f"| {rank} | {user} | {stats.dev_coins} | {stats.merged_pull_requests} | "
            f"{stats.open_pull_requests} | {stats.total_commits} | {stats.total_lines_of_code} |"
        )

    return lines
