"""Commit history aggregation, including direct (non pull request) commits."""

import logging
from datetime import datetime
from typing import Any, Iterable, Mapping

from .errors import AuthenticationError, ForgeError
from .forge_client import ForgeClient
from .models import AuthorCommitStats, CommitRecord, DirectCommitStats, Repository, TimeFrame
from .outcome import SkipReason, SkipReport, capture, reason_for
from .pagination import RateLimiter
from .repositories import fetch_repositories
from .timeframes import parse_timestamp, since_param

logger = logging.getLogger(__name__)

COMMIT_PAGE_THROTTLE = 3
THROTTLE_PAUSE = 1.0
USER_COMMIT_LIMIT = 20


def commit_author(commit: dict[str, Any]) -> str | None:
    """Linked account login, else the raw commit author email, else None."""
    login = (commit.get("author") or {}).get("login")
    if login:
        return login
    return ((commit.get("commit") or {}).get("author") or {}).get("email") or None


def commit_date(commit: dict[str, Any]) -> datetime:
    meta = commit.get("commit") or {}
    raw = (meta.get("author") or {}).get("date") or (meta.get("committer") or {}).get("date")
    return parse_timestamp(raw)


def attribution_targets(repositories: Iterable[Repository], org: str) -> list[tuple[str, str]]:
    """Distinct (owner, name) pairs to scan, forks credited to their parent.

    Two forks of the same parent map to one target, so each commit is only
    counted once per repository.
    """
    return sorted({repo.attribution(org) for repo in repositories})


def merge_author_maps(
    a: Mapping[str, AuthorCommitStats], b: Mapping[str, AuthorCommitStats]
) -> dict[str, AuthorCommitStats]:
    merged = dict(a)
    for author, stats in b.items():
        merged[author] = merged[author] + stats if author in merged else stats
    return merged


def merge_direct_commits(
    a: Mapping[str, DirectCommitStats], b: Mapping[str, DirectCommitStats]
) -> dict[str, DirectCommitStats]:
    merged = dict(a)
    for author, stats in b.items():
        merged[author] = merged[author] + stats if author in merged else stats
    return merged


async def fetch_repository_commit_history(
    client: ForgeClient,
    owner: str,
    repo: str,
    timeframe: TimeFrame | str = TimeFrame.ALL,
    limiter: RateLimiter | None = None,
    report: SkipReport | None = None,
    now: datetime | None = None,
) -> dict[str, AuthorCommitStats]:
    """Walk the full commit history of a repository and total it per author.

    Args:
        client: Forge client
        owner: Repository owner
        repo: Repository name
        timeframe: Only commits inside this window are counted
        limiter: Throttle consulted between pages (default: pause every 3rd page)
        report: Optional report that skipped commits are recorded in
        now: Reference time for the window

    Returns:
        Mapping of author (login or email) to commit totals
    """
    report = report if report is not None else SkipReport()
    limiter = limiter or RateLimiter(COMMIT_PAGE_THROTTLE, THROTTLE_PAUSE)
    since = since_param(timeframe, now)

    logger.info(f"Fetching commit history for {owner}/{repo}")
    author_stats: dict[str, AuthorCommitStats] = {}

    try:
        async for page in client.list_commits(owner, repo, since=since, limiter=limiter):
            for commit in page:
                sha = commit.get("sha", "")
                author = commit_author(commit)
                if author is None:
                    report.skip(SkipReason.UNATTRIBUTED, f"commit {owner}/{repo}@{sha} has no author")
                    continue

                result = await capture(client.get_commit(owner, repo, sha), f"commit {owner}/{repo}@{sha}", report)
                if not result.ok:
                    continue

                additions, deletions = client.commit_diff_stats(result.value)
                contribution = {author: AuthorCommitStats(commits=1, additions=additions, deletions=deletions)}
                author_stats = merge_author_maps(author_stats, contribution)
    except AuthenticationError:
        raise
    except ForgeError as e:
        # Keep whatever pages were already read
        logger.error(f"Error fetching commits for {owner}/{repo}: {e}")
        report.skip(reason_for(e), f"commit history {owner}/{repo}: {e}")

    return author_stats


async def fetch_admin_logins(
    client: ForgeClient,
    org: str,
    repositories: Iterable[Repository],
    report: SkipReport | None = None,
) -> set[str]:
    """Organization admins plus anyone with admin permission on a repository."""
    report = report if report is not None else SkipReport()
    admins: set[str] = set()

    try:
        async for member in client.list_org_members(org, role="admin").items():
            admins.add(member["login"])
        logger.info(f"Found {len(admins)} admins in the organization")
    except AuthenticationError:
        raise
    except ForgeError as e:
        logger.error(f"Error fetching organization admins: {e}")
        report.skip(reason_for(e), f"organization admins: {e}")

    for repo in repositories:
        try:
            async for collaborator in client.list_repo_collaborators(org, repo.name).items():
                if (collaborator.get("permissions") or {}).get("admin"):
                    admins.add(collaborator["login"])
        except AuthenticationError:
            raise
        except ForgeError as e:
            logger.warning(f"Error fetching collaborators for {repo.name}: {e}")
            report.skip(reason_for(e), f"collaborators for {repo.name}: {e}")

    return admins


async def fetch_admin_direct_commits(
    client: ForgeClient,
    org: str,
    timeframe: TimeFrame | str = TimeFrame.ALL,
    repositories: list[Repository] | None = None,
    limiter: RateLimiter | None = None,
    report: SkipReport | None = None,
    now: datetime | None = None,
) -> dict[str, DirectCommitStats]:
    """Commit totals per author across every repository in the organization.

    Maintainers often push straight to the default branch, so their work is
    invisible to a pull-request-only scan. The admin set is logged for
    context but the result covers every author found; the leaderboard decides
    how to reconcile it with pull request line counts.

    Args:
        client: Forge client
        org: Organization login
        timeframe: Window applied to commit dates
        repositories: Pre-fetched repositories (fetched when None)
        limiter: Throttle shared by every commit history scan
        report: Optional report that skipped items are recorded in
        now: Reference time for the window

    Returns:
        Mapping of author to total commits and changed lines
    """
    report = report if report is not None else SkipReport()
    if repositories is None:
        repositories = await fetch_repositories(client, org, report=report)

    admins = await fetch_admin_logins(client, org, repositories, report)
    logger.info(f"Total admin users found (org admins + repo admins): {len(admins)}")

    limiter = limiter or RateLimiter(COMMIT_PAGE_THROTTLE, THROTTLE_PAUSE)
    totals: dict[str, DirectCommitStats] = {}

    for owner, name in attribution_targets(repositories, org):
        history = await fetch_repository_commit_history(client, owner, name, timeframe, limiter, report, now)
        repo_totals = {
            author: DirectCommitStats(commits=stats.commits, lines_of_code=stats.lines_of_code)
            for author, stats in history.items()
        }
        totals = merge_direct_commits(totals, repo_totals)

    return totals


async def fetch_user_commits(
    client: ForgeClient,
    org: str,
    username: str,
    timeframe: TimeFrame | str = TimeFrame.ALL,
    limit: int = USER_COMMIT_LIMIT,
    repositories: list[Repository] | None = None,
    report: SkipReport | None = None,
    now: datetime | None = None,
) -> list[CommitRecord]:
    """Recent commits by one user across the organization, newest first.

    At most ``limit`` commits are fetched in detail.
    """
    report = report if report is not None else SkipReport()
    if repositories is None:
        repositories = await fetch_repositories(client, org, report=report)

    logger.info(f"Fetching commits for user {username} in {org}")
    since = since_param(timeframe, now)
    records: list[CommitRecord] = []

    for owner, name in attribution_targets(repositories, org):
        if len(records) >= limit:
            break

        try:
            commits = await client.list_commits(owner, name, author=username, since=since, max_pages=1).first_page()
        except AuthenticationError:
            raise
        except ForgeError as e:
            logger.warning(f"Error fetching commits for {name}: {e}")
            report.skip(reason_for(e), f"commits for {username} in {name}: {e}")
            continue

        for commit in commits:
            if len(records) >= limit:
                break

            sha = commit.get("sha", "")
            result = await capture(client.get_commit(owner, name, sha), f"commit {owner}/{name}@{sha}", report)
            if not result.ok:
                continue

            additions, deletions = client.commit_diff_stats(result.value)
            records.append(
                CommitRecord(
                    author=username,
                    sha=sha,
                    message=(commit.get("commit") or {}).get("message", ""),
                    date=commit_date(commit),
                    url=commit.get("html_url", ""),
                    additions=additions,
                    deletions=deletions,
                    repository=name,
                )
            )

    return sorted(records, key=lambda c: c.date, reverse=True)
