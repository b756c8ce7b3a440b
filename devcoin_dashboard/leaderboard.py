"""Leaderboard: per-user contribution statistics ranked by Dev Coins."""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable, Mapping

from .cache import LEADERBOARD_TTL, Cache, leaderboard_key
from .commits import attribution_targets, fetch_admin_direct_commits
from .errors import AuthenticationError, ForgeError
from .forge_client import ForgeClient
from .models import DirectCommitStats, Tally, TimeFrame, UserStats
from .outcome import SkipReason, SkipReport, capture, reason_for
from .pagination import RateLimiter
from .repositories import fetch_repositories, pull_request_status
from .scoring import DIRECT_COMMIT_BONUS, score_commit_lines, score_pull_request
from .timeframes import cutoff, parse_timestamp, since_param

logger = logging.getLogger(__name__)

SAMPLED_COMMITS = 5


def pull_request_stats(author: str, raw: Mapping[str, Any], detail: Mapping[str, Any] | None) -> UserStats:
    """Leaderboard contribution of a single pull request.

    A missing detail counts as zero diff stats; the pull request still
    earns its base points.
    """
    detail = detail or {}
    additions = detail.get("additions") or 0
    deletions = detail.get("deletions") or 0
    merged = pull_request_status({**raw, **detail}) == "merged"
    is_open = raw.get("state") == "open"

    return UserStats(
        username=author,
        avatar_url=(raw.get("user") or {}).get("avatar_url") or "",
        total_lines_of_code=additions + deletions,
        open_pull_requests=1 if is_open else 0,
        merged_pull_requests=1 if merged and not is_open else 0,
        dev_coins=score_pull_request({"additions": additions, "deletions": deletions, "merged": merged}),
    )


def tally_pull_requests(pulls: Iterable[tuple[Mapping[str, Any], Mapping[str, Any] | None]]) -> Tally:
    """Fold (listing entry, detail) pairs into a tally, skipping unknown authors."""
    tally = Tally()
    for raw, detail in pulls:
        author = (raw.get("user") or {}).get("login")
        if author:
            tally = tally.add(pull_request_stats(author, raw, detail))
    return tally


def reconcile_direct_commits(existing: UserStats | None, username: str, direct: DirectCommitStats) -> UserStats:
    """Fold a direct-commit scan result into a user's row.

    Lines already counted through sampled commits are not counted again:
    only the excess is added to ``total_lines_of_code`` and
    ``commit_lines_of_code`` becomes the larger of the two measurements.
    Commits beyond those already seen earn a bonus each.
    """
    if existing is None:
        return UserStats(
            username=username,
            total_lines_of_code=direct.lines_of_code,
            dev_coins=score_commit_lines(direct.lines_of_code),
            total_commits=direct.commits,
            commit_lines_of_code=direct.lines_of_code,
        )

    new_lines = max(0, direct.lines_of_code - existing.commit_lines_of_code)
    total_commits = existing.total_commits
    dev_coins = existing.dev_coins

    if direct.commits > existing.total_commits:
        dev_coins += (direct.commits - existing.total_commits) * DIRECT_COMMIT_BONUS
        total_commits = direct.commits

    return replace(
        existing,
        total_lines_of_code=existing.total_lines_of_code + new_lines,
        commit_lines_of_code=max(existing.commit_lines_of_code, direct.lines_of_code),
        total_commits=total_commits,
        dev_coins=dev_coins,
    )


def apply_direct_commits(tally: Tally, direct: Mapping[str, DirectCommitStats]) -> Tally:
    for username in sorted(direct):
        tally = tally.put(reconcile_direct_commits(tally.users.get(username), username, direct[username]))
    return tally


async def _pull_request_tally(
    client: ForgeClient,
    owner: str,
    name: str,
    limit: datetime | None,
    report: SkipReport,
) -> Tally:
    pulls: list[tuple[dict, dict | None]] = []

    try:
        # Newest first, so paging stops once a page reaches the cutoff
        async for page in client.list_pulls(owner, name, state="all", sort="created"):
            reached_cutoff = False

            for raw in page:
                if limit and parse_timestamp(raw.get("created_at")) < limit:
                    reached_cutoff = True
                    continue

                author = (raw.get("user") or {}).get("login")
                if not author:
                    report.skip(SkipReason.UNATTRIBUTED, f"PR {owner}/{name}#{raw.get('number')} has no author")
                    continue

                result = await capture(
                    client.get_pull(owner, name, raw["number"]),
                    f"PR detail {owner}/{name}#{raw['number']}",
                    report,
                )
                pulls.append((raw, result.value if result.ok else None))

            if reached_cutoff:
                break
    except AuthenticationError:
        raise
    except ForgeError as e:
        logger.error(f"Error fetching PRs for {owner}/{name}: {e}")
        report.skip(reason_for(e), f"pull requests for {owner}/{name}: {e}")

    return tally_pull_requests(pulls)


async def _sampled_commit_tally(
    client: ForgeClient,
    owner: str,
    name: str,
    authors: Iterable[str],
    since: str | None,
    sampled_commits: int,
    report: SkipReport,
) -> Tally:
    tally = Tally()

    for author in authors:
        try:
            commits = await client.list_commits(owner, name, author=author, since=since, max_pages=1).first_page()
        except AuthenticationError:
            raise
        except ForgeError as e:
            logger.warning(f"Error fetching commits for {author} in {name}: {e}")
            report.skip(reason_for(e), f"commits for {author} in {name}: {e}")
            continue

        if not commits:
            continue

        lines_of_code = 0
        dev_coins = 0
        for commit in commits[:sampled_commits]:
            sha = commit.get("sha", "")
            result = await capture(client.get_commit(owner, name, sha), f"commit {owner}/{name}@{sha}", report)
            if not result.ok:
                continue
            additions, deletions = client.commit_diff_stats(result.value)
            lines_of_code += additions + deletions
            dev_coins += score_commit_lines(additions + deletions)

        tally = tally.add(
            UserStats(
                username=author,
                total_commits=len(commits),
                commit_lines_of_code=lines_of_code,
                dev_coins=dev_coins,
            )
        )

    return tally


async def _backfill_profiles(client: ForgeClient, tally: Tally, report: SkipReport) -> Tally:
    for username in sorted(tally.users):
        stats = tally.users[username]
        result = await capture(client.get_user(username), f"profile for {username}", report)
        if not result.ok:
            continue

        profile = result.value
        tally = tally.put(
            replace(
                stats,
                name=profile.get("name") or profile.get("login") or "",
                avatar_url=stats.avatar_url or profile.get("avatar_url") or "",
            )
        )

    return tally


async def fetch_leaderboard_data(
    client: ForgeClient,
    org: str,
    timeframe: TimeFrame | str = TimeFrame.ALL,
    cache: Cache | None = None,
    ttl: float = LEADERBOARD_TTL,
    sampled_commits: int = SAMPLED_COMMITS,
    limiter: RateLimiter | None = None,
    report: SkipReport | None = None,
    now: datetime | None = None,
) -> list[UserStats]:
    """Build the leaderboard for a time window.

    Pull requests, sampled commits and direct commits from every repository
    are folded into one row per user, names and avatars are filled in from
    profiles, and rows are ranked by Dev Coins.

    Args:
        client: Forge client
        org: Organization login
        timeframe: "all", "month" or "week"
        cache: Cache for the finished leaderboard (None disables caching)
        ttl: Cache lifetime in seconds
        sampled_commits: Commits fetched in detail per author and repository
        limiter: Throttle for commit history pagination
        report: Optional report that skipped items are recorded in
        now: Reference time for the window

    Returns:
        Rows sorted by Dev Coins, highest first
    """
    timeframe = TimeFrame(timeframe)
    report = report if report is not None else SkipReport()
    key = leaderboard_key(timeframe.value)

    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            logger.info(f"Using cached leaderboard for {timeframe.value}")
            return list(cached)

    logger.info(f"Fetching leaderboard data for {org} with timeframe: {timeframe.value}")

    repositories = await fetch_repositories(client, org, report=report)
    targets = attribution_targets(repositories, org)
    limit = cutoff(timeframe, now)

    tally = Tally()
    for owner, name in targets:
        tally = tally.merge(await _pull_request_tally(client, owner, name, limit, report))

    authors = sorted(tally.users)
    since = since_param(timeframe, now)
    for owner, name in targets:
        tally = tally.merge(await _sampled_commit_tally(client, owner, name, authors, since, sampled_commits, report))

    logger.info("Fetching admin direct commit contributions...")
    direct = await fetch_admin_direct_commits(
        client, org, timeframe, repositories=repositories, limiter=limiter, report=report, now=now
    )
    tally = apply_direct_commits(tally, direct)

    tally = await _backfill_profiles(client, tally, report)

    leaderboard = tally.ranked()
    logger.info(f"Leaderboard for {timeframe.value}: {len(leaderboard)} users, {report.total} items skipped")

    if cache is not None:
        cache.set(key, leaderboard, ttl)

    return list(leaderboard)
