"""Organization member directory."""

import copy
import logging
from typing import Any

from .cache import LEADERBOARD_TTL, MEMBERS_TTL, ORGANIZATION_MEMBERS_KEY, Cache
from .errors import AuthenticationError, ConfigurationError, ForgeError
from .forge_client import ForgeClient
from .leaderboard import SAMPLED_COMMITS, fetch_leaderboard_data
from .models import ContributionCounts, GithubMember, TimeFrame, UserStats
from .outcome import SkipReport, capture, reason_for
from .pagination import RateLimiter

logger = logging.getLogger(__name__)

PROFILE_THROTTLE = 10
THROTTLE_PAUSE = 1.0

PROFILE_FIELDS = ("bio", "email", "company", "location", "blog", "twitter_username")


def _new_member(raw: dict[str, Any], role: str) -> GithubMember:
    return GithubMember(
        id=raw.get("id") or 0,
        username=raw["login"],
        avatar_url=raw.get("avatar_url") or "",
        role=role,
    )


def merge_contributions(members: list[GithubMember], leaderboard: list[UserStats]) -> None:
    """Copy leaderboard counts onto members, matching usernames case-insensitively."""
    by_username = {stats.username.lower(): stats for stats in leaderboard}
    for member in members:
        stats = by_username.get(member.username.lower())
        if stats is not None:
            member.contributions = ContributionCounts.from_stats(stats)
            member.dev_coins = stats.dev_coins


class DirectoryBuilder:
    """Assembles the member roster from several paginated listings.

    Only the organization member listing is required. Every other listing
    and lookup is best effort: failures are logged, recorded in the report
    and skipped.
    """

    def __init__(self, client: ForgeClient, org: str, report: SkipReport):
        self.client = client
        self.org = org
        self.report = report
        self.members: dict[str, GithubMember] = {}

    def _add(self, raw: dict[str, Any], role: str) -> GithubMember:
        member = self.members.get(raw["login"])
        if member is None:
            member = _new_member(raw, role)
            self.members[member.username] = member
        return member

    def _skip(self, what: str, error: ForgeError) -> None:
        logger.warning(f"Error fetching {what}: {error}")
        self.report.skip(reason_for(error), f"{what}: {error}")

    async def add_org_members(self) -> None:
        async for raw in self.client.list_org_members(self.org).items():
            self._add(raw, "member")
        logger.info(f"Found {len(self.members)} members in {self.org}")

    async def add_outside_collaborators(self) -> None:
        try:
            async for raw in self.client.list_outside_collaborators(self.org).items():
                self._add(raw, "outside")
        except AuthenticationError:
            raise
        except ForgeError as e:
            self._skip("outside collaborators", e)

    async def add_teams(self) -> None:
        try:
            teams = await self.client.list_teams(self.org).collect()
        except AuthenticationError:
            raise
        except ForgeError as e:
            self._skip("teams", e)
            return

        logger.info(f"Found {len(teams)} teams in the organization")

        for team in teams:
            try:
                async for raw in self.client.list_team_members(self.org, team["slug"]).items():
                    self._add(raw, "member").add_team(team["name"])
            except AuthenticationError:
                raise
            except ForgeError as e:
                self._skip(f"members for team {team['name']}", e)

    async def mark_admins(self) -> None:
        try:
            async for raw in self.client.list_org_members(self.org, role="admin").items():
                member = self.members.get(raw["login"])
                if member is not None:
                    member.role = "admin"
        except AuthenticationError:
            raise
        except ForgeError as e:
            self._skip("organization admins", e)

    async def add_profiles(self, limiter: RateLimiter) -> None:
        for member in self.members.values():
            result = await capture(
                self.client.get_user(member.username),
                f"details for user {member.username}",
                self.report,
            )
            await limiter.tick()
            if not result.ok:
                continue

            user = result.value
            member.name = user.get("name") or user.get("login") or ""
            for field_name in PROFILE_FIELDS:
                setattr(member, field_name, user.get(field_name) or "")


async def fetch_organization_members(
    client: ForgeClient,
    org: str,
    cache: Cache | None = None,
    ttl: float = MEMBERS_TTL,
    leaderboard_ttl: float = LEADERBOARD_TTL,
    limiter: RateLimiter | None = None,
    commit_limiter: RateLimiter | None = None,
    sampled_commits: int = SAMPLED_COMMITS,
    report: SkipReport | None = None,
) -> list[GithubMember]:
    """Build the organization member directory.

    Members, outside collaborators and team members are merged into one
    roster, admins are marked, profiles are filled in, and each member gets
    their all-time leaderboard counts and Dev Coins.

    Args:
        client: Forge client (must carry a token)
        org: Organization login
        cache: Cache for the finished directory (None disables caching)
        ttl: Directory cache lifetime in seconds
        leaderboard_ttl: Cache lifetime of the all-time leaderboard
        limiter: Throttle for profile lookups (default: pause every 10th)
        commit_limiter: Throttle for the leaderboard commit history scan
        sampled_commits: Commits fetched in detail per author and repository
        report: Optional report that skipped items are recorded in

    Returns:
        Members sorted by Dev Coins, highest first

    Raises:
        ConfigurationError: The client has no API token or org is empty
        AuthenticationError: The token was rejected
        PermissionOrRateLimitError: The member listing was refused
        NotFoundError: The organization does not exist
    """
    if not client.token:
        raise ConfigurationError("GitHub token not configured")
    if not org:
        raise ConfigurationError("GitHub organization not configured")

    report = report if report is not None else SkipReport()

    if cache is not None:
        cached = cache.get(ORGANIZATION_MEMBERS_KEY)
        if cached is not None:
            logger.info("Using cached organization members")
            return copy.deepcopy(cached)

    logger.info(f"Fetching members from organization: {org}")

    builder = DirectoryBuilder(client, org, report)
    await builder.add_org_members()
    await builder.add_outside_collaborators()
    await builder.add_teams()
    await builder.mark_admins()
    await builder.add_profiles(limiter or RateLimiter(PROFILE_THROTTLE, THROTTLE_PAUSE))

    logger.info("Fetching complete contribution data including direct commits...")
    leaderboard = await fetch_leaderboard_data(
        client,
        org,
        TimeFrame.ALL,
        cache=cache,
        ttl=leaderboard_ttl,
        sampled_commits=sampled_commits,
        limiter=commit_limiter,
        report=report,
    )

    members = list(builder.members.values())
    merge_contributions(members, leaderboard)
    members.sort(key=lambda m: (-m.dev_coins, m.username.lower()))

    if cache is not None:
        # Members are mutable, so the cache keeps its own copy
        cache.set(ORGANIZATION_MEMBERS_KEY, copy.deepcopy(members), ttl)

    return list(members)
