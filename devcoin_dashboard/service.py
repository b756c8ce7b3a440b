"""Entry point wiring the client, cache and settings together."""

from .cache import Cache, CacheService
from .commits import fetch_user_commits
from .config import Settings
from .contributions import fetch_user_contributions
from .forge_client import ForgeClient
from .forges.github import GitHubClient
from .leaderboard import fetch_leaderboard_data
from .members import fetch_organization_members
from .models import CommitRecord, GithubMember, Repository, TimeFrame, UserContribution, UserStats
from .outcome import SkipReport
from .pagination import RateLimiter
from .repositories import fetch_repositories


class OrgDashboard:
    """The dashboard's read operations for one organization.

    Every call checks that a token is configured before any request and
    starts a fresh ``SkipReport``, available afterwards as ``last_report``.
    """

    def __init__(
        self,
        settings: Settings,
        client: ForgeClient | None = None,
        cache: Cache | None = None,
    ):
        """Initialize the dashboard.

        Args:
            settings: Loaded settings
            client: Forge client (a GitHubClient is created from settings when None)
            cache: Result cache (a fresh in-memory cache when None)
        """
        self.settings = settings
        self.client = client or GitHubClient(token=settings.github.token, endpoint=settings.github.endpoint)
        self.cache = cache if cache is not None else CacheService()
        self.last_report = SkipReport()

    @property
    def org(self) -> str:
        return self.settings.github.org

    async def __aenter__(self) -> "OrgDashboard":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if isinstance(self.client, GitHubClient):
            await self.client.aclose()

    def _new_report(self) -> SkipReport:
        self.settings.require_token()
        self.last_report = SkipReport()
        return self.last_report

    def _commit_limiter(self) -> RateLimiter:
        throttle = self.settings.throttle
        return RateLimiter(throttle.commit_pages, throttle.pause)

    def _profile_limiter(self) -> RateLimiter:
        throttle = self.settings.throttle
        return RateLimiter(throttle.profile_lookups, throttle.pause)

    async def fetch_repositories(self) -> list[Repository]:
        return await fetch_repositories(
            self.client,
            self.org,
            recent_pulls=self.settings.limits.recent_pulls,
            report=self._new_report(),
        )

    async def fetch_leaderboard_data(self, timeframe: TimeFrame | str = TimeFrame.ALL) -> list[UserStats]:
        return await fetch_leaderboard_data(
            self.client,
            self.org,
            timeframe,
            cache=self.cache,
            ttl=self.settings.cache.leaderboard_ttl,
            sampled_commits=self.settings.limits.sampled_commits,
            limiter=self._commit_limiter(),
            report=self._new_report(),
        )

    async def fetch_organization_members(self) -> list[GithubMember]:
        return await fetch_organization_members(
            self.client,
            self.org,
            cache=self.cache,
            ttl=self.settings.cache.members_ttl,
            leaderboard_ttl=self.settings.cache.leaderboard_ttl,
            limiter=self._profile_limiter(),
            commit_limiter=self._commit_limiter(),
            sampled_commits=self.settings.limits.sampled_commits,
            report=self._new_report(),
        )

    async def fetch_user_commits(
        self, username: str, timeframe: TimeFrame | str = TimeFrame.ALL
    ) -> list[CommitRecord]:
        return await fetch_user_commits(
            self.client,
            self.org,
            username,
            timeframe,
            limit=self.settings.limits.user_commits,
            report=self._new_report(),
        )

    async def fetch_user_contributions(self, username: str) -> list[UserContribution]:
        return await fetch_user_contributions(self.client, self.org, username, report=self._new_report())

    async def rate_limit(self) -> dict:
        """Core rate limit status: limit, remaining, reset."""
        self.settings.require_token()
        status = await self.client.get_rate_limit()
        return (status.get("resources") or {}).get("core") or status.get("rate") or {}
