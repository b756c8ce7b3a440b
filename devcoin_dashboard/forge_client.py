"""Base class for git forge API clients."""

from abc import ABC, abstractmethod
from typing import Any

from .pagination import Paginator, RateLimiter


class ForgeClient(ABC):
    """Abstract base class for the forge API the aggregators consume.

    Listing operations return a ``Paginator`` (pages are fetched lazily);
    detail operations are coroutines returning the decoded JSON object.
    Failures raise the types in ``errors``.
    """

    def __init__(self, token: str | None = None):
        """Initialize the forge client.

        Args:
            token: API token for authentication (optional)
        """
        self.token = token
        self.api_call_count = 0

    @abstractmethod
    def get_forge_name(self) -> str:
        """Return the name of this forge (e.g., 'GitHub')."""

    @abstractmethod
    def list_org_repos(self, org: str) -> Paginator[dict]:
        """Repositories owned by the organization, forks included."""

    @abstractmethod
    def list_user_repos(self) -> Paginator[dict]:
        """Repositories visible to the authenticated user."""

    @abstractmethod
    def search_repos(self, query: str) -> Paginator[dict]:
        """Full-text repository search."""

    @abstractmethod
    async def get_repo(self, owner: str, repo: str) -> dict:
        """Repository detail, including ``parent`` for forks."""

    @abstractmethod
    def list_pulls(
        self,
        owner: str,
        repo: str,
        state: str = "all",
        sort: str = "created",
        per_page: int = 100,
        max_pages: int | None = None,
    ) -> Paginator[dict]:
        """Pull requests, newest first by ``sort``."""

    @abstractmethod
    async def get_pull(self, owner: str, repo: str, number: int) -> dict:
        """Pull request detail with ``additions``, ``deletions`` and ``merged``."""

    @abstractmethod
    def list_commits(
        self,
        owner: str,
        repo: str,
        author: str | None = None,
        since: str | None = None,
        per_page: int = 100,
        max_pages: int | None = None,
        limiter: RateLimiter | None = None,
    ) -> Paginator[dict]:
        """Commit history of the default branch."""

    @abstractmethod
    async def get_commit(self, owner: str, repo: str, sha: str) -> dict:
        """Commit detail with ``stats`` and ``files``."""

    @abstractmethod
    def list_org_members(self, org: str, role: str = "all") -> Paginator[dict]:
        """Organization members, optionally only ``admin`` ones."""

    @abstractmethod
    def list_outside_collaborators(self, org: str) -> Paginator[dict]:
        """Collaborators who are not organization members."""

    @abstractmethod
    def list_teams(self, org: str) -> Paginator[dict]:
        """Teams in the organization."""

    @abstractmethod
    def list_team_members(self, org: str, team_slug: str) -> Paginator[dict]:
        """Members of one team."""

    @abstractmethod
    def list_repo_collaborators(self, owner: str, repo: str) -> Paginator[dict]:
        """Repository collaborators with their ``permissions``."""

    @abstractmethod
    def search_issues(self, query: str) -> Paginator[dict]:
        """Issue and pull request search."""

    @abstractmethod
    async def get_user(self, username: str) -> dict:
        """Public profile of a user."""

    @abstractmethod
    async def get_rate_limit(self) -> dict:
        """Current rate limit status."""

    def get_api_call_count(self) -> int:
        """Get the number of API calls made by this client.

        Returns:
            Total number of API calls
        """
        return self.api_call_count

    def reset_api_call_count(self) -> None:
        """Reset the API call counter to zero."""
        self.api_call_count = 0

    @staticmethod
    def commit_diff_stats(detail: dict[str, Any]) -> tuple[int, int]:
        """Return (additions, deletions) from a commit detail object.

        Prefers the ``stats`` block and falls back to summing ``files``.
        """
        stats = detail.get("stats") or {}
        if stats:
            return stats.get("additions") or 0, stats.get("deletions") or 0

        files = detail.get("files") or []
        additions = sum(f.get("additions") or 0 for f in files)
        deletions = sum(f.get("deletions") or 0 for f in files)
        return additions, deletions
