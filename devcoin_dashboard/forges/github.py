"""GitHub API client implementation."""

import logging
from typing import Any

import httpx

from ..errors import (
    AuthenticationError,
    ForgeError,
    NotFoundError,
    PermissionOrRateLimitError,
    TransientItemError,
)
from ..forge_client import ForgeClient
from ..pagination import Paginator, RateLimiter

logger = logging.getLogger(__name__)

PER_PAGE = 100


class GitHubClient(ForgeClient):
    """Async GitHub REST client.

    Requests are issued one at a time over a shared ``httpx.AsyncClient``.
    Use as an async context manager, or call ``aclose`` when done.
    """

    def __init__(
        self,
        token: str | None = None,
        endpoint: str = "https://api.github.com",
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ):
        """Initialize GitHub client.

        Args:
            token: GitHub personal access token
            endpoint: API endpoint URL (for GitHub Enterprise)
            transport: Optional httpx transport (used by tests)
            timeout: Request timeout in seconds
        """
        super().__init__(token)
        self.endpoint = endpoint.rstrip("/")
        self.headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            self.headers["Authorization"] = f"Bearer {self.token}"

        self._http = httpx.AsyncClient(headers=self.headers, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def get_forge_name(self) -> str:
        """Return the forge name."""
        return "GitHub"

    def _url(self, path: str) -> str:
        return path if path.startswith("http") else f"{self.endpoint}{path}"

    async def _request(self, url: str, params: dict | None = None) -> httpx.Response:
        """Issue a GET request and map failures onto forge errors."""
        logger.debug(f"GitHub API: GET {url} (params: {params})")
        try:
            response = await self._http.get(url, params=params)
        except httpx.RequestError as e:
            raise TransientItemError(f"Request to {url} failed: {e}", url=url) from e
        finally:
            self.api_call_count += 1

        if response.is_success:
            return response

        raise self._error_for(response)

    def _error_for(self, response: httpx.Response) -> ForgeError:
        status = response.status_code
        url = str(response.request.url)
        try:
            body = response.json()
        except ValueError:
            body = None
        message = body.get("message", "") if isinstance(body, dict) else response.text

        if status == 401:
            return AuthenticationError(f"GitHub rejected the token: {message}", status=status, url=url)

        if status in (403, 429):
            reset = None
            if response.headers.get("X-RateLimit-Remaining") == "0":
                try:
                    reset = int(response.headers.get("X-RateLimit-Reset", ""))
                except ValueError:
                    reset = 0
            return PermissionOrRateLimitError(
                f"GitHub refused the request ({status}): {message}",
                status=status,
                url=url,
                reset_at=reset,
            )

        if status == 404:
            resource = response.request.url.path
            return NotFoundError(f"Not found: {resource}", resource=resource, status=status, url=url)

        return TransientItemError(f"GitHub API error {status}: {message}", status=status, url=url)

    async def _get_json(self, path: str, params: dict | None = None) -> Any:
        response = await self._request(self._url(path), params)
        return response.json()

    def _get_next_page_url(self, link_header: str) -> str | None:
        """Extract next page URL from Link header.

        Args:
            link_header: GitHub Link header value

        Returns:
            URL of next page or None if no more pages
        """
        if not link_header:
            return None

        for link in link_header.split(","):
            parts = link.split(";")
            if len(parts) == 2 and 'rel="next"' in parts[1]:
                return parts[0].strip("<> ")

        return None

    async def _fetch_page(self, url: str, params: dict | None) -> tuple[list[Any], str | None]:
        response = await self._request(url, params)
        data = response.json()

        # Search endpoints wrap results in {"items": [...]}
        if isinstance(data, dict):
            items = data.get("items", [])
        else:
            items = data

        logger.debug(f"GitHub API: Received {len(items)} items")
        return items, self._get_next_page_url(response.headers.get("Link", ""))

    def _paginate(
        self,
        path: str,
        params: dict | None = None,
        per_page: int = PER_PAGE,
        max_pages: int | None = None,
        limiter: RateLimiter | None = None,
    ) -> Paginator[dict]:
        params = {k: v for k, v in (params or {}).items() if v is not None}
        params["per_page"] = per_page
        return Paginator(
            self._fetch_page,
            self._url(path),
            params=params,
            max_pages=max_pages,
            limiter=limiter,
        )

    def list_org_repos(self, org: str) -> Paginator[dict]:
        return self._paginate(f"/orgs/{org}/repos", {"type": "all"})

    def list_user_repos(self) -> Paginator[dict]:
        return self._paginate("/user/repos", {"affiliation": "owner,collaborator,organization_member"})

    def search_repos(self, query: str) -> Paginator[dict]:
        return self._paginate("/search/repositories", {"q": query})

    async def get_repo(self, owner: str, repo: str) -> dict:
        return await self._get_json(f"/repos/{owner}/{repo}")

    def list_pulls(
        self,
        owner: str,
        repo: str,
        state: str = "all",
        sort: str = "created",
        per_page: int = PER_PAGE,
        max_pages: int | None = None,
    ) -> Paginator[dict]:
        return self._paginate(
            f"/repos/{owner}/{repo}/pulls",
            {"state": state, "sort": sort, "direction": "desc"},
            per_page=per_page,
            max_pages=max_pages,
        )

    async def get_pull(self, owner: str, repo: str, number: int) -> dict:
        return await self._get_json(f"/repos/{owner}/{repo}/pulls/{number}")

    def list_commits(
        self,
        owner: str,
        repo: str,
        author: str | None = None,
        since: str | None = None,
        per_page: int = PER_PAGE,
        max_pages: int | None = None,
        limiter: RateLimiter | None = None,
    ) -> Paginator[dict]:
        return self._paginate(
            f"/repos/{owner}/{repo}/commits",
            {"author": author, "since": since},
            per_page=per_page,
            max_pages=max_pages,
            limiter=limiter,
        )

    async def get_commit(self, owner: str, repo: str, sha: str) -> dict:
        return await self._get_json(f"/repos/{owner}/{repo}/commits/{sha}")

    def list_org_members(self, org: str, role: str = "all") -> Paginator[dict]:
        return self._paginate(f"/orgs/{org}/members", {"role": role})

    def list_outside_collaborators(self, org: str) -> Paginator[dict]:
        return self._paginate(f"/orgs/{org}/outside_collaborators")

    def list_teams(self, org: str) -> Paginator[dict]:
        return self._paginate(f"/orgs/{org}/teams")

    def list_team_members(self, org: str, team_slug: str) -> Paginator[dict]:
        return self._paginate(f"/orgs/{org}/teams/{team_slug}/members")

    def list_repo_collaborators(self, owner: str, repo: str) -> Paginator[dict]:
        return self._paginate(f"/repos/{owner}/{repo}/collaborators")

    def search_issues(self, query: str) -> Paginator[dict]:
        return self._paginate("/search/issues", {"q": query, "sort": "created", "order": "desc"})

    async def get_user(self, username: str) -> dict:
        return await self._get_json(f"/users/{username}")

    async def get_rate_limit(self) -> dict:
        return await self._get_json("/rate_limit")
