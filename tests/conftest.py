"""Shared fixtures: a fake GitHub API behind httpx.MockTransport."""

from typing import Any, Callable

import httpx
import pytest

from devcoin_dashboard.forges.github import GitHubClient
from devcoin_dashboard.pagination import RateLimiter

API = "https://api.test"
ORG = "acme"

# Unmatched requests to these collections return an empty page instead of 404
LIST_ENDPOINTS = {
    "repos",
    "pulls",
    "commits",
    "members",
    "outside_collaborators",
    "teams",
    "collaborators",
    "issues",
    "repositories",
}

FILTER_PARAMS = ("author", "role")


class FakeGitHub:
    """Route table standing in for the GitHub REST API.

    Routes are keyed by path, optionally followed by filter parameters,
    e.g. ``/orgs/acme/members?role=admin`` or
    ``/repos/acme/app/commits?author=alice``. Values may be:

    - a list: served page by page, with a ``Link: rel="next"`` header
    - a dict: served as a single JSON object
    - an int: an error response with that status
    - an httpx.Response, or a callable taking the request
    """

    def __init__(self, routes: dict[str, Any] | None = None, per_page: int | None = None):
        self.routes: dict[str, Any] = dict(routes or {})
        self.per_page = per_page
        self.requests: list[httpx.Request] = []

    def __setitem__(self, key: str, value: Any) -> None:
        self.routes[key] = value

    def _route_key(self, request: httpx.Request) -> str | None:
        path = request.url.path
        params = request.url.params
        filters = [
            f"{name}={params[name]}"
            for name in FILTER_PARAMS
            if name in params and not (name == "role" and params[name] == "all")
        ]

        if filters:
            key = f"{path}?{'&'.join(filters)}"
            return key if key in self.routes else None

        return path if path in self.routes else None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = self._route_key(request)

        if key is None:
            if request.url.path.rsplit("/", 1)[-1] in LIST_ENDPOINTS:
                return httpx.Response(200, json=[])
            return httpx.Response(404, json={"message": "Not Found"})

        value = self.routes[key]
        if callable(value) and not isinstance(value, httpx.Response):
            value = value(request)

        if isinstance(value, httpx.Response):
            return value
        if isinstance(value, int):
            return httpx.Response(value, json={"message": f"error {value}"})
        if isinstance(value, list):
            return self._page(request, value)
        return httpx.Response(200, json=value)

    def _page(self, request: httpx.Request, items: list) -> httpx.Response:
        per_page = self.per_page or int(request.url.params.get("per_page", 100))
        page = int(request.url.params.get("page", 1))
        start = (page - 1) * per_page
        chunk = items[start : start + per_page]

        headers = {}
        if start + per_page < len(items):
            next_url = request.url.copy_set_param("page", page + 1)
            headers["Link"] = f'<{next_url}>; rel="next"'

        return httpx.Response(200, json=chunk, headers=headers)

    def calls(self, path_fragment: str) -> list[httpx.Request]:
        return [r for r in self.requests if path_fragment in r.url.path]


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def client(fake_github: FakeGitHub) -> GitHubClient:
    return GitHubClient(token="test-token", endpoint=API, transport=httpx.MockTransport(fake_github.handler))


class RecordingSleep:
    """Stand-in for asyncio.sleep that records pauses."""

    def __init__(self):
        self.pauses: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.pauses.append(seconds)


@pytest.fixture
def no_wait() -> Callable[..., RateLimiter]:
    def make(every: int = 3) -> RateLimiter:
        return RateLimiter(every, 1.0, sleep=RecordingSleep())

    return make


def make_user(login: str, **extra) -> dict:
    return {"login": login, "id": sum(map(ord, login)), "avatar_url": f"https://avatars.test/{login}", **extra}


def make_repo(name: str, owner: str = ORG, fork: bool = False, **extra) -> dict:
    return {
        "id": sum(map(ord, name)),
        "name": name,
        "owner": {"login": owner},
        "description": f"{name} repository",
        "html_url": f"https://github.test/{owner}/{name}",
        "stargazers_count": 3,
        "language": "Python",
        "updated_at": "2026-10-01T12:00:00Z",
        "open_issues_count": 1,
        "fork": fork,
        **extra,
    }


def make_pull(
    number: int,
    login: str | None,
    state: str = "closed",
    created_at: str = "2026-10-10T09:00:00Z",
    merged_at: str | None = None,
) -> dict:
    return {
        "id": 1000 + number,
        "number": number,
        "title": f"PR {number}",
        "html_url": f"https://github.test/pull/{number}",
        "user": make_user(login) if login else None,
        "state": state,
        "created_at": created_at,
        "merged_at": merged_at,
    }


def make_pull_detail(additions: int | None, deletions: int | None, merged: bool) -> dict:
    return {"additions": additions, "deletions": deletions, "merged": merged}


def make_commit(sha: str, login: str | None = None, email: str | None = None, date: str = "2026-10-10T09:00:00Z") -> dict:
    return {
        "sha": sha,
        "html_url": f"https://github.test/commit/{sha}",
        "author": {"login": login} if login else None,
        "commit": {
            "message": f"commit {sha}",
            "author": {"email": email, "date": date},
        },
    }


def make_commit_detail(additions: int, deletions: int) -> dict:
    return {"stats": {"additions": additions, "deletions": deletions, "total": additions + deletions}}


def search_failing_after_first_page(items: list, status: int = 422) -> Callable[[httpx.Request], Any]:
    """Search route that serves ``items`` as page one, then fails with ``status``."""

    def route(request: httpx.Request) -> Any:
        page = int(request.url.params.get("page", 1))
        if page > 1:
            return status
        next_url = request.url.copy_set_param("page", 2)
        return httpx.Response(200, json={"items": items}, headers={"Link": f'<{next_url}>; rel="next"'})

    return route
