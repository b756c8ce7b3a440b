"""Repository listing with fork resolution and recent pull requests."""

import logging
from datetime import datetime, timezone
from typing import Any

from .errors import AuthenticationError, ForgeError, NotFoundError, PermissionOrRateLimitError
from .forge_client import ForgeClient
from .models import ParentRepo, PullRequest, Repository
from .outcome import SkipReport, capture, reason_for
from .timeframes import parse_timestamp

logger = logging.getLogger(__name__)

RECENT_PULLS = 10


def pull_request_status(raw: dict[str, Any]) -> str:
    """``merged`` when a merge timestamp is present, else the raw state."""
    if raw.get("merged_at") or raw.get("merged"):
        return "merged"
    return raw.get("state") or "open"


def parse_pull_request(raw: dict[str, Any], detail: dict[str, Any] | None = None) -> PullRequest:
    """Build a PullRequest from a listing entry and its optional detail."""
    detail = detail or {}
    user = raw.get("user") or {}
    return PullRequest(
        id=raw.get("id") or 0,
        number=raw.get("number") or 0,
        title=raw.get("title") or "",
        url=raw.get("html_url") or "",
        author=user.get("login") or "",
        created_at=parse_timestamp(raw.get("created_at")),
        status=pull_request_status({**raw, **detail}),
        additions=detail.get("additions") or 0,
        deletions=detail.get("deletions") or 0,
    )


def parse_repository(raw: dict[str, Any]) -> Repository:
    """Build a Repository from a forge listing entry, defaulting missing fields."""
    owner = raw.get("owner") or {}
    return Repository(
        id=raw.get("id") or 0,
        name=raw.get("name") or "",
        owner=owner.get("login") or "",
        description=raw.get("description") or "",
        url=raw.get("html_url") or "",
        stars=raw.get("stargazers_count") or 0,
        language=raw.get("language") or "",
        updated_at=parse_timestamp(raw.get("updated_at"), datetime.now(timezone.utc)),
        open_issues=raw.get("open_issues_count") or 0,
        fork=bool(raw.get("fork")),
    )


async def _list_raw_repositories(client: ForgeClient, org: str) -> list[dict]:
    """List repositories, falling back from the org listing to the user's
    repositories and finally to a search."""
    org_error: ForgeError | None = None

    try:
        raw_repos = await client.list_org_repos(org).collect()
        logger.info(f"Found {len(raw_repos)} repositories in {org}")
    except AuthenticationError:
        raise
    except (NotFoundError, PermissionOrRateLimitError) as e:
        logger.warning(f"Could not list repositories for {org} ({e}), trying the authenticated user's")
        org_error = e
        try:
            user_repos = await client.list_user_repos().collect()
        except (AuthenticationError, PermissionOrRateLimitError):
            raise
        except ForgeError as user_error:
            logger.error(f"Error listing user repositories: {user_error}")
            user_repos = []
        raw_repos = [
            r for r in user_repos if ((r.get("owner") or {}).get("login") or "").lower() == org.lower()
        ]
    except ForgeError as e:
        logger.error(f"Error listing repositories for {org}: {e}")
        return []

    if not raw_repos:
        logger.info(f"No repositories listed for {org}, searching instead")
        raw_repos = []
        try:
            async for page in client.search_repos(f"org:{org}"):
                raw_repos.extend(page)
        except AuthenticationError:
            raise
        except ForgeError as e:
            logger.error(f"Repository search for {org} failed after {len(raw_repos)} results: {e}")

    if not raw_repos and org_error is not None:
        if isinstance(org_error, NotFoundError):
            raise NotFoundError(f"Organization not found: {org}", resource=org, url=org_error.url)
        raise org_error

    return raw_repos


async def _resolve_parent(client: ForgeClient, repo: Repository, report: SkipReport) -> None:
    result = await capture(
        client.get_repo(repo.owner, repo.name),
        f"parent lookup for fork {repo.owner}/{repo.name}",
        report,
    )
    if not result.ok:
        return

    parent = result.value.get("parent") or {}
    parent_owner = (parent.get("owner") or {}).get("login")
    if parent_owner and parent.get("name"):
        repo.parent_repo = ParentRepo(owner=parent_owner, name=parent["name"])
    else:
        logger.warning(f"Fork {repo.owner}/{repo.name} has no parent repository")


async def fetch_recent_pull_requests(
    client: ForgeClient,
    owner: str,
    name: str,
    limit: int = RECENT_PULLS,
    report: SkipReport | None = None,
) -> list[PullRequest]:
    """Most recently updated pull requests with their diff stats.

    Pull requests whose detail lookup fails keep zero diff stats.
    """
    report = report if report is not None else SkipReport()
    raw_pulls = await client.list_pulls(owner, name, sort="updated", per_page=limit, max_pages=1).first_page()

    pull_requests = []
    for raw in raw_pulls[:limit]:
        result = await capture(
            client.get_pull(owner, name, raw["number"]),
            f"PR detail {owner}/{name}#{raw.get('number')}",
            report,
        )
        pull_requests.append(parse_pull_request(raw, result.value if result.ok else None))

    return pull_requests


async def fetch_repositories(
    client: ForgeClient,
    org: str,
    recent_pulls: int = RECENT_PULLS,
    report: SkipReport | None = None,
) -> list[Repository]:
    """List every repository owned by or forked into the organization.

    Forks get their parent repository resolved, and every repository embeds
    its most recently updated pull requests.

    Args:
        client: Forge client
        org: Organization login
        recent_pulls: How many recent pull requests to embed per repository
        report: Optional report that per-item skips are recorded in

    Returns:
        List of repositories (empty when listing fails for non-fatal reasons)

    Raises:
        AuthenticationError: The token was rejected
        PermissionOrRateLimitError: The forge refused every listing
        NotFoundError: The organization does not exist
    """
    report = report if report is not None else SkipReport()

    raw_repos = await _list_raw_repositories(client, org)
    repositories = []

    for raw in raw_repos:
        repo = parse_repository(raw)
        if not repo.owner:
            repo.owner = org

        if repo.fork:
            await _resolve_parent(client, repo, report)

        owner, name = repo.attribution(org)
        try:
            repo.pull_requests = await fetch_recent_pull_requests(client, owner, name, recent_pulls, report)
        except AuthenticationError:
            raise
        except ForgeError as e:
            logger.warning(f"Error fetching pull requests for {owner}/{name}: {e}")
            report.skip(reason_for(e), f"pull requests for {owner}/{name}: {e}")

        repositories.append(repo)

    return repositories
