"""Issues and pull requests authored by a single user."""

import logging
from typing import Any

from .errors import AuthenticationError, ForgeError
from .forge_client import ForgeClient
from .models import UserContribution
from .outcome import SkipReport, reason_for
from .scoring import score_issue_or_pr
from .timeframes import parse_timestamp

logger = logging.getLogger(__name__)


def _repository_name(item: dict[str, Any]) -> str:
    # https://api.github.com/repos/owner/repo -> repo
    repo_url = item.get("repository_url", "")
    parts = repo_url.split("/repos/")
    if len(parts) == 2:
        return parts[1].split("/")[-1]
    return ""


def parse_contribution(item: dict[str, Any]) -> UserContribution:
    """Build a UserContribution from an issue search result."""
    pull_request = item.get("pull_request")
    merged = bool(pull_request and pull_request.get("merged_at"))

    if merged:
        status = "merged"
    else:
        status = item.get("state") or "open"

    return UserContribution(
        id=str(item.get("id", "")),
        type="PR" if pull_request is not None else "ISSUE",
        title=item.get("title") or "",
        description=item.get("body") or "",
        url=item.get("html_url") or "",
        created_at=parse_timestamp(item.get("created_at")),
        repository=_repository_name(item),
        status=status,
        points=score_issue_or_pr(item, merged=merged),
    )


async def fetch_user_contributions(
    client: ForgeClient,
    org: str,
    username: str,
    report: SkipReport | None = None,
) -> list[UserContribution]:
    """List the issues and pull requests a user opened in the organization.

    Args:
        client: Forge client
        org: Organization login
        username: Author login
        report: Optional report that a failed search is recorded in

    Returns:
        Contributions sorted newest first (those read before a failed page if the search fails)
    """
    query = f"author:{username} org:{org}"
    logger.info(f"Fetching contributions for {username} in {org}")

    items: list[dict[str, Any]] = []
    try:
        async for page in client.search_issues(query):
            items.extend(page)
    except AuthenticationError:
        raise
    except ForgeError as e:
        # Pages already read are kept
        logger.error(f"Error fetching contributions for {username} after {len(items)} items: {e}")
        if report is not None:
            report.skip(reason_for(e), f"contributions for {username}: {e}")

    contributions = [parse_contribution(item) for item in items]
    return sorted(contributions, key=lambda c: c.created_at, reverse=True)
