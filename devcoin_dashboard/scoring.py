"""Dev Coin scoring policy."""

from typing import Any, Mapping

from .models import PullRequest

PR_BASE_POINTS = 10
PR_LINES_PER_POINT = 10
PR_MERGED_BONUS = 15

# (threshold, bonus) pairs, checked largest first
PR_SIZE_BONUSES = ((500, 20), (200, 10), (50, 5))

COMMIT_LINES_PER_COIN = 20
DIRECT_COMMIT_BONUS = 2

CONTRIBUTION_PR_POINTS = 30
CONTRIBUTION_PR_MERGED_BONUS = 20
CONTRIBUTION_ISSUE_POINTS = 10
LABEL_BONUSES = {
    "bug": 15,
    "enhancement": 20,
    "documentation": 10,
    "major": 30,
}


def _pr_fields(pr: PullRequest | Mapping[str, Any]) -> tuple[int, bool]:
    if isinstance(pr, PullRequest):
        return pr.lines_changed, pr.merged
    lines = (pr.get("additions") or 0) + (pr.get("deletions") or 0)
    merged = bool(pr.get("merged") or pr.get("merged_at"))
    return lines, merged


def score_pull_request(pr: PullRequest | Mapping[str, Any]) -> int:
    """Compute the Dev Coins earned by a pull request.

    Every pull request earns a base amount plus one coin per ten changed
    lines. Merged pull requests earn a merge bonus and a size bonus.

    Args:
        pr: A PullRequest, or a raw pull request mapping from the forge
            (``additions``/``deletions`` may be missing or null)

    Returns:
        Number of Dev Coins
    """
    lines_changed, merged = _pr_fields(pr)

    coins = PR_BASE_POINTS
    coins += lines_changed // PR_LINES_PER_POINT

    if merged:
        coins += PR_MERGED_BONUS
        for threshold, bonus in PR_SIZE_BONUSES:
            if lines_changed > threshold:
                coins += bonus
                break

    return coins


def score_issue_or_pr(item: Mapping[str, Any], merged: bool | None = None) -> int:
    """Compute points for an issue or pull request from a search listing.

    Args:
        item: Raw search result item. Pull requests carry a ``pull_request`` key.
        merged: Override for the merged flag; read from the item when None

    Returns:
        Number of points
    """
    pull_request = item.get("pull_request")

    if pull_request is not None:
        points = CONTRIBUTION_PR_POINTS
        if merged is None:
            merged = bool(item.get("merged") or pull_request.get("merged_at"))
        if merged:
            points += CONTRIBUTION_PR_MERGED_BONUS
    else:
        points = CONTRIBUTION_ISSUE_POINTS

    for label in item.get("labels") or []:
        name = (label.get("name") or "") if isinstance(label, Mapping) else str(label)
        points += LABEL_BONUSES.get(name.lower(), 0)

    return points


def score_commit_lines(lines_changed: int) -> int:
    """One coin per twenty changed lines."""
    return max(0, lines_changed) // COMMIT_LINES_PER_COIN
