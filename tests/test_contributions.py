import pytest

from conftest import search_failing_after_first_page
from devcoin_dashboard.contributions import fetch_user_contributions, parse_contribution
from devcoin_dashboard.errors import AuthenticationError
from devcoin_dashboard.outcome import SkipReason, SkipReport


def make_item(number: int, created_at: str, pull_request: dict | None = None, labels=(), state="open") -> dict:
    item = {
        "id": number,
        "title": f"Item {number}",
        "body": None,
        "html_url": f"https://github.test/acme/app/issues/{number}",
        "repository_url": "https://api.test/repos/acme/app",
        "created_at": created_at,
        "state": state,
        "labels": [{"name": name} for name in labels],
    }
    if pull_request is not None:
        item["pull_request"] = pull_request
    return item


def test_merged_pull_request():
    contribution = parse_contribution(
        make_item(1, "2026-10-01T00:00:00Z", {"merged_at": "2026-10-02T00:00:00Z"}, labels=["enhancement"], state="closed")
    )

    assert contribution.type == "PR"
    assert contribution.status == "merged"
    assert contribution.repository == "app"
    assert contribution.description == ""
    assert contribution.points == 30 + 20 + 20


def test_closed_issue_with_bug_label():
    contribution = parse_contribution(make_item(2, "2026-10-01T00:00:00Z", labels=["bug"], state="closed"))

    assert contribution.type == "ISSUE"
    assert contribution.status == "closed"
    assert contribution.points == 25


def test_missing_repository_url():
    item = make_item(3, "2026-10-01T00:00:00Z")
    del item["repository_url"]

    assert parse_contribution(item).repository == ""


@pytest.mark.asyncio
async def test_search_query_and_ordering(fake_github, client):
    fake_github["/search/issues"] = {
        "items": [
            make_item(1, "2026-09-01T00:00:00Z"),
            make_item(2, "2026-10-05T00:00:00Z", {"merged_at": None}),
        ]
    }

    contributions = await fetch_user_contributions(client, "acme", "alice")

    assert [c.id for c in contributions] == ["2", "1"]
    assert [c.points for c in contributions] == [30, 10]
    assert fake_github.requests[0].url.params["q"] == "author:alice org:acme"


@pytest.mark.asyncio
async def test_failed_search_returns_empty(fake_github, client):
    fake_github["/search/issues"] = 422
    report = SkipReport()

    assert await fetch_user_contributions(client, "acme", "alice", report=report) == []
    assert report[SkipReason.TRANSIENT] == 1


@pytest.mark.asyncio
async def test_rejected_token_propagates(fake_github, client):
    fake_github["/search/issues"] = 401

    with pytest.raises(AuthenticationError):
        await fetch_user_contributions(client, "acme", "alice")


@pytest.mark.asyncio
async def test_failed_later_page_keeps_earlier_results(fake_github, client):
    fake_github["/search/issues"] = search_failing_after_first_page(
        [make_item(1, "2026-09-01T00:00:00Z"), make_item(2, "2026-10-05T00:00:00Z")]
    )
    report = SkipReport()

    contributions = await fetch_user_contributions(client, "acme", "alice", report=report)

    assert [c.id for c in contributions] == ["2", "1"]
    assert len(fake_github.calls("/search/issues")) == 2
    assert report[SkipReason.TRANSIENT] == 1
