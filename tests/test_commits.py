from datetime import datetime, timezone

import pytest

from conftest import make_commit, make_commit_detail, make_repo
from devcoin_dashboard.commits import (
    attribution_targets,
    commit_author,
    fetch_admin_direct_commits,
    fetch_admin_logins,
    fetch_repository_commit_history,
    fetch_user_commits,
)
from devcoin_dashboard.models import AuthorCommitStats, DirectCommitStats, ParentRepo, Repository
from devcoin_dashboard.outcome import SkipReason, SkipReport

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def test_commit_author_prefers_login_then_email():
    assert commit_author(make_commit("a", login="alice", email="a@x.test")) == "alice"
    assert commit_author(make_commit("b", email="b@x.test")) == "b@x.test"
    assert commit_author(make_commit("c")) is None


def test_attribution_targets_deduplicate_forks():
    repos = [
        Repository(id=1, name="app", owner="acme"),
        Repository(id=2, name="lib", owner="acme", fork=True, parent_repo=ParentRepo("up", "lib")),
        Repository(id=3, name="lib-copy", owner="acme", fork=True, parent_repo=ParentRepo("up", "lib")),
    ]

    assert attribution_targets(repos, "acme") == [("acme", "app"), ("up", "lib")]


@pytest.mark.asyncio
async def test_history_totals_per_author(fake_github, client, no_wait):
    fake_github["/repos/acme/app/commits"] = [
        make_commit("s1", login="alice"),
        make_commit("s2", login="alice"),
        make_commit("s3", email="dev@x.test"),
        make_commit("s4"),
    ]
    fake_github["/repos/acme/app/commits/s1"] = make_commit_detail(10, 5)
    fake_github["/repos/acme/app/commits/s2"] = make_commit_detail(1, 0)
    fake_github["/repos/acme/app/commits/s3"] = {"files": [{"additions": 2, "deletions": 2}]}
    report = SkipReport()

    history = await fetch_repository_commit_history(client, "acme", "app", limiter=no_wait(), report=report)

    assert history == {
        "alice": AuthorCommitStats(commits=2, additions=11, deletions=5),
        "dev@x.test": AuthorCommitStats(commits=1, additions=2, deletions=2),
    }
    assert report[SkipReason.UNATTRIBUTED] == 1
    assert not fake_github.calls("/commits/s4")


@pytest.mark.asyncio
async def test_history_skips_commits_whose_detail_fails(fake_github, client, no_wait):
    fake_github["/repos/acme/app/commits"] = [make_commit("s1", login="alice"), make_commit("s2", login="alice")]
    fake_github["/repos/acme/app/commits/s1"] = 500
    fake_github["/repos/acme/app/commits/s2"] = make_commit_detail(3, 3)
    report = SkipReport()

    history = await fetch_repository_commit_history(client, "acme", "app", limiter=no_wait(), report=report)

    assert history == {"alice": AuthorCommitStats(commits=1, additions=3, deletions=3)}
    assert report[SkipReason.TRANSIENT] == 1


@pytest.mark.asyncio
async def test_history_passes_since_for_timeframe(fake_github, client, no_wait):
    await fetch_repository_commit_history(client, "acme", "app", "week", limiter=no_wait(), now=NOW)

    assert fake_github.requests[0].url.params["since"] == "2026-10-12T12:00:00Z"


@pytest.mark.asyncio
async def test_history_keeps_pages_read_before_a_failure(fake_github, client, no_wait):
    pages = {"n": 0}

    def flaky(request):
        pages["n"] += 1
        if pages["n"] == 1:
            return [make_commit("s1", login="alice"), make_commit("s2", login="alice")]
        return 502

    fake_github.per_page = 1
    fake_github["/repos/acme/app/commits"] = flaky
    fake_github["/repos/acme/app/commits/s1"] = make_commit_detail(2, 0)
    report = SkipReport()

    history = await fetch_repository_commit_history(client, "acme", "app", limiter=no_wait(), report=report)

    assert history == {"alice": AuthorCommitStats(commits=1, additions=2, deletions=0)}
    assert report[SkipReason.TRANSIENT] == 1


@pytest.mark.asyncio
async def test_history_throttles_pages(fake_github, client, no_wait):
    fake_github.per_page = 1
    fake_github["/repos/acme/app/commits"] = [make_commit(f"s{i}") for i in range(7)]
    limiter = no_wait(3)

    await fetch_repository_commit_history(client, "acme", "app", limiter=limiter)

    assert limiter.calls == 6
    assert limiter.pauses == 2


@pytest.mark.asyncio
async def test_admin_logins_include_repository_admins(fake_github, client):
    fake_github["/orgs/acme/members?role=admin"] = [{"login": "owner"}]
    fake_github["/repos/acme/app/collaborators"] = [
        {"login": "maint", "permissions": {"admin": True}},
        {"login": "dev", "permissions": {"admin": False}},
    ]
    repos = [Repository(id=1, name="app", owner="acme")]

    assert await fetch_admin_logins(client, "acme", repos) == {"owner", "maint"}


@pytest.mark.asyncio
async def test_direct_commits_fold_across_repositories(fake_github, client, no_wait):
    repos = [
        Repository(id=1, name="app", owner="acme"),
        Repository(id=2, name="lib", owner="acme", fork=True, parent_repo=ParentRepo("up", "lib")),
        Repository(id=3, name="lib2", owner="acme", fork=True, parent_repo=ParentRepo("up", "lib")),
    ]
    fake_github["/repos/acme/app/commits"] = [make_commit("a1", login="alice")]
    fake_github["/repos/acme/app/commits/a1"] = make_commit_detail(40, 0)
    fake_github["/repos/up/lib/commits"] = [make_commit("l1", login="alice"), make_commit("l2", login="bob")]
    fake_github["/repos/up/lib/commits/l1"] = make_commit_detail(10, 10)
    fake_github["/repos/up/lib/commits/l2"] = make_commit_detail(5, 0)

    totals = await fetch_admin_direct_commits(client, "acme", repositories=repos, limiter=no_wait())

    assert totals == {
        "alice": DirectCommitStats(commits=2, lines_of_code=60),
        "bob": DirectCommitStats(commits=1, lines_of_code=5),
    }
    # Two forks of one parent are scanned once
    assert len(fake_github.calls("/repos/up/lib/commits/l1")) == 1


@pytest.mark.asyncio
async def test_user_commits_newest_first_and_limited(fake_github, client):
    fake_github["/orgs/acme/repos"] = [make_repo("app"), make_repo("web")]
    fake_github["/repos/acme/app/commits?author=alice"] = [
        make_commit("a1", login="alice", date="2026-10-01T00:00:00Z"),
        make_commit("a2", login="alice", date="2026-10-05T00:00:00Z"),
    ]
    fake_github["/repos/acme/web/commits?author=alice"] = [
        make_commit("w1", login="alice", date="2026-10-03T00:00:00Z"),
        make_commit("w2", login="alice", date="2026-10-09T00:00:00Z"),
    ]
    for sha in ("a1", "a2"):
        fake_github[f"/repos/acme/app/commits/{sha}"] = make_commit_detail(1, 1)
    for sha in ("w1", "w2"):
        fake_github[f"/repos/acme/web/commits/{sha}"] = make_commit_detail(2, 0)

    records = await fetch_user_commits(client, "acme", "alice", limit=3)

    assert [r.sha for r in records] == ["a2", "w1", "a1"]
    assert records[1].repository == "web"
    assert records[1].additions == 2
    assert not fake_github.calls("/commits/w2")
