import pytest

from conftest import make_pull, make_repo
from devcoin_dashboard.cache import CacheService, leaderboard_key
from devcoin_dashboard.config import GitHubConfig, LimitsConfig, Settings, ThrottleConfig
from devcoin_dashboard.errors import ConfigurationError
from devcoin_dashboard.service import OrgDashboard


@pytest.fixture
def settings() -> Settings:
    return Settings(
        github=GitHubConfig(token="test-token", org="acme"),
        throttle=ThrottleConfig(pause=0),
        limits=LimitsConfig(recent_pulls=2),
    )


@pytest.mark.asyncio
async def test_operations_use_configured_limits(settings, fake_github, client):
    fake_github["/orgs/acme/repos"] = [make_repo("app")]
    fake_github["/repos/acme/app/pulls"] = [make_pull(n, "alice") for n in range(1, 6)]

    async with OrgDashboard(settings, client=client) as dashboard:
        repos = await dashboard.fetch_repositories()

    assert len(repos[0].pull_requests) == 2
    assert fake_github.calls("/repos/acme/app/pulls")[0].url.params["per_page"] == "2"
    # Detail lookups were not routed, so each one was skipped
    assert dashboard.last_report.total == 2


@pytest.mark.asyncio
async def test_each_call_starts_a_fresh_report(settings, fake_github, client):
    fake_github["/search/issues"] = 500

    dashboard = OrgDashboard(settings, client=client)
    await dashboard.fetch_user_contributions("alice")
    assert dashboard.last_report.total == 1

    fake_github["/search/issues"] = {"items": []}
    await dashboard.fetch_user_contributions("alice")
    assert dashboard.last_report.total == 0
    await dashboard.aclose()


@pytest.mark.asyncio
async def test_leaderboard_uses_shared_cache(settings, fake_github, client):
    cache = CacheService()
    dashboard = OrgDashboard(settings, client=client, cache=cache)

    assert await dashboard.fetch_leaderboard_data("week") == []
    assert cache.has(leaderboard_key("week"))
    await dashboard.aclose()


@pytest.mark.asyncio
async def test_rate_limit_returns_core_resource(settings, fake_github, client):
    fake_github["/rate_limit"] = {"resources": {"core": {"limit": 60, "remaining": 59}}}

    dashboard = OrgDashboard(settings, client=client)
    assert await dashboard.rate_limit() == {"limit": 60, "remaining": 59}
    await dashboard.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "operation",
    [
        lambda d: d.fetch_repositories(),
        lambda d: d.fetch_leaderboard_data("all"),
        lambda d: d.fetch_organization_members(),
        lambda d: d.fetch_user_commits("alice"),
        lambda d: d.fetch_user_contributions("alice"),
        lambda d: d.rate_limit(),
    ],
)
async def test_missing_token_fails_before_any_request(fake_github, client, operation):
    settings = Settings(github=GitHubConfig(token=None, org="acme"))
    dashboard = OrgDashboard(settings, client=client)

    with pytest.raises(ConfigurationError):
        await operation(dashboard)
    assert fake_github.requests == []
    await dashboard.aclose()
