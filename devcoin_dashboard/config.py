"""Configuration management for devcoin-dashboard."""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .cache import LEADERBOARD_TTL, MEMBERS_TTL
from .errors import ConfigurationError

DEFAULT_ORG = "NST-SDC"
DEFAULT_ENDPOINT = "https://api.github.com"


@dataclass
class GitHubConfig:
    """Connection settings for the GitHub API."""

    token: str | None
    org: str = DEFAULT_ORG
    endpoint: str = DEFAULT_ENDPOINT


@dataclass
class CacheConfig:
    """Cache lifetimes in seconds."""

    members_ttl: float = MEMBERS_TTL
    leaderboard_ttl: float = LEADERBOARD_TTL


@dataclass
class ThrottleConfig:
    """Pause ``pause`` seconds after every N commit pages / profile lookups."""

    pause: float = 1.0
    commit_pages: int = 3
    profile_lookups: int = 10


@dataclass
class LimitsConfig:
    """Bounds on how much detail is fetched."""

    recent_pulls: int = 10
    sampled_commits: int = 5
    user_commits: int = 20


@dataclass
class Settings:
    """Main configuration object."""

    github: GitHubConfig
    cache: CacheConfig = field(default_factory=CacheConfig)
    throttle: ThrottleConfig = field(default_factory=ThrottleConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    def require_token(self) -> str:
        """Return the API token.

        Raises:
            ConfigurationError: If no token is configured
        """
        if not self.github.token:
            raise ConfigurationError("GitHub token not configured (set GITHUB_TOKEN or github.token)")
        return self.github.token


def _expand_env_vars(value: str) -> str:
    """Expand environment variable references in a string.

    Supports ${VAR_NAME} syntax. Returns the original string if the
    environment variable is not set.

    Args:
        value: String potentially containing ${VAR_NAME} references

    Returns:
        String with environment variables expanded
    """
    if not isinstance(value, str):
        return value

    pattern = re.compile(r"\$\{([^}]+)\}")

    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return pattern.sub(replacer, value)


def _expand_dict(data: dict) -> dict:
    """Recursively expand environment variables in a dictionary.

    Args:
        data: Dictionary with potential environment variable references

    Returns:
        Dictionary with all environment variables expanded
    """
    result = {}
    for key, value in data.items():
        if isinstance(value, dict):
            result[key] = _expand_dict(value)
        elif isinstance(value, str):
            result[key] = _expand_env_vars(value)
        else:
            result[key] = value
    return result


def _unexpanded(value: str | None) -> bool:
    return isinstance(value, str) and value.startswith("${")


def _section(raw_config: dict, name: str) -> dict:
    section = raw_config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Invalid configuration section: {name}")
    return section


def _number(section: dict, section_name: str, key: str, default, kind=float):
    value = section.get(key, default)
    try:
        value = kind(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid value for {section_name}.{key}: {value!r}")
    if value < 0:
        raise ConfigurationError(f"{section_name}.{key} must not be negative")
    return value


def settings_from_env() -> Settings:
    """Build settings from GITHUB_TOKEN, GITHUB_ORG and GITHUB_API_URL."""
    token = (os.environ.get("GITHUB_TOKEN") or "").strip() or None
    return Settings(
        github=GitHubConfig(
            token=token,
            org=os.environ.get("GITHUB_ORG") or DEFAULT_ORG,
            endpoint=os.environ.get("GITHUB_API_URL") or DEFAULT_ENDPOINT,
        )
    )


def load_config(config_path: str | Path) -> Settings:
    """Load and parse configuration from a YAML file.

    Missing values fall back to the environment (token, org) and then to
    built-in defaults.

    Args:
        config_path: Path to the configuration file

    Returns:
        Parsed settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigurationError: If config is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        raw_config = yaml.safe_load(f)

    if not raw_config:
        raise ConfigurationError("Configuration file is empty")

    if not isinstance(raw_config, dict):
        raise ConfigurationError("Configuration must be a mapping")

    raw_config = _expand_dict(raw_config)
    env = settings_from_env()

    github = _section(raw_config, "github")
    token = github.get("token")
    if not token or _unexpanded(token):
        token = env.github.token

    org = github.get("org") or env.github.org
    if not isinstance(org, str):
        raise ConfigurationError(f"Invalid organization: {org!r}")

    cache = _section(raw_config, "cache")
    throttle = _section(raw_config, "throttle")
    limits = _section(raw_config, "limits")

    return Settings(
        github=GitHubConfig(
            token=token,
            org=org,
            endpoint=github.get("endpoint") or env.github.endpoint,
        ),
        cache=CacheConfig(
            members_ttl=_number(cache, "cache", "members_ttl", MEMBERS_TTL),
            leaderboard_ttl=_number(cache, "cache", "leaderboard_ttl", LEADERBOARD_TTL),
        ),
        throttle=ThrottleConfig(
            pause=_number(throttle, "throttle", "pause", 1.0),
            commit_pages=_number(throttle, "throttle", "commit_pages", 3, int),
            profile_lookups=_number(throttle, "throttle", "profile_lookups", 10, int),
        ),
        limits=LimitsConfig(
            recent_pulls=_number(limits, "limits", "recent_pulls", 10, int),
            sampled_commits=_number(limits, "limits", "sampled_commits", 5, int),
            user_commits=_number(limits, "limits", "user_commits", 20, int),
        ),
    )
