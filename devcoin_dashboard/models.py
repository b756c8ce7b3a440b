"""Data models for repositories, contributions and leaderboard rows."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class TimeFrame(str, Enum):
    """Window applied to contribution timestamps."""

    ALL = "all"
    MONTH = "month"
    WEEK = "week"


@dataclass(frozen=True)
class ParentRepo:
    """Owner and name of the repository a fork was copied from."""

    owner: str
    name: str


@dataclass(frozen=True)
class PullRequest:
    """Snapshot of a pull request at fetch time."""

    id: int
    number: int
    title: str
    url: str
    author: str
    created_at: datetime
    status: str  # "open", "closed" or "merged"
    additions: int = 0
    deletions: int = 0

    @property
    def merged(self) -> bool:
        return self.status == "merged"

    @property
    def lines_changed(self) -> int:
        return self.additions + self.deletions


@dataclass
class Repository:
    """A repository owned by (or forked into) the organization."""

    id: int
    name: str
    owner: str
    description: str = ""
    url: str = ""
    stars: int = 0
    language: str = ""
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    open_issues: int = 0
    pull_requests: list[PullRequest] = field(default_factory=list)
    fork: bool = False
    parent_repo: ParentRepo | None = None

    def attribution(self, org: str | None = None) -> tuple[str, str]:
        """Return the (owner, name) pair contributions are credited to.

        Forks with a resolved parent credit the parent repository; everything
        else credits the organization (or the repository owner).
        """
        if self.fork and self.parent_repo:
            return self.parent_repo.owner, self.parent_repo.name
        return org or self.owner, self.name


@dataclass(frozen=True)
class CommitRecord:
    """A single commit with its diff size."""

    author: str
    sha: str
    message: str
    date: datetime
    url: str
    additions: int
    deletions: int
    repository: str


@dataclass(frozen=True)
class AuthorCommitStats:
    """Commit totals for one author in one repository."""

    commits: int = 0
    additions: int = 0
    deletions: int = 0

    def __add__(self, other: "AuthorCommitStats") -> "AuthorCommitStats":
        return AuthorCommitStats(
            commits=self.commits + other.commits,
            additions=self.additions + other.additions,
            deletions=self.deletions + other.deletions,
        )

    @property
    def lines_of_code(self) -> int:
        return self.additions + self.deletions


@dataclass(frozen=True)
class DirectCommitStats:
    """Commit totals for one author across every repository."""

    commits: int = 0
    lines_of_code: int = 0

    def __add__(self, other: "DirectCommitStats") -> "DirectCommitStats":
        return DirectCommitStats(
            commits=self.commits + other.commits,
            lines_of_code=self.lines_of_code + other.lines_of_code,
        )


def _prefer(a: str, b: str) -> str:
    # Non-empty wins; between two non-empty values pick deterministically.
    if a and b:
        return min(a, b)
    return a or b


@dataclass(frozen=True)
class UserStats:
    """A leaderboard row.

    ``total_lines_of_code`` accumulates pull request diff stats while
    ``commit_lines_of_code`` accumulates commit diff stats. The two are only
    reconciled when direct commits are folded in.
    """

    username: str
    name: str = ""
    avatar_url: str = ""
    total_lines_of_code: int = 0
    merged_pull_requests: int = 0
    open_pull_requests: int = 0
    dev_coins: int = 0
    total_commits: int = 0
    commit_lines_of_code: int = 0

    def merge(self, other: "UserStats") -> "UserStats":
        """Combine two partial rows for the same user."""
        if other.username != self.username:
            raise ValueError(f"Cannot merge stats for {self.username} and {other.username}")
        return UserStats(
            username=self.username,
            name=_prefer(self.name, other.name),
            avatar_url=_prefer(self.avatar_url, other.avatar_url),
            total_lines_of_code=self.total_lines_of_code + other.total_lines_of_code,
            merged_pull_requests=self.merged_pull_requests + other.merged_pull_requests,
            open_pull_requests=self.open_pull_requests + other.open_pull_requests,
            dev_coins=self.dev_coins + other.dev_coins,
            total_commits=self.total_commits + other.total_commits,
            commit_lines_of_code=self.commit_lines_of_code + other.commit_lines_of_code,
        )


@dataclass(frozen=True)
class Tally:
    """Immutable username -> UserStats accumulator.

    ``add`` and ``merge`` return new tallies. Merging is commutative, so the
    order repositories or pull requests are folded in does not change totals.
    """

    users: Mapping[str, UserStats] = field(default_factory=lambda: MappingProxyType({}))

    def add(self, stats: UserStats) -> "Tally":
        users = dict(self.users)
        existing = users.get(stats.username)
        users[stats.username] = existing.merge(stats) if existing else stats
        return Tally(MappingProxyType(users))

    def merge(self, other: "Tally") -> "Tally":
        result = self
        for stats in other.users.values():
            result = result.add(stats)
        return result

    def put(self, stats: UserStats) -> "Tally":
        """Return a tally with the row for ``stats.username`` swapped out."""
        users = dict(self.users)
        users[stats.username] = stats
        return Tally(MappingProxyType(users))

    def __contains__(self, username: object) -> bool:
        return username in self.users

    def __len__(self) -> int:
        return len(self.users)

    def ranked(self) -> list[UserStats]:
        """Rows sorted by dev coins (descending), ties by username."""
        return sorted(self.users.values(), key=lambda s: (-s.dev_coins, s.username))


@dataclass
class ContributionCounts:
    """Count fields copied from a UserStats row into a directory entry."""

    total_lines_of_code: int = 0
    merged_pull_requests: int = 0
    open_pull_requests: int = 0
    total_commits: int = 0
    commit_lines_of_code: int = 0

    @classmethod
    def from_stats(cls, stats: UserStats) -> "ContributionCounts":
        return cls(
            total_lines_of_code=stats.total_lines_of_code,
            merged_pull_requests=stats.merged_pull_requests,
            open_pull_requests=stats.open_pull_requests,
            total_commits=stats.total_commits,
            commit_lines_of_code=stats.commit_lines_of_code,
        )


@dataclass
class GithubMember:
    """A member directory row."""

    id: int
    username: str
    avatar_url: str = ""
    name: str = ""
    bio: str = ""
    email: str = ""
    company: str = ""
    location: str = ""
    blog: str = ""
    twitter_username: str = ""
    team_names: list[str] = field(default_factory=list)
    role: str = "member"  # "admin", "member" or "outside"
    contributions: ContributionCounts = field(default_factory=ContributionCounts)
    dev_coins: int = 0

    def add_team(self, team_name: str) -> None:
        if team_name not in self.team_names:
            self.team_names.append(team_name)


@dataclass(frozen=True)
class UserContribution:
    """A pull request or issue authored by a user, with its point value."""

    id: str
    type: str  # "PR", "ISSUE" or "COMMIT"
    title: str
    description: str
    url: str
    created_at: datetime
    repository: str
    status: str
    points: int

