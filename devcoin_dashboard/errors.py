"""Error types raised by the dashboard core."""


class DashboardError(Exception):
    """Base class for all dashboard errors."""


class ConfigurationError(DashboardError, ValueError):
    """Raised when a required setting (token, organization) is missing or invalid."""


class ForgeError(DashboardError):
    """A request to the git forge failed.

    Attributes:
        status: HTTP status code, or None for transport failures
        url: Request URL that failed
    """

    def __init__(self, message: str, status: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status = status
        self.url = url


class AuthenticationError(ForgeError):
    """The forge rejected the API token (HTTP 401)."""


class PermissionOrRateLimitError(ForgeError):
    """The forge refused the request (HTTP 403 or 429).

    Either the token lacks a scope or the rate limit is exhausted. When the
    forge reports a reset time it is kept in ``reset_at`` (epoch seconds).
    """

    def __init__(
        self,
        message: str,
        status: int | None = 403,
        url: str | None = None,
        reset_at: int | None = None,
    ):
        super().__init__(message, status=status, url=url)
        self.reset_at = reset_at

    @property
    def rate_limited(self) -> bool:
        return self.reset_at is not None


class NotFoundError(ForgeError):
    """The requested resource does not exist (HTTP 404)."""

    def __init__(self, message: str, resource: str, status: int | None = 404, url: str | None = None):
        super().__init__(message, status=status, url=url)
        self.resource = resource


class TransientItemError(ForgeError):
    """Any other forge failure: 5xx, unexpected status, or transport error."""
