"""Error taxonomy shared by the fetch layer, the cache gate and the API routes."""

from typing import Optional


class GlobeAssistError(Exception):
    """Base error; carries the HTTP status and a message safe to show users."""

    status_code: int = 500
    public_message: str = "Something went wrong. Please try again later."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)

    @property
    def message(self) -> str:
        return str(self)


class BadRequestError(GlobeAssistError):
    status_code = 400
    public_message = "Invalid request"


class UnauthorizedError(GlobeAssistError):
    status_code = 401
    public_message = "Unauthorized"


class NotFoundError(GlobeAssistError):
    status_code = 404
    public_message = "Nothing found. Please try again or adjust your search."


class ConfigurationError(GlobeAssistError):
    """A required credential or connection setting is absent. Never retried."""

    status_code = 500
    public_message = "Server configuration error"


class TransientProviderError(GlobeAssistError):
    """Upstream 429/502/503 or a timeout that outlived the retry policy."""

    status_code = 503
    public_message = "The service is temporarily unavailable. Please try again."

    def __init__(self, message: Optional[str] = None, rate_limited: bool = False):
        super().__init__(message)
        self.rate_limited = rate_limited
        if rate_limited:
            self.status_code = 429


class ProviderExhaustedError(TransientProviderError):
    """Every credential was tried or is still cooling down."""

    def __init__(self, last_error: str = "", rate_limited: bool = False):
        super().__init__(
            f"All credentials exhausted. Last error: {last_error or 'none'}",
            rate_limited=rate_limited,
        )
        self.last_error = last_error


class FatalProviderError(GlobeAssistError):
    """Upstream returned a status that retrying cannot fix."""

    status_code = 502
    public_message = "The upstream service rejected the request."

    def __init__(self, status: int, detail: str = ""):
        super().__init__(f"Provider returned HTTP {status}: {detail[:200]}")
        self.status = status
        self.detail = detail


class MalformedResponse(GlobeAssistError):
    """Provider text holds no JSON that could be located or repaired."""

    status_code = 502
    public_message = "Received an unreadable response. Please try again."


class IncompleteResult(GlobeAssistError):
    """Payload is below its completeness threshold even after regeneration."""

    status_code = 503
    public_message = "Unable to fetch complete data. Please try again."


class PersistenceWriteFailure(GlobeAssistError):
    """A cache write failed. Logged by the cache gate, never propagated."""


def public_message(error: GlobeAssistError) -> str:
    """Message for the response envelope; provider detail stays in the logs."""
    if isinstance(error, (BadRequestError, UnauthorizedError, NotFoundError)):
        return str(error)
    return error.public_message
