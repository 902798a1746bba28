"""Error kinds surfaced by the assistant to the HTTP layer.

Each kind carries the HTTP status the routes answer with.  The message is
the user-facing (German) text; provider details stay in the server log via
the chained ``__cause__``.
"""

from __future__ import annotations


class AssistantError(Exception):
    """Base class for errors that map onto an HTTP response."""

    http_status: int = 500
    default_message = "Ein Fehler ist aufgetreten. Bitte versuchen Sie es später erneut."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AssistantError):
    """Missing or malformed request body (user-correctable)."""

    http_status = 400
    default_message = "Ungültige Anfrage."


class AuthenticationError(AssistantError):
    """The completion service rejected our credential (operator-correctable)."""

    http_status = 500
    default_message = "API-Schlüssel ungültig"


class RateLimitError(AssistantError):
    """The completion service is throttling us; the caller should back off."""

    http_status = 429
    default_message = "Rate-Limit überschritten. Bitte versuchen Sie es später erneut."


class UpstreamFailure(AssistantError):
    """Any other provider or network failure."""

    http_status = 500


class ContentRefreshError(AssistantError):
    """A forced content refresh could not be completed."""

    http_status = 500
    default_message = "Fehler beim Aktualisieren der Inhalte"
