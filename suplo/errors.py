from __future__ import annotations


class SuploError(Exception):
    """Base class for failures surfaced to a Slack user as a reply."""

    user_message = "Something unexpected happened while processing your request"


class TransportError(SuploError):
    """A Slack Web API call failed (history fetch, posting, modal, status)."""

    def __init__(self, method: str, error: str | None = None):
        self.method = method
        self.error = error or "unknown_error"
        super().__init__(f"Slack {method} failed: {self.error}")


class UpstreamError(SuploError):
    """Non-success response from a completion backend or the CRM."""

    def __init__(self, source: str, message: str, status: int | None = None):
        self.source = source
        self.status = status
        self.detail = message
        prefix = f"{source} HTTP {status}" if status is not None else source
        super().__init__(f"{prefix}: {message}")


class UnsupportedInputError(SuploError):
    """Unrecognised document type or invalid backend selection."""

    def __init__(self, message: str):
        super().__init__(message)
        self.user_message = message


class ValidationError(SuploError):
    """Malformed modal submission or button payload.

    `errors` maps Slack block ids to messages so a modal can highlight fields.
    """

    def __init__(self, message: str, errors: dict[str, str] | None = None):
        super().__init__(message)
        self.errors = dict(errors or {})
        self.user_message = message
