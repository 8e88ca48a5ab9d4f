"""Domain errors for the push notification pipeline."""


class PushError(Exception):
    """Base class for push pipeline errors that reach the API caller."""

    reason = "push_error"
    status_code = 400

    def __init__(self, message: str, reason: str | None = None):
        super().__init__(message)
        self.message = message
        if reason:
            self.reason = reason


class NotificationValidationError(PushError):
    """A dispatch or registration request is malformed.

    Raised before any provider call is made.
    """

    reason = "validation_error"


class InvalidTokenFormat(PushError):
    """A device token does not match the active provider's format."""

    reason = "invalid_token_format"
