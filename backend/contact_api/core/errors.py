from typing import Dict, Optional


class ContactApiError(Exception):
    """Base class for errors raised by the contact service."""


class ConfigurationError(ContactApiError):
    """Mandatory configuration is missing; the process must not start."""


class ContactValidationError(ContactApiError):
    """A submitted field failed validation. Carries one user-facing message."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DeliveryError(ContactApiError):
    """The mail backend could not deliver the message."""

    def __init__(self, reason: str, backend: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.backend = backend


class RateLimitExceeded(ContactApiError):
    def __init__(self, headers: Dict[str, str]):
        super().__init__("Too many requests, please try again later.")
        self.headers = headers
