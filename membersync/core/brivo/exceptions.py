"""Brivo-specific exceptions for error handling."""
from __future__ import annotations

from typing import Optional


class BrivoError(Exception):
    """Base exception for all Brivo operations."""
    pass


class BrivoAPIError(BrivoError):
    """HTTP error from the Brivo OnAir API.

    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class TokenExpiredError(BrivoAPIError):
    """Request rejected because the bearer token is no longer accepted.

    Attributes:
        generation: Token generation that was sent with the rejected request
    """

    def __init__(self, message: str, endpoint: str, generation: Optional[int] = None):
        self.generation = generation
        super().__init__(401, message, endpoint)


class DuplicateResourceError(BrivoAPIError):
    """Creation failed - the user, credential or assignment already exists."""
    pass


class UserNotFoundError(BrivoError):
    """User lookup failed - external id does not exist in Brivo."""
    pass


class CredentialNotFoundError(BrivoError):
    """Credential lookup failed - reference id does not exist in Brivo."""
    pass
