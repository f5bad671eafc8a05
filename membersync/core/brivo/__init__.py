"""Brivo OnAir API client library.

Architecture:
- client.py: HTTP client, token holder and error classification
- users.py: User lifecycle, custom fields, credential and group assignment
- credentials.py: Access credential lifecycle
- exceptions.py: Typed exceptions for error handling

Usage:
    from membersync.core.brivo import BrivoClient, BrivoTokenHolder, UserService

    tokens = BrivoTokenHolder(username, password, client_id, client_secret, api_key)
    tokens.refresh()
    users = UserService(BrivoClient(tokens, api_key))
"""
from .client import (
    BrivoClient,
    BrivoTokenHolder,
    DEFAULT_API_URL,
    DEFAULT_AUTH_URL,
    REQUEST_TIMEOUT,
    paginate,
)
from .credentials import CredentialService
from .exceptions import (
    BrivoError,
    BrivoAPIError,
    TokenExpiredError,
    DuplicateResourceError,
    UserNotFoundError,
    CredentialNotFoundError,
)
from .users import UserService, get_field_value

__all__ = [
    # Client
    "BrivoClient",
    "BrivoTokenHolder",
    "DEFAULT_API_URL",
    "DEFAULT_AUTH_URL",
    "REQUEST_TIMEOUT",
    "paginate",

    # Exceptions
    "BrivoError",
    "BrivoAPIError",
    "TokenExpiredError",
    "DuplicateResourceError",
    "UserNotFoundError",
    "CredentialNotFoundError",

    # Services
    "UserService",
    "CredentialService",
    "get_field_value",
]
