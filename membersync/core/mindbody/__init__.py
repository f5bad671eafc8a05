"""MINDBODY Public API client library (membership system of record)."""
from .client import (
    MindbodyClient,
    MindbodyTokenHolder,
    DEFAULT_API_URL,
    MAX_PAGE_SIZE,
    REQUEST_TIMEOUT,
)
from .exceptions import MindbodyError, MindbodyAPIError

__all__ = [
    "MindbodyClient",
    "MindbodyTokenHolder",
    "DEFAULT_API_URL",
    "MAX_PAGE_SIZE",
    "REQUEST_TIMEOUT",
    "MindbodyError",
    "MindbodyAPIError",
]
