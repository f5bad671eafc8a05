"""MINDBODY-specific exceptions."""


class MindbodyError(Exception):
    """Base exception for all MINDBODY operations."""
    pass


class MindbodyAPIError(MindbodyError):
    """HTTP error from the MINDBODY Public API.

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
