"""
Directory service exceptions.
"""

from typing import Optional, Dict, Any


class DirectoryError(Exception):
    """Base exception for directory service errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, status_code={self.status_code})"


class DirectoryAuthenticationError(DirectoryError):
    """Raised on 401/403."""

    def __init__(
        self,
        message: str = "Authentication failed - directory token may be invalid",
        status_code: int = 401,
        **kwargs,
    ):
        super().__init__(message, status_code=status_code, **kwargs)


class DirectoryConnectionError(DirectoryError):
    """Raised when the service cannot be reached."""

    def __init__(self, message: str = "Connection error - unable to reach directory service", **kwargs):
        super().__init__(message, **kwargs)


class DirectoryTimeoutError(DirectoryError):
    """Raised when a request exceeds the client timeout."""

    def __init__(self, message: str = "Directory service request timed out", **kwargs):
        super().__init__(message, **kwargs)


class DirectoryServiceError(DirectoryError):
    """Raised on 5xx or unparseable responses."""
    pass
