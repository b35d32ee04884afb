"""
Directory listing service integration.
"""

from storefleet.integrations.directory.client import DirectoryClient
from storefleet.integrations.directory.exceptions import (
    DirectoryError,
    DirectoryAuthenticationError,
    DirectoryConnectionError,
    DirectoryTimeoutError,
    DirectoryServiceError,
)
from storefleet.integrations.directory.models import DirectorySyncResult, StatusSyncRequest

__all__ = [
    "DirectoryClient",
    "DirectoryError",
    "DirectoryAuthenticationError",
    "DirectoryConnectionError",
    "DirectoryTimeoutError",
    "DirectoryServiceError",
    "DirectorySyncResult",
    "StatusSyncRequest",
]
