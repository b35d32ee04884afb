"""
Directory service request/response models.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class StatusSyncRequest(BaseModel):
    """Body of a listing status update."""
    status: str
    reopening_date: Optional[datetime] = None


class DirectorySyncResult(BaseModel):
    """
    Outcome reported by the directory service.

    skipped means the service decided the sync does not apply (for example
    the location has no published listing); it is not an error.
    """
    success: bool = False
    skipped: bool = False
    reason: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "DirectorySyncResult":
        return cls(
            success=bool(data.get("success", False)),
            skipped=bool(data.get("skipped", False)),
            reason=data.get("reason"),
            error=data.get("error"),
        )
