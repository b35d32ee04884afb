"""
Directory listing service client.

Mirrors a location's operational status into the public directory. Called
from the side-effect worker thread, so it is a synchronous httpx client with
its own connect and read timeouts.

SECURITY: the service token must never be logged.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any

import httpx

from storefleet.integrations.directory.exceptions import (
    DirectoryAuthenticationError,
    DirectoryConnectionError,
    DirectoryTimeoutError,
    DirectoryServiceError,
)
from storefleet.integrations.directory.models import DirectorySyncResult, StatusSyncRequest

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 3.0


class DirectoryClient:
    """Synchronous client for the directory listing API."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Args:
            base_url: Directory API base URL
            token: Bearer token for the directory API
            timeout: Request timeout in seconds
            connect_timeout: Connection timeout in seconds
            transport: Optional transport override (tests use httpx.MockTransport)
        """
        if not base_url:
            raise ValueError("Directory service base_url is required")

        self.base_url = base_url.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            headers=headers,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "DirectoryClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _request(self, method: str, endpoint: str, json: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            response = self._client.request(method, endpoint, json=json)
        except httpx.TimeoutException as e:
            raise DirectoryTimeoutError(f"Directory request timed out: {endpoint}") from e
        except httpx.RequestError as e:
            raise DirectoryConnectionError(f"Directory request failed: {e}") from e

        if response.status_code in (401, 403):
            logger.error(
                "Directory service authentication failed",
                extra={"status_code": response.status_code, "endpoint": endpoint},
            )
            raise DirectoryAuthenticationError(status_code=response.status_code)

        if response.status_code >= 500:
            raise DirectoryServiceError(
                f"Directory service error {response.status_code}",
                status_code=response.status_code,
            )

        return response

    def sync_status(
        self,
        tenant_id: str,
        status: str,
        reopening_date: Optional[datetime] = None,
    ) -> DirectorySyncResult:
        """
        Push a status change to the tenant's listing.

        A 404 means the tenant has no listing; that is reported as skipped.

        Raises:
            DirectoryError: on transport, auth or server errors
        """
        endpoint = f"/listings/{tenant_id}/status"
        body = StatusSyncRequest(status=status, reopening_date=reopening_date)
        response = self._request("PUT", endpoint, json=body.model_dump(mode="json"))

        if response.status_code == 404:
            return DirectorySyncResult(skipped=True, reason="listing_not_found")

        if response.status_code >= 400:
            return DirectorySyncResult(
                success=False,
                error=f"Directory rejected status update ({response.status_code})",
            )

        try:
            data = response.json() if response.content else {}
        except ValueError as e:
            raise DirectoryServiceError(
                "Directory returned invalid JSON",
                status_code=response.status_code,
            ) from e

        if not data:
            return DirectorySyncResult(success=True)
        return DirectorySyncResult.from_response(data)
