"""
Location API Routes - Entitlements and operational status of a location.

Provides endpoints for:
- Reading a location with its status display attributes
- Reading effective entitlements (tier, limits, features, upgrade path)
- Changing and previewing operational status
- Reading status history
- Checking and performing location creation

SECURITY:
- All endpoints require the gateway identity headers (X-User-Id, X-User-Role)
- Reads require a resolved role whose access covers the location status
  (archived: platform admin only; closed: platform staff, owner, admin)
- Status changes require PLATFORM_ADMIN, OWNER or ADMIN
- Only platform staff can create locations for another owner
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from storefleet.api.dependencies import get_location_service
from storefleet.entitlements.errors import StorefleetError
from storefleet.lifecycle.status import (
    billing_multiplier,
    directory_badge,
    get_status_info,
    storefront_message,
)
from storefleet.models.base import as_utc
from storefleet.models.tenant import Tenant
from storefleet.platform.actor import Actor, get_actor
from storefleet.services.location_service import LocationLifecycleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tenants", tags=["locations"])


# --- Request/Response Models ---


class LocationResponse(BaseModel):
    """A location with its operational status presentation."""
    id: str
    name: str
    owner_id: str
    organization_id: Optional[str] = None
    subscription_tier: str
    subscription_status: str
    trial_ends_at: Optional[str] = None
    location_status: str
    status_info: Dict[str, Any]
    status_changed_at: Optional[str] = None
    status_changed_by: Optional[str] = None
    reopening_date: Optional[str] = None
    closure_reason: Optional[str] = None
    storefront_message: Optional[str] = None
    directory_badge: Optional[Dict[str, str]] = None
    billing_multiplier: float = 1.0


class EntitlementsResponse(BaseModel):
    """Effective entitlements of a location."""
    tenant_id: str
    tier: str
    subscription_status: str
    location_limit: Optional[int] = None
    location_count: int
    remaining_slots: Optional[int] = None
    feature_set: List[str]
    upgrade_target: Optional[str] = None
    sku_quota: Optional[int] = None
    sku_quota_remaining: Optional[int] = None
    featuring_slots: Dict[str, int] = Field(default_factory=dict)
    trial_ends_at: Optional[str] = None


class StatusChangeRequest(BaseModel):
    """Request to change a location's operational status."""
    status: str = Field(..., description="Target status (pending, active, inactive, closed, archived)")
    reason: Optional[str] = Field(
        None,
        description="Required when closing or archiving"
    )
    reopening_date: Optional[datetime] = Field(
        None,
        description="Expected reopening date for temporary closures"
    )


class StatusChangeResponse(BaseModel):
    """Result of a status change."""
    location: LocationResponse
    previous_status: str
    new_status: str
    no_op: bool = False


class StatusPreviewRequest(BaseModel):
    """Request to preview a status change."""
    status: str


class StatusPreviewResponse(BaseModel):
    """Dry-run result of a status change."""
    current_status: str
    new_status: str
    valid: bool
    reason: Optional[str] = None
    code: Optional[str] = None
    no_op: bool = False
    impact: Dict[str, str]


class StatusHistoryEntryResponse(BaseModel):
    """One recorded status transition."""
    id: Optional[int] = None
    old_status: str
    new_status: str
    old_status_info: Optional[Dict[str, Any]] = None
    new_status_info: Optional[Dict[str, Any]] = None
    changed_by: str
    reason: Optional[str] = None
    reopening_date: Optional[str] = None
    created_at: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class StatusHistoryResponse(BaseModel):
    """Response for listing status history."""
    tenant_id: str
    entries: List[StatusHistoryEntryResponse]
    total_count: int


class CreateLocationRequest(BaseModel):
    """Request to create a location."""
    name: str = Field(..., min_length=1, max_length=255)
    owner_id: Optional[str] = Field(
        None,
        description="Owner of the new location; defaults to the caller"
    )
    organization_id: Optional[str] = None


class CreationCheckResponse(BaseModel):
    """Whether the caller may create another location for an owner."""
    allowed: bool
    limit: Optional[int] = None
    current: int
    remaining: Optional[int] = None
    limited_by: Optional[str] = None
    reason: Optional[str] = None


# --- Helper Functions ---


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None


def _raise_http(error: StorefleetError) -> None:
    """Translate an engine error into an HTTP error carrying its payload."""
    raise HTTPException(status_code=error.http_status, detail=error.to_dict())


def _status_info_or_none(value: str) -> Optional[Dict[str, Any]]:
    try:
        return get_status_info(value).to_dict()
    except ValueError:
        return None


def _location_response(tenant: Tenant) -> LocationResponse:
    location_status = tenant.location_status
    reopening_date = as_utc(tenant.reopening_date)
    return LocationResponse(
        id=tenant.id,
        name=tenant.name,
        owner_id=tenant.owner_id,
        organization_id=tenant.organization_id,
        subscription_tier=tenant.subscription_tier,
        subscription_status=tenant.subscription_status.value,
        trial_ends_at=_iso(tenant.trial_ends_at),
        location_status=location_status.value,
        status_info=get_status_info(location_status).to_dict(),
        status_changed_at=_iso(tenant.status_changed_at),
        status_changed_by=tenant.status_changed_by,
        reopening_date=_iso(reopening_date),
        closure_reason=tenant.closure_reason,
        storefront_message=storefront_message(location_status, reopening_date),
        directory_badge=directory_badge(location_status),
        billing_multiplier=billing_multiplier(location_status, tenant.status_changed_at),
    )


# --- Endpoints ---


# Registered before /{tenant_id} so the literal path wins
@router.get("/creation-check", response_model=CreationCheckResponse)
async def check_location_creation(
    owner_id: Optional[str] = Query(None, description="Defaults to the caller"),
    actor: Actor = Depends(get_actor),
    service: LocationLifecycleService = Depends(get_location_service),
):
    """Report whether the caller may create another location for an owner."""
    owner = owner_id or actor.user_id
    if owner != actor.user_id and not actor.is_platform:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only platform staff can check creation for another owner"
        )

    decision = service.check_location_creation(actor, owner)
    return CreationCheckResponse(**decision.to_dict())


@router.get("/{tenant_id}", response_model=LocationResponse)
async def get_location(
    tenant_id: str,
    actor: Actor = Depends(get_actor),
    service: LocationLifecycleService = Depends(get_location_service),
):
    """Get a location and its status presentation."""
    try:
        tenant = service.get_tenant(tenant_id, actor=actor)
    except StorefleetError as e:
        _raise_http(e)

    return _location_response(tenant)


@router.get("/{tenant_id}/entitlements", response_model=EntitlementsResponse)
async def get_entitlements(
    tenant_id: str,
    actor: Actor = Depends(get_actor),
    service: LocationLifecycleService = Depends(get_location_service),
):
    """Get the effective entitlements of a location."""
    try:
        service.get_tenant(tenant_id, actor=actor)
        entitlements = service.get_effective_entitlements(tenant_id)
    except StorefleetError as e:
        logger.warning(
            "Entitlement lookup failed",
            extra={"tenant_id": tenant_id, "error": e.to_dict()},
        )
        _raise_http(e)

    return EntitlementsResponse(**entitlements.to_dict())


@router.patch("/{tenant_id}/status", response_model=StatusChangeResponse)
async def change_location_status(
    tenant_id: str,
    body: StatusChangeRequest,
    actor: Actor = Depends(get_actor),
    service: LocationLifecycleService = Depends(get_location_service),
):
    """
    Change the operational status of a location.

    Requires PLATFORM_ADMIN, OWNER or ADMIN. Closing or archiving requires a reason.
    History and directory sync happen after the response.
    """
    try:
        result = service.change_status(
            tenant_id,
            actor,
            body.status,
            reason=body.reason,
            reopening_date=body.reopening_date,
        )
    except StorefleetError as e:
        _raise_http(e)

    tenant = result.tenant
    if not result.no_op:
        service.db.refresh(tenant)

    return StatusChangeResponse(
        location=_location_response(tenant),
        previous_status=result.previous_status.value,
        new_status=result.new_status.value,
        no_op=result.no_op,
    )


@router.post("/{tenant_id}/status/preview", response_model=StatusPreviewResponse)
async def preview_location_status(
    tenant_id: str,
    body: StatusPreviewRequest,
    actor: Actor = Depends(get_actor),
    service: LocationLifecycleService = Depends(get_location_service),
):
    """Dry-run a status change and describe its impact. Nothing is written."""
    try:
        preview = service.preview_status_change(tenant_id, body.status, actor=actor)
    except StorefleetError as e:
        _raise_http(e)

    return StatusPreviewResponse(**preview.to_dict())


@router.get("/{tenant_id}/status-history", response_model=StatusHistoryResponse)
async def get_location_status_history(
    tenant_id: str,
    limit: Optional[int] = Query(None, ge=1, description="Defaults to 50, capped at 200"),
    actor: Actor = Depends(get_actor),
    service: LocationLifecycleService = Depends(get_location_service),
):
    """List status transitions of a location, most recent first."""
    try:
        service.get_tenant(tenant_id, actor=actor)
        entries = service.get_status_history(tenant_id, limit=limit)
    except StorefleetError as e:
        _raise_http(e)

    items = [
        StatusHistoryEntryResponse(
            id=entry.id,
            old_status=entry.old_status,
            new_status=entry.new_status,
            old_status_info=_status_info_or_none(entry.old_status),
            new_status_info=_status_info_or_none(entry.new_status),
            changed_by=entry.changed_by,
            reason=entry.reason,
            reopening_date=_iso(entry.reopening_date),
            created_at=_iso(entry.created_at),
            metadata=entry.metadata,
        )
        for entry in entries
    ]
    return StatusHistoryResponse(tenant_id=tenant_id, entries=items, total_count=len(items))


@router.post("", response_model=LocationResponse, status_code=status.HTTP_201_CREATED)
async def create_location(
    body: CreateLocationRequest,
    actor: Actor = Depends(get_actor),
    service: LocationLifecycleService = Depends(get_location_service),
):
    """Create a location in trial, subject to the owner's location limit."""
    try:
        tenant = service.create_location(
            actor,
            body.name,
            owner_id=body.owner_id,
            organization_id=body.organization_id,
        )
    except StorefleetError as e:
        _raise_http(e)

    return _location_response(tenant)
