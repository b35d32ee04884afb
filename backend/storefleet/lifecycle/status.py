"""
Location status metadata: labels, visibility rules, billing and impact.

Pure lookups over LocationStatus. The transition graph itself lives in
policy.py.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Union

from storefleet.constants.roles import PLATFORM_READ_ROLES, Role, parse_role
from storefleet.models.base import as_utc, utc_now
from storefleet.models.tenant import LocationStatus

# Closed locations are billed at half rate after this many days
CLOSED_DISCOUNT_AFTER_DAYS = 30
CLOSED_DISCOUNT_MULTIPLIER = 0.5

NO_CHANGE = "No change"


@dataclass(frozen=True)
class StatusInfo:
    """Display and visibility attributes of one status."""

    status: str
    label: str
    description: str
    color: str
    can_sync: bool
    shows_in_directory: bool
    shows_storefront: bool
    counts_toward_limits: bool
    is_billable: bool
    can_receive_propagation: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


STATUS_INFO: Dict[LocationStatus, StatusInfo] = {
    LocationStatus.PENDING: StatusInfo(
        status=LocationStatus.PENDING.value,
        label="Pending",
        description="Location is being set up and is not yet open",
        color="gray",
        can_sync=False,
        shows_in_directory=False,
        shows_storefront=False,
        counts_toward_limits=True,
        is_billable=True,
        can_receive_propagation=False,
    ),
    LocationStatus.ACTIVE: StatusInfo(
        status=LocationStatus.ACTIVE.value,
        label="Active",
        description="Location is open for business",
        color="green",
        can_sync=True,
        shows_in_directory=True,
        shows_storefront=True,
        counts_toward_limits=True,
        is_billable=True,
        can_receive_propagation=True,
    ),
    LocationStatus.INACTIVE: StatusInfo(
        status=LocationStatus.INACTIVE.value,
        label="Temporarily Closed",
        description="Location is temporarily closed and expected to reopen",
        color="yellow",
        can_sync=False,
        shows_in_directory=True,
        shows_storefront=True,
        counts_toward_limits=True,
        is_billable=True,
        can_receive_propagation=False,
    ),
    LocationStatus.CLOSED: StatusInfo(
        status=LocationStatus.CLOSED.value,
        label="Permanently Closed",
        description="Location has closed permanently",
        color="red",
        can_sync=False,
        shows_in_directory=True,
        shows_storefront=True,
        counts_toward_limits=True,
        is_billable=True,
        can_receive_propagation=False,
    ),
    LocationStatus.ARCHIVED: StatusInfo(
        status=LocationStatus.ARCHIVED.value,
        label="Archived",
        description="Location is hidden everywhere and kept for records only",
        color="slate",
        can_sync=False,
        shows_in_directory=False,
        shows_storefront=False,
        counts_toward_limits=False,
        is_billable=False,
        can_receive_propagation=False,
    ),
}


def coerce_status(value: Union[str, LocationStatus]) -> LocationStatus:
    """
    Parse a status value.

    Raises:
        ValueError: for unknown statuses
    """
    if isinstance(value, LocationStatus):
        return value
    return LocationStatus(str(value).strip().lower())


def get_status_info(status: Union[str, LocationStatus]) -> StatusInfo:
    return STATUS_INFO[coerce_status(status)]


def counts_toward_limits(status: Union[str, LocationStatus]) -> bool:
    return get_status_info(status).counts_toward_limits


def billing_multiplier(
    status: Union[str, LocationStatus],
    status_changed_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> float:
    """
    Fraction of the tier price billed for a location in this status.

    Archived: 0. Closed for more than 30 days: 0.5. Otherwise full price.
    """
    status = coerce_status(status)
    if status == LocationStatus.ARCHIVED:
        return 0.0
    if status == LocationStatus.CLOSED and status_changed_at is not None:
        now = now or utc_now()
        if as_utc(now) - as_utc(status_changed_at) > timedelta(days=CLOSED_DISCOUNT_AFTER_DAYS):
            return CLOSED_DISCOUNT_MULTIPLIER
    return 1.0


def _describe(before: bool, after: bool, gained: str, lost: str) -> str:
    if before == after:
        return NO_CHANGE
    return gained if after else lost


def status_change_impact(
    from_status: Union[str, LocationStatus],
    to_status: Union[str, LocationStatus],
) -> Dict[str, str]:
    """Human-readable effects of moving between two statuses."""
    old = get_status_info(from_status)
    new = get_status_info(to_status)
    return {
        "storefront": _describe(
            old.shows_storefront, new.shows_storefront,
            "Storefront will be visible", "Storefront will be hidden",
        ),
        "directory": _describe(
            old.shows_in_directory, new.shows_in_directory,
            "Will appear in directory", "Will be removed from directory",
        ),
        "google_sync": _describe(
            old.can_sync, new.can_sync,
            "Google sync will resume", "Google sync will pause",
        ),
        "billing": _describe(
            old.is_billable, new.is_billable,
            "Billing will resume", "Billing will stop",
        ),
        "propagation": _describe(
            old.can_receive_propagation, new.can_receive_propagation,
            "Can receive propagated changes", "Will not receive propagated changes",
        ),
    }


def storefront_message(
    status: Union[str, LocationStatus],
    reopening_date: Optional[datetime] = None,
) -> Optional[str]:
    """Banner shown on the storefront; None for open locations."""
    status = coerce_status(status)
    if status == LocationStatus.INACTIVE:
        if reopening_date is not None:
            return f"Temporarily closed. Reopening on {reopening_date.strftime('%B %d, %Y')}"
        return "Temporarily closed"
    if status == LocationStatus.CLOSED:
        return "This location has permanently closed"
    if status in (LocationStatus.PENDING, LocationStatus.ARCHIVED):
        return "This location is not currently available"
    return None


def directory_badge(status: Union[str, LocationStatus]) -> Optional[Dict[str, str]]:
    """Badge shown next to a directory listing; None when no badge applies."""
    status = coerce_status(status)
    if status == LocationStatus.INACTIVE:
        return {"text": "Temporarily Closed", "color": "orange"}
    if status == LocationStatus.CLOSED:
        return {"text": "Permanently Closed", "color": "red"}
    if status == LocationStatus.PENDING:
        return {"text": "Opening Soon", "color": "yellow"}
    return None


# Tenant roles that keep read access to a permanently closed location
CLOSED_READ_ROLES = frozenset({Role.OWNER, Role.ADMIN})


def can_access_location(status: Union[str, LocationStatus], role: Union[str, Role, None]) -> bool:
    """
    Whether a role may read a location in the given status.

    Platform admin reads everything. Other platform roles read everything
    but archived locations. Tenant roles read open and temporarily closed
    locations; closed ones only as owner or admin; archived ones never.
    """
    status = coerce_status(status)
    role = parse_role(role)
    if role is None:
        return False
    if role == Role.PLATFORM_ADMIN:
        return True
    if role in PLATFORM_READ_ROLES:
        return status != LocationStatus.ARCHIVED
    if status == LocationStatus.CLOSED:
        return role in CLOSED_READ_ROLES
    return status != LocationStatus.ARCHIVED
