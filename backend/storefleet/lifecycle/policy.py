"""
Transition policies for location status.

The state machine only knows the TransitionPolicy contract; which edges
exist and which moves need a reason are policy decisions. The default policy
encodes the current product rules.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Mapping, Optional, Protocol, Union

from storefleet.lifecycle.status import coerce_status
from storefleet.models.tenant import LocationStatus


class RejectionCode:
    """Machine-readable reasons a policy rejects a transition."""
    NOT_ALLOWED = "transition_not_allowed"
    REASON_REQUIRED = "reason_required"
    UNKNOWN_STATUS = "unknown_status"


@dataclass(frozen=True)
class TransitionResult:
    """Ok, or a rejection with a code and an explanation."""

    ok: bool
    code: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def accept(cls) -> "TransitionResult":
        return cls(ok=True)

    @classmethod
    def reject(cls, code: str, message: str) -> "TransitionResult":
        return cls(ok=False, code=code, message=message)


class TransitionPolicy(Protocol):
    """Contract the state machine depends on."""

    def allowed_next_states(self, from_status: LocationStatus) -> FrozenSet[LocationStatus]:
        ...

    def validate(
        self,
        from_status: LocationStatus,
        to_status: LocationStatus,
        reason: Optional[str] = None,
        require_reason: bool = True,
    ) -> TransitionResult:
        ...


DEFAULT_TRANSITIONS: Dict[LocationStatus, FrozenSet[LocationStatus]] = {
    LocationStatus.PENDING: frozenset({LocationStatus.ACTIVE, LocationStatus.ARCHIVED}),
    LocationStatus.ACTIVE: frozenset({
        LocationStatus.INACTIVE, LocationStatus.CLOSED, LocationStatus.ARCHIVED,
    }),
    LocationStatus.INACTIVE: frozenset({
        LocationStatus.ACTIVE, LocationStatus.CLOSED, LocationStatus.ARCHIVED,
    }),
    LocationStatus.CLOSED: frozenset({LocationStatus.ARCHIVED}),
    LocationStatus.ARCHIVED: frozenset({LocationStatus.ACTIVE}),
}

DEFAULT_REASON_REQUIRED: FrozenSet[LocationStatus] = frozenset({
    LocationStatus.CLOSED,
    LocationStatus.ARCHIVED,
})


class DefaultTransitionPolicy:
    """
    Table-driven policy.

    Both tables can be replaced at construction, so tests and other products
    can plug in their own graph without subclassing.
    """

    def __init__(
        self,
        transitions: Optional[Mapping[LocationStatus, FrozenSet[LocationStatus]]] = None,
        reason_required: Optional[FrozenSet[LocationStatus]] = None,
    ):
        self._transitions = dict(DEFAULT_TRANSITIONS if transitions is None else transitions)
        self._reason_required = (
            DEFAULT_REASON_REQUIRED if reason_required is None else frozenset(reason_required)
        )

    def allowed_next_states(
        self,
        from_status: Union[str, LocationStatus],
    ) -> FrozenSet[LocationStatus]:
        return self._transitions.get(coerce_status(from_status), frozenset())

    def requires_reason(self, to_status: Union[str, LocationStatus]) -> bool:
        return coerce_status(to_status) in self._reason_required

    def validate(
        self,
        from_status: Union[str, LocationStatus],
        to_status: Union[str, LocationStatus],
        reason: Optional[str] = None,
        require_reason: bool = True,
    ) -> TransitionResult:
        """
        Check an edge and its reason rule.

        require_reason=False skips the reason rule (used by previews).
        """
        try:
            source = coerce_status(from_status)
            target = coerce_status(to_status)
        except ValueError as e:
            return TransitionResult.reject(RejectionCode.UNKNOWN_STATUS, str(e))

        if target not in self.allowed_next_states(source):
            allowed = ", ".join(sorted(s.value for s in self.allowed_next_states(source))) or "none"
            return TransitionResult.reject(
                RejectionCode.NOT_ALLOWED,
                f"Cannot change status from {source.value} to {target.value}. "
                f"Allowed: {allowed}",
            )

        if require_reason and self.requires_reason(target) and not (reason or "").strip():
            return TransitionResult.reject(
                RejectionCode.REASON_REQUIRED,
                f"A reason is required to change status to {target.value}",
            )

        return TransitionResult.accept()
