"""Unified lifecycle for direct (user-to-user) and hospital-mediated requests.

    pending -> accepted -> on_the_way -> completed
                        -> confirmed  -> completed
    any non-terminal state -> cancelled
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional
from uuid import UUID

from app.db.base import utcnow
from app.schemas.base_schema import UserRole
from app.schemas.request import RequestStatus
from app.utils.exceptions import InvalidTransitionError, UnauthorizedActionError

TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.ACCEPTED, RequestStatus.CANCELLED}),
    RequestStatus.ACCEPTED: frozenset(
        {RequestStatus.ON_THE_WAY, RequestStatus.CONFIRMED, RequestStatus.CANCELLED}
    ),
    RequestStatus.ON_THE_WAY: frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED}),
    RequestStatus.CONFIRMED: frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED}),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
}

TERMINAL_STATES = frozenset(
    status for status, targets in TRANSITIONS.items() if not targets
)


@dataclass(frozen=True)
class Actor:
    """Verified identity handed to the core by the HTTP layer."""

    user_id: UUID
    role: UserRole = UserRole.USER
    hospital_id: Optional[UUID] = None

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(user_id=user.id, role=UserRole(user.role), hospital_id=user.hospital_id)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return RequestStatus(target) in TRANSITIONS[RequestStatus(current)]


def ensure_transition(current: RequestStatus, target: RequestStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)


def is_requester(request, actor: Actor) -> bool:
    """Whoever raised the request: the patient, or the owning hospital."""
    if request.requester_id is not None:
        return request.requester_id == actor.user_id
    return is_owning_hospital(request, actor)


def is_owning_hospital(request, actor: Actor) -> bool:
    return (
        request.hospital_id is not None
        and actor.role == UserRole.HOSPITAL
        and actor.hospital_id == request.hospital_id
    )


def is_matched_donor(request, actor: Actor) -> bool:
    return request.donor_id is not None and request.donor_id == actor.user_id


def authorize_transition(request, target: RequestStatus, actor: Actor) -> None:
    target = RequestStatus(target)
    current = RequestStatus(request.status)

    if target == RequestStatus.ACCEPTED:
        if is_requester(request, actor):
            raise UnauthorizedActionError("You cannot accept your own request")
        return

    if target == RequestStatus.ON_THE_WAY:
        if not is_matched_donor(request, actor):
            raise UnauthorizedActionError(
                "Only the donor who accepted this request can update it"
            )
        return

    if target == RequestStatus.CONFIRMED:
        if not is_owning_hospital(request, actor):
            raise UnauthorizedActionError(
                "Only the hospital that created this request can confirm it"
            )
        return

    if target == RequestStatus.COMPLETED:
        if current == RequestStatus.CONFIRMED:
            if not is_owning_hospital(request, actor):
                raise UnauthorizedActionError(
                    "Only the hospital that created this request can complete it"
                )
        elif not (
            is_requester(request, actor)
            or is_matched_donor(request, actor)
            or actor.is_admin
        ):
            raise UnauthorizedActionError("Not authorized to complete this request")
        return

    if target == RequestStatus.CANCELLED:
        if not (is_requester(request, actor) or actor.is_admin):
            raise UnauthorizedActionError("Not authorized to cancel this request")
        return


def transition_values(
    target: RequestStatus,
    actor: Actor,
    now: Optional[datetime] = None,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Column values written when entering ``target``."""
    now = now or utcnow()
    values: Dict[str, Any] = {"status": RequestStatus(target), "updated_at": now}

    if target == RequestStatus.ACCEPTED:
        values["donor_id"] = actor.user_id
        values["accepted_at"] = now
    elif target == RequestStatus.CONFIRMED:
        values["confirmed_at"] = now
    elif target == RequestStatus.COMPLETED:
        values["completed_at"] = now
    elif target == RequestStatus.CANCELLED:
        values["cancelled_at"] = now
        values["cancellation_reason"] = reason
    return values


def plan_transition(
    request,
    target: RequestStatus,
    actor: Actor,
    now: Optional[datetime] = None,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Validate and authorize a transition, returning the values to write."""
    ensure_transition(request.status, target)
    authorize_transition(request, target, actor)
    return transition_values(target, actor, now=now, reason=reason)


def apply_transition(
    request,
    target: RequestStatus,
    actor: Actor,
    now: Optional[datetime] = None,
    reason: Optional[str] = None,
):
    """In-memory variant of ``plan_transition`` that mutates ``request``."""
    values = plan_transition(request, target, actor, now=now, reason=reason)
    for key, value in values.items():
        setattr(request, key, value)
    return request
