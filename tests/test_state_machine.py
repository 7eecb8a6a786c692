from datetime import datetime
from types import SimpleNamespace
from uuid import uuid4

import pytest

from app.schemas.base_schema import UserRole
from app.schemas.request import RequestStatus
from app.services.state_machine import (
    TERMINAL_STATES,
    TRANSITIONS,
    Actor,
    apply_transition,
    authorize_transition,
    can_transition,
    ensure_transition,
    transition_values,
)
from app.utils.exceptions import InvalidTransitionError, UnauthorizedActionError

S = RequestStatus

ALLOWED = {
    (S.PENDING, S.ACCEPTED),
    (S.PENDING, S.CANCELLED),
    (S.ACCEPTED, S.ON_THE_WAY),
    (S.ACCEPTED, S.CONFIRMED),
    (S.ACCEPTED, S.CANCELLED),
    (S.ON_THE_WAY, S.COMPLETED),
    (S.ON_THE_WAY, S.CANCELLED),
    (S.CONFIRMED, S.COMPLETED),
    (S.CONFIRMED, S.CANCELLED),
}

NOW = datetime(2026, 3, 1, 9, 30)


@pytest.mark.parametrize("current", list(S))
@pytest.mark.parametrize("target", list(S))
def test_transition_graph_is_closed(current, target):
    if (current, target) in ALLOWED:
        assert can_transition(current, target)
        ensure_transition(current, target)
    else:
        assert not can_transition(current, target)
        with pytest.raises(InvalidTransitionError) as exc_info:
            ensure_transition(current, target)
        assert exc_info.value.current_status == current.value
        assert exc_info.value.requested_status == target.value
        assert exc_info.value.status_code == 409


def test_terminal_states_have_no_exits():
    assert TERMINAL_STATES == {S.COMPLETED, S.CANCELLED}
    assert all(not TRANSITIONS[s] for s in TERMINAL_STATES)


def test_invalid_transition_message_names_both_states():
    err = InvalidTransitionError(S.COMPLETED, S.PENDING)
    assert err.message == "Cannot change status from completed to pending"


# --- Authorization ---


def make_request(status=S.PENDING, requester_id=None, hospital_id=None, donor_id=None):
    if requester_id is None and hospital_id is None:
        requester_id = uuid4()
    return SimpleNamespace(
        status=status,
        requester_id=requester_id,
        hospital_id=hospital_id,
        donor_id=donor_id,
    )


class TestAuthorization:
    def setup_method(self):
        self.requester = Actor(user_id=uuid4())
        self.donor = Actor(user_id=uuid4())
        self.stranger = Actor(user_id=uuid4())
        self.admin = Actor(user_id=uuid4(), role=UserRole.ADMIN)
        self.hospital_id = uuid4()
        self.hospital = Actor(
            user_id=uuid4(), role=UserRole.HOSPITAL, hospital_id=self.hospital_id
        )
        self.other_hospital = Actor(
            user_id=uuid4(), role=UserRole.HOSPITAL, hospital_id=uuid4()
        )

    def test_requester_cannot_accept_own_request(self):
        request = make_request(requester_id=self.requester.user_id)
        with pytest.raises(UnauthorizedActionError):
            authorize_transition(request, S.ACCEPTED, self.requester)
        authorize_transition(request, S.ACCEPTED, self.donor)

    def test_only_matched_donor_marks_on_the_way(self):
        request = make_request(S.ACCEPTED, donor_id=self.donor.user_id)
        authorize_transition(request, S.ON_THE_WAY, self.donor)
        for actor in (self.stranger, self.admin):
            with pytest.raises(UnauthorizedActionError):
                authorize_transition(request, S.ON_THE_WAY, actor)

    def test_only_owning_hospital_confirms(self):
        request = make_request(
            S.ACCEPTED, hospital_id=self.hospital_id, donor_id=self.donor.user_id
        )
        authorize_transition(request, S.CONFIRMED, self.hospital)
        for actor in (self.other_hospital, self.donor, self.admin):
            with pytest.raises(UnauthorizedActionError):
                authorize_transition(request, S.CONFIRMED, actor)

    def test_requester_originated_requests_cannot_be_confirmed(self):
        request = make_request(
            S.ACCEPTED, requester_id=self.requester.user_id, donor_id=self.donor.user_id
        )
        for actor in (self.requester, self.hospital):
            with pytest.raises(UnauthorizedActionError):
                authorize_transition(request, S.CONFIRMED, actor)

    def test_completion_after_confirmation_belongs_to_hospital(self):
        request = make_request(S.CONFIRMED, hospital_id=self.hospital_id)
        authorize_transition(request, S.COMPLETED, self.hospital)
        with pytest.raises(UnauthorizedActionError):
            authorize_transition(request, S.COMPLETED, self.admin)

    def test_completion_after_on_the_way(self):
        request = make_request(
            S.ON_THE_WAY, requester_id=self.requester.user_id, donor_id=self.donor.user_id
        )
        authorize_transition(request, S.COMPLETED, self.requester)
        authorize_transition(request, S.COMPLETED, self.donor)
        authorize_transition(request, S.COMPLETED, self.admin)
        with pytest.raises(UnauthorizedActionError):
            authorize_transition(request, S.COMPLETED, self.stranger)

    def test_donor_cannot_complete_after_confirmation(self):
        request = make_request(
            S.CONFIRMED, hospital_id=self.hospital_id, donor_id=self.donor.user_id
        )
        with pytest.raises(UnauthorizedActionError):
            authorize_transition(request, S.COMPLETED, self.donor)

    def test_cancellation_by_requester_hospital_or_admin(self):
        direct = make_request(requester_id=self.requester.user_id)
        authorize_transition(direct, S.CANCELLED, self.requester)
        authorize_transition(direct, S.CANCELLED, self.admin)
        with pytest.raises(UnauthorizedActionError):
            authorize_transition(direct, S.CANCELLED, self.stranger)

        hospital_request = make_request(hospital_id=self.hospital_id)
        authorize_transition(hospital_request, S.CANCELLED, self.hospital)
        with pytest.raises(UnauthorizedActionError):
            authorize_transition(hospital_request, S.CANCELLED, self.other_hospital)


# --- Timestamps ---


class TestTransitionValues:
    def test_accept_records_donor_and_time(self):
        actor = Actor(user_id=uuid4())
        values = transition_values(S.ACCEPTED, actor, now=NOW)
        assert values == {
            "status": S.ACCEPTED,
            "updated_at": NOW,
            "donor_id": actor.user_id,
            "accepted_at": NOW,
        }

    @pytest.mark.parametrize(
        "target, stamp",
        [
            (S.CONFIRMED, "confirmed_at"),
            (S.COMPLETED, "completed_at"),
            (S.CANCELLED, "cancelled_at"),
        ],
    )
    def test_each_state_sets_its_own_timestamp(self, target, stamp):
        values = transition_values(target, Actor(user_id=uuid4()), now=NOW)
        assert values[stamp] == NOW
        assert values["updated_at"] == NOW
        assert "donor_id" not in values

    def test_on_the_way_only_touches_status(self):
        values = transition_values(S.ON_THE_WAY, Actor(user_id=uuid4()), now=NOW)
        assert set(values) == {"status", "updated_at"}

    def test_cancel_keeps_reason(self):
        values = transition_values(
            S.CANCELLED, Actor(user_id=uuid4()), now=NOW, reason="Patient discharged"
        )
        assert values["cancellation_reason"] == "Patient discharged"

    def test_full_hospital_flow_in_memory(self):
        hospital_id = uuid4()
        hospital = Actor(user_id=uuid4(), role=UserRole.HOSPITAL, hospital_id=hospital_id)
        donor = Actor(user_id=uuid4())
        request = make_request(hospital_id=hospital_id)
        request.accepted_at = request.confirmed_at = request.completed_at = None

        apply_transition(request, S.ACCEPTED, donor, now=NOW)
        apply_transition(request, S.CONFIRMED, hospital, now=NOW)
        apply_transition(request, S.COMPLETED, hospital, now=NOW)

        assert request.status == S.COMPLETED
        assert request.donor_id == donor.user_id
        assert request.accepted_at == request.confirmed_at == request.completed_at == NOW

        with pytest.raises(InvalidTransitionError):
            apply_transition(request, S.CANCELLED, hospital)
