import pytest

from visitdesk.core.exceptions import (
    AlreadyCheckedOut,
    InvalidInput,
    InvalidStateTransition,
    NotApproved,
)
from visitdesk.db.models import Visit
from visitdesk.services import visit_state


@pytest.fixture
def make_visit(db, form, qr):
    def _make(initial_status=None, form_data=None):
        return visit_state.create_visit(
            db,
            premise_id=form.premise_id,
            form_id=form.id,
            qrcode_id=qr.id,
            form_data=form_data or {"full_name": "Ada"},
            initial_status=initial_status,
        )

    return _make


def test_new_visit_awaits_decision(make_visit):
    visit = make_visit()
    assert visit.status == "pending_approval"
    assert visit.check_in_time is not None
    assert visit.check_out_time is None
    assert visit.visitor_id is None


def test_new_visit_cannot_start_decided(make_visit):
    with pytest.raises(InvalidInput):
        make_visit(initial_status="approved")


def test_approve_then_checkout(db, make_visit):
    visit = make_visit()

    visit = visit_state.approve(db, visit)
    assert visit.status == "approved"
    assert visit.check_out_time is None

    visit = visit_state.checkout(db, visit)
    assert visit.status == "checked_out"
    assert visit.check_out_time is not None
    assert visit.check_out_time >= visit.check_in_time


def test_legacy_checked_in_status_can_be_decided(db, make_visit):
    visit = make_visit(initial_status="checked_in")
    assert visit_state.is_awaiting_decision(visit.status)

    visit = visit_state.approve(db, visit)
    assert visit.status == "approved"


def test_deny_records_reason(db, make_visit):
    visit = visit_state.deny(db, make_visit(), "  No appointment ")
    assert visit.status == "denied"
    assert visit.denial_reason == "No appointment"


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_deny_requires_reason(db, make_visit, reason):
    visit = make_visit()
    with pytest.raises(InvalidInput):
        visit_state.deny(db, visit, reason)

    db.refresh(visit)
    assert visit.status == "pending_approval"


def test_checkout_before_approval_is_rejected(db, make_visit):
    visit = make_visit()
    with pytest.raises(NotApproved) as excinfo:
        visit_state.checkout(db, visit)
    assert excinfo.value.message == "Visitor not approved yet."


def test_checkout_twice_is_rejected(db, make_visit):
    visit = visit_state.checkout(db, visit_state.approve(db, make_visit()))
    with pytest.raises(AlreadyCheckedOut) as excinfo:
        visit_state.checkout(db, visit)
    assert excinfo.value.message == "Visitor already checked out."


@pytest.mark.parametrize("action", ["approve", "deny"])
def test_terminal_states_reject_decisions(db, make_visit, action):
    visit = visit_state.deny(db, make_visit(), "Not expected")
    with pytest.raises(InvalidStateTransition) as excinfo:
        visit_state.apply_transition(db, visit, action, reason="again")
    assert excinfo.value.current_status == "denied"


def test_approved_visit_cannot_be_denied(db, make_visit):
    visit = visit_state.approve(db, make_visit())
    with pytest.raises(InvalidStateTransition):
        visit_state.deny(db, visit, "Changed my mind")


def test_unknown_action_is_invalid_input(db, make_visit):
    with pytest.raises(InvalidInput):
        visit_state.apply_transition(db, make_visit(), "teleport")


def test_stale_decision_loses_to_committed_one(session_factory, make_visit):
    visit_id = make_visit().id

    approver = session_factory()
    denier = session_factory()
    try:
        approver_view = approver.get(Visit, visit_id)
        denier_view = denier.get(Visit, visit_id)
        assert approver_view.status == denier_view.status == "pending_approval"

        visit_state.approve(approver, approver_view)

        with pytest.raises(InvalidStateTransition) as excinfo:
            visit_state.deny(denier, denier_view, "Too late")
        assert excinfo.value.current_status == "approved"
    finally:
        approver.close()
        denier.close()

    check = session_factory()
    try:
        stored = check.get(Visit, visit_id)
        assert stored.status == "approved"
        assert stored.denial_reason is None
    finally:
        check.close()


def test_only_one_of_many_stale_approvals_succeeds(session_factory, make_visit):
    visit_id = make_visit().id
    sessions = [session_factory() for _ in range(5)]
    try:
        views = [session.get(Visit, visit_id) for session in sessions]
        outcomes = []
        for session, view in zip(sessions, views):
            try:
                visit_state.approve(session, view)
                outcomes.append("ok")
            except InvalidStateTransition:
                outcomes.append("rejected")
        assert outcomes.count("ok") == 1
        assert outcomes.count("rejected") == 4
    finally:
        for session in sessions:
            session.close()
