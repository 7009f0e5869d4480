import pytest

from visitdesk.core.exceptions import IdentityResolutionError, InvalidInput, QRCodeNotFound
from visitdesk.db.models import Visit, VisitorIdentity
from visitdesk.services import intake_service
from visitdesk.services.intake_service import submit_visit


def test_submission_creates_pending_visit_linked_to_visitor(db, form, qr):
    visit = submit_visit(db, qr.qr_identifier, {"Full Name": "Ada Lovelace", "Email": "ADA@example.com"})

    db.refresh(visit)
    assert visit.status == "pending_approval"
    assert visit.premise_id == form.premise_id
    assert visit.form_id == form.id
    assert visit.qrcode_id == qr.id
    assert visit.form_data["Full Name"] == "Ada Lovelace"
    assert visit.form_data["full_name"] == "Ada Lovelace"
    assert visit.form_data["email"] == "ADA@example.com"

    visitor = db.get(VisitorIdentity, visit.visitor_id)
    assert visitor.email == "ada@example.com"


def test_repeat_visitor_is_linked_to_same_identity(db, qr):
    first = submit_visit(db, qr.qr_identifier, {"email": "ada@example.com", "full_name": "Ada"})
    second = submit_visit(db, qr.qr_identifier, {"Email": "ada@example.com"})

    db.refresh(first)
    db.refresh(second)
    assert first.id != second.id
    assert first.visitor_id == second.visitor_id


def test_anonymous_submission_is_still_recorded(db, qr):
    visit = submit_visit(db, qr.qr_identifier, {"Purpose": "Delivery"})
    db.refresh(visit)
    assert visit.visitor_id is None
    assert visit.status == "pending_approval"


@pytest.mark.parametrize(
    "qr_identifier, form_data",
    [(None, {"name": "Ada"}), ("  ", {"name": "Ada"}), ("qr-x", None), ("qr-x", {})],
)
def test_missing_inputs_are_rejected(db, qr_identifier, form_data):
    with pytest.raises(InvalidInput) as excinfo:
        submit_visit(db, qr_identifier, form_data)
    assert excinfo.value.message == "Missing qrIdentifier or formData"


def test_unknown_qr_creates_nothing(db):
    with pytest.raises(QRCodeNotFound):
        submit_visit(db, "qr-unknown", {"name": "Ada"})
    assert db.query(Visit).count() == 0


def test_identity_failure_does_not_fail_submission(db, qr, monkeypatch):
    def broken(session, fields):
        raise IdentityResolutionError("Visitor identity lookup failed")

    monkeypatch.setattr(intake_service, "resolve_or_create_visitor", broken)

    visit = submit_visit(db, qr.qr_identifier, {"email": "ada@example.com", "full_name": "Ada"})
    assert visit.id is not None
    assert db.get(Visit, visit.id).visitor_id is None


def test_id_number_submission_is_linked(db, qr):
    visit = submit_visit(db, qr.qr_identifier, {"Full Name": "Jane", "ID Number": "12345"})

    db.refresh(visit)
    assert visit.visitor_id is not None
    assert db.get(VisitorIdentity, visit.visitor_id).id_number == "12345"


def test_name_only_submission_is_not_linked(db, qr):
    visit = submit_visit(db, qr.qr_identifier, {"Full Name": "Jane"})

    db.refresh(visit)
    assert visit.visitor_id is None
    assert db.query(VisitorIdentity).count() == 0


def test_same_email_with_new_phone_keeps_one_identity(db, qr):
    first = submit_visit(db, qr.qr_identifier, {"Email": "jane@x.com", "Phone": "111", "Full Name": "Jane"})
    second = submit_visit(db, qr.qr_identifier, {"Email": "jane@x.com", "Phone": "222", "Full Name": "Jane"})

    db.refresh(first)
    db.refresh(second)
    assert first.visitor_id is not None
    assert first.visitor_id == second.visitor_id
    assert db.query(VisitorIdentity).count() == 1
