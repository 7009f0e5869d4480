import pytest

from visitdesk.core.exceptions import Forbidden, NotFound
from visitdesk.services.authorization_service import ResourceRef, authorize, require_owner
from visitdesk.services.visit_state import create_visit


@pytest.fixture
def visit(db, form, qr):
    return create_visit(db, premise_id=form.premise_id, form_id=form.id, qrcode_id=qr.id, form_data={})


def test_owner_is_allowed_for_every_resource_kind(db, premise, form, qr, visit):
    refs = [
        ResourceRef.premise(premise.id),
        ResourceRef.form(form.id),
        ResourceRef.qrcode(qr.id),
        ResourceRef.visit(visit.id),
    ]
    for ref in refs:
        decision = authorize(db, "owner-1", ref)
        assert decision.allowed, ref
        assert decision.premise_id == premise.id


def test_other_owner_is_forbidden(db, make_premise, visit):
    make_premise(owner_id="owner-2", business_name="Other Place")

    decision = authorize(db, "owner-2", ResourceRef.visit(visit.id))
    assert not decision.allowed
    assert decision.reason == "forbidden"

    with pytest.raises(Forbidden):
        require_owner(db, "owner-2", ResourceRef.visit(visit.id))


def test_missing_principal_is_forbidden(db, form):
    decision = authorize(db, None, ResourceRef.form(form.id))
    assert not decision.allowed
    assert not decision.not_found


def test_unknown_resource_is_not_found(db, premise):
    decision = authorize(db, "owner-1", ResourceRef.visit("missing"))
    assert decision.not_found

    with pytest.raises(NotFound) as excinfo:
        require_owner(db, "owner-1", ResourceRef.form("missing"))
    assert excinfo.value.message == "Form not found"


def test_require_owner_returns_premise_id(db, premise, form):
    assert require_owner(db, "owner-1", ResourceRef.form(form.id)) == premise.id
