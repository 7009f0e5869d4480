import pytest
from sqlalchemy.exc import OperationalError

from visitdesk.core.exceptions import IdentityResolutionError
from visitdesk.db.models import VisitorIdentity
from visitdesk.services import identity_service
from visitdesk.services.identity_service import get_visitor, resolve_or_create_visitor


def test_provisions_identity_when_profile_and_key_present(db):
    visitor_id = resolve_or_create_visitor(db, {"Full Name": "Ada Lovelace", "Email": "Ada@Example.com"})

    visitor = get_visitor(db, visitor_id)
    assert visitor is not None
    assert visitor.full_name == "Ada Lovelace"
    assert visitor.email == "ada@example.com"


def test_same_email_resolves_to_same_identity(db):
    first = resolve_or_create_visitor(db, {"email": "ada@example.com", "full_name": "Ada"})
    second = resolve_or_create_visitor(db, {"Email": "  ADA@example.com ", "Full Name": "Ada L."})

    assert first == second
    assert db.query(VisitorIdentity).count() == 1


def test_email_is_checked_before_phone(db):
    by_email = resolve_or_create_visitor(db, {"email": "a@example.com", "full_name": "A"})
    by_phone = resolve_or_create_visitor(db, {"phone_number": "0700", "full_name": "B", "email": "b@example.com"})
    assert by_email != by_phone

    matched = resolve_or_create_visitor(db, {"email": "a@example.com", "phone_number": "0700"})
    assert matched == by_email


def test_phone_match_links_existing_identity(db):
    existing = resolve_or_create_visitor(db, {"phone": "0711 222 333", "full_name": "Grace"})
    assert resolve_or_create_visitor(db, {"Phone Number": "0711 222 333"}) == existing


def test_name_only_submission_stays_anonymous(db):
    assert resolve_or_create_visitor(db, {"Full Name": "Nobody Special"}) is None
    assert db.query(VisitorIdentity).count() == 0


def test_phone_only_submission_without_profile_stays_anonymous(db):
    assert resolve_or_create_visitor(db, {"Phone": "0700"}) is None
    assert db.query(VisitorIdentity).count() == 0


def test_empty_submission_returns_none(db):
    assert resolve_or_create_visitor(db, {}) is None


def test_lost_provisioning_race_links_existing_identity(db, monkeypatch):
    winner = VisitorIdentity(full_name="Ada", email="ada@example.com")
    db.add(winner)
    db.commit()

    real_find = identity_service._find_identity
    calls = {"count": 0}

    def stale_first_lookup(session, fields):
        calls["count"] += 1
        if calls["count"] == 1:
            return None
        return real_find(session, fields)

    monkeypatch.setattr(identity_service, "_find_identity", stale_first_lookup)

    visitor_id = resolve_or_create_visitor(db, {"email": "ada@example.com", "full_name": "Ada"})

    assert visitor_id == winner.id
    assert db.query(VisitorIdentity).count() == 1


def test_storage_failure_is_wrapped(db, monkeypatch):
    def broken(session, fields):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(identity_service, "_find_identity", broken)

    with pytest.raises(IdentityResolutionError):
        resolve_or_create_visitor(db, {"email": "ada@example.com"})


def test_get_visitor_handles_missing_ids(db):
    assert get_visitor(db, None) is None
    assert get_visitor(db, "does-not-exist") is None


def test_id_number_alone_provisions_identity(db):
    visitor_id = resolve_or_create_visitor(db, {"Full Name": "Jane Doe", "ID Number": " 12345 "})

    visitor = get_visitor(db, visitor_id)
    assert visitor is not None
    assert visitor.full_name == "Jane Doe"
    assert visitor.id_number == "12345"
    assert visitor.email is None
    assert visitor.phone_number is None
