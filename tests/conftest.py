import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from visitdesk.core.security import create_access_token
from visitdesk.db import models  # noqa: F401
from visitdesk.db.base import Base
from visitdesk.db.session import get_db
from visitdesk.services.form_service import create_form
from visitdesk.services.premise_service import create_premise
from visitdesk.services.qr_service import ensure_form_qr

DEFAULT_DEFINITION = [
    {"label": "Full Name", "type": "text", "required": True},
    {"label": "Email", "type": "email"},
    {"label": "Phone Number", "type": "phone"},
]


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'visitdesk-test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_premise(db):
    def _make(owner_id: str = "owner-1", business_name: str = "Acme Reception"):
        return create_premise(db, owner_id=owner_id, business_name=business_name)

    return _make


@pytest.fixture
def make_form(db):
    def _make(premise, name: str = "Front Desk", definition=None):
        return create_form(db, premise, name=name, definition=definition or DEFAULT_DEFINITION)

    return _make


@pytest.fixture
def premise(make_premise):
    return make_premise()


@pytest.fixture
def form(make_form, premise):
    return make_form(premise)


@pytest.fixture
def qr(db, form):
    return ensure_form_qr(db, form)


@pytest.fixture
def client(session_factory):
    from visitdesk.main import fastapi_app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(fastapi_app, raise_server_exceptions=False)
    finally:
        fastapi_app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(principal_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(principal_id)}"}

    return _headers
