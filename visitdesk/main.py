import logging

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from visitdesk.api.routes import api_router
from visitdesk.core.config import get_settings
from visitdesk.core.exceptions import register_exception_handlers
from visitdesk.core.logging import setup_logging
from visitdesk.db.base import Base
from visitdesk.db.models import Premise
from visitdesk.db.session import SessionLocal, engine
from visitdesk.middleware.request_context import RequestContextMiddleware
from visitdesk.services.form_service import create_form
from visitdesk.services.premise_service import create_premise
from visitdesk.services.qr_service import ensure_form_qr
from visitdesk.socket.server import sio

settings = get_settings()
setup_logging(logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)

DEMO_OWNER_ID = "demo-owner"

fastapi_app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)
fastapi_app.include_router(api_router, prefix=settings.API_V1_PREFIX)
fastapi_app.add_middleware(RequestContextMiddleware)
fastapi_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_origin_regex=settings.CORS_ALLOW_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(fastapi_app)


def _seed_dev_data(db: Session):
    if db.query(Premise).count() > 0:
        return

    try:
        premise = create_premise(
            db,
            owner_id=DEMO_OWNER_ID,
            business_name="Demo Reception",
            category="Office",
            email="reception@visitdesk.local",
            contact_person="Demo Owner",
        )
        form = create_form(
            db,
            premise,
            name="Front Desk Check-in",
            definition=[
                {"label": "Full Name", "type": "text", "required": True},
                {"label": "Email", "type": "email", "required": False},
                {"label": "Phone Number", "type": "phone", "required": False},
                {"label": "Purpose of Visit", "type": "textarea", "required": False},
            ],
        )
        qr = ensure_form_qr(db, form)
    except IntegrityError:
        # Another worker/process already inserted seed rows.
        db.rollback()
        return

    logger.info(
        "seeded demo premise owner_id=%s friendly_code=%s qr_identifier=%s",
        DEMO_OWNER_ID,
        premise.friendly_code,
        qr.qr_identifier,
    )


@fastapi_app.on_event("startup")
async def on_startup():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if settings.ENVIRONMENT.lower() == "development":
            _seed_dev_data(db)
    finally:
        db.close()


app = socketio.ASGIApp(
    sio,
    other_asgi_app=fastapi_app,
    socketio_path=settings.SOCKET_PATH.lstrip("/"),
)
