from fastapi import APIRouter

from visitdesk.api.routes import forms, health, premises, qr, visits

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(premises.router, prefix="/premises", tags=["premises"])
api_router.include_router(forms.router, prefix="/forms", tags=["forms"])
api_router.include_router(qr.router, prefix="/qr", tags=["qr"])
api_router.include_router(visits.router, prefix="/visits", tags=["visits"])
