"""FastAPI API endpoints under /api.

Endpoint groups: health/settings, personas (cities, random persona),
narrative (submit, state, dismiss, download) and audio (state, stop, play).
All narrative and audio endpoints operate on the shared session from
backend.state.
"""

from fastapi import APIRouter

from .audio import router as audio_router
from .narrative import router as narrative_router
from .personas import router as personas_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(personas_router)
router.include_router(narrative_router)
router.include_router(audio_router)
