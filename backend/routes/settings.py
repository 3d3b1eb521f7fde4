"""Health check and settings endpoints."""

from fastapi import APIRouter

from backend import state
from backend.config import redact

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings():
    """Settings the running session was built from, secrets redacted."""
    return redact(state.active_config())
