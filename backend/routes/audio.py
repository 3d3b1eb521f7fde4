"""Audio narration endpoints."""

from fastapi import APIRouter, HTTPException
from fastapi.responses import RedirectResponse

from backend.state import get_session
from timeline.models import AudioState

router = APIRouter()


@router.get("/audio")
async def get_audio() -> AudioState:
    """Audio state for the current narrative."""
    return get_session().audio


@router.post("/audio/stop")
async def stop_audio() -> AudioState:
    """Stop playback and release the audio resource."""
    session = get_session()
    session.stop_audio()
    return session.audio


@router.get("/audio/{handle_id}")
async def play_audio(handle_id: str):
    """Redirect to the synthesized file while its handle is live."""
    handle = get_session().registry.get(handle_id)
    if handle is None:
        raise HTTPException(404, "Audio not found")
    return RedirectResponse(handle.url)
