"""Narrative submission and lifecycle endpoints."""

from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from backend.state import get_session
from timeline.models import Persona, validate_persona_ranges

from .models import SessionView, SubmitBody

router = APIRouter()


def _view() -> SessionView:
    session = get_session()
    return SessionView(request=session.state, audio=session.audio)


@router.post("/narrative")
async def submit_narrative(body: SubmitBody) -> SessionView:
    """Generate a story and historical context for a persona.

    Generation failures are reported in the returned state (status "failed"),
    not as HTTP errors.
    """
    try:
        persona = Persona(
            name=body.name, age=body.age, sex=body.sex,
            city=body.city, year=body.year,
        )
    except ValidationError as e:
        raise HTTPException(422, [err["msg"] for err in e.errors()])

    errors = validate_persona_ranges(persona)
    if errors:
        raise HTTPException(422, errors)

    await get_session().submit(persona, body.locale)
    return _view()


@router.get("/narrative")
async def get_narrative() -> SessionView:
    """Current request and audio state."""
    return _view()


@router.post("/narrative/dismiss")
async def dismiss_error() -> SessionView:
    """Hide the error banner. The last narrative is kept."""
    get_session().dismiss()
    return _view()


@router.get("/narrative/download")
async def download_story():
    """The current story as a text file."""
    result = get_session().state.result
    if result is None:
        raise HTTPException(404, "No narrative yet")
    return PlainTextResponse(
        result.story,
        headers={"Content-Disposition": 'attachment; filename="time-travel-narrative.txt"'},
    )
