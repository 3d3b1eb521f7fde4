"""Pydantic request/response models for API endpoints."""

from pydantic import BaseModel

from timeline.models import AudioState, Locale, RequestState, Sex


class SubmitBody(BaseModel):
    name: str
    age: int
    sex: Sex
    city: str
    year: int
    locale: Locale = "en"


class SessionView(BaseModel):
    """Everything the page needs to render in one payload."""

    request: RequestState
    audio: AudioState


class CityOption(BaseModel):
    value: str
    label: str
