"""Core domain models.

The orchestrator, session and HTTP layer all pass these types around.
Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

import random
from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

Locale = Literal["en", "ar"]
Kind = Literal["story", "list"]
Sex = Literal["male", "female"]

CITIES: list[str] = [
    "Jerusalem",
    "Gaza",
    "Ramallah",
    "Bethlehem",
    "Hebron",
    "Nablus",
    "Jenin",
    "Tulkarem",
    "Qalqilya",
    "Jericho",
]

_CITIES_AR: dict[str, str] = {
    "Jerusalem": "القدس",
    "Gaza": "غزة",
    "Ramallah": "رام الله",
    "Bethlehem": "بيت لحم",
    "Hebron": "الخليل",
    "Nablus": "نابلس",
    "Jenin": "جنين",
    "Tulkarem": "طولكرم",
    "Qalqilya": "قلقيلية",
    "Jericho": "أريحا",
}

GENERIC_FAILURE = "Failed to generate content. Please try again."


def city_name(city: str, locale: Locale) -> str:
    """Display name of a city in the given locale. Unknown cities pass through."""
    if locale == "ar":
        return _CITIES_AR.get(city, city)
    return city


class Persona(BaseModel):
    """The subject of a narrative. Never mutated once built."""

    model_config = ConfigDict(frozen=True)

    name: str
    age: int
    sex: Sex
    city: str
    year: int

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v

    @field_validator("city")
    @classmethod
    def _known_city(cls, v: str) -> str:
        if v not in CITIES:
            raise ValueError(f"unknown city {v!r}")
        return v


def validate_persona_ranges(persona: Persona, today: date | None = None) -> dict[str, str]:
    """Form-level range checks. Returns {field: message}; empty when valid.

    The core accepts any integer age and year; these bounds belong to the
    caller collecting user input.
    """
    current_year = (today or date.today()).year
    errors: dict[str, str] = {}
    if len(persona.name) < 2:
        errors["name"] = "Name must be at least 2 characters long"
    if not 5 <= persona.age <= 90:
        errors["age"] = "Age must be between 5 and 90"
    if not 1900 <= persona.year <= current_year:
        errors["year"] = "Year must be between 1900 and current year"
    return errors


def random_persona(rng: random.Random | None = None) -> Persona:
    """A random persona for the "surprise me" button."""
    rng = rng or random.Random()
    year = rng.randint(1948, 2023)
    city = rng.choice(CITIES)
    sex: Sex = "male" if rng.random() < 0.5 else "female"
    age = rng.randint(18, 80)
    return Persona(
        name="Amin" if sex == "male" else "Amina",
        age=age, sex=sex, city=city, year=year,
    )


class NarrativeResult(BaseModel):
    """Story plus historical-context list for one submission."""

    story: str
    context_list: str


class ErrorInfo(BaseModel):
    message: str
    status: int | None = None


RequestStatus = Literal["idle", "loading", "success", "failed"]


class RequestState(BaseModel):
    """Snapshot of the narrative request lifecycle.

    `result` is the last successful narrative; a failed submission leaves it
    in place, only a newer success replaces it.
    """

    status: RequestStatus = "idle"
    seq: int = 0
    persona: Persona | None = None
    locale: Locale = "en"
    result: NarrativeResult | None = None
    error: ErrorInfo | None = None


AudioStatus = Literal["none", "pending", "ready", "failed"]


class AudioState(BaseModel):
    """What the audio widget renders. Independent of RequestState."""

    status: AudioStatus = "none"
    handle_id: str | None = None
    url: str | None = None
    error: str | None = None
