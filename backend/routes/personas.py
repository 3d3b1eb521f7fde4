"""Persona helpers: the city list and random persona suggestions."""

from fastapi import APIRouter

from timeline.models import CITIES, Locale, Persona, city_name, random_persona

from .models import CityOption

router = APIRouter()


@router.get("/cities")
async def list_cities(locale: Locale = "en") -> list[CityOption]:
    """Cities a persona can live in, labelled for the locale."""
    return [CityOption(value=c, label=city_name(c, locale)) for c in CITIES]


@router.get("/persona/random")
async def suggest_persona() -> Persona:
    """A random persona to prefill the form."""
    return random_persona()
