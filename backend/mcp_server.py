"""FastMCP server exposing narrative generation as MCP tools.

Tools:
  - list_cities(locale)                                  — selectable cities
  - generate_timeline(name, age, sex, city, year, locale) — story + context

Both tools share the session from backend.state, so MCP clients see the same
cache and lifecycle as the HTTP API. Tests call init_session() with stubs
before connecting.

Usage:
    uv run python -m backend.mcp_server
"""

from mcp.server.fastmcp import FastMCP

from backend import state
from timeline.models import CITIES, GENERIC_FAILURE, Locale, Persona, Sex, city_name

mcp = FastMCP("palestine-timeline")


@mcp.tool()
def list_cities(locale: Locale = "en") -> list[dict]:
    """List the cities a persona can live in, with display names."""
    return [{"value": c, "label": city_name(c, locale)} for c in CITIES]


@mcp.tool()
async def generate_timeline(
    name: str,
    age: int,
    sex: Sex,
    city: str,
    year: int,
    locale: Locale = "en",
) -> dict:
    """Generate a short story and a list of historical facts for a persona.

    Returns {"status": "success", "story", "context_list"} or
    {"status": "failed", "error"}.
    """
    persona = Persona(name=name, age=age, sex=sex, city=city, year=year)
    result = await state.get_session().submit(persona, locale)
    if result.status == "success" and result.result is not None:
        return {
            "status": "success",
            "story": result.result.story,
            "context_list": result.result.context_list,
        }
    message = result.error.message if result.error else GENERIC_FAILURE
    return {"status": result.status, "error": message}


if __name__ == "__main__":
    from dotenv import load_dotenv

    from backend.config import get_config

    load_dotenv()
    state.init_session(get_config())
    mcp.run()
