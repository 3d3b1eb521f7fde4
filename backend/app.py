import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI

from backend import config as app_config
from backend import state
from backend.routes import router
from timeline.llm import LLM
from timeline.speech import Speech

load_dotenv(Path(__file__).parent.parent / ".env")


def configure_logging(level: str) -> None:
    """Apply the configured level to the app's own module loggers."""
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
    for name in ("timeline", "backend"):
        logging.getLogger(name).setLevel(level.upper())


def create_app(
    config: dict[str, Any] | None = None,
    *,
    llm: LLM | None = None,
    speech: Speech | None = None,
) -> FastAPI:
    resolved = config or app_config.get_config()
    configure_logging(resolved["log_level"])
    state.init_session(resolved, llm=llm, speech=speech)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Unmount: stop the audio worker and release any held audio.
        await state.close_session()

    app = FastAPI(title="Palestine Timeline", lifespan=lifespan)
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (reads config from the environment)
app = create_app()
