import pytest

from backend import state
from backend.config import get_config
from tests.stubs import StubSpeech


@pytest.fixture(autouse=True)
def fresh_session():
    """Rebuild the shared session before every test: echo LLM, stub speech."""
    state.init_session(get_config(env={"LLM_PROVIDER": "echo"}), speech=StubSpeech())
    yield
