import pytest
from fastapi.testclient import TestClient

API_KEY = "Worker-Secret"


@pytest.fixture(autouse=True)
def agent_env(monkeypatch, tmp_path):
    """Point the agent at a throwaway conf dir with a known API key."""
    monkeypatch.setenv("WORKER_API_KEY", API_KEY)
    monkeypatch.setenv("WG_CONF_DIR", str(tmp_path))
    monkeypatch.setenv("COMMAND_TIMEOUT", "5")
    return tmp_path


@pytest.fixture
def client():
    from worker.main import app

    return TestClient(app)


@pytest.fixture
def auth():
    return {"X-API-Key": API_KEY}
