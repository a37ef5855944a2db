import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from fastapi.testclient import TestClient
from dear_stranger.api import create_app

from test_utils import InMemoryStore


def test_root_returns_greeting_text():
    client = TestClient(create_app(store=InMemoryStore()))
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == "Hello world!"
    assert response.headers["content-type"].startswith("text/plain")


def test_health_endpoint_returns_ok():
    client = TestClient(create_app(store=InMemoryStore()))
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_lifespan_connects_and_closes_store():
    store = InMemoryStore()
    with TestClient(create_app(store=store)) as client:
        assert store.connected is True
        assert client.get("/health").status_code == 200
    assert store.closed is True
