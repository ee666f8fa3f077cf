"""
Pytest configuration and shared fixtures for brainscan tests.

This module provides:
- Test database setup (SQLite in-memory)
- Fake Keras-like models so TensorFlow is never loaded
- Sample image fixtures
- FastAPI TestClient configuration
"""

from typing import Generator

import numpy as np
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from brainscan.database import make_engine, make_session_factory
from brainscan.model import ModelLoader
from tests.fixtures.fakes import CountingFetch, FakeModel, make_image_bytes, seeded_heuristic


# =============================================================================
# IMAGE FIXTURES
# =============================================================================

@pytest.fixture
def gray_image_bytes():
    """Uniform mid-gray image: no dark, bright, edge or asymmetric pixels."""
    return make_image_bytes(np.full((256, 256, 3), 128))


@pytest.fixture
def sample_image_bytes():
    """Random noise RGB JPEG."""
    rng = np.random.default_rng(0)
    return make_image_bytes(rng.integers(0, 256, size=(240, 200, 3)), fmt="JPEG")


# =============================================================================
# LOADER FIXTURES
# =============================================================================

@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def model_loader(fake_model):
    return ModelLoader("models/fake.h5", fetch=CountingFetch(fake_model), heuristic=seeded_heuristic())


@pytest.fixture
def fallback_loader():
    return ModelLoader(
        "models/missing.h5",
        fetch=CountingFetch(error=FileNotFoundError("models/missing.h5")),
        heuristic=seeded_heuristic(),
    )


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = make_engine("sqlite:///:memory:", poolclass=StaticPool)
    factory = make_session_factory(engine)
    yield factory
    engine.dispose()


# =============================================================================
# APPLICATION FIXTURES
# =============================================================================

@pytest.fixture
def make_client(session_factory, tmp_path):
    """Build a TestClient around create_app with an injected loader."""
    from brainscan.main import create_app

    clients = []

    def _make(loader, **kwargs):
        app = create_app(
            upload_dir=tmp_path / "uploads",
            loader=loader,
            session_factory=session_factory,
            **kwargs,
        )
        client = TestClient(app, raise_server_exceptions=False)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client, model_loader) -> Generator[TestClient, None, None]:
    yield make_client(model_loader)


@pytest.fixture
def register_user():
    """Sign up and sign in through the API, returning bearer headers."""

    def _register(client, email, password="Password123!"):
        client.post("/auth/signup", json={"email": email, "password": password})
        response = client.post("/auth/signin", json={"email": email, "password": password})
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _register


@pytest.fixture
def auth_headers(client, register_user):
    return register_user(client, "patient@example.com")
