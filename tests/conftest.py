"""
Shared pytest fixtures for the Vetora auth API tests.

This module provides:
- An app built by create_app() over FakeRedis and a static config provider
- A TestClient running the app lifespan
- Helpers to register users and build Authorization headers
"""

import asyncio
import os
import sys
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from vetora.main import create_app
from vetora.tests.fakes import FakeRedis, StaticConfigProvider


def run(coro):
    """Run a coroutine from a synchronous test (the app loop lives in another thread)."""
    return asyncio.run(coro)


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register_user(
    client: TestClient,
    email: str = "alice@example.com",
    username: str = "alice",
    password: str = "secret123",
    display_name: str = "Alice",
) -> Dict[str, Any]:
    """Register through the API and return the response body."""
    response = client.post(
        "/api/auth/register",
        json={
            "email": email,
            "username": username,
            "password": password,
            "displayName": display_name,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def config_provider():
    return StaticConfigProvider()


@pytest.fixture
def client(config_provider, fake_redis):
    app = create_app(config_provider=config_provider, redis_client=fake_redis)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def services(client):
    return client.app.state.services


@pytest.fixture
def alice(client):
    """A registered user: response body with accessToken, refreshToken and user."""
    return register_user(client)


@pytest.fixture
def alice_headers(alice):
    return bearer(alice["accessToken"])
