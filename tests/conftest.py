"""Pytest configuration and fixtures for Lightsail Panel tests."""

import os
from collections.abc import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

# Set test environment variables before importing app modules
TEST_SECRET = "t" * 64
os.environ["PANEL_SECRET"] = TEST_SECRET
os.environ["PANEL_PASSWORD_HASH"] = ""
os.environ["PANEL_ALLOWED_IPS"] = ""
os.environ["ENVIRONMENT"] = "development"
os.environ["AUDIT_LOG_PATH"] = ""

from lightsail_panel.core.config import Settings  # noqa: E402
from lightsail_panel.main import create_app  # noqa: E402
from lightsail_panel.services.auth import hash_password  # noqa: E402

# Test operator credentials
TEST_PASSWORD = "correct horse battery"
WRONG_PASSWORD = "wrong-password"

# Address used by API tests via X-Forwarded-For
CLIENT_IP = "203.0.113.7"


class FakeClock:
    """Manually advanced clock for time-dependent components."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="session")
def password_hash() -> str:
    """Low-cost bcrypt hash of TEST_PASSWORD."""
    return hash_password(TEST_PASSWORD, rounds=4)


@pytest.fixture
def make_settings(password_hash, tmp_path):
    """Build isolated Settings, ignoring any .env file."""

    def _make(**overrides) -> Settings:
        values = {
            "panel_password_hash": password_hash,
            "panel_secret": TEST_SECRET,
            "systemd_dir": str(tmp_path / "systemd"),
            "debug": True,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def app(settings) -> FastAPI:
    """Fresh application with its own auth state."""
    return create_app(settings)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Test client with the lifespan running."""
    with TestClient(app, headers={"X-Forwarded-For": CLIENT_IP}) as test_client:
        yield test_client


def login(client: TestClient, password: str = TEST_PASSWORD) -> str:
    """Log in and return the CSRF token set in the script-readable cookie."""
    response = client.post("/api/auth/login", json={"password": password})
    assert response.status_code == 200, response.text
    return response.cookies["lsp_csrf"]


@pytest.fixture
def csrf_token(client) -> str:
    """Log the test client in and return its CSRF token."""
    return login(client)
