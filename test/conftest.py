"""Shared fixtures: isolated sqlite file per test, settings, API client and a fake rate provider."""
import pytest
import requests
from fastapi.testclient import TestClient

import currency_service
from config import Settings
from database import init_db, get_db
from main import create_app

TEST_USERNAME = "alice"
TEST_PASSWORD = "correct-horse-battery-staple"
TEST_SECRET = "test-secret-0123456789abcdef0123456789abcdef"
TEST_RATES_URL = "https://rates.example.test/v4/latest/USD"


class FakeResponse:
    """Just enough of requests.Response for fetch_usd_rates."""

    def __init__(self, payload=None, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if self.payload is None:
            raise ValueError("No JSON object could be decoded")
        return self.payload


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides):
        values = dict(
            jwt_secret=TEST_SECRET,
            app_username=TEST_USERNAME,
            app_password=TEST_PASSWORD,
            token_mode="jwt",
            database_path=str(tmp_path / "ledger.db"),
            rates_url=TEST_RATES_URL,
            api_prefix="/api",
            expose_error_details=True,
            strict_config=False,
        )
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def db(settings):
    """Open connection to a freshly initialised database."""
    init_db(settings.database_path)
    with get_db(settings.database_path) as conn:
        yield conn


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client):
    response = client.post(
        "/api/login",
        json={"username": TEST_USERNAME, "password": TEST_PASSWORD}
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def fake_provider(monkeypatch):
    """
    Replace requests.get in currency_service.

    Usage:
        calls = fake_provider(payload={"rates": {"CAD": 1.4, "CNY": 7.2}})
        calls = fake_provider(error=requests.ConnectionError("down"))
    """
    def _install(payload=None, status_code=200, error=None):
        calls = []

        def fake_get(url, timeout=None):
            calls.append({"url": url, "timeout": timeout})
            if error is not None:
                raise error
            return FakeResponse(payload, status_code)

        monkeypatch.setattr(currency_service.requests, "get", fake_get)
        return calls
    return _install
