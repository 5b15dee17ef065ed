"""Shared fixtures: isolated env and an in-process API client."""
from __future__ import annotations

import os

import httpx
import pytest

# The app reads its rate limit at import; keep it out of the way of the suite.
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "100000")

_SERVICE_ENV_VARS = (
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "STRIPE_WEBHOOK_SECRET_LIVE",
    "STRIPE_WEBHOOK_SECRET_TEST",
    "MAKE_AVAILABILITY_WEBHOOK_URL",
    "AVAILABILITY_WEBHOOK_URL",
    "AVAILABILITY_MASK_ERRORS",
    "MAKE_CREATE_JOB_WEBHOOK_URL",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_DISPATCH_CHAT_ID",
    "TELEGRAM_CHAT_ID",
    "GOOGLE_MAPS_API_KEY",
    "SITE_URL",
    "BANK_HOLIDAYS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in _SERVICE_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def client():
    from backend.main import app

    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")
