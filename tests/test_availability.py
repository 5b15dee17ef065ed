"""Availability proxy: route behaviour and Make reply interpretation."""
from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from backend.services.make_client import (
    AvailabilityUnavailable,
    MakeClient,
    parse_availability_reply,
)

MAKE_URL = "https://hook.eu1.make.com/availability-test"


def slot(**overrides):
    body = {
        "pickup": "SW1A 1AA",
        "dropoff": "M1 1AE",
        "miles": "45",
        "whenDate": "2030-01-02",
        "whenTime": "12:00",
        "email": "ops@acme.test",
    }
    body.update(overrides)
    return body


@pytest.fixture
def make_client(monkeypatch):
    monkeypatch.setenv("MAKE_AVAILABILITY_WEBHOOK_URL", MAKE_URL)
    with patch("backend.routes.availability.MakeClient") as make_cls:
        instance = make_cls.return_value
        instance.check_availability = AsyncMock(return_value={"available": True})
        yield instance


# ── Route ────────────────────────────────────────────────────────────


@pytest.mark.anyio
async def test_available_slot_passes_through(client, make_client):
    make_client.check_availability.return_value = {"available": False, "message": "Van already booked"}
    response = await client.post("/api/availability", json=slot())
    assert response.status_code == 200
    assert response.json() == {"available": False, "message": "Van already booked"}


@pytest.mark.anyio
async def test_payload_sent_to_make_includes_schedule_window(client, make_client):
    await client.post("/api/availability", json=slot())
    url, payload = make_client.check_availability.await_args.args
    assert url == MAKE_URL
    assert payload == {
        "pickup": "SW1A 1AA",
        "dropoff": "M1 1AE",
        "miles": 45.0,
        "whenDate": "2030-01-02",
        "whenTime": "12:00",
        "email": "ops@acme.test",
        # 45 miles at 30 mph + 20 min buffer
        "scheduleStart": "2030-01-02T10:10:00.000Z",
        "scheduleEnd": "2030-01-02T12:00:00.000Z",
    }


@pytest.mark.anyio
async def test_email_and_miles_are_optional(client, make_client):
    response = await client.post("/api/availability", json=slot(email="", miles=""))
    assert response.status_code == 200
    _, payload = make_client.check_availability.await_args.args
    assert payload["miles"] == ""
    assert payload["scheduleStart"] == "2030-01-02T10:40:00.000Z"


@pytest.mark.anyio
async def test_missing_fields_are_listed(client, make_client):
    response = await client.post("/api/availability", json=slot(pickup="", whenTime=""))
    assert response.status_code == 400
    assert response.json() == {
        "available": False,
        "message": "Missing required fields to check availability: pickup, whenTime",
    }
    make_client.check_availability.assert_not_awaited()


@pytest.mark.anyio
async def test_invalid_date(client, make_client):
    response = await client.post("/api/availability", json=slot(whenDate="tomorrow"))
    assert response.status_code == 400
    assert response.json()["available"] is False


@pytest.mark.anyio
async def test_upstream_failure_is_502(client, make_client):
    make_client.check_availability.side_effect = AvailabilityUnavailable(
        "Unable to contact scheduling system. Please try again.", detail="ConnectError"
    )
    response = await client.post("/api/availability", json=slot())
    assert response.status_code == 502
    assert response.json() == {
        "available": False,
        "message": "Unable to contact scheduling system. Please try again.",
    }


@pytest.mark.anyio
async def test_upstream_failure_masked_as_unavailable(client, make_client, monkeypatch):
    monkeypatch.setenv("AVAILABILITY_MASK_ERRORS", "true")
    make_client.check_availability.side_effect = AvailabilityUnavailable("Invalid response")
    response = await client.post("/api/availability", json=slot())
    assert response.status_code == 200
    data = response.json()
    assert data["available"] is False
    assert "not available" in data["message"]


@pytest.mark.anyio
async def test_missing_webhook_url_is_500(client):
    response = await client.post("/api/availability", json=slot())
    assert response.status_code == 500
    assert response.json()["available"] is False


@pytest.mark.anyio
async def test_legacy_env_var_and_path(client, monkeypatch):
    monkeypatch.setenv("AVAILABILITY_WEBHOOK_URL", MAKE_URL)
    with patch("backend.routes.availability.MakeClient") as make_cls:
        make_cls.return_value.check_availability = AsyncMock(return_value={"available": True})
        response = await client.post("/api/stripe/availability", json=slot())
    assert response.status_code == 200
    assert response.json() == {"available": True}


# ── Reply interpretation ─────────────────────────────────────────────


def test_json_reply_with_flag_passes_through():
    assert parse_availability_reply('{"available": true, "slot": "AM"}') == {"available": True, "slot": "AM"}


def test_plain_accepted_means_available():
    assert parse_availability_reply("Accepted") == {"available": True}
    assert parse_availability_reply("Accepted\n") == {"available": True}


@pytest.mark.parametrize("text", ["<html>oops</html>", "", '{"ok": true}', '{"available": "yes"}', "[1, 2]"])
def test_unusable_replies_raise(text):
    with pytest.raises(AvailabilityUnavailable):
        parse_availability_reply(text)


# ── MakeClient over a mock transport ─────────────────────────────────


@pytest.mark.anyio
async def test_client_posts_json_and_parses_reply():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"available": False, "message": "Full"})

    client = MakeClient(transport=httpx.MockTransport(handler))
    result = await client.check_availability(MAKE_URL, {"pickup": "A"})
    assert result == {"available": False, "message": "Full"}
    assert seen == {"url": MAKE_URL, "body": {"pickup": "A"}}


@pytest.mark.anyio
async def test_client_transport_error_raises_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = MakeClient(transport=httpx.MockTransport(handler))
    with pytest.raises(AvailabilityUnavailable) as exc_info:
        await client.check_availability(MAKE_URL, {})
    assert exc_info.value.message == "Unable to contact scheduling system. Please try again."
    assert "ConnectError" in exc_info.value.detail


@pytest.mark.anyio
async def test_create_job_skipped_without_url():
    result = await MakeClient().create_job({"sessionId": "cs_1"})
    assert result == {"ok": False, "reason": "missing_make_url"}


@pytest.mark.anyio
async def test_create_job_posts_payload(monkeypatch):
    monkeypatch.setenv("MAKE_CREATE_JOB_WEBHOOK_URL", "https://hook.eu1.make.com/create-job")
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, text="Accepted")

    result = await MakeClient(transport=httpx.MockTransport(handler)).create_job({"sessionId": "cs_1"})
    assert result["ok"] is True
    assert result["status"] == 200
    assert bodies == [{"sessionId": "cs_1"}]


@pytest.mark.anyio
async def test_create_job_swallows_transport_errors(monkeypatch):
    monkeypatch.setenv("MAKE_CREATE_JOB_WEBHOOK_URL", "https://hook.eu1.make.com/create-job")

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    result = await MakeClient(transport=httpx.MockTransport(handler)).create_job({})
    assert result["ok"] is False
    assert result["reason"] == "exception"


@pytest.mark.anyio
@pytest.mark.parametrize("miles", ["inf", "-inf", "nan", -3, 0])
async def test_unusable_miles_rejected(client, make_client, miles):
    response = await client.post("/api/availability", json=slot(miles=miles))
    assert response.status_code == 400
    assert response.json() == {"available": False, "message": "Invalid miles."}
    make_client.check_availability.assert_not_awaited()


@pytest.mark.anyio
async def test_huge_miles_window_is_capped(client, make_client):
    response = await client.post("/api/availability", json=slot(miles=1e9))
    assert response.status_code == 200
    _, payload = make_client.check_availability.await_args.args
    # 500 miles at 30 mph + 20 min buffer
    assert payload["scheduleStart"] == "2030-01-01T19:00:00.000Z"


@pytest.mark.anyio
async def test_client_unencodable_payload_raises_unavailable():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"available": True}))
    with pytest.raises(AvailabilityUnavailable):
        await MakeClient(transport=transport).check_availability(MAKE_URL, {"miles": float("inf")})


@pytest.mark.anyio
async def test_create_job_unencodable_payload_is_reported(monkeypatch):
    monkeypatch.setenv("MAKE_CREATE_JOB_WEBHOOK_URL", "https://hook.eu1.make.com/create-job")
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="Accepted"))
    result = await MakeClient(transport=transport).create_job({"miles": float("nan")})
    assert result["ok"] is False
    assert result["reason"] == "invalid_payload"
