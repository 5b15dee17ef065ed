"""Make.com scenario webhooks: availability check and job creation."""
from __future__ import annotations

import json
import logging
import os

import httpx

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_SECONDS = 10


class AvailabilityUnavailable(Exception):
    """The scheduling scenario could not give a usable answer.

    ``message`` is safe to show customers; details go to the log.
    """

    def __init__(self, message: str, detail: str = ""):
        super().__init__(message)
        self.message = message
        self.detail = detail


def availability_webhook_url() -> str | None:
    return os.getenv("MAKE_AVAILABILITY_WEBHOOK_URL") or os.getenv("AVAILABILITY_WEBHOOK_URL")


def create_job_webhook_url() -> str | None:
    return os.getenv("MAKE_CREATE_JOB_WEBHOOK_URL")


def parse_availability_reply(text: str) -> dict:
    """Interpret the scenario reply body.

    A JSON object with a boolean ``available`` is passed through. Make's default
    plain-text ``Accepted`` reply means the scenario has no objection.

    Raises:
        AvailabilityUnavailable: Any other reply
    """
    try:
        data = json.loads(text)
    except ValueError:
        if text and text.strip() == "Accepted":
            return {"available": True}
        raise AvailabilityUnavailable(
            "Unexpected response from scheduling system. Please try again.",
            detail=f"non-JSON reply: {text[:500]!r}",
        ) from None

    if not isinstance(data, dict) or not isinstance(data.get("available"), bool):
        raise AvailabilityUnavailable(
            "Invalid response from scheduling system. Please try again.",
            detail=f"reply missing 'available' flag: {data!r}"[:600],
        )
    return data


class MakeClient:
    """Posts JSON to Make.com custom webhooks."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS, transport=self.transport)

    async def check_availability(self, url: str, payload: dict) -> dict:
        """Ask the availability scenario whether the slot is free.

        Raises:
            AvailabilityUnavailable: Transport failure or unusable reply
        """
        try:
            async with self._client() as client:
                resp = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise AvailabilityUnavailable(
                "Unable to contact scheduling system. Please try again.",
                detail=f"{type(e).__name__}: {e}",
            ) from e
        except ValueError as e:
            raise AvailabilityUnavailable(
                "Unable to contact scheduling system. Please try again.",
                detail=f"payload not JSON encodable: {e}",
            ) from e
        return parse_availability_reply(resp.text)

    async def create_job(self, payload: dict) -> dict:
        """Hand a paid booking to the create-job scenario.

        Never raises; the outcome is returned for logging.
        """
        url = create_job_webhook_url()
        if not url:
            logger.warning("MAKE_CREATE_JOB_WEBHOOK_URL missing; skipping Make job creation.")
            return {"ok": False, "reason": "missing_make_url"}

        try:
            async with self._client() as client:
                resp = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.exception("Make create-job webhook error")
            return {"ok": False, "reason": "exception", "error": str(e)}
        except ValueError as e:
            logger.error("Make create-job payload not JSON encodable: %s", e)
            return {"ok": False, "reason": "invalid_payload", "error": str(e)}

        logger.info("Make create-job webhook status: %s body: %s", resp.status_code, resp.text[:500])
        return {"ok": resp.is_success, "status": resp.status_code, "body": resp.text}
