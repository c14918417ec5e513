"""Tests for logging helpers."""

import pytest
from httpx import AsyncClient

from app.middleware.logging import redact_credentials


def test_redact_credentials():
    event = {"event": "token_verification_failed", "id_token": "eyJ...", "uid": "g-1"}

    redacted = redact_credentials(None, "info", event)

    assert redacted["id_token"] == "[redacted]"
    assert redacted["uid"] == "g-1"


@pytest.mark.asyncio
async def test_request_id_header(client: AsyncClient):
    response = await client.get("/api/v1/ping", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
    assert "X-Process-Time" in response.headers
