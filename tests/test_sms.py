import asyncio

import httpx
import pytest

from app.core.config import settings
from app.services.sms_service import SmsSender


@pytest.fixture
def twilio(monkeypatch):
    monkeypatch.setattr(settings, "TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setattr(settings, "TWILIO_AUTH_TOKEN", "secret")
    monkeypatch.setattr(settings, "TWILIO_FROM_PHONE", "+15550001111")


def test_normalize_number_adds_country_code():
    sender = SmsSender()
    assert sender.normalize_number(" 9876543210 ") == "+919876543210"
    assert sender.normalize_number("+14155550100") == "+14155550100"


@pytest.mark.asyncio
async def test_send_without_credentials_is_skipped(monkeypatch):
    monkeypatch.setattr(settings, "TWILIO_ACCOUNT_SID", None)
    assert await SmsSender().send("9876543210", "hello") is False


@pytest.mark.asyncio
async def test_send_posts_to_twilio(twilio, monkeypatch):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201, json={"sid": "SM1"})

    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        httpx, "AsyncClient", lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs)
    )

    assert await SmsSender().send("9876543210", "Your prescription is ready") is True
    assert requests[0].url.path == "/2010-04-01/Accounts/AC123/Messages.json"
    form = dict(httpx.QueryParams(requests[0].content.decode()))
    assert form["To"] == "+919876543210"
    assert form["From"] == "+15550001111"


@pytest.mark.asyncio
async def test_failed_send_returns_false(twilio, monkeypatch):
    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        httpx, "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(lambda r: httpx.Response(500)), **kwargs)
    )
    assert await SmsSender().send("9876543210", "hello") is False


@pytest.mark.asyncio
async def test_send_later_runs_in_background(monkeypatch):
    sender = SmsSender()
    delivered = []

    async def fake_send(to_number, body):
        delivered.append((to_number, body))
        return True

    monkeypatch.setattr(sender, "send", fake_send)
    sender.send_later("9876543210", "hi")
    await asyncio.sleep(0)
    await asyncio.gather(*sender._pending)
    assert delivered == [("9876543210", "hi")]
