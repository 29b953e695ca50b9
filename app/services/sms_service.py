import asyncio

import httpx

from app.core.config import settings
from app.core.logger import logger

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"

class SmsSender:
    """Sends patient text messages through the Twilio REST API."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._pending: set[asyncio.Task] = set()
        if not settings.twilio_configured:
            logger.warning("Twilio credentials are not fully configured. SMS sending is disabled.")

    def normalize_number(self, to_number: str) -> str:
        to_number = to_number.strip()
        if not to_number.startswith("+"):
            to_number = f"{settings.SMS_DEFAULT_COUNTRY_CODE}{to_number}"
        return to_number

    async def send(self, to_number: str, body: str) -> bool:
        if not settings.twilio_configured:
            logger.info(f"SMS not sent to {to_number} (Twilio not configured): {body}")
            return False

        to_number = self.normalize_number(to_number)
        url = TWILIO_MESSAGES_URL.format(sid=settings.TWILIO_ACCOUNT_SID)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    url,
                    data={"To": to_number, "From": settings.TWILIO_FROM_PHONE, "Body": body},
                    auth=(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN),
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"Failed to send SMS to {to_number}. Error: {exc}")
            return False

        logger.info(f"SMS sent successfully to {to_number}, SID: {response.json().get('sid')}")
        return True

    def send_later(self, to_number: str, body: str) -> None:
        """Schedule delivery without waiting for it."""
        task = asyncio.create_task(self.send(to_number, body))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
