from __future__ import annotations

import logging
from typing import Optional

import httpx

from schoolconnect.email.client import EmailClient, EmailError, EmailMessage

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.resend.com"


class ResendEmailClient(EmailClient):
    def __init__(
        self,
        api_key: Optional[str],
        sender: str,
        base_url: Optional[str] = None,
        timeout: float = 15.0,
    ) -> None:
        self.api_key = api_key
        self.sender = sender
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout

    async def send(self, message: EmailMessage) -> str | None:
        if not self.api_key:
            raise EmailError("RESEND_API_KEY is not set")

        payload = {"from": self.sender, "to": [message.to], "subject": message.subject, "html": message.html}
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.post(f"{self.base_url}/emails", json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise EmailError(f"Email service unavailable: {e}") from e

        if r.status_code >= 400:
            logger.error("Resend rejected email to %s: HTTP %s %s", message.to, r.status_code, r.text[:200])
            raise EmailError("Failed to send email")
        return (r.json() or {}).get("id")
