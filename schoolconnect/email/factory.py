from __future__ import annotations

from schoolconnect.email.client import EmailClient, LoggingEmailClient
from schoolconnect.email.resend import ResendEmailClient
from schoolconnect.settings import settings


def get_email_client(provider: str) -> EmailClient:
    p = (provider or "").strip().lower()
    if p == "resend":
        return ResendEmailClient(settings.resend_api_key, settings.email_from, settings.resend_base_url)
    return LoggingEmailClient()
