from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class EmailMessage(BaseModel):
    to: str
    subject: str
    html: str


class EmailError(RuntimeError):
    """The provider refused or failed to accept a message."""


class EmailClient(ABC):
    @abstractmethod
    async def send(self, message: EmailMessage) -> str | None:
        """Send one message; returns the provider's message id when it gives one."""
        raise NotImplementedError


class LoggingEmailClient(EmailClient):
    """Development client: writes the envelope to the log instead of sending."""

    async def send(self, message: EmailMessage) -> str | None:
        logger.info("Email (not sent) to=%s subject=%r bytes=%d", message.to, message.subject, len(message.html))
        return None
