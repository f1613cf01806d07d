"""
Outbound notification dispatch.

GOVERNANCE:
- Fire-and-forget: send() returns a bool and never raises
- A failed send never rolls back the workflow step that triggered it
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx
from httpx import Timeout
from pydantic import BaseModel, Field

from core import NotificationError, get_audit_logger, get_logger

logger = get_logger(__name__)
audit = get_audit_logger()


class NotificationMessage(BaseModel):
    """An email-shaped message."""

    to: str
    subject: str
    html: str
    patient_id: Optional[str] = None
    clinic_id: Optional[str] = None
    kind: str = "general"
    attachments: list[dict] = Field(default_factory=list)


class NotificationDispatcher(ABC):
    """Delivers messages; failures are logged, not raised."""

    def send(self, message: NotificationMessage) -> bool:
        """Deliver a message, returning False on any failure."""
        try:
            self._deliver(message)
        except NotificationError as e:
            audit.warning(
                f"Notification '{message.kind}' to {message.to} failed: {e.message}",
                extra={"patient_id": message.patient_id, "event": "notification_failed"},
            )
            return False
        logger.info(f"Notification '{message.kind}' sent to {message.to}")
        return True

    @abstractmethod
    def _deliver(self, message: NotificationMessage) -> None:
        """Deliver or raise NotificationError."""


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Records messages in memory and in the log; for demos and tests."""

    def __init__(self):
        self.sent: list[NotificationMessage] = []

    def _deliver(self, message: NotificationMessage) -> None:
        self.sent.append(message)
        logger.info(f"[log-only] {message.subject} -> {message.to}")


class HttpNotificationDispatcher(NotificationDispatcher):
    """Posts messages to an email-sending HTTP function."""

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout_s: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url
        self._client = httpx.Client(
            headers={
                "Authorization": f"Bearer {api_key}",
                "apikey": api_key,
                "Content-Type": "application/json",
            },
            timeout=Timeout(timeout_s),
            transport=transport,
        )

    def _deliver(self, message: NotificationMessage) -> None:
        payload = message.model_dump(include={"to", "subject", "html", "attachments"})
        try:
            response = self._client.post(self.url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(f"Email function call failed: {e}") from e

        result = response.json() if response.content else {}
        if isinstance(result, dict) and result.get("success") is False:
            raise NotificationError(
                "Email function reported failure",
                details={"response": result},
            )

    def close(self) -> None:
        self._client.close()
