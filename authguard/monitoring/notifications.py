"""
Notification senders for security alerts and lockout notices.

Delivery is pluggable. LoggingNotificationSender writes to the structured
log and is the default; WebhookNotificationSender posts JSON to an HTTP
endpoint (chat webhook, mail relay). Senders return a NotificationResult
instead of raising so a bad recipient never aborts a batch.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..utils.logger import setup_logger
from ..utils.timeutils import utcnow

logger = setup_logger(__name__)


@dataclass
class NotificationResult:
    success: bool
    error: Optional[str] = None


class NotificationSender(ABC):
    """Delivers security notifications to a single recipient"""

    @abstractmethod
    async def send_security_alert(
        self,
        to_email: str,
        title: str,
        body: str,
        ip_address: Optional[str] = None,
        source_name: str = "Security System"
    ) -> NotificationResult:
        """Send one security alert to an admin recipient"""

    @abstractmethod
    async def send_account_lockout(
        self,
        to_email: str,
        reason: str,
        lockout_minutes: int,
        user_name: Optional[str] = None
    ) -> NotificationResult:
        """Tell an account holder their account was locked"""

    async def close(self) -> None:
        return None


class LoggingNotificationSender(NotificationSender):
    """Writes notifications to the application log"""

    async def send_security_alert(
        self,
        to_email: str,
        title: str,
        body: str,
        ip_address: Optional[str] = None,
        source_name: str = "Security System"
    ) -> NotificationResult:
        logger.warning(
            f"[Notify] Security alert for {to_email}: {title}",
            body=body,
            ip_address=ip_address,
            source=source_name,
        )
        return NotificationResult(success=True)

    async def send_account_lockout(
        self,
        to_email: str,
        reason: str,
        lockout_minutes: int,
        user_name: Optional[str] = None
    ) -> NotificationResult:
        logger.info(
            f"[Notify] Account lockout notice for {to_email} ({lockout_minutes} minutes)",
            reason=reason,
        )
        return NotificationResult(success=True)


class WebhookNotificationSender(NotificationSender):
    """
    Posts notifications as JSON to a webhook URL.

    Payload: {"kind", "to", "subject", "text", "timestamp", ...extra}
    """

    def __init__(self, webhook_url: str, timeout: float = 10.0, headers: Optional[Dict[str, str]] = None):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.headers = headers or {}
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=self.headers)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _post(self, payload: Dict[str, Any]) -> NotificationResult:
        payload.setdefault("timestamp", utcnow().isoformat())
        try:
            client = await self._get_client()
            response = await client.post(self.webhook_url, json=payload)
            response.raise_for_status()
            return NotificationResult(success=True)
        except httpx.HTTPError as e:
            logger.error(f"[Notify] Webhook delivery to {payload.get('to')} failed: {e}")
            return NotificationResult(success=False, error=str(e))

    async def send_security_alert(
        self,
        to_email: str,
        title: str,
        body: str,
        ip_address: Optional[str] = None,
        source_name: str = "Security System"
    ) -> NotificationResult:
        return await self._post({
            "kind": "security_alert",
            "to": to_email,
            "subject": f"Security Alert: {title}",
            "text": body,
            "ip_address": ip_address,
            "source": source_name,
        })

    async def send_account_lockout(
        self,
        to_email: str,
        reason: str,
        lockout_minutes: int,
        user_name: Optional[str] = None
    ) -> NotificationResult:
        greeting = f"Hi {user_name}, y" if user_name else "Y"
        return await self._post({
            "kind": "account_lockout",
            "to": to_email,
            "subject": "Your account has been temporarily locked",
            "text": (
                f"{greeting}our account was locked for {lockout_minutes} minutes "
                f"({reason}). If this wasn't you, reset your password."
            ),
            "reason": reason,
            "lockout_minutes": lockout_minutes,
        })


def create_notification_sender(webhook_url: Optional[str] = None) -> NotificationSender:
    """Webhook sender when a URL is configured, otherwise log-only."""
    if webhook_url:
        logger.info("[Notify] Using webhook notification sender")
        return WebhookNotificationSender(webhook_url)
    logger.info("[Notify] Using log-only notification sender")
    return LoggingNotificationSender()
