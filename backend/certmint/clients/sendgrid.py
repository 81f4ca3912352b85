"""HTTP client for the SendGrid v3 mail API."""

from __future__ import annotations

import httpx

from certmint.core.config import Settings
from certmint.core.errors import NotificationError
from certmint.core.logging import get_logger

logger = get_logger(__name__)


class SendGridClient:
    """Sends single-recipient HTML emails."""

    def __init__(
        self,
        api_key: str,
        *,
        sender: str,
        api_url: str = "https://api.sendgrid.com/v3",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.sender = sender
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {"Authorization": f"Bearer {api_key}"}

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient | None = None) -> SendGridClient:
        return cls(
            settings.SENDGRID_API_KEY,
            sender=settings.EMAIL_FROM,
            api_url=settings.SENDGRID_API_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            client=client,
        )

    async def send(self, to: str, subject: str, html: str) -> None:
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.sender},
            "subject": subject,
            "content": [{"type": "text/html", "value": html}],
        }
        response = await self._client.post(
            f"{self.api_url}/mail/send",
            headers=self._headers,
            json=payload,
        )
        if not response.is_success:
            raise NotificationError(
                f"SendGrid mail/send returned {response.status_code}",
                status_code=response.status_code,
                response_body=response.text,
                details={"to": to},
            )
        logger.info("Email accepted", to=to, subject=subject)

    async def close(self) -> None:
        await self._client.aclose()
