from __future__ import annotations

import logging
from typing import Iterable, Optional

import requests
from fastapi import Request

from . import config
from .errors import ExternalServiceError, StoreError

logger = logging.getLogger(__name__)


class BrevoMailer:
    def __init__(
        self,
        api_key: str = "",
        api_url: str = "https://api.brevo.com/v3",
        sender_name: str = "FREAK",
        sender_email: str = "no-reply@example.com",
        timeout: int = 10,
    ):
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.sender_name = sender_name
        self.sender_email = sender_email
        self.timeout = timeout

    def send_newsletter(self, *, recipients: Iterable[str], subject: str, html_content: str) -> Optional[str]:
        """Send one transactional email to every recipient. Returns Brevo's messageId."""
        if not self.api_key:
            raise StoreError("Brevo API key not configured")

        to = [{"email": email} for email in recipients]
        try:
            resp = requests.post(
                f"{self.api_url}/smtp/email",
                json={
                    "to": to,
                    "subject": subject,
                    "htmlContent": html_content,
                    "sender": {"name": self.sender_name, "email": self.sender_email},
                },
                headers={"api-key": self.api_key, "Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error("Brevo is unavailable: %s", e)
            raise ExternalServiceError("Failed to send newsletter")

        if resp.status_code >= 400:
            logger.error("Brevo rejected newsletter (status=%s): %s", resp.status_code, resp.text)
            raise ExternalServiceError("Failed to send newsletter")

        try:
            return resp.json().get("messageId")
        except ValueError:
            return None


def build_mailer() -> BrevoMailer:
    return BrevoMailer(
        api_key=config.BREVO_API_KEY,
        api_url=config.BREVO_API_URL,
        sender_name=config.BREVO_SENDER_NAME,
        sender_email=config.BREVO_SENDER_EMAIL,
        timeout=config.BREVO_TIMEOUT_SECONDS,
    )


def get_mailer(request: Request) -> BrevoMailer:
    return request.app.state.mailer
