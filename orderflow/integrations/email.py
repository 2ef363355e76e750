"""
Resend 이메일 클라이언트
"""
from __future__ import annotations

import base64
import logging
from typing import Any, Optional

import httpx

from orderflow.config import Settings
from orderflow.engine.errors import ExternalDeliveryError

logger = logging.getLogger(__name__)


class EmailClient:
    """실패 시 ``ExternalDeliveryError`` 를 발생시킨다."""

    channel = "email"

    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None):
        self.api_key = settings.RESEND_API_KEY
        self.sender = settings.EMAIL_FROM
        self.base_url = settings.RESEND_API_BASE
        self.timeout = settings.NOTIFY_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _send(self, payload: dict[str, Any]) -> None:
        if not self.configured:
            raise ExternalDeliveryError(self.channel, "RESEND_API_KEY not configured")
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    f"{self.base_url}/emails",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.TimeoutException as e:
            raise ExternalDeliveryError(self.channel, "Resend timeout") from e
        except httpx.HTTPError as e:
            raise ExternalDeliveryError(self.channel, f"Resend error: {e}") from e

        if response.status_code not in (200, 201):
            raise ExternalDeliveryError(
                self.channel, f"Resend API error {response.status_code}: {response.text}"
            )
        logger.info("Email sent: to=%s  subject=%s", payload["to"], payload["subject"])

    def send_email(self, to: str, subject: str, html: str) -> None:
        self._send({"from": self.sender, "to": [to], "subject": subject, "html": html})

    def send_document_email(self, to: str, meta: dict[str, str], attachment: bytes) -> None:
        """계약서 등 문서 첨부 메일. meta: subject, html, filename"""
        self._send({
            "from": self.sender,
            "to": [to],
            "subject": meta["subject"],
            "html": meta.get("html", ""),
            "attachments": [{
                "filename": meta.get("filename", "document.pdf"),
                "content": base64.b64encode(attachment).decode("ascii"),
            }],
        })
