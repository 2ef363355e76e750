"""
Telegram Bot API 클라이언트
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from orderflow.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class TelegramResult:
    ok: bool
    description: Optional[str] = None


class TelegramClient:
    """sendMessage 호출만 사용. 실패는 예외 대신 ``TelegramResult`` 로 반환."""

    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None):
        self.token = settings.TELEGRAM_BOT_TOKEN
        self.base_url = f"{settings.TELEGRAM_API_BASE}/bot{self.token}"
        self.timeout = settings.NOTIFY_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.token)

    def send_message(self, chat_id: str, text: str, parse_mode: str = "HTML") -> TelegramResult:
        if not self.configured:
            return TelegramResult(ok=False, description="Bot token not configured")

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    f"{self.base_url}/sendMessage",
                    json={"chat_id": chat_id, "text": text, "parse_mode": parse_mode},
                )
            data = response.json()
        except httpx.TimeoutException:
            logger.error("Telegram sendMessage timeout: chat=%s", chat_id)
            return TelegramResult(ok=False, description="timeout")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Telegram sendMessage error: chat=%s  %s", chat_id, e)
            return TelegramResult(ok=False, description=str(e))

        if data.get("ok"):
            logger.info("Telegram message sent: chat=%s", chat_id)
            return TelegramResult(ok=True)

        logger.error("Telegram message rejected: chat=%s  %s", chat_id, data.get("description"))
        return TelegramResult(ok=False, description=data.get("description") or "unknown error")
