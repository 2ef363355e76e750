"""
Slack Web API 클라이언트
- 자료 승인 시 채널 생성 ({prefix}-{클라이언트명})
- 진행 과정 기록 (상태 변경, 시안 업로드/확정, 수정 요청)
"""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Optional

import httpx

from orderflow.config import Settings
from orderflow.engine.errors import ExternalDeliveryError
from orderflow.engine.templates import STATE_EMOJI

logger = logging.getLogger(__name__)

MAX_CHANNEL_NAME = 80


def channel_name_for(prefix: str, client_name: str) -> str:
    """Slack 채널명 규칙: 소문자, 공백/특수문자는 '-' 로 치환, 80자 제한"""
    slug = re.sub(r"[^\w-]+", "-", client_name.strip().lower()).strip("-")
    return f"{prefix}-{slug}"[:MAX_CHANNEL_NAME]


def _context_block() -> dict:
    return {
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": f"📅 {datetime.now().strftime('%Y-%m-%d %H:%M')}"}],
    }


class SlackClient:
    """실패 시 ``ExternalDeliveryError`` 를 발생시킨다."""

    channel = "slack"

    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None):
        self.token = settings.SLACK_BOT_TOKEN
        self.base_url = settings.SLACK_API_BASE
        self.prefix = settings.SLACK_CHANNEL_PREFIX
        self.admin_emails = settings.SLACK_ADMIN_EMAILS
        self.timeout = settings.NOTIFY_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.token)

    def _call(self, method: str, payload: Optional[dict] = None, params: Optional[dict] = None) -> dict:
        if not self.configured:
            raise ExternalDeliveryError(self.channel, "SLACK_BOT_TOKEN not configured")
        headers = {"Authorization": f"Bearer {self.token}"}
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                if payload is not None:
                    response = client.post(f"{self.base_url}/{method}", json=payload, headers=headers)
                else:
                    response = client.get(f"{self.base_url}/{method}", params=params, headers=headers)
            data = response.json()
        except httpx.TimeoutException as e:
            raise ExternalDeliveryError(self.channel, f"{method} timeout") from e
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalDeliveryError(self.channel, f"{method} failed: {e}") from e

        if not data.get("ok"):
            raise ExternalDeliveryError(self.channel, f"{method} error: {data.get('error', 'unknown')}")
        return data

    # ── 채널 ─────────────────────────────────────────────────────────────
    def find_channel(self, name: str) -> Optional[str]:
        data = self._call(
            "conversations.list",
            params={"types": "public_channel,private_channel", "limit": 1000},
        )
        for channel in data.get("channels", []):
            if channel.get("name") == name:
                return channel.get("id")
        return None

    def _invite_admins(self, channel_id: str) -> list[str]:
        invited: list[str] = []
        for email in self.admin_emails:
            try:
                user = self._call("users.lookupByEmail", params={"email": email})
                user_id = user["user"]["id"]
                self._call("conversations.invite", {"channel": channel_id, "users": user_id})
                invited.append(user_id)
            except ExternalDeliveryError as e:
                logger.warning("Slack admin invite failed (%s): %s", email, e)
        return invited

    def create_channel(self, client_name: str, contact: dict[str, Any]) -> str:
        """채널 생성 (동명 채널이 있으면 재사용) 후 channel id 반환"""
        name = channel_name_for(self.prefix, client_name)

        existing = self.find_channel(name)
        if existing:
            logger.info("Slack channel reused: %s (%s)", name, existing)
            return existing

        data = self._call("conversations.create", {"name": name, "is_private": False})
        channel_id = data["channel"]["id"]
        invited = self._invite_admins(channel_id)

        fields = [
            {"type": "mrkdwn", "text": f"*{label}:*\n{value}"}
            for label, value in contact.items()
            if value
        ]
        blocks: list[dict] = [
            {"type": "header", "text": {"type": "plain_text", "text": "🎉 새로운 홈페이지 제작 프로젝트"}},
        ]
        if fields:
            blocks.append({"type": "section", "fields": fields})
        if invited:
            mentions = " ".join(f"<@{uid}>" for uid in invited)
            blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": f"👋 {mentions} 새로운 프로젝트가 시작되었습니다!"}})
        blocks.append(_context_block())
        self.post_message(channel_id, "🎉 새로운 프로젝트 시작", blocks)

        logger.info("Slack channel created: %s (%s)", name, channel_id)
        return channel_id

    # ── 메시지 ───────────────────────────────────────────────────────────
    def post_message(self, channel_id: str, text: str, blocks: Optional[list[dict]] = None) -> None:
        payload: dict[str, Any] = {"channel": channel_id, "text": text}
        if blocks:
            payload["blocks"] = blocks
        self._call("chat.postMessage", payload)

    def post_record(self, channel_id: str, fields: dict[str, Any]) -> None:
        """제작 정보 푸시"""
        section = [
            {"type": "mrkdwn", "text": f"*{label}:*\n{value}"}
            for label, value in fields.items()
            if value
        ]
        blocks: list[dict] = [{"type": "header", "text": {"type": "plain_text", "text": "📋 제작 정보"}}]
        if section:
            blocks.append({"type": "section", "fields": section})
        blocks.append(_context_block())
        self.post_message(channel_id, "📋 제작 정보", blocks)

    def post_transition_log(self, channel_id: str, from_label: str, to_label: str, actor: str,
                            to_status: Optional[str] = None) -> None:
        emoji = STATE_EMOJI.get(to_status or "", "📌")
        fields = [
            {"type": "mrkdwn", "text": "*단계:*\n상태 변경"},
            {"type": "mrkdwn", "text": f"*상태:*\n{to_label}"},
            {"type": "mrkdwn", "text": f"*이전 상태:*\n{from_label}"},
            {"type": "mrkdwn", "text": f"*변경 후:*\n{to_label}"},
            {"type": "mrkdwn", "text": f"*변경자:*\n{actor}"},
        ]
        self.post_message(
            channel_id,
            f"{emoji} 상태 변경 - {to_label}",
            [
                {"type": "section", "text": {"type": "mrkdwn", "text": f"{emoji} *상태 변경*"}},
                {"type": "section", "fields": fields},
                _context_block(),
                {"type": "divider"},
            ],
        )

    def post_upload(self, channel_id: str, item_label: str, url: str) -> None:
        self.post_message(
            channel_id,
            f"🎨 시안 업로드: {item_label}",
            [
                {"type": "section", "text": {"type": "mrkdwn", "text": f"🎨 *시안 업로드: {item_label}*\n<{url}|시안 보기>"}},
                _context_block(),
            ],
        )

    def post_progress(self, channel_id: str, stage: str, status: str, details: dict[str, Any],
                      emoji: str = "📌") -> None:
        """진행 단계 기록 (시안 업로드/확정 등)"""
        fields = [
            {"type": "mrkdwn", "text": f"*단계:*\n{stage}"},
            {"type": "mrkdwn", "text": f"*상태:*\n{status}"},
        ]
        fields.extend({"type": "mrkdwn", "text": f"*{label}:*\n{value}"} for label, value in details.items())
        self.post_message(
            channel_id,
            f"{emoji} {stage} - {status}",
            [
                {"type": "section", "text": {"type": "mrkdwn", "text": f"{emoji} *{stage}*"}},
                {"type": "section", "fields": fields},
                _context_block(),
                {"type": "divider"},
            ],
        )

    def post_revision_request(self, channel_id: str, client_name: str, user_name: str, item_label: str,
                              version: int, feedback: Optional[str], url: str) -> None:
        self.post_message(
            channel_id,
            f"⚠️ [수정 요청] {client_name} - {item_label}",
            [
                {"type": "section", "text": {"type": "mrkdwn", "text": f"⚠️ *[수정 요청] {client_name}*"}},
                {"type": "section", "fields": [
                    {"type": "mrkdwn", "text": f"*고객명:*\n{user_name}"},
                    {"type": "mrkdwn", "text": f"*시안 종류:*\n{item_label}"},
                    {"type": "mrkdwn", "text": f"*버전:*\nv{version}"},
                ]},
                {"type": "section", "text": {"type": "mrkdwn", "text": f"*고객 메시지:*\n> {feedback or '(내용 없음)'}"}},
                {"type": "actions", "elements": [
                    {"type": "button", "text": {"type": "plain_text", "text": "🔗 시안 관리 바로가기"}, "url": url},
                ]},
                _context_block(),
            ],
        )
