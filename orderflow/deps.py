"""
FastAPI 의존성 (DB 세션 외)
"""
from typing import Optional

from fastapi import Request

from orderflow.config import Settings, settings
from orderflow.engine.dispatcher import NotificationDispatcher


def get_settings() -> Settings:
    return settings


def get_dispatcher(request: Request) -> Optional[NotificationDispatcher]:
    """lifespan 에서 만든 디스패처 (없으면 알림 생략)"""
    return getattr(request.app.state, "dispatcher", None)
