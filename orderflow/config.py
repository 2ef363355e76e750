"""
애플리케이션 설정
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # 데이터베이스
    DATABASE_URL: str = "sqlite:///./data/orderflow.db"

    # 환경
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # 파일 저장
    DATA_DIR: str = "./data"

    # Telegram
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_ADMIN_CHAT_ID: str = ""
    TELEGRAM_API_BASE: str = "https://api.telegram.org"

    # Slack
    SLACK_BOT_TOKEN: str = ""
    SLACK_ADMIN_EMAILS: List[str] = []
    SLACK_CHANNEL_PREFIX: str = "polarad-homepage"
    SLACK_API_BASE: str = "https://slack.com/api"

    # 이메일 (Resend)
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "noreply@polaad.co.kr"
    RESEND_API_BASE: str = "https://api.resend.com"

    # 외부 알림 호출
    NOTIFY_TIMEOUT_SECONDS: float = 10.0
    NOTIFY_MAX_WORKERS: int = 4

    # 알림 링크
    ADMIN_PANEL_URL: str = "https://admin.polarad.kr"
    CLIENT_PANEL_URL: str = "https://my.polarad.kr"

    # 연장 관리
    DEFAULT_RENEWAL_MONTHS: int = 3
    RENEWAL_HORIZON_DAYS: int = 30

    # 일괄 알림 (토큰 만료 / 로그 정리)
    TOKEN_REMINDER_DAYS: int = 7
    NOTIFICATION_LOG_RETENTION_DAYS: int = 90

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
