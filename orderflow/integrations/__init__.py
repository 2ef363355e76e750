"""
External collaborators: Telegram, Slack, Resend email, contract rendering.
"""
from orderflow.integrations.documents import render_contract_document
from orderflow.integrations.email import EmailClient
from orderflow.integrations.slack import SlackClient
from orderflow.integrations.telegram import TelegramClient, TelegramResult

__all__ = [
    "EmailClient",
    "SlackClient",
    "TelegramClient",
    "TelegramResult",
    "render_contract_document",
]
