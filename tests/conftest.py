"""
Shared pytest fixtures: per-test SQLite file, fake collaborators, FastAPI TestClient.

The database is a file (not ``:memory:``) because dispatcher worker threads
open their own sessions against it.
"""
import os
import tempfile
import threading
import time
from datetime import datetime, timedelta

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("DATA_DIR", tempfile.gettempdir())

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from orderflow.config import Settings  # noqa: E402
from orderflow.database import build_engine, build_session_factory, get_db, init_db  # noqa: E402
from orderflow.deps import get_dispatcher  # noqa: E402
from orderflow.engine.dispatcher import NotificationDispatcher  # noqa: E402
from orderflow.engine.errors import ExternalDeliveryError  # noqa: E402
from orderflow.integrations.telegram import TelegramResult  # noqa: E402
from orderflow.main import app  # noqa: E402
from orderflow.models import (  # noqa: E402
    ClientModel,
    ContractModel,
    ContractStatus,
    SubmissionModel,
    WorkflowModel,
)

NOW = datetime(2024, 1, 15, 9, 0, 0)


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------

class FakeTelegram:
    def __init__(self, ok=True, configured=True):
        self.ok = ok
        self.configured = configured
        self.sent = []
        self._lock = threading.Lock()

    def send_message(self, chat_id, text, parse_mode="HTML"):
        with self._lock:
            self.sent.append((chat_id, text))
        if self.ok:
            return TelegramResult(ok=True)
        return TelegramResult(ok=False, description="Bad Request: chat not found")


class FakeSlack:
    def __init__(self, fail=False, hang=0.0, configured=True, channel_id="C0001"):
        self.fail = fail
        self.hang = hang
        self.configured = configured
        self.channel_id = channel_id
        self.calls = []
        self._lock = threading.Lock()

    def _call(self, name, *args):
        with self._lock:
            self.calls.append((name,) + args)
        if self.hang:
            time.sleep(self.hang)
        if self.fail:
            raise ExternalDeliveryError("slack", f"{name} error: channel_not_found")

    def create_channel(self, client_name, contact):
        self._call("create_channel", client_name, contact)
        return self.channel_id

    def post_record(self, channel_id, fields):
        self._call("post_record", channel_id, fields)

    def post_transition_log(self, channel_id, from_label, to_label, actor, to_status=None):
        self._call("post_transition_log", channel_id, from_label, to_label, actor)

    def post_upload(self, channel_id, item_label, url):
        self._call("post_upload", channel_id, item_label, url)

    def post_progress(self, channel_id, stage, status, details, emoji="📌"):
        self._call("post_progress", channel_id, stage, status, details)

    def post_revision_request(self, channel_id, client_name, user_name, item_label, version, feedback, url):
        self._call("post_revision_request", channel_id, client_name, item_label, version, feedback)

    def names(self):
        return [call[0] for call in self.calls]


class FakeEmail:
    def __init__(self, fail=False, configured=True):
        self.fail = fail
        self.configured = configured
        self.sent = []

    def send_email(self, to, subject, html):
        if self.fail:
            raise ExternalDeliveryError("email", "Resend API error 422: invalid to")
        self.sent.append({"to": to, "subject": subject, "html": html})

    def send_document_email(self, to, meta, attachment):
        if self.fail:
            raise ExternalDeliveryError("email", "Resend API error 422: invalid to")
        self.sent.append({"to": to, "subject": meta["subject"], "filename": meta["filename"],
                          "attachment": attachment})


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture()
def settings():
    return Settings(
        DATABASE_URL="sqlite://",
        TELEGRAM_BOT_TOKEN="test-token",
        TELEGRAM_ADMIN_CHAT_ID="admin-chat",
        SLACK_BOT_TOKEN="xoxb-test",
        RESEND_API_KEY="re_test",
        NOTIFY_TIMEOUT_SECONDS=0.5,
        NOTIFY_MAX_WORKERS=4,
    )


@pytest.fixture()
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

@pytest.fixture()
def telegram():
    return FakeTelegram()


@pytest.fixture()
def slack():
    return FakeSlack()


@pytest.fixture()
def email():
    return FakeEmail()


@pytest.fixture()
def failing_telegram():
    return FakeTelegram(ok=False)


@pytest.fixture()
def failing_slack():
    return FakeSlack(fail=True)


@pytest.fixture()
def hanging_slack():
    # longer than settings.NOTIFY_TIMEOUT_SECONDS
    return FakeSlack(hang=1.5)


@pytest.fixture()
def failing_email():
    return FakeEmail(fail=True)


@pytest.fixture()
def make_dispatcher(settings, session_factory):
    created = []

    def _make(telegram=None, slack=None, email=None):
        dispatcher = NotificationDispatcher(
            settings, session_factory, telegram=telegram, slack=slack, email=email
        )
        created.append(dispatcher)
        return dispatcher

    yield _make
    for dispatcher in created:
        dispatcher.drain(timeout=5)
        dispatcher.shutdown()


@pytest.fixture()
def dispatcher(make_dispatcher, telegram, slack, email):
    return make_dispatcher(telegram=telegram, slack=slack, email=email)


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

@pytest.fixture()
def make_client(db):
    def _make(**overrides):
        values = {
            "client_name": "폴라애드 테스트",
            "name": "홍길동",
            "email": "owner@example.com",
            "phone": "010-1234-5678",
            "telegram_chat_id": "111",
            "telegram_enabled": True,
        }
        values.update(overrides)
        client = ClientModel(**values)
        db.add(client)
        db.commit()
        return client

    return _make


@pytest.fixture()
def make_submission(db):
    def _make(client, **overrides):
        values = {"owner_id": client.id, "brand_name": "Polar Coffee", "contact_email": "brand@example.com"}
        values.update(overrides)
        submission = SubmissionModel(**values)
        db.add(submission)
        db.commit()
        return submission

    return _make


@pytest.fixture()
def make_workflow(db):
    def _make(client, type="NAMECARD", status="SUBMITTED", **overrides):
        workflow = WorkflowModel(owner_id=client.id, type=type, status=status, **overrides)
        db.add(workflow)
        db.commit()
        return workflow

    return _make


@pytest.fixture()
def make_contract(db):
    counter = iter(range(1, 1000))

    def _make(client, **overrides):
        values = {
            "owner_id": client.id,
            "contract_number": f"CT-2024-{next(counter):04d}",
            "status": ContractStatus.SUBMITTED.value,
            "company_name": "폴라애드",
            "contact_email": "contract@example.com",
            "package_name": "STANDARD",
            "monthly_fee": 300000.0,
            "contract_period": 12,
            "total_amount": 3600000.0,
            "signed_at": NOW - timedelta(days=1),
        }
        values.update(overrides)
        contract = ContractModel(**values)
        db.add(contract)
        db.commit()
        return contract

    return _make


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

@pytest.fixture()
def client(session_factory, dispatcher):
    def _override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
