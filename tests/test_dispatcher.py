"""
Tests for the notification dispatcher: channel selection, failure isolation, logging.
"""
from dataclasses import dataclass
from datetime import datetime

import pytest

from orderflow.engine.dispatcher import (
    ApprovalEvent,
    Attempt,
    DesignEvent,
    RenewalEvent,
    TokenExpiryEvent,
    TransitionEvent,
    notify_after_commit,
)
from orderflow.models import NotificationLogModel


def _event(owner_id, to_status="COMPLETED", **overrides):
    values = dict(
        workflow_id="wf-1",
        owner_id=owner_id,
        workflow_type="NAMECARD",
        from_status="ORDER_APPROVED",
        to_status=to_status,
        actor="admin",
    )
    values.update(overrides)
    return TransitionEvent(**values)


def _rows(db):
    return {(r.channel, r.notification_type): r for r in db.query(NotificationLogModel).all()}


class TestChannelSelection:
    def test_all_channels_unconfigured_are_skipped(self, db, make_client, make_submission, make_dispatcher):
        owner = make_client()
        make_submission(owner, status="APPROVED", channel_id="C0001")
        dispatcher = make_dispatcher()

        outcomes = dispatcher.dispatch(_event(owner.id)).result(timeout=5)

        assert {o.status for o in outcomes} == {"SKIPPED"}
        rows = _rows(db)
        assert rows[("slack", "workflow_transition")].error_message == "slack not configured"
        assert rows[("telegram", "workflow_transition")].error_message == "telegram not configured"

    def test_owner_opted_out(self, db, make_client, dispatcher, telegram):
        owner = make_client(telegram_enabled=False)

        outcomes = dispatcher.dispatch(_event(owner.id)).result(timeout=5)

        owner_outcome = next(o for o in outcomes if o.channel == "telegram")
        assert owner_outcome.status == "SKIPPED"
        assert owner_outcome.error == "telegram disabled by client"
        assert [chat for chat, _ in telegram.sent] == ["admin-chat"]

    def test_owner_without_chat_id(self, db, make_client, dispatcher):
        owner = make_client(telegram_chat_id=None)
        outcomes = dispatcher.dispatch(_event(owner.id)).result(timeout=5)
        owner_outcome = next(o for o in outcomes if o.channel == "telegram")
        assert owner_outcome.error == "no telegram chat id"

    def test_no_slack_channel(self, db, make_client, dispatcher, slack):
        owner = make_client()
        outcomes = dispatcher.dispatch(_event(owner.id)).result(timeout=5)
        slack_outcome = next(o for o in outcomes if o.channel == "slack")
        assert slack_outcome.status == "SKIPPED"
        assert slack.calls == []

    def test_admin_chat_unset(self, db, make_client, settings, make_dispatcher, telegram):
        settings.TELEGRAM_ADMIN_CHAT_ID = ""
        dispatcher = make_dispatcher(telegram=telegram)
        owner = make_client()

        outcomes = dispatcher.dispatch(_event(owner.id)).result(timeout=5)

        admin = next(o for o in outcomes if o.channel == "telegram_admin")
        assert admin.status == "SKIPPED"
        assert admin.error == "admin chat id not configured"


class TestFailureIsolation:
    def test_slack_failure_does_not_block_telegram(
        self, db, make_client, make_submission, make_dispatcher, failing_slack, telegram
    ):
        owner = make_client()
        make_submission(owner, status="APPROVED", channel_id="C0001")
        dispatcher = make_dispatcher(telegram=telegram, slack=failing_slack)

        outcomes = dispatcher.dispatch(_event(owner.id)).result(timeout=5)

        statuses = {o.channel: o.status for o in outcomes}
        assert statuses == {"slack": "FAILED", "telegram": "SENT", "telegram_admin": "SENT"}
        rows = _rows(db)
        assert "channel_not_found" in rows[("slack", "workflow_transition")].error_message

    def test_one_row_per_attempt(self, db, make_client, make_submission, dispatcher):
        owner = make_client()
        sub = make_submission(owner, status="APPROVED", channel_id="C0001")

        dispatcher.dispatch(ApprovalEvent(sub.id, owner.id, "C0001", 5)).result(timeout=5)

        rows = db.query(NotificationLogModel).all()
        assert sorted((r.channel, r.status) for r in rows) == [
            ("slack", "SENT"), ("telegram", "SENT"), ("telegram_admin", "SENT"),
        ]
        assert {r.client_id for r in rows} == {owner.id}

    def test_unknown_event_is_contained(self, dispatcher):
        assert dispatcher.dispatch(object()).result(timeout=5) == []

    def test_vanished_client_still_notifies_admin(self, db, dispatcher, telegram):
        outcomes = dispatcher.dispatch(_event("ghost")).result(timeout=5)
        statuses = {o.channel: o.status for o in outcomes}
        assert statuses["telegram"] == "SKIPPED"
        assert statuses["telegram_admin"] == "SENT"


class TestLifecycle:
    def test_drain_waits_for_queued_tasks(self, db, make_client, dispatcher):
        owner = make_client()
        for months in (1, 2, 3):
            dispatcher.dispatch(RenewalEvent(owner.id, months, owner.created_at))

        dispatcher.drain(timeout=5)

        assert db.query(NotificationLogModel).count() == 3

    def test_notify_without_dispatcher(self):
        assert notify_after_commit(None, RenewalEvent("c", 1, None)) is None

    def test_notify_after_shutdown_is_swallowed(self, make_dispatcher):
        dispatcher = make_dispatcher()
        dispatcher.shutdown()
        assert notify_after_commit(dispatcher, RenewalEvent("c", 1, None)) is None


class TestProvisioning:
    def test_success_records_sent(self, db, make_client, dispatcher):
        owner = make_client()
        result = dispatcher.provision_channel(owner.id, owner.client_name, {"고객명": owner.name})
        assert result.channel_id == "C0001"
        row = db.query(NotificationLogModel).one()
        assert (row.channel, row.notification_type, row.status) == ("slack", "channel_provisioning", "SENT")

    @pytest.mark.parametrize("fixture_name, expected", [
        ("failing_slack", "channel_not_found"),
        ("hanging_slack", "timed out"),
    ])
    def test_failures_record_failed(self, request, db, make_client, make_dispatcher, fixture_name, expected):
        dispatcher = make_dispatcher(slack=request.getfixturevalue(fixture_name))
        owner = make_client()

        result = dispatcher.provision_channel(owner.id, owner.client_name, {})

        assert result.channel_id is None
        assert expected in result.error
        assert db.query(NotificationLogModel).one().status == "FAILED"


@dataclass(frozen=True)
class _MailedEvent:
    client_id: str


class TestPostSendUpdate:
    def test_failed_update_keeps_delivery_as_sent(self, db, make_client, dispatcher):
        owner = make_client()
        delivered = []

        def broken_update(session):
            raise RuntimeError("row locked")

        dispatcher._planners[_MailedEvent] = lambda session, event: (event.client_id, [
            Attempt("email", "contract_email", send=lambda: delivered.append("mail"), on_sent=broken_update),
            Attempt("telegram", "contract_approved", send=lambda: delivered.append("telegram")),
        ])

        outcomes = dispatcher.dispatch(_MailedEvent(owner.id)).result(timeout=5)

        assert delivered == ["mail", "telegram"]
        assert [o.status for o in outcomes] == ["SENT", "SENT"]
        rows = _rows(db)
        assert len(rows) == 2
        assert rows[("email", "contract_email")].error_message == "post-send update failed: row locked"
        assert rows[("telegram", "contract_approved")].error_message is None


class TestTokenExpiry:
    def test_owner_and_admin_are_told(self, db, make_client, dispatcher, telegram):
        owner = make_client(client_name="R&D 컴퍼니")
        event = TokenExpiryEvent(owner.id, "d3", 3, datetime(2024, 1, 18))

        outcomes = dispatcher.dispatch(event).result(timeout=5)

        assert {(o.channel, o.notification_type, o.status) for o in outcomes} == {
            ("telegram", "token_d3", "SENT"),
            ("telegram_admin", "token_d3", "SENT"),
        }
        by_chat = dict(telegram.sent)
        assert "3일 후(2024-01-18)" in by_chat["111"]
        assert "R&amp;D 컴퍼니 (D-3, 2024-01-18)" in by_chat["admin-chat"]


class TestDesignEvents:
    @pytest.fixture()
    def owner(self, make_client, make_submission):
        owner = make_client()
        make_submission(owner, status="APPROVED", channel_id="C0001")
        return owner

    def test_upload_mails_client_and_posts_progress(self, db, owner, dispatcher, email, slack, telegram):
        event = DesignEvent("d-1", owner.id, "NAMECARD", "DESIGN_UPLOADED", 2)

        outcomes = dispatcher.dispatch(event).result(timeout=5)

        assert {(o.channel, o.status) for o in outcomes} == {("email", "SENT"), ("slack", "SENT")}
        assert email.sent[0]["to"] == "owner@example.com"
        assert email.sent[0]["subject"] == "[Polarad] 명함 시안이 업로드되었습니다"
        assert "https://my.polarad.kr/dashboard/designs/d-1" in email.sent[0]["html"]
        assert slack.calls[0][:4] == ("post_progress", "C0001", "명함 시안", "v2 업로드 완료")
        assert telegram.sent == []

    def test_revision_request_alerts_admin_and_channel(self, db, owner, dispatcher, email, slack, telegram):
        event = DesignEvent("d-1", owner.id, "NAMECARD", "REVISION_REQUESTED", 1, feedback="로고를 <크게>")

        outcomes = dispatcher.dispatch(event).result(timeout=5)

        assert {(o.channel, o.notification_type) for o in outcomes} == {
            ("telegram_admin", "revision_requested"),
            ("slack", "revision_requested"),
        }
        assert email.sent == []
        chat, text = telegram.sent[0]
        assert chat == "admin-chat"
        assert "로고를 &lt;크게&gt;" in text
        assert "https://admin.polarad.kr/designs/d-1" in text
        assert slack.calls[0] == ("post_revision_request", "C0001", owner.client_name, "명함 시안", 1, "로고를 <크게>")

    def test_admin_feedback_only_mails_client(self, db, owner, dispatcher, email, slack, telegram):
        event = DesignEvent("d-1", owner.id, "NAMETAG", "DESIGN_FEEDBACK", 1, feedback="수정본 올렸습니다")

        outcomes = dispatcher.dispatch(event).result(timeout=5)

        assert [(o.channel, o.notification_type) for o in outcomes] == [("email", "design_feedback")]
        assert "수정본 올렸습니다" in email.sent[0]["html"]
        assert slack.calls == []
        assert telegram.sent == []

    def test_approval_posts_confirmation(self, db, owner, dispatcher, slack, telegram):
        event = DesignEvent("d-1", owner.id, "NAMECARD", "DESIGN_APPROVED", 3)

        outcomes = dispatcher.dispatch(event).result(timeout=5)

        assert {o.channel for o in outcomes} == {"telegram_admin", "slack"}
        assert slack.calls[0][:4] == ("post_progress", "C0001", "명함 시안", "고객 확정")
        assert "[시안 확정]" in telegram.sent[0][1]
