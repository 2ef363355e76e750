"""
Tests for design proofs: versions, feedback threads and workflow sync.
"""
from datetime import datetime

import pytest

from orderflow.engine import designs, state_machine
from orderflow.engine.errors import InvalidStateError, NotFoundError, ValidationError
from orderflow.models import (
    DesignFeedbackModel,
    DesignModel,
    DesignVersionModel,
    NotificationLogModel,
    WorkflowLogModel,
    WorkflowModel,
)

NOW = datetime(2024, 1, 15, 9, 0, 0)
V1 = "https://cdn.example.com/namecard-v1.png"
V2 = "https://cdn.example.com/namecard-v2.png"


@pytest.fixture()
def owner(make_client):
    return make_client()


@pytest.fixture()
def design(db, owner, make_workflow):
    workflow = make_workflow(owner, status="IN_PROGRESS")
    return designs.create_design(db, workflow.id, V1, "designer")


def _logs(db, workflow_id):
    return db.query(WorkflowLogModel).filter(WorkflowLogModel.workflow_id == workflow_id).all()


class TestCreateDesign:
    def test_first_version(self, db, design):
        assert design.status == "DRAFT"
        assert design.current_version == 1
        assert [(v.version, v.url, v.note, v.uploaded_by) for v in design.versions] == [
            (1, V1, "최초 시안", "designer"),
        ]

    def test_second_design_for_same_workflow(self, db, design):
        with pytest.raises(InvalidStateError):
            designs.create_design(db, design.workflow_id, V2, "designer")
        assert db.query(DesignModel).count() == 1

    def test_missing_workflow(self, db):
        with pytest.raises(NotFoundError):
            designs.create_design(db, "nope", V1, "designer")

    @pytest.mark.parametrize("url", [None, "", "ftp://cdn.example.com/a.png", 42])
    def test_bad_url(self, db, owner, make_workflow, url):
        workflow = make_workflow(owner)
        with pytest.raises(ValidationError):
            designs.create_design(db, workflow.id, url, "designer")
        assert db.query(DesignModel).count() == 0


class TestAddVersion:
    def test_increments_and_resets_to_draft(self, db, design):
        designs.change_status(db, design.id, "PENDING_REVIEW", "designer", now=NOW)

        version = designs.add_version(db, design.id, V2, "designer")

        fresh = designs.get_design(db, design.id)
        assert version.version == 2
        assert version.note == "v2 업로드"
        assert fresh.current_version == 2
        assert fresh.status == "DRAFT"
        assert [v.version for v in fresh.versions] == [1, 2]

    def test_missing_design(self, db):
        with pytest.raises(NotFoundError):
            designs.add_version(db, "nope", V2, "designer")


class TestChangeStatus:
    def test_review_moves_workflow_to_design_uploaded(self, db, design):
        designs.add_version(db, design.id, V2, "designer")

        result = designs.change_status(db, design.id, "PENDING_REVIEW", "designer", now=NOW)

        assert result.previous_status == "DRAFT"
        assert result.transition is not None and result.transition.changed
        workflow = db.get(WorkflowModel, design.workflow_id)
        assert workflow.status == "DESIGN_UPLOADED"
        assert workflow.design_url == V2
        assert workflow.design_uploaded_at == NOW
        assert [(log.from_status, log.to_status, log.changed_by) for log in _logs(db, workflow.id)] == [
            ("IN_PROGRESS", "DESIGN_UPLOADED", "designer"),
        ]

    def test_approval_moves_workflow_to_order_requested(self, db, design):
        designs.change_status(db, design.id, "PENDING_REVIEW", "designer", now=NOW)

        result = designs.change_status(db, design.id, "APPROVED", "client", now=NOW)

        assert result.design.approved_at == NOW
        assert result.design.approved_version == 1
        workflow = db.get(WorkflowModel, design.workflow_id)
        assert workflow.status == "ORDER_REQUESTED"
        assert workflow.order_requested_at == NOW
        assert [log.to_status for log in _logs(db, workflow.id)] == ["DESIGN_UPLOADED", "ORDER_REQUESTED"]

    def test_workflow_elsewhere_is_left_alone(self, db, owner, make_workflow):
        workflow = make_workflow(owner, status="SUBMITTED")
        design = designs.create_design(db, workflow.id, V1, "designer")

        result = designs.change_status(db, design.id, "PENDING_REVIEW", "designer", now=NOW)

        assert result.transition is None
        assert db.get(WorkflowModel, workflow.id).status == "SUBMITTED"
        assert _logs(db, workflow.id) == []

    def test_repeat_is_harmless(self, db, design):
        designs.change_status(db, design.id, "PENDING_REVIEW", "designer", now=NOW)
        again = designs.change_status(db, design.id, "PENDING_REVIEW", "designer", now=NOW)

        assert again.transition is None
        assert len(_logs(db, design.workflow_id)) == 1

    def test_unknown_status(self, db, design):
        with pytest.raises(ValidationError):
            designs.change_status(db, design.id, "PUBLISHED", "designer")

    def test_notify_on_review(self, db, design, dispatcher, email):
        result = designs.change_status(
            db, design.id, "PENDING_REVIEW", "designer", notify=True, dispatcher=dispatcher, now=NOW
        )

        outcomes = result.notification.result(timeout=5)
        assert ("email", "SENT") in {(o.channel, o.status) for o in outcomes}
        assert email.sent[0]["subject"] == "[Polarad] 명함 시안이 업로드되었습니다"

    def test_no_design_notification_without_flag(self, db, design, dispatcher):
        result = designs.change_status(db, design.id, "PENDING_REVIEW", "designer", dispatcher=dispatcher, now=NOW)
        assert result.notification is None


class TestFeedback:
    def test_defaults_to_latest_version(self, db, design):
        latest = designs.add_version(db, design.id, V2, "designer")

        result = designs.add_feedback(db, design.id, "  로고 위치 좋아요  ", "홍길동", author_type="client")

        assert result.feedback.version_id == latest.id
        assert result.feedback.content == "로고 위치 좋아요"
        assert result.notification is None
        assert result.design.status == "DRAFT"

    def test_specific_version(self, db, design):
        first = design.versions[0]
        designs.add_version(db, design.id, V2, "designer")

        result = designs.add_feedback(db, design.id, "v1 이 낫네요", "홍길동", author_type="client", version_id=first.id)

        assert result.feedback.version_id == first.id

    def test_version_of_another_design(self, db, design, owner, make_workflow):
        other = designs.create_design(db, make_workflow(owner, type="NAMETAG").id, V1, "designer")

        with pytest.raises(NotFoundError):
            designs.add_feedback(db, design.id, "hi", "홍길동", version_id=other.versions[0].id)
        assert db.query(DesignFeedbackModel).count() == 0

    def test_revision_request_reopens_design_and_alerts_admin(self, db, design, dispatcher, telegram):
        designs.change_status(db, design.id, "PENDING_REVIEW", "designer", now=NOW)

        result = designs.add_feedback(
            db, design.id, "색상을 바꿔주세요", "홍길동", author_type="client",
            revision_request=True, dispatcher=dispatcher,
        )

        assert result.design.status == "REVISION_REQUESTED"
        assert result.feedback.is_revision_request is True
        result.notification.result(timeout=5)
        admin_texts = [text for chat, text in telegram.sent if chat == "admin-chat"]
        assert any("[수정 요청]" in text and "색상을 바꿔주세요" in text for text in admin_texts)

    def test_admin_reply_mails_client(self, db, design, dispatcher, email):
        result = designs.add_feedback(db, design.id, "수정본 반영했습니다", "디자이너", dispatcher=dispatcher)

        outcomes = result.notification.result(timeout=5)

        assert [(o.channel, o.notification_type) for o in outcomes] == [("email", "design_feedback")]
        assert email.sent[0]["to"] == "owner@example.com"
        log = db.query(NotificationLogModel).one()
        assert log.status == "SENT"

    def test_only_client_requests_revision(self, db, design):
        with pytest.raises(ValidationError):
            designs.add_feedback(db, design.id, "직접 수정", "admin", revision_request=True)

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_empty_content(self, db, design, content):
        with pytest.raises(ValidationError):
            designs.add_feedback(db, design.id, content, "홍길동")

    def test_unknown_author_type(self, db, design):
        with pytest.raises(ValidationError):
            designs.add_feedback(db, design.id, "hi", "bot", author_type="robot")


class TestListAndDelete:
    def test_review_queue_first_with_stats(self, db, owner, make_workflow):
        made = {}
        for type_, status in [("NAMECARD", "APPROVED"), ("NAMETAG", "DRAFT"), ("BLOG", "PENDING_REVIEW"),
                              ("ENVELOPE", "REVISION_REQUESTED")]:
            design = designs.create_design(db, make_workflow(owner, type=type_).id, V1, "designer")
            design.status = status
            made[status] = design.id
        db.commit()

        listing = designs.list_designs(db)

        assert [d.status for d in listing.designs] == ["PENDING_REVIEW", "REVISION_REQUESTED", "DRAFT", "APPROVED"]
        assert listing.stats == {
            "total": 4, "draft": 1, "pending_review": 1, "revision_requested": 1, "approved": 1,
        }
        assert [d.id for d in designs.list_designs(db, workflow_type="BLOG").designs] == [made["PENDING_REVIEW"]]
        assert [d.id for d in designs.list_designs(db, status="DRAFT").designs] == [made["DRAFT"]]

    def test_unknown_filter_status(self, db):
        with pytest.raises(ValidationError):
            designs.list_designs(db, status="LOST")

    def test_delete_design_takes_versions_and_feedback(self, db, design):
        designs.add_feedback(db, design.id, "좋아요", "홍길동", author_type="client")
        workflow_id = design.workflow_id

        designs.delete_design(db, design.id)

        assert db.query(DesignModel).count() == 0
        assert db.query(DesignVersionModel).count() == 0
        assert db.query(DesignFeedbackModel).count() == 0
        assert db.get(WorkflowModel, workflow_id) is not None

    def test_deleting_workflow_removes_design(self, db, design):
        state_machine.delete_workflow(db, design.workflow_id)

        assert db.query(DesignModel).count() == 0
        assert db.query(DesignVersionModel).count() == 0
