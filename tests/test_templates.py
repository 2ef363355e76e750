"""
Tests for notification templates: labels, reminder keys and HTML escaping.
"""
from datetime import datetime

import pytest

from orderflow.engine import templates


class TestExpiryTemplateKey:
    @pytest.mark.parametrize("remaining, key", [(-1, "expired"), (0, "d0"), (1, "d3"), (3, "d3"), (4, "d7"), (7, "d7")])
    def test_buckets(self, remaining, key):
        assert templates.expiry_template_key(remaining) == key


class TestEscaping:
    def test_brand_with_ampersand(self):
        text = templates.submission_approved("홍길동", "R&D Coffee")
        assert '"R&amp;D Coffee"' in text
        assert "<b>자료 승인 완료</b>" in text

    def test_rejection_reason_markup_is_inert(self):
        _, body = templates.contract_rejected_email("폴라애드", "CT-2024-0001", "<script>x</script>")
        assert "&lt;script&gt;x&lt;/script&gt;" in body
        assert "<script>" not in body

    def test_tracking_number_and_courier(self):
        text = templates.owner_transition_message("NAMECARD", "SHIPPED", "12<34", "CJ&대한통운")
        assert "운송장: 12&lt;34" in text
        assert "택배사: CJ&amp;대한통운" in text

    def test_admin_transition_actor(self):
        text = templates.admin_transition_message("<Acme>", "NAMECARD", "SUBMITTED", "IN_PROGRESS", "kim&lee")
        assert "&lt;Acme&gt; / 명함" in text
        assert "(kim&amp;lee)" in text

    def test_expiry_reminder_name(self):
        text = templates.expiry_reminder("d7", "A<B>", datetime(2024, 2, 1), 7)
        assert "A&lt;B&gt; 담당자님" in text


class TestDesignTemplates:
    def test_feedback_is_clipped_and_escaped(self):
        subject, body = templates.design_email(
            "DESIGN_FEEDBACK", "NAMECARD", 1, "https://my.polarad.kr/x", "홍길동", "<b>" + "가" * 300
        )
        assert subject == "[Polarad] 명함 시안에 답변이 등록되었습니다"
        assert "&lt;b&gt;" in body
        assert "가" * 197 + "..." in body

    def test_unknown_kind_has_no_email(self):
        assert templates.design_email("REVISION_REQUESTED", "NAMECARD", 1, "u", "홍길동") is None

    def test_empty_revision_message(self):
        text = templates.admin_design_message("REVISION_REQUESTED", "Acme", "홍길동", "BLOG", 2, "u", None)
        assert '"(내용 없음)"' in text
        assert "블로그 v2" in text

    def test_feedback_kind_has_no_admin_message(self):
        assert templates.admin_design_message("DESIGN_FEEDBACK", "Acme", "홍길동", "BLOG", 2, "u", "hi") is None


class TestTokenTemplates:
    def test_expired_token(self):
        text = templates.token_expiry_reminder("expired", "Acme", datetime(2024, 1, 10), -5)
        assert "만료되었습니다(2024-01-10)" in text

    def test_admin_expired(self):
        assert "(만료됨, 2024-01-10)" in templates.admin_token_expiry("Acme", -5, datetime(2024, 1, 10))
