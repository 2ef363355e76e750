"""
알림 메시지 템플릿 / 한글 레이블
"""
from __future__ import annotations

from datetime import datetime
from html import escape
from typing import Optional

WORKFLOW_TYPE_LABELS: dict[str, str] = {
    "NAMECARD": "명함",
    "NAMETAG": "명찰",
    "CONTRACT": "계약서",
    "ENVELOPE": "봉투",
    "WEBSITE": "웹사이트",
    "BLOG": "블로그",
    "META_ADS": "메타 광고",
    "NAVER_ADS": "네이버 광고",
}

WORKFLOW_STATUS_LABELS: dict[str, str] = {
    "PENDING": "대기",
    "SUBMITTED": "접수됨",
    "IN_PROGRESS": "제작 중",
    "DESIGN_UPLOADED": "디자인 완료",
    "ORDER_REQUESTED": "주문 요청",
    "ORDER_APPROVED": "주문 승인",
    "COMPLETED": "완료",
    "SHIPPED": "배송됨",
    "CANCELLED": "취소됨",
}

STATE_EMOJI: dict[str, str] = {
    "PENDING": "⏳",
    "SUBMITTED": "📝",
    "IN_PROGRESS": "🎨",
    "DESIGN_UPLOADED": "👀",
    "ORDER_REQUESTED": "🚀",
    "ORDER_APPROVED": "✅",
    "COMPLETED": "🎉",
    "SHIPPED": "📦",
}

# Slack 제작 정보 필드 (submission 컬럼 → 표시 레이블)
SUBMISSION_RECORD_FIELDS: list[tuple[str, str]] = [
    ("brand_name", "브랜드명"),
    ("contact_phone", "연락처"),
    ("contact_email", "이메일"),
    ("delivery_address", "배송 주소"),
    ("website_style", "홈페이지 스타일"),
    ("website_color", "홈페이지 컬러"),
    ("blog_design_note", "블로그 디자인 노트"),
    ("additional_note", "추가 요청사항"),
]


def type_label(workflow_type: str) -> str:
    return WORKFLOW_TYPE_LABELS.get(workflow_type, workflow_type)


def status_label(status: Optional[str]) -> str:
    if status is None:
        return "-"
    return WORKFLOW_STATUS_LABELS.get(status, status)


def _date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def _clip(text: Optional[str], limit: int) -> str:
    if not text:
        return "(내용 없음)"
    return text[:limit] + ("..." if len(text) > limit else "")


# ── Telegram ────────────────────────────────────────────────────────────────
# parse_mode=HTML 로 보내므로 사용자 입력은 모두 escape
def submission_approved(user_name: str, brand_name: str) -> str:
    return (
        "✅ <b>자료 승인 완료</b>\n\n"
        f'{escape(user_name)}님의 "{escape(brand_name)}" 자료가 승인되었습니다.\n'
        "워크플로우가 생성되어 제작이 시작됩니다."
    )


def design_uploaded(workflow_type: str) -> str:
    return (
        "🎨 <b>시안 업로드</b>\n\n"
        f"{workflow_type} 시안이 업로드되었습니다.\n대시보드에서 확인해주세요."
    )


def workflow_completed(workflow_type: str) -> str:
    return f"🎉 <b>제작 완료</b>\n\n{workflow_type} 제작이 완료되었습니다."


def shipped(workflow_type: str, tracking_number: str, courier: Optional[str] = None) -> str:
    courier_line = f"택배사: {escape(courier)}\n" if courier else ""
    return (
        "📦 <b>배송 시작</b>\n\n"
        f"{workflow_type}이(가) 발송되었습니다.\n{courier_line}운송장: {escape(tracking_number)}"
    )


def owner_transition_message(
    workflow_type: str,
    to_status: str,
    tracking_number: Optional[str] = None,
    courier: Optional[str] = None,
) -> Optional[str]:
    """고객에게 알릴 만한 상태 변경이면 메시지, 아니면 None"""
    label = type_label(workflow_type)
    if to_status == "DESIGN_UPLOADED":
        return design_uploaded(label)
    if to_status == "COMPLETED":
        return workflow_completed(label)
    if to_status == "SHIPPED" and tracking_number:
        return shipped(label, tracking_number, courier)
    return None


def admin_transition_message(client_name: str, workflow_type: str, from_status: str, to_status: str, actor: str) -> str:
    return (
        f"{STATE_EMOJI.get(to_status, '📌')} <b>워크플로우 상태 변경</b>\n\n"
        f"{escape(client_name)} / {type_label(workflow_type)}\n"
        f"{status_label(from_status)} → {status_label(to_status)} ({escape(actor)})"
    )


def admin_submission_approved(client_name: str, brand_name: str, workflow_count: int) -> str:
    return (
        "📥 <b>자료 승인</b>\n\n"
        f"{escape(client_name)} ({escape(brand_name)})\n워크플로우 {workflow_count}개 생성"
    )


def service_extended(client_name: str, months: int, new_end: datetime) -> str:
    return (
        "🔁 <b>서비스 기간 연장</b>\n\n"
        f"{escape(client_name)}님의 서비스 기간이 {months}개월 연장되었습니다.\n"
        f"새 종료일: {_date(new_end)}"
    )


def contract_approved(company_name: str, contract_number: str, package_name: str,
                      start_date: datetime, end_date: datetime) -> str:
    return (
        "📄 <b>계약 승인</b>\n\n"
        f"{escape(company_name)} 계약({escape(contract_number)})이 승인되었습니다.\n"
        f"상품: {escape(package_name)}\n"
        f"기간: {_date(start_date)} ~ {_date(end_date)}"
    )


def contract_rejected(company_name: str, contract_number: str, reason: Optional[str]) -> str:
    reason_line = f"\n사유: {escape(reason)}" if reason else ""
    return (
        f"❌ <b>계약 반려</b>\n\n{escape(company_name)} 계약({escape(contract_number)})이 "
        f"반려되었습니다.{reason_line}"
    )


# ── 만료 안내 ───────────────────────────────────────────────────────────────
def expiry_template_key(remaining: int) -> str:
    if remaining < 0:
        return "expired"
    if remaining == 0:
        return "d0"
    if remaining <= 3:
        return "d3"
    return "d7"


def expiry_reminder(template_key: str, client_name: str, end_date: datetime, remaining: int) -> str:
    end = _date(end_date)
    name = escape(client_name)
    if template_key == "expired":
        return (
            "[POLARAD 서비스 만료 안내]\n"
            f"안녕하세요, {name} 담당자님.\n"
            "POLARAD 서비스가 만료되어 데이터 수집이 중단되었습니다.\n"
            "서비스 재개를 원하시면 담당자에게 연락 부탁드립니다."
        )
    if template_key == "d0":
        return (
            "[POLARAD 서비스 만료 당일]\n"
            f"안녕하세요, {name} 담당자님.\n"
            f"POLARAD 서비스가 오늘({end}) 만료됩니다.\n"
            "즉시 연장하시면 서비스가 중단 없이 계속됩니다."
        )
    if template_key == "d3":
        return (
            "[POLARAD 서비스 만료 임박]\n"
            f"안녕하세요, {name} 담당자님.\n"
            f"POLARAD 서비스가 {remaining}일 후({end}) 만료됩니다.\n"
            "연장 없이 만료 시 데이터 수집이 중단됩니다."
        )
    return (
        "[POLARAD 서비스 만료 안내]\n"
        f"안녕하세요, {name} 담당자님.\n"
        f"POLARAD Meta 광고 관리 서비스가 {remaining}일 후({end}) 만료 예정입니다.\n"
        "서비스 연장을 원하시면 담당자에게 연락 부탁드립니다."
    )


def token_expiry_reminder(template_key: str, client_name: str, expires_at: datetime, remaining: int) -> str:
    name = escape(client_name)
    if template_key == "expired":
        status = f"Meta 광고 연동 토큰이 만료되었습니다({_date(expires_at)})."
    elif template_key == "d0":
        status = f"Meta 광고 연동 토큰이 오늘({_date(expires_at)}) 만료됩니다."
    else:
        status = f"Meta 광고 연동 토큰이 {remaining}일 후({_date(expires_at)}) 만료됩니다."
    return (
        "🔑 <b>[POLARAD 토큰 만료 안내]</b>\n\n"
        f"안녕하세요, {name} 담당자님.\n{status}\n"
        "광고 데이터 수집이 끊기지 않도록 대시보드에서 다시 연동해주세요."
    )


def admin_token_expiry(client_name: str, remaining: int, expires_at: datetime) -> str:
    when = "만료됨" if remaining < 0 else f"D-{remaining}"
    return f"🔑 <b>토큰 만료 임박</b>\n\n{escape(client_name)} ({when}, {_date(expires_at)})"


# ── 시안 ────────────────────────────────────────────────────────────────────
def design_email(kind: str, workflow_type: str, version: int, url: str, user_name: str,
                 feedback: Optional[str] = None) -> Optional[tuple[str, str]]:
    """고객 이메일 (업로드 / 관리자 답변). 그 외 종류는 None"""
    label = type_label(workflow_type)
    name = escape(user_name)
    button = f'<p><a href="{escape(url)}">시안 확인하기</a></p>'
    footer = "<p>이 메일은 Polarad에서 자동 발송되었습니다.</p>"
    if kind == "DESIGN_UPLOADED":
        subject = f"[Polarad] {label} 시안이 업로드되었습니다"
        body = (
            f"<h2>🎨 {label} 시안 업로드</h2>"
            f"<p>안녕하세요, {name}님!<br><br>{label} 시안(v{version})이 업로드되었습니다.<br>"
            "아래 버튼을 클릭하여 시안을 확인하고 피드백을 남겨주세요.</p>"
        )
        return subject, body + button + footer
    if kind == "DESIGN_FEEDBACK":
        subject = f"[Polarad] {label} 시안에 답변이 등록되었습니다"
        quote = f"<blockquote>{escape(_clip(feedback, 200))}</blockquote>" if feedback else ""
        body = (
            "<h2>💬 관리자 답변</h2>"
            f"<p>안녕하세요, {name}님!<br><br>{label} 시안에 관리자 답변이 등록되었습니다.</p>"
            f"{quote}"
        )
        return subject, body + button + footer
    return None


def admin_design_message(kind: str, client_name: str, user_name: str, workflow_type: str,
                         version: int, url: str, feedback: Optional[str] = None) -> Optional[str]:
    label = type_label(workflow_type)
    if kind == "REVISION_REQUESTED":
        return (
            f"⚠️ <b>[수정 요청] {escape(client_name)}</b>\n\n"
            f"📋 {label} v{version}\n👤 {escape(user_name)}\n\n"
            f'💬 고객 메시지:\n"{escape(_clip(feedback, 150))}"\n\n'
            f"🔗 {escape(url)}"
        )
    if kind == "DESIGN_APPROVED":
        return (
            f"✅ <b>[시안 확정] {escape(client_name)}</b>\n\n"
            f"📋 {label} v{version}\n👤 {escape(user_name)}\n\n"
            "시안이 최종 확정되었습니다.\n제작을 진행해주세요.\n\n"
            f"🔗 {escape(url)}"
        )
    return None


# ── 이메일 ──────────────────────────────────────────────────────────────────
def contract_rejected_email(company_name: str, contract_number: str, reason: Optional[str]) -> tuple[str, str]:
    subject = f"[POLARAD] 계약 반려 안내 ({contract_number})"
    reason_html = f"<p>사유: {escape(reason)}</p>" if reason else ""
    body = (
        f"<p>안녕하세요, {escape(company_name)} 담당자님.</p>"
        f"<p>요청하신 계약({escape(contract_number)})이 반려되었습니다.</p>"
        f"{reason_html}"
        "<p>문의 사항은 담당자에게 연락 부탁드립니다.</p>"
    )
    return subject, body
