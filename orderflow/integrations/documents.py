"""
계약서 PDF 렌더링 (reportlab)

한글은 reportlab 내장 CID 폰트(HYGothic-Medium)로 그린다. 별도 폰트 파일 불필요.
"""
from __future__ import annotations

import io
from datetime import datetime
from html import escape
from typing import Any

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

KOREAN_FONT = "HYGothic-Medium"

BRAND_NAVY = colors.HexColor("#0B1D3A")
LABEL_BG = colors.HexColor("#F3F4F6")


def _register_font() -> None:
    if KOREAN_FONT not in pdfmetrics.getRegisteredFontNames():
        pdfmetrics.registerFont(UnicodeCIDFont(KOREAN_FONT))


def _fmt(value: Any) -> str:
    if value is None or value == "":
        return "-"
    if isinstance(value, datetime):
        return value.strftime("%Y년 %m월 %d일")
    if isinstance(value, float):
        return f"{value:,.0f}원"
    return str(value)


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "ContractTitle", parent=base["Title"], fontName=KOREAN_FONT, fontSize=18,
            textColor=BRAND_NAVY, spaceAfter=6 * mm,
        ),
        "body": ParagraphStyle("ContractBody", parent=base["Normal"], fontName=KOREAN_FONT, fontSize=10, leading=15),
        "badge": ParagraphStyle(
            "ContractBadge", parent=base["Normal"], fontName=KOREAN_FONT, fontSize=10,
            textColor=colors.HexColor("#00B8A9"),
        ),
    }


def render_contract_document(fields: dict[str, Any]) -> bytes:
    """계약 필드로 A4 PDF 계약서를 만들어 바이트로 반환"""
    _register_font()
    styles = _styles()

    rows = [
        ("계약번호", fields.get("contract_number")),
        ("상호", fields.get("company_name")),
        ("대표자", fields.get("ceo_name")),
        ("사업자등록번호", fields.get("business_number")),
        ("주소", fields.get("address")),
        ("담당자", fields.get("contact_name")),
        ("연락처", fields.get("contact_phone")),
        ("이메일", fields.get("contact_email")),
        ("상품", fields.get("package_name")),
        ("월 이용료", fields.get("monthly_fee")),
        ("계약 기간", f"{fields.get('contract_period')}개월"),
        ("총 금액", fields.get("total_amount")),
        ("시작일", fields.get("start_date")),
        ("종료일", fields.get("end_date")),
        ("서명일", fields.get("signed_at")),
    ]
    # Paragraph 는 마크업을 해석하므로 값은 escape
    data = [
        [Paragraph(label, styles["body"]), Paragraph(escape(_fmt(value)), styles["body"])]
        for label, value in rows
    ]
    table = Table(data, colWidths=[40 * mm, 120 * mm])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (0, -1), LABEL_BG),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#D1D5DB")),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]))

    story = [Paragraph("서비스 이용 계약서", styles["title"])]
    if fields.get("is_promotion"):
        story.append(Paragraph("프로모션 적용 계약", styles["badge"]))
        story.append(Spacer(1, 3 * mm))
    story.extend([
        table,
        Spacer(1, 8 * mm),
        Paragraph("위 내용으로 서비스 이용 계약을 체결합니다.", styles["body"]),
    ])

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=20 * mm,
        rightMargin=20 * mm,
        topMargin=20 * mm,
        bottomMargin=20 * mm,
        title=f"서비스 이용 계약서 {_fmt(fields.get('contract_number'))}",
    )
    doc.build(story)
    return buffer.getvalue()
