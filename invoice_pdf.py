# invoice_pdf.py
# Single-page loan invoice (reportlab).
# Layout, top to bottom:
#   header band -> status boxes -> customer info -> financial table -> terms -> footer band
# Body sections take the cursor `y` (PDF points, origin bottom-left) and
# return the next free y below what they drew.

from __future__ import annotations

import asyncio
import logging
import zipfile
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence, Tuple, Union

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from audit import audit
from formatting import NONE_TEXT, format_date, format_money, format_percent, text_or
from loan_record import LoanRecord, as_loan_record
from settings import InvoiceSettings, load_settings

logger = logging.getLogger(__name__)


class InvoiceRenderError(RuntimeError):
    """Drawing or serializing the invoice failed; no partial PDF is returned."""


# -------------------------
# GEOMETRY
# -------------------------
PAGE_SIZE = A4
PAGE_WIDTH, PAGE_HEIGHT = A4
PAGE_MARGIN = 30
CONTENT_X = 50
CONTENT_WIDTH = PAGE_WIDTH - 2 * CONTENT_X

HEADER_HEIGHT = 100
FOOTER_HEIGHT = 70
SECTION_GAP = 16

BOX_HEIGHT = 60
TABLE_ROW_HEIGHT = 25
TABLE_CELL_PADDING = 8
TABLE_AMOUNT_X = PAGE_WIDTH - 150

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

# -------------------------
# COLORS
# -------------------------
DARK = "#2C3E50"
SLATE = "#34495E"
LIGHT = "#ECF0F1"
WHITE = "#FFFFFF"
BORDER = "#BDC3C7"
AMBER = "#F39C12"
GREEN = "#27AE60"
RED = "#E74C3C"
BLUE = "#3498DB"
GRAY = "#95A5A6"

STATUS_COLORS = {
    "active": GREEN,
    "overdue": RED,
    "redeemed": BLUE,
    "forfeited": GRAY,
}
DEFAULT_STATUS_COLOR = DARK


def status_color(status: Optional[str]) -> str:
    return STATUS_COLORS.get(str(status or "").strip().lower(), DEFAULT_STATUS_COLOR)


# ============================================================
# PRIMITIVES
# ============================================================
def _fill(pdf, color: str) -> None:
    pdf.setFillColor(HexColor(color))


def _fit(text: str, font: str, size: float, max_width: float) -> str:
    """Single-line slots (header, boxes, footer): first wrapped line plus '...'."""
    text = str(text)
    if stringWidth(text, font, size) <= max_width:
        return text
    head = simpleSplit(text, font, size, max_width - stringWidth("...", font, size))
    return (head[0] if head else "") + "..."


def _wrap(lines: Sequence[str], font: str, size: float, max_width: float) -> list[str]:
    wrapped: list[str] = []
    for line in lines:
        wrapped.extend(simpleSplit(str(line), font, size, max_width) or [str(line)])
    return wrapped


def draw_detail_box(pdf, x: float, top: float, width: float, height: float, title: str, value: str, color: str) -> None:
    """Filled box with a bold title line and a larger bold value line, white text."""
    _fill(pdf, color)
    pdf.rect(x, top - height, width, height, stroke=0, fill=1)

    _fill(pdf, WHITE)
    pdf.setFont(FONT_BOLD, 9)
    pdf.drawString(x + 10, top - 15, _fit(title, FONT_BOLD, 9, width - 20))
    pdf.setFont(FONT_BOLD, 14)
    pdf.drawString(x + 10, top - 36, _fit(value, FONT_BOLD, 14, width - 20))


def draw_section_title(pdf, title: str, y: float) -> float:
    _fill(pdf, DARK)
    pdf.setFont(FONT_BOLD, 12)
    pdf.drawString(CONTENT_X, y - 12, title)
    return y - 20


# (label, value getter); a getter may return several lines
FieldRow = Tuple[str, Callable[[LoanRecord], Union[str, Sequence[str]]]]


def draw_key_value_column(
    pdf,
    loan: LoanRecord,
    rows: Iterable[FieldRow],
    x: float,
    y: float,
    value_gap: float,
    line_height: float,
    font_size: float,
    max_width: float,
) -> float:
    """
    Label in bold, value offset by value_gap. Values wider than the column
    wrap onto extra lines. Returns y below the last row.
    """
    value_width = max_width - value_gap
    line_step = font_size + 2
    for label, getter in rows:
        baseline = y - font_size
        _fill(pdf, SLATE)
        pdf.setFont(FONT_BOLD, font_size)
        pdf.drawString(x, baseline, label)

        value = getter(loan)
        lines = _wrap([value] if isinstance(value, str) else value, FONT, font_size, value_width)
        _fill(pdf, DARK)
        pdf.setFont(FONT, font_size)
        for i, line in enumerate(lines):
            pdf.drawString(x + value_gap, baseline - i * line_step, line)

        y -= line_height + max(0, len(lines) - 1) * line_step
    return y


def draw_two_columns(
    pdf,
    loan: LoanRecord,
    y: float,
    left: Sequence[FieldRow],
    right: Sequence[FieldRow],
    left_gap: float,
    right_gap: float,
    line_height: float,
    font_size: float,
) -> float:
    """Both columns start at the same y; the cursor continues below the taller one."""
    col2_x = PAGE_WIDTH / 2
    left_end = draw_key_value_column(
        pdf, loan, left, CONTENT_X, y, left_gap, line_height, font_size, col2_x - CONTENT_X - 10
    )
    right_end = draw_key_value_column(
        pdf, loan, right, col2_x, y, right_gap, line_height, font_size, PAGE_WIDTH - CONTENT_X - col2_x
    )
    return min(left_end, right_end)


# ============================================================
# SECTIONS
# ============================================================
def draw_header(pdf, loan: LoanRecord, settings: InvoiceSettings) -> float:
    top = PAGE_HEIGHT
    _fill(pdf, DARK)
    pdf.rect(0, top - HEADER_HEIGHT, PAGE_WIDTH, HEADER_HEIGHT, stroke=0, fill=1)

    # Brand
    _fill(pdf, WHITE)
    pdf.setFont(FONT_BOLD, 28)
    pdf.drawString(CONTENT_X, top - 45, _fit(settings.brand_name, FONT_BOLD, 28, PAGE_WIDTH - 280))
    _fill(pdf, LIGHT)
    pdf.setFont(FONT, 10)
    pdf.drawString(CONTENT_X, top - 62, settings.subtitle)

    # Transaction block (right side)
    txn_center = PAGE_WIDTH - 200 + 75
    _fill(pdf, WHITE)
    pdf.setFont(FONT_BOLD, 12)
    pdf.drawCentredString(txn_center, top - 30, "TRANSACTION #")
    _fill(pdf, AMBER)
    pdf.setFont(FONT_BOLD, 16)
    pdf.drawCentredString(txn_center, top - 50, _fit(text_or(loan.transaction_number), FONT_BOLD, 16, 150))
    _fill(pdf, LIGHT)
    pdf.setFont(FONT, 10)
    pdf.drawCentredString(txn_center, top - 66, f"Loan ID: {text_or(loan.id)}")

    return top - HEADER_HEIGHT - SECTION_GAP


def draw_status_summary(pdf, y: float, loan: LoanRecord) -> float:
    y = draw_section_title(pdf, "LOAN INFORMATION", y)

    column_width = CONTENT_WIDTH / 3
    boxes = [
        ("Status", text_or(loan.status), status_color(loan.status)),
        ("Issued Date", format_date(loan.loan_issued_date), BLUE),
        ("Due Date", format_date(loan.due_date), RED),
    ]
    for i, (title, value, color) in enumerate(boxes):
        draw_detail_box(pdf, CONTENT_X + i * column_width, y, column_width - 10, BOX_HEIGHT, title, value, color)

    return y - BOX_HEIGHT - SECTION_GAP


CUSTOMER_LEFT: Tuple[FieldRow, ...] = (
    ("Full Name:", lambda r: text_or(r.full_name)),
    ("Email:", lambda r: text_or(r.email)),
    ("Mobile Phone:", lambda r: text_or(r.mobile_phone)),
    ("Home Phone:", lambda r: text_or(r.home_phone)),
)

CUSTOMER_RIGHT: Tuple[FieldRow, ...] = (
    ("Address:", lambda r: [text_or(r.street_address)] + ([r.city_line] if r.city_line else [])),
    ("Date of Birth:", lambda r: format_date(r.birthdate)),
    ("ID Info:", lambda r: text_or(r.identification_info)),
)


def draw_customer_info(pdf, y: float, loan: LoanRecord) -> float:
    y = draw_section_title(pdf, "CUSTOMER INFORMATION", y)
    y = draw_two_columns(
        pdf, loan, y, CUSTOMER_LEFT, CUSTOMER_RIGHT,
        left_gap=100, right_gap=80, line_height=18, font_size=10,
    )
    return y - SECTION_GAP


def financial_rows(loan: LoanRecord, currency: str = "$") -> list[tuple[str, str, Optional[str]]]:
    """(label, amount text, accent color); accent None means an alternating plain row."""
    return [
        ("Loan Amount", format_money(loan.loan_amount, currency), None),
        ("Interest Rate", format_percent(loan.interest_rate), None),
        ("Interest Amount", format_money(loan.interest_amount, currency), None),
        ("Total Payable Amount", format_money(loan.total_payable_amount, currency), AMBER),
        ("Remaining Balance", format_money(loan.remaining_balance, currency), GREEN),
    ]


def draw_financial_table(pdf, y: float, loan: LoanRecord, currency: str = "$") -> float:
    y = draw_section_title(pdf, "FINANCIAL DETAILS", y)

    x = CONTENT_X
    pad = TABLE_CELL_PADDING
    rh = TABLE_ROW_HEIGHT
    table_top = y

    # Header row
    _fill(pdf, SLATE)
    pdf.rect(x, table_top - rh, CONTENT_WIDTH, rh, stroke=0, fill=1)
    _fill(pdf, WHITE)
    pdf.setFont(FONT_BOLD, 11)
    pdf.drawString(x + pad, table_top - rh / 2 - 4, "Description")
    pdf.drawString(TABLE_AMOUNT_X + pad, table_top - rh / 2 - 4, "Amount")

    row_top = table_top - rh
    alternate = False
    for label, amount, accent in financial_rows(loan, currency):
        if accent:
            fill, text_color, font = accent, WHITE, FONT_BOLD
        else:
            fill, text_color, font = (LIGHT if alternate else WHITE), DARK, FONT
            alternate = not alternate

        _fill(pdf, fill)
        pdf.rect(x, row_top - rh, CONTENT_WIDTH, rh, stroke=0, fill=1)
        _fill(pdf, text_color)
        pdf.setFont(font, 10)
        pdf.drawString(x + pad, row_top - rh / 2 - 3.5, label)
        pdf.drawString(TABLE_AMOUNT_X + pad, row_top - rh / 2 - 3.5, amount)
        row_top -= rh

    # Border + column divider
    pdf.setStrokeColor(HexColor(BORDER))
    pdf.setLineWidth(0.75)
    pdf.rect(x, row_top, CONTENT_WIDTH, table_top - row_top, stroke=1, fill=0)
    pdf.line(TABLE_AMOUNT_X, row_top, TABLE_AMOUNT_X, table_top)

    return row_top - SECTION_GAP


TERMS_LEFT: Tuple[FieldRow, ...] = (
    ("Loan Term (Days):", lambda r: text_or(r.loan_term)),
    ("Collateral:", lambda r: text_or(r.collateral_description)),
    ("Customer Number:", lambda r: text_or(r.customer_number)),
)

TERMS_RIGHT: Tuple[FieldRow, ...] = (
    ("Referral:", lambda r: text_or(r.referral)),
    ("Notes:", lambda r: text_or(r.customer_note, NONE_TEXT)),
)


def draw_terms(pdf, y: float, loan: LoanRecord) -> float:
    y = draw_section_title(pdf, "LOAN TERMS & DETAILS", y)
    y = draw_two_columns(
        pdf, loan, y, TERMS_LEFT, TERMS_RIGHT,
        left_gap=130, right_gap=80, line_height=16, font_size=9,
    )
    return y - SECTION_GAP


def draw_footer(pdf, settings: InvoiceSettings, generated_at: datetime) -> float:
    """Fixed band at the page bottom. Returns the band's top edge."""
    _fill(pdf, SLATE)
    pdf.rect(0, 0, PAGE_WIDTH, FOOTER_HEIGHT, stroke=0, fill=1)

    _fill(pdf, LIGHT)
    pdf.setFont(FONT, 9)
    center = PAGE_WIDTH / 2
    lines = [
        settings.tagline,
        f"Generated: {generated_at.strftime('%c')}",
        settings.retention_notice,
    ]
    baseline = FOOTER_HEIGHT - 20
    for line in lines:
        pdf.drawCentredString(center, baseline, _fit(line, FONT, 9, PAGE_WIDTH - 2 * PAGE_MARGIN))
        baseline -= 15
    return FOOTER_HEIGHT


# ============================================================
# RENDER
# ============================================================
def build_loan_invoice_pdf(
    loan,
    settings: InvoiceSettings | None = None,
    generated_at: datetime | None = None,
) -> bytes:
    """
    Render one loan invoice and return the PDF bytes.
    `loan` may be a LoanRecord, a dict or a pandas row.
    Raises InvoiceRenderError on any drawing/serialization fault.
    """
    settings = settings or load_settings()
    generated_at = generated_at or datetime.now()
    loan_id = None

    buf = BytesIO()
    try:
        record = as_loan_record(loan)
        loan_id = record.id

        pdf = canvas.Canvas(buf, pagesize=PAGE_SIZE)
        pdf.setTitle(f"Loan Invoice {text_or(record.transaction_number)}")
        pdf.setAuthor(settings.brand_name)

        y = draw_header(pdf, record, settings)
        y = draw_status_summary(pdf, y, record)
        y = draw_customer_info(pdf, y, record)
        y = draw_financial_table(pdf, y, record, settings.currency)
        y = draw_terms(pdf, y, record)
        if y < FOOTER_HEIGHT:
            raise InvoiceRenderError(f"Invoice layout overflows into the footer (y={y:.1f}).")
        draw_footer(pdf, settings, generated_at)

        pdf.showPage()
        pdf.save()
        pdf_bytes = buf.getvalue()
    except InvoiceRenderError as e:
        logger.error("Invoice render failed for loan %s: %s", loan_id, e)
        audit("loan_invoice_rendered", "fail", {"loan_id": loan_id, "error": str(e)})
        raise
    except Exception as e:
        logger.exception("Invoice render failed for loan %s", loan_id)
        audit("loan_invoice_rendered", "fail", {"loan_id": loan_id, "error": str(e)})
        raise InvoiceRenderError(f"Failed to render invoice for loan {loan_id}: {e}") from e
    finally:
        buf.close()

    logger.info("invoice rendered: loan %s (%d bytes)", loan_id, len(pdf_bytes))
    audit("loan_invoice_rendered", "ok", {"loan_id": loan_id, "size": len(pdf_bytes)})
    return pdf_bytes


async def generate_loan_invoice_pdf(
    loan,
    settings: InvoiceSettings | None = None,
    generated_at: datetime | None = None,
) -> bytes:
    """Async wrapper: drawing runs in a worker thread, each call on its own canvas."""
    return await asyncio.to_thread(build_loan_invoice_pdf, loan, settings, generated_at)


# ============================================================
# FILES
# ============================================================
def _name_part(x) -> str:
    return text_or(x).replace("/", "-").replace("\\", "-")


def invoice_filename(loan) -> str:
    record = as_loan_record(loan)
    return f"loan_{_name_part(record.id)}_{_name_part(record.transaction_number)}.pdf"


async def save_loan_invoice_pdf(
    loan,
    output_dir: str | Path | None = None,
    pdf_bytes: bytes | None = None,
    settings: InvoiceSettings | None = None,
) -> Path:
    """
    Write the invoice to <output_dir>/loan_<id>_<transaction_number>.pdf.
    Missing directories are created; an existing file is overwritten.
    Storage errors propagate unchanged.
    """
    settings = settings or load_settings()
    out_dir = Path(output_dir if output_dir is not None else settings.output_dir)
    await asyncio.to_thread(out_dir.mkdir, parents=True, exist_ok=True)

    if pdf_bytes is None:
        pdf_bytes = await generate_loan_invoice_pdf(loan, settings)

    path = out_dir / invoice_filename(loan)
    await asyncio.to_thread(path.write_bytes, pdf_bytes)

    logger.info("invoice saved: %s", path)
    audit("loan_invoice_saved", "ok", {"path": str(path), "size": len(pdf_bytes)})
    return path


def make_loan_invoices_zip(
    loans: Iterable,
    settings: InvoiceSettings | None = None,
    generated_at: datetime | None = None,
) -> bytes:
    """
    One PDF per loan, same file names as save_loan_invoice_pdf.
    A repeated name gets a _2, _3, ... suffix.
    """
    settings = settings or load_settings()
    generated_at = generated_at or datetime.now()

    zbuf = BytesIO()
    used: set[str] = set()
    with zipfile.ZipFile(zbuf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for loan in loans:
            pdf_bytes = build_loan_invoice_pdf(loan, settings=settings, generated_at=generated_at)
            base = invoice_filename(loan)
            name, n = base, 1
            while name in used:
                n += 1
                name = f"{base[:-4]}_{n}.pdf"
            used.add(name)
            zf.writestr(name, pdf_bytes)

    audit("loan_invoices_zipped", "ok", {"count": len(used)})
    return zbuf.getvalue()
