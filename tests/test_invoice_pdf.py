import asyncio
import zipfile
from io import BytesIO

import pytest
from pypdf import PdfReader
from reportlab.lib.pagesizes import A4

import invoice_pdf
from invoice_pdf import (
    InvoiceRenderError,
    build_loan_invoice_pdf,
    generate_loan_invoice_pdf,
    invoice_filename,
    make_loan_invoices_zip,
)
from loan_record import LoanRecord


def test_render_produces_single_a4_page(sample_loan, settings, generated_at):
    data = asyncio.run(generate_loan_invoice_pdf(sample_loan, settings, generated_at))

    assert data.startswith(b"%PDF")
    reader = PdfReader(BytesIO(data))
    assert len(reader.pages) == 1
    page = reader.pages[0]
    assert float(page.mediabox.width) == pytest.approx(A4[0], abs=0.01)
    assert float(page.mediabox.height) == pytest.approx(A4[1], abs=0.01)
    assert reader.metadata.title == "Loan Invoice TXN-001"


def test_end_to_end_contents(sample_loan, settings, generated_at, pdf_text):
    text = pdf_text(build_loan_invoice_pdf(sample_loan, settings, generated_at))

    for expected in ("TXN-001", "Jane Doe", "$500.00", "5.00%", "$25.00", "01/01/2024", "02/01/2024", "Active"):
        assert expected in text
    assert text.count("$525.00") == 2
    assert "Loan ID: 42" in text
    assert f"Generated: {generated_at.strftime('%c')}" in text
    for title in ("LOAN INFORMATION", "CUSTOMER INFORMATION", "FINANCIAL DETAILS", "LOAN TERMS & DETAILS"):
        assert title in text


def test_end_to_end_status_box_is_green(sample_loan, settings, monkeypatch):
    seen = []
    real_box = invoice_pdf.draw_detail_box

    def spy(pdf, x, top, width, height, title, value, color):
        seen.append((title, value, color))
        return real_box(pdf, x, top, width, height, title, value, color)

    monkeypatch.setattr(invoice_pdf, "draw_detail_box", spy)

    build_loan_invoice_pdf(sample_loan, settings)

    assert seen[0] == ("Status", "Active", invoice_pdf.GREEN)


def test_missing_optional_fields_render_sentinels(settings, pdf_text):
    text = pdf_text(build_loan_invoice_pdf({"id": 5, "status": "pending", "loan_amount": 100}, settings))

    assert "N/A" in text
    assert "None" in text
    assert "Loan ID: 5" in text
    assert "$100.00" in text


def test_accepts_loan_record_and_does_not_mutate(sample_loan, settings):
    loan = LoanRecord.from_mapping(sample_loan)
    before = loan.to_dict()

    build_loan_invoice_pdf(loan, settings)

    assert loan.to_dict() == before


def test_settings_drive_branding(sample_loan, pdf_text):
    from settings import InvoiceSettings

    custom = InvoiceSettings(brand_name="ACME PAWN", tagline="Acme tagline", currency="EUR ")
    text = pdf_text(build_loan_invoice_pdf(sample_loan, custom))

    assert "ACME PAWN" in text
    assert "Acme tagline" in text
    assert "EUR 500.00" in text


def test_draw_failure_becomes_render_error(sample_loan, settings, monkeypatch):
    def broken(pdf, y, loan):
        raise ValueError("bad geometry")

    monkeypatch.setattr(invoice_pdf, "draw_terms", broken)

    with pytest.raises(InvoiceRenderError) as exc:
        build_loan_invoice_pdf(sample_loan, settings)
    assert isinstance(exc.value.__cause__, ValueError)


def test_async_render_failure_surfaces_once(sample_loan, settings, monkeypatch):
    monkeypatch.setattr(invoice_pdf, "draw_financial_table", lambda *a, **k: 1 / 0)

    with pytest.raises(InvoiceRenderError):
        asyncio.run(generate_loan_invoice_pdf(sample_loan, settings))


def test_layout_overflow_is_render_error(sample_loan, settings, monkeypatch):
    monkeypatch.setattr(invoice_pdf, "draw_terms", lambda pdf, y, loan: invoice_pdf.FOOTER_HEIGHT - 1)

    with pytest.raises(InvoiceRenderError, match="overflows"):
        build_loan_invoice_pdf(sample_loan, settings)


def test_long_collateral_is_printed_in_full(settings, pdf_text):
    collateral = "18k gold ring with three diamonds, engraved band, appraised by J. Smith on intake"

    text = pdf_text(build_loan_invoice_pdf({"id": 1, "collateral_description": collateral}, settings))

    assert "..." not in text
    for word in collateral.split():
        assert word in text


def test_note_too_long_for_one_page_is_render_error(settings):
    with pytest.raises(InvoiceRenderError, match="overflows"):
        build_loan_invoice_pdf({"id": 1, "customer_note": "word " * 2000}, settings)


def test_invalid_input_is_render_error(settings):
    with pytest.raises(InvoiceRenderError):
        build_loan_invoice_pdf(None, settings)


def test_render_failure_is_audited(sample_loan, settings, monkeypatch, caplog):
    monkeypatch.setattr(invoice_pdf, "draw_terms", lambda *a: 1 / 0)

    with caplog.at_level("INFO", logger="audit"):
        with pytest.raises(InvoiceRenderError):
            build_loan_invoice_pdf(sample_loan, settings)

    records = [r for r in caplog.records if r.name == "audit"]
    assert records[-1].audit["status"] == "fail"
    assert records[-1].audit["action"] == "loan_invoice_rendered"


def test_concurrent_renders_are_independent(sample_loan, settings, pdf_text):
    loans = [{**sample_loan, "id": i, "transaction_number": f"TXN-{i:03d}"} for i in range(1, 4)]

    async def run_all():
        return await asyncio.gather(*(generate_loan_invoice_pdf(ln, settings) for ln in loans))

    results = asyncio.run(run_all())

    for i, data in enumerate(results, start=1):
        text = pdf_text(data)
        assert f"TXN-{i:03d}" in text
        assert f"Loan ID: {i}" in text
        others = [f"TXN-{j:03d}" for j in range(1, 4) if j != i]
        assert not any(o in text for o in others)


def test_invoice_filename(sample_loan):
    assert invoice_filename(sample_loan) == "loan_42_TXN-001.pdf"
    assert invoice_filename({"id": 9}) == "loan_9_N-A.pdf"
    assert invoice_filename({"id": 9, "transaction_number": "A/B"}) == "loan_9_A-B.pdf"


def test_zip_bundle(sample_loan, settings):
    loans = [sample_loan, {**sample_loan, "id": 43, "transaction_number": "TXN-002"}]

    data = make_loan_invoices_zip(loans, settings)

    with zipfile.ZipFile(BytesIO(data)) as zf:
        assert sorted(zf.namelist()) == ["loan_42_TXN-001.pdf", "loan_43_TXN-002.pdf"]
        assert zf.read("loan_43_TXN-002.pdf").startswith(b"%PDF")


def test_zip_bundle_aborts_on_failure(sample_loan, settings, monkeypatch):
    monkeypatch.setattr(invoice_pdf, "draw_header", lambda *a: 1 / 0)

    with pytest.raises(InvoiceRenderError):
        make_loan_invoices_zip([sample_loan], settings)


def test_zip_bundle_renames_repeated_file_names(sample_loan, settings, recwarn):
    loans = [sample_loan, dict(sample_loan), {**sample_loan, "transaction_number": "TXN-001_2"}]

    data = make_loan_invoices_zip(loans, settings)

    with zipfile.ZipFile(BytesIO(data)) as zf:
        assert zf.namelist() == ["loan_42_TXN-001.pdf", "loan_42_TXN-001_2.pdf", "loan_42_TXN-001_2_2.pdf"]
    assert not [w for w in recwarn if issubclass(w.category, UserWarning)]
