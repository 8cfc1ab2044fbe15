# invoice_ui.py
from __future__ import annotations

import streamlit as st
import pandas as pd

from audit import audit
from formatting import text_or
from invoice_pdf import InvoiceRenderError, build_loan_invoice_pdf, invoice_filename, make_loan_invoices_zip
from loan_record import LoanRecord, records_from_frame
from settings import InvoiceSettings

PREVIEW_COLS = [
    "id", "transaction_number", "status", "first_name", "last_name",
    "loan_amount", "total_payable_amount", "remaining_balance", "due_date",
]


# ============================================================
# Helpers
# ============================================================
def loan_label(loan: LoanRecord) -> str:
    return f"{text_or(loan.id)} — {text_or(loan.transaction_number)} — {text_or(loan.full_name)}"


def load_loans_csv(uploaded) -> pd.DataFrame:
    """CSV upload -> DataFrame; ids/phones/zips stay text, dates stay strings."""
    return pd.read_csv(
        uploaded,
        dtype={"transaction_number": str, "mobile_phone": str, "home_phone": str, "zipcode": str,
               "customer_number": str},
    )


# ============================================================
# Panel
# ============================================================
def render_invoice_panel(df: pd.DataFrame, settings: InvoiceSettings, actor: str | None = None):
    st.header("Loan Invoices")
    st.caption("Preview loans, then download a single invoice PDF or a ZIP of all invoices.")

    if df is None or df.empty:
        st.info("No loans loaded. Upload a CSV with one loan per row.")
        return

    show_cols = [c for c in PREVIEW_COLS if c in df.columns]
    st.dataframe(df[show_cols] if show_cols else df, use_container_width=True, hide_index=True)

    loans = records_from_frame(df)
    labels = [loan_label(ln) for ln in loans]

    st.divider()
    st.subheader("Single Invoice")
    idx = st.selectbox("Loan", range(len(loans)), format_func=lambda i: labels[i], key="invoice_pick")
    loan = loans[int(idx)]

    try:
        pdf_bytes = build_loan_invoice_pdf(loan, settings=settings)
    except InvoiceRenderError as e:
        st.error("Invoice could not be rendered.")
        st.code(str(e), language="text")
        return

    st.download_button(
        "⬇️ Download Invoice PDF",
        pdf_bytes,
        file_name=invoice_filename(loan),
        mime="application/pdf",
        use_container_width=True,
        key="invoice_dl_pdf",
    )

    st.divider()
    st.subheader("All Invoices")
    if st.button("Build ZIP", use_container_width=True, key="invoice_zip_btn"):
        try:
            zip_bytes = make_loan_invoices_zip(loans, settings=settings)
        except InvoiceRenderError as e:
            st.error("Batch failed; no ZIP produced.")
            st.code(str(e), language="text")
            return

        audit("loan_invoices_downloaded", "ok", {"count": len(loans)}, actor=actor)
        st.download_button(
            "⬇️ Download ZIP",
            zip_bytes,
            file_name=f"{settings.brand_name.lower()}_loan_invoices.zip",
            mime="application/zip",
            use_container_width=True,
            key="invoice_dl_zip",
        )
