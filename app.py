# app.py
import logging

import streamlit as st
import pandas as pd

from invoice_ui import load_loans_csv, render_invoice_panel
from settings import get_secret, load_settings


# -------------------------
# CONFIG
# -------------------------
APP_VERSION = "v1.0"

logging.basicConfig(
    level=str(get_secret("LOG_LEVEL") or "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

SETTINGS = load_settings()


# -------------------------
# UI
# -------------------------
st.set_page_config(page_title=f"{SETTINGS.brand_name} • Loan Invoices", layout="wide", page_icon="🧾")

with st.sidebar:
    st.markdown(f"### 🧾 {SETTINGS.brand_name}")
    st.caption(f"{SETTINGS.subtitle} • {APP_VERSION}")
    uploaded = st.file_uploader("Loans CSV", type=["csv"], key="loans_csv")

df = pd.DataFrame()
if uploaded is not None:
    try:
        df = load_loans_csv(uploaded)
    except ValueError as e:  # ParserError / EmptyDataError
        st.error("Could not read the CSV file.")
        st.code(str(e), language="text")
        st.stop()

render_invoice_panel(df, SETTINGS)
