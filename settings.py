# settings.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

logger = logging.getLogger(__name__)


# -------------------------
# SECRETS
# -------------------------
def get_secret(key: str):
    import streamlit as st

    # Railway / shell (env vars)
    if os.getenv(key):
        return os.getenv(key)

    # Streamlit Cloud (secrets); raises when no secrets.toml exists
    try:
        if key in st.secrets:
            return st.secrets[key]
    except Exception as e:  # FileNotFoundError / StreamlitSecretNotFoundError
        logger.debug("No streamlit secrets available for %s: %s", key, e)

    return None


# -------------------------
# INVOICE SETTINGS
# -------------------------
DEFAULT_BRAND_NAME = "PAWNFLOW"
DEFAULT_SUBTITLE = "Pawn Shop Management System"
DEFAULT_TAGLINE = "PawnFlow - Professional Pawn Shop Management"
DEFAULT_RETENTION_NOTICE = "This is an official loan document. Please retain for your records."
DEFAULT_CURRENCY = "$"
DEFAULT_OUTPUT_DIR = "./pdfs"


@dataclass(frozen=True)
class InvoiceSettings:
    brand_name: str = DEFAULT_BRAND_NAME
    subtitle: str = DEFAULT_SUBTITLE
    tagline: str = DEFAULT_TAGLINE
    retention_notice: str = DEFAULT_RETENTION_NOTICE
    currency: str = DEFAULT_CURRENCY
    output_dir: str = DEFAULT_OUTPUT_DIR


@lru_cache(maxsize=1)
def load_settings() -> InvoiceSettings:
    """
    Builds InvoiceSettings from env vars / Streamlit secrets.
    Missing keys keep their defaults. Read once per process; call
    load_settings.cache_clear() after changing the environment.
    """
    def _get(key: str, default: str) -> str:
        val = get_secret(key)
        return str(val) if val not in (None, "") else default

    return InvoiceSettings(
        brand_name=_get("INVOICE_BRAND_NAME", DEFAULT_BRAND_NAME),
        subtitle=_get("INVOICE_SUBTITLE", DEFAULT_SUBTITLE),
        tagline=_get("INVOICE_TAGLINE", DEFAULT_TAGLINE),
        retention_notice=_get("INVOICE_RETENTION_NOTICE", DEFAULT_RETENTION_NOTICE),
        currency=_get("INVOICE_CURRENCY", DEFAULT_CURRENCY),
        output_dir=_get("INVOICE_OUTPUT_DIR", DEFAULT_OUTPUT_DIR),
    )
