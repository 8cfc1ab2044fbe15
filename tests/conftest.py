import sys
from datetime import datetime
from io import BytesIO
from pathlib import Path

import pytest

# Repo root holds flat modules (invoice_pdf.py, loan_record.py, ...).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def sample_loan():
    return {
        "id": 42,
        "transaction_number": "TXN-001",
        "status": "Active",
        "loan_amount": 500,
        "interest_rate": 5,
        "interest_amount": 25,
        "total_payable_amount": 525,
        "remaining_balance": 525,
        "first_name": "Jane",
        "last_name": "Doe",
        "loan_issued_date": "2024-01-01",
        "due_date": "2024-02-01",
        "loan_term": 30,
    }


@pytest.fixture
def full_loan(sample_loan):
    return {
        **sample_loan,
        "email": "jane@example.com",
        "mobile_phone": "555-0100",
        "home_phone": "555-0101",
        "street_address": "12 Main St",
        "city": "Springfield",
        "state": "IL",
        "zipcode": "62701",
        "birthdate": "1990-07-04",
        "identification_info": "DL 123456",
        "customer_number": "C-9",
        "referral": "Walk-in",
        "customer_note": "Prefers email",
        "collateral_description": "Gold ring",
    }


@pytest.fixture
def settings():
    from settings import InvoiceSettings

    return InvoiceSettings()


@pytest.fixture
def generated_at():
    return datetime(2024, 5, 16, 7, 8, 9)


@pytest.fixture
def pdf_text():
    """PDF bytes -> extracted text of every page joined."""
    from pypdf import PdfReader

    def _extract(data: bytes) -> str:
        reader = PdfReader(BytesIO(data))
        return "\n".join(page.extract_text() or "" for page in reader.pages)

    return _extract
