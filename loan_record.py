# loan_record.py
from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from typing import Any, List, Mapping, Optional

import pandas as pd

from formatting import to_date


# ============================================================
# HELPERS
# ============================================================
def _is_missing(x) -> bool:
    if x is None:
        return True
    if isinstance(x, str):
        return not x.strip()
    try:
        return bool(pd.isna(x))
    except (TypeError, ValueError):
        # list-likes: pd.isna returns an array
        return False


def _opt_str(x) -> Optional[str]:
    if _is_missing(x):
        return None
    # CSV columns with gaps turn 12345 into 12345.0
    if isinstance(x, float) and x.is_integer():
        return str(int(x))
    return str(x).strip()


def _opt_float(x) -> Optional[float]:
    if _is_missing(x):
        return None
    try:
        return float(str(x).replace(",", "").strip())
    except ValueError:
        return None


def _opt_number(x):
    """Keeps ints as ints (loan id / term display), otherwise float."""
    if _is_missing(x):
        return None
    if isinstance(x, bool):
        return int(x)
    if isinstance(x, int):
        return x
    f = _opt_float(x)
    if f is None:
        return None
    return int(f) if f.is_integer() else f


def _opt_date(x) -> Optional[date]:
    return None if _is_missing(x) else to_date(x)


# ============================================================
# MODEL
# ============================================================
@dataclass(frozen=True)
class LoanRecord:
    """Read-only view of one pawn loan row. Absent values stay None."""

    id: Any = None
    transaction_number: Optional[str] = None
    status: Optional[str] = None

    loan_issued_date: Optional[date] = None
    due_date: Optional[date] = None
    birthdate: Optional[date] = None

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    mobile_phone: Optional[str] = None
    home_phone: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None
    identification_info: Optional[str] = None
    customer_number: Optional[str] = None
    referral: Optional[str] = None
    customer_note: Optional[str] = None

    loan_amount: Optional[float] = None
    interest_rate: Optional[float] = None
    interest_amount: Optional[float] = None
    total_payable_amount: Optional[float] = None
    remaining_balance: Optional[float] = None

    loan_term: Any = None
    collateral_description: Optional[str] = None

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "LoanRecord":
        """
        Build from a dict or pandas Series.
        Unknown keys are ignored; NaN / NaT / blank strings count as absent.
        """
        get = row.get
        return cls(
            id=_opt_number(get("id")),
            transaction_number=_opt_str(get("transaction_number")),
            status=_opt_str(get("status")),
            loan_issued_date=_opt_date(get("loan_issued_date")),
            due_date=_opt_date(get("due_date")),
            birthdate=_opt_date(get("birthdate")),
            first_name=_opt_str(get("first_name")),
            last_name=_opt_str(get("last_name")),
            email=_opt_str(get("email")),
            mobile_phone=_opt_str(get("mobile_phone")),
            home_phone=_opt_str(get("home_phone")),
            street_address=_opt_str(get("street_address")),
            city=_opt_str(get("city")),
            state=_opt_str(get("state")),
            zipcode=_opt_str(get("zipcode")),
            identification_info=_opt_str(get("identification_info")),
            customer_number=_opt_str(get("customer_number")),
            referral=_opt_str(get("referral")),
            customer_note=_opt_str(get("customer_note")),
            loan_amount=_opt_float(get("loan_amount")),
            interest_rate=_opt_float(get("interest_rate")),
            interest_amount=_opt_float(get("interest_amount")),
            total_payable_amount=_opt_float(get("total_payable_amount")),
            remaining_balance=_opt_float(get("remaining_balance")),
            loan_term=_opt_number(get("loan_term")),
            collateral_description=_opt_str(get("collateral_description")),
        )

    @property
    def full_name(self) -> Optional[str]:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else None

    @property
    def city_line(self) -> Optional[str]:
        """City, state and zip on one line; absent parts dropped."""
        tail = " ".join(p for p in (self.state, self.zipcode) if p)
        parts = [p for p in (self.city, tail) if p]
        return ", ".join(parts) if parts else None

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def as_loan_record(loan) -> LoanRecord:
    if isinstance(loan, LoanRecord):
        return loan
    return LoanRecord.from_mapping(loan)


def records_from_frame(df: pd.DataFrame) -> List[LoanRecord]:
    if df is None or df.empty:
        return []
    return [LoanRecord.from_mapping(row) for _, row in df.iterrows()]
