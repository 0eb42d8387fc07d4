"""
Financial data models — transactions and account balances.

These mirror the rows the caller's data store hands to the engine.
Amounts follow the bank-feed convention: positive = money out (expense),
negative = money in (income).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from flowpilot.dates import parse_date
from flowpilot.exceptions import DataError

LIQUID_ACCOUNT_TYPES = frozenset({"depository"})


class Transaction(BaseModel):
    """A single observed transaction. Immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    name: str = ""
    merchant_name: str | None = None
    display_name: str | None = None
    amount: float
    date: date
    category: str | None = None
    account_id: str | None = None
    is_income: bool = False
    pending: bool = False

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> date:
        # DataError is not a ValueError, so pydantic lets it propagate as-is.
        return parse_date(value)

    @property
    def label(self) -> str:
        """Best human-readable name for the counterparty."""
        return self.display_name or self.merchant_name or self.name

    @property
    def identity_key(self) -> str:
        """Normalized grouping key used to find recurring series."""
        return self.label.lower().strip()

    @property
    def is_inflow(self) -> bool:
        return self.is_income or self.amount < 0

    @property
    def is_expense(self) -> bool:
        return not self.is_income and self.amount > 0


class AccountBalance(BaseModel):
    """Point-in-time account balance."""

    account_id: str | None = None
    name: str = ""
    account_type: str  # depository, credit, loan, investment
    subtype: str | None = None
    current_balance: float | None = None

    @property
    def is_liquid(self) -> bool:
        return self.account_type.lower() in LIQUID_ACCOUNT_TYPES


class FinancialDataset(BaseModel):
    """Transactions and balances for one user, as pulled from a connector."""

    transactions: list[Transaction] = Field(default_factory=list)
    balances: list[AccountBalance] = Field(default_factory=list)
    period_start: date | None = None
    period_end: date | None = None
    source: str = "unknown"

    @property
    def liquid_balance(self) -> float:
        """Starting balance for a forecast: sum of depository balances."""
        return sum(b.current_balance or 0.0 for b in self.balances if b.is_liquid)

    @property
    def total_expenses(self) -> float:
        return sum(t.amount for t in self.transactions if t.is_expense)

    @property
    def total_income(self) -> float:
        return sum(abs(t.amount) for t in self.transactions if t.is_inflow)


def coerce_transactions(records: Iterable[Transaction | Mapping[str, Any]]) -> list[Transaction]:
    """Accept Transaction models or raw row mappings from the data store.

    Raises:
        DataError: If a row is missing required fields or has a bad date.
    """
    out: list[Transaction] = []
    for i, record in enumerate(records):
        if isinstance(record, Transaction):
            out.append(record)
            continue
        try:
            out.append(Transaction.model_validate(dict(record)))
        except ValidationError as e:
            raise DataError(f"Malformed transaction at index {i}: {e}") from e
    return out
