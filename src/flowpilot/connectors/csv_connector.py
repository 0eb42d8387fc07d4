"""
CSV Connector — import transactions from bank or aggregator CSV exports.

Amounts follow the bank-feed convention (positive = money out). Exports that
record spending as negative numbers can be flipped with
``expenses_negative=True``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pandas as pd

from flowpilot.connectors.base import BaseConnector
from flowpilot.dates import parse_date
from flowpilot.exceptions import DataError
from flowpilot.models.financial import AccountBalance, FinancialDataset, Transaction

logger = logging.getLogger("flowpilot.connectors.csv")

# Common column name mappings
_COLUMN_ALIASES: dict[str, list[str]] = {
    "date": ["date", "transaction_date", "txn_date", "posted_date", "posting_date", "trans_date"],
    "amount": ["amount", "total", "value", "net_amount"],
    "name": ["name", "description", "memo", "narrative", "details", "desc"],
    "merchant_name": ["merchant_name", "merchant", "vendor", "payee", "counterparty"],
    "display_name": ["display_name", "nickname"],
    "category": ["category", "expense_type", "classification"],
    "account_id": ["account_id", "account", "plaid_account_id"],
    "is_income": ["is_income", "income"],
    "pending": ["pending", "is_pending"],
    "id": ["id", "transaction_id", "txn_id"],
}

_TRUE_STRINGS = frozenset({"1", "true", "yes", "y", "t"})


class CSVConnector(BaseConnector):
    """Import transactions from CSV files.

    Usage::

        connector = CSVConnector(file_path="transactions.csv", current_balance=2500)
        dataset = await connector.pull()

    Columns are detected by name; only ``date`` and ``amount`` are required.
    """

    name = "csv"
    description = "Import transactions from CSV files"

    def __init__(
        self,
        credentials: dict[str, Any] | None = None,
        file_path: str | None = None,
        **options: Any,
    ) -> None:
        super().__init__(credentials, **options)
        creds = credentials or {}
        self.file_path = file_path or options.get("file_path") or creds.get("file_path", "")
        self.encoding = options.get("encoding", "utf-8")
        self.delimiter = options.get("delimiter", ",")
        self.expenses_negative = bool(options.get("expenses_negative", False))
        self.current_balance: float | None = options.get("current_balance")

    async def pull(self) -> FinancialDataset:
        """Read and parse the CSV file into a FinancialDataset.

        Raises:
            FileNotFoundError: If the file does not exist.
            DataError: If a row has an unparseable date or amount.
        """
        path = Path(self.file_path)
        if not path.exists():
            raise FileNotFoundError(f"CSV file not found: {self.file_path}")

        df = pd.read_csv(path, encoding=self.encoding, delimiter=self.delimiter, dtype=str, keep_default_na=False)
        df.columns = df.columns.str.strip().str.lower()

        col_map = self._detect_columns(df)
        transactions = self._parse_transactions(df, col_map)

        dataset = FinancialDataset(transactions=transactions, source=f"csv:{path.name}")
        if self.current_balance is not None:
            dataset.balances = [
                AccountBalance(
                    account_id="csv",
                    name=path.stem,
                    account_type="depository",
                    current_balance=float(self.current_balance),
                )
            ]

        if transactions:
            dates = [t.date for t in transactions]
            dataset.period_start = min(dates)
            dataset.period_end = max(dates)

        logger.info("Parsed %d transactions from %s", len(transactions), path.name)
        return dataset

    async def validate_credentials(self) -> bool:
        """Check if the CSV file exists and is readable."""
        path = Path(self.file_path)
        return path.exists() and path.is_file()

    def _detect_columns(self, df: pd.DataFrame) -> dict[str, str]:
        """Auto-detect column mappings from the DataFrame."""
        col_map: dict[str, str] = {}
        df_cols = set(df.columns)

        for field, aliases in _COLUMN_ALIASES.items():
            for alias in aliases:
                if alias in df_cols:
                    col_map[field] = alias
                    break

        return col_map

    def _parse_transactions(self, df: pd.DataFrame, col_map: dict[str, str]) -> list[Transaction]:
        """Convert DataFrame rows to Transaction objects."""
        date_col = col_map.get("date")
        amount_col = col_map.get("amount")
        if not date_col or not amount_col:
            raise DataError("CSV is missing required columns (date, amount)")

        transactions: list[Transaction] = []
        for row_number, (_, row) in enumerate(df.iterrows(), start=1):
            raw_date = row[date_col].strip()
            raw_amount = row[amount_col].strip()
            if not raw_date and not raw_amount:
                continue
            if not raw_date:
                raise DataError(f"Row {row_number}: missing date")

            try:
                txn_date = parse_date(pd.to_datetime(raw_date))
            except (ValueError, TypeError, DataError) as e:
                raise DataError(f"Row {row_number}: unparseable date {raw_date!r}") from e

            try:
                amount = float(raw_amount.replace(",", "").replace("$", ""))
            except ValueError as e:
                raise DataError(f"Row {row_number}: unparseable amount {raw_amount!r}") from e
            if self.expenses_negative:
                amount = -amount

            def text(field: str, row: pd.Series = row) -> str | None:
                col = col_map.get(field)
                value = row[col].strip() if col else ""
                return value or None

            transactions.append(
                Transaction(
                    id=text("id") or f"csv-{row_number}",
                    name=text("name") or "",
                    merchant_name=text("merchant_name"),
                    display_name=text("display_name"),
                    amount=amount,
                    date=txn_date,
                    category=text("category"),
                    account_id=text("account_id"),
                    is_income=(text("is_income") or "").lower() in _TRUE_STRINGS,
                    pending=(text("pending") or "").lower() in _TRUE_STRINGS,
                )
            )

        return transactions
