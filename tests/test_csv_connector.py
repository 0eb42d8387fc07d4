"""Tests for the CSV connector."""

from datetime import date
from pathlib import Path

import pytest

from flowpilot.connectors.csv_connector import CSVConnector
from flowpilot.exceptions import DataError


SAMPLE_CSV = """Date,Amount,Description,Merchant,Category,Account
2024-01-01,1200.00,RENT JAN,Landlord LLC,Housing,chk
2024-01-05,-2000.00,ACME PAYROLL,Acme Corp,Income,chk
2024-01-06,"$1,045.50",Laptop,Best Buy,Electronics,chk
2024-01-08,12.50,Coffee,,Dining,chk
2024-02-01,1200.00,RENT FEB,Landlord LLC,Housing,chk
,,,,,
"""


@pytest.fixture
def csv_file(tmp_path: Path) -> str:
    """Create a temporary CSV file."""
    file = tmp_path / "test_transactions.csv"
    file.write_text(SAMPLE_CSV)
    return str(file)


class TestCSVConnector:
    @pytest.mark.asyncio
    async def test_pull_csv(self, csv_file: str) -> None:
        connector = CSVConnector(file_path=csv_file)
        dataset = await connector.pull()

        assert len(dataset.transactions) == 5
        assert dataset.source == "csv:test_transactions.csv"
        assert dataset.balances == []

    @pytest.mark.asyncio
    async def test_column_detection(self, csv_file: str) -> None:
        dataset = await CSVConnector(file_path=csv_file).pull()
        rent = dataset.transactions[0]

        assert rent.id == "csv-1"
        assert rent.name == "RENT JAN"
        assert rent.merchant_name == "Landlord LLC"
        assert rent.category == "Housing"
        assert rent.account_id == "chk"
        assert rent.date == date(2024, 1, 1)
        assert dataset.transactions[3].merchant_name is None

    @pytest.mark.asyncio
    async def test_amount_parsing(self, csv_file: str) -> None:
        dataset = await CSVConnector(file_path=csv_file).pull()
        amounts = [t.amount for t in dataset.transactions]
        assert amounts == [1200.0, -2000.0, 1045.5, 12.5, 1200.0]

    @pytest.mark.asyncio
    async def test_expense_income_detection(self, csv_file: str) -> None:
        dataset = await CSVConnector(file_path=csv_file).pull()

        expenses = [t for t in dataset.transactions if t.is_expense]
        income = [t for t in dataset.transactions if t.is_inflow]
        assert len(expenses) == 4
        assert len(income) == 1

    @pytest.mark.asyncio
    async def test_expenses_negative_flips_sign(self, csv_file: str) -> None:
        dataset = await CSVConnector(file_path=csv_file, expenses_negative=True).pull()
        assert dataset.transactions[0].amount == -1200.0
        assert dataset.transactions[1].amount == 2000.0

    @pytest.mark.asyncio
    async def test_period_detection(self, csv_file: str) -> None:
        dataset = await CSVConnector(file_path=csv_file).pull()
        assert dataset.period_start == date(2024, 1, 1)
        assert dataset.period_end == date(2024, 2, 1)

    @pytest.mark.asyncio
    async def test_current_balance_becomes_depository_account(self, csv_file: str) -> None:
        dataset = await CSVConnector(file_path=csv_file, current_balance=2500).pull()

        assert len(dataset.balances) == 1
        assert dataset.balances[0].account_type == "depository"
        assert dataset.liquid_balance == 2500.0

    @pytest.mark.asyncio
    async def test_validate_credentials(self, csv_file: str) -> None:
        connector = CSVConnector(file_path=csv_file)
        assert await connector.validate_credentials()
        assert (await connector.health_check())["healthy"] is True

    @pytest.mark.asyncio
    async def test_missing_file(self) -> None:
        connector = CSVConnector(file_path="/nonexistent/file.csv")
        assert not await connector.validate_credentials()
        with pytest.raises(FileNotFoundError):
            await connector.pull()

    @pytest.mark.asyncio
    async def test_missing_required_columns(self, tmp_path: Path) -> None:
        file = tmp_path / "bad.csv"
        file.write_text("when,what\n2024-01-01,coffee\n")
        with pytest.raises(DataError, match="missing required columns"):
            await CSVConnector(file_path=str(file)).pull()

    @pytest.mark.asyncio
    async def test_bad_date_reports_row(self, tmp_path: Path) -> None:
        file = tmp_path / "bad.csv"
        file.write_text("date,amount,name\n2024-01-01,5,ok\nsometime,5,bad\n")
        with pytest.raises(DataError, match="Row 2: unparseable date 'sometime'"):
            await CSVConnector(file_path=str(file)).pull()

    @pytest.mark.asyncio
    async def test_missing_date_reports_row(self, tmp_path: Path) -> None:
        file = tmp_path / "bad.csv"
        file.write_text("date,amount,name\n2024-01-01,5,ok\n,12.50,Coffee\n")
        with pytest.raises(DataError, match="Row 2: missing date"):
            await CSVConnector(file_path=str(file)).pull()

    @pytest.mark.asyncio
    async def test_bad_amount(self, tmp_path: Path) -> None:
        file = tmp_path / "bad.csv"
        file.write_text("date,amount,name\n2024-01-01,lots,bad\n")
        with pytest.raises(DataError, match="unparseable amount"):
            await CSVConnector(file_path=str(file)).pull()

    @pytest.mark.asyncio
    async def test_explicit_flags_and_ids(self, tmp_path: Path) -> None:
        file = tmp_path / "flags.csv"
        file.write_text(
            "transaction_id,posted_date,total,memo,is_income,pending\n"
            "t-1,2024-03-01,50,Refund,yes,false\n"
            "t-2,2024-03-02,20,Lunch,,TRUE\n"
        )
        dataset = await CSVConnector(file_path=str(file)).pull()

        refund, lunch = dataset.transactions
        assert refund.id == "t-1"
        assert refund.is_income is True
        assert refund.is_expense is False
        assert lunch.pending is True
        assert lunch.is_income is False
