"""
Base connector — abstract interface for transaction data sources.

Connectors pull transactions and account balances from bank exports,
aggregators, or spreadsheets and normalize them into a FinancialDataset.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from flowpilot.models.financial import FinancialDataset

logger = logging.getLogger("flowpilot.connectors")


class BaseConnector(ABC):
    """Abstract base class for all data connectors.

    To create a new connector, subclass this and implement:
    - `name`: Unique connector identifier.
    - `pull()`: Async method that returns a FinancialDataset.
    - `validate_credentials()`: Check that the source is reachable.
    """

    name: str = "base"
    description: str = "Base connector"

    def __init__(self, credentials: dict[str, Any] | None = None, **options: Any) -> None:
        self.credentials = credentials or {}
        self.options = options

    @abstractmethod
    async def pull(self) -> FinancialDataset:
        """Pull transactions and balances from the source."""
        ...

    @abstractmethod
    async def validate_credentials(self) -> bool:
        """Validate that the source is accessible."""
        ...

    async def health_check(self) -> dict[str, Any]:
        """Check connector health and connectivity."""
        try:
            valid = await self.validate_credentials()
            return {"connector": self.name, "healthy": valid, "error": None}
        except OSError as e:
            logger.warning("Health check failed for %s: %s", self.name, e)
            return {"connector": self.name, "healthy": False, "error": str(e)}
