"""Data source connectors."""

from flowpilot.connectors.base import BaseConnector
from flowpilot.connectors.csv_connector import CSVConnector

__all__ = ["BaseConnector", "CSVConnector"]
