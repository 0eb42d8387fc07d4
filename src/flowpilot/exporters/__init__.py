"""Exporters package — convert forecast reports to output formats."""
from flowpilot.exporters.markdown import render_markdown

__all__ = ["render_markdown"]
