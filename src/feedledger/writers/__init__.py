"""Writers module for exporting evaluation results."""

from feedledger.writers.base import BaseWriter
from feedledger.writers.report_writer import ReportWriter, pivot_records, serialize

__all__ = ["BaseWriter", "ReportWriter", "pivot_records", "serialize"]
