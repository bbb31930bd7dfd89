"""Base classes for report writers."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any


class BaseWriter(ABC):
    """Abstract base class for all report writers."""

    @abstractmethod
    def write(self, data: Any, destination: str) -> None:
        """Write data to the named destination (a table name)."""

    def write_tables(self, tables: Mapping[str, Any]) -> None:
        """Write each table in insertion order; destination is the mapping key."""
        for destination, data in tables.items():
            self.write(data, destination)
