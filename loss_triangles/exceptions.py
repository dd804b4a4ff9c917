"""Exceptions raised while loading claims data and building triangles.

All errors derive from :class:`TriangleError` so callers can catch the
whole family at once. Each subclass also derives from the closest builtin
exception so existing ``except ValueError`` style handlers keep working.
"""

from typing import Any, Hashable, Optional, Sequence


class TriangleError(Exception):
    """Base class for loss_triangles errors."""


class DateParseError(TriangleError, ValueError):
    """Raised when a date or evaluation-year field cannot be interpreted.

    Attributes:
        value: The offending raw value.
        row: Row label of the offending record, when known.
    """

    def __init__(self, value: Any, row: Optional[Hashable] = None, field: str = "loss_date"):
        self.value = value
        self.row = row
        self.field = field
        location = f" in row {row!r}" if row is not None else ""
        super().__init__(f"Cannot interpret {field} value {value!r}{location} as a calendar date")


class MissingColumnError(TriangleError, KeyError):
    """Raised when required columns are absent from a record table.

    Attributes:
        columns: Names of the missing columns.
        source: Description of where the table came from, when known.
    """

    def __init__(self, columns: Sequence[str], source: Optional[str] = None):
        self.columns = list(columns)
        self.source = source
        origin = f" in {source}" if source else ""
        super().__init__(
            f"Missing required {'column' if len(self.columns) == 1 else 'columns'}"
            f"{origin}: {', '.join(self.columns)}"
        )

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0])


class InvalidMetricError(TriangleError, ValueError):
    """Raised when the metric column holds non-numeric values."""

    def __init__(self, column: str, values: Sequence[Any]):
        self.column = column
        self.values = list(values)
        sample = ", ".join(repr(v) for v in self.values[:5])
        super().__init__(f"Metric column '{column}' has non-numeric values: {sample}")


class NegativeMaturityError(TriangleError, ValueError):
    """Raised for records evaluated before their origin period under the reject policy."""

    def __init__(self, count: int, rows: Sequence[Hashable]):
        self.count = count
        self.rows = list(rows)
        super().__init__(
            f"{count} {'record has' if count == 1 else 'records have'} a negative "
            f"maturity offset (rows: {', '.join(repr(r) for r in self.rows[:10])})"
        )


class SourceDiscoveryError(TriangleError, FileNotFoundError):
    """Raised when record sources cannot be located or tagged with a file year."""


class InvalidPeriodError(TriangleError, ValueError):
    """Raised when a supplied ``origin_period`` or ``maturity_offset`` is not a whole number."""

    def __init__(self, column: str, value: Any, row: Optional[Hashable] = None):
        self.column = column
        self.value = value
        self.row = row
        location = f" in row {row!r}" if row is not None else ""
        super().__init__(f"Column '{column}' value {value!r}{location} is not a whole number")
