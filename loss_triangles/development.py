"""Derived development columns for claim records.

Each record carries the evaluation year of the file it came from
(``file_year``) and the date of the loss (``loss_date``). From those two
fields this module derives:

    origin_period: calendar year of the loss.
    maturity_offset: months between the origin year and the evaluation year,
        ``(file_year - origin_period) * months_per_period``.

Both are computed record by record and do not depend on row order.
"""

import datetime
import logging
import numbers
from typing import Any, Hashable, Optional
import warnings

import numpy as np
import pandas as pd

from ._warnings import NegativeMaturityWarning
from .config import FILE_YEAR, LOSS_DATE
from .exceptions import (
    DateParseError,
    InvalidPeriodError,
    MissingColumnError,
    NegativeMaturityError,
)

logger = logging.getLogger(__name__)

ORIGIN_PERIOD = "origin_period"
MATURITY_OFFSET = "maturity_offset"

# Words pandas resolves relative to the clock rather than to a calendar date
_RELATIVE_DATE_WORDS = frozenset({"now", "today"})


def _is_missing(value: Any) -> bool:
    if value is None or value is pd.NaT:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def origin_period(loss_date: Any, row: Optional[Hashable] = None) -> int:
    """Return the calendar year of a loss date.

    Args:
        loss_date: A date, datetime, ``pandas.Timestamp``, ``numpy.datetime64``
            or a date string such as ``"2012-06-01"``.
        row: Row label used in the error message.

    Returns:
        Four-digit year of the date.

    Raises:
        DateParseError: If the value is missing or is not a calendar date.
    """
    # NaT is a datetime subclass, so test for missing values first
    if _is_missing(loss_date) or isinstance(loss_date, (bool, numbers.Number)):
        raise DateParseError(loss_date, row)
    if isinstance(loss_date, datetime.date):
        return loss_date.year
    if isinstance(loss_date, str) and (
        not loss_date.strip() or loss_date.strip().lower() in _RELATIVE_DATE_WORDS
    ):
        raise DateParseError(loss_date, row)
    try:
        parsed = pd.Timestamp(loss_date)
    except (ValueError, TypeError, OverflowError) as e:
        raise DateParseError(loss_date, row) from e
    if parsed is pd.NaT:
        raise DateParseError(loss_date, row)
    return int(parsed.year)


def evaluation_year(file_year: Any, row: Optional[Hashable] = None) -> int:
    """Coerce a ``file_year`` tag to an integer year.

    Integral floats (as produced by spreadsheets) and digit strings are
    accepted.

    Raises:
        DateParseError: If the tag is missing or not a whole number.
    """
    if isinstance(file_year, (bool, np.bool_)) or _is_missing(file_year):
        raise DateParseError(file_year, row, field=FILE_YEAR)
    if isinstance(file_year, numbers.Integral):
        return int(file_year)
    if isinstance(file_year, numbers.Real) and float(file_year).is_integer():
        return int(file_year)
    if isinstance(file_year, str) and file_year.strip().isdigit():
        return int(file_year.strip())
    raise DateParseError(file_year, row, field=FILE_YEAR)


def maturity_offset(file_year: int, origin: int, months_per_period: int = 12) -> int:
    """Months of development at evaluation: ``(file_year - origin) * months_per_period``."""
    return (int(file_year) - int(origin)) * months_per_period


def require_columns(records: pd.DataFrame, columns, source: Optional[str] = None) -> None:
    """Raise :class:`MissingColumnError` unless every name in ``columns`` is present."""
    missing = [c for c in columns if c not in records.columns]
    if missing:
        raise MissingColumnError(missing, source)


def _origin_series(dates: pd.Series) -> pd.Series:
    if pd.api.types.is_datetime64_any_dtype(dates):
        bad = dates.isna()
        if bad.any():
            first = bad.idxmax()
            raise DateParseError(dates[first], first)
        return dates.dt.year.astype("int64")
    return pd.Series(
        [origin_period(value, row=idx) for idx, value in dates.items()],
        index=dates.index,
        dtype="int64",
    )


def _file_year_series(years: pd.Series) -> pd.Series:
    if pd.api.types.is_integer_dtype(years) and not pd.api.types.is_bool_dtype(years):
        if years.isna().any():
            first = years.isna().idxmax()
            raise DateParseError(years[first], first, field=FILE_YEAR)
        return years.astype("int64")
    return pd.Series(
        [evaluation_year(value, row=idx) for idx, value in years.items()],
        index=years.index,
        dtype="int64",
    )


def _check_policy(negative_maturity_policy: str) -> None:
    if negative_maturity_policy not in ("warn", "reject"):
        raise ValueError(f"Unknown negative_maturity_policy: {negative_maturity_policy}")


def _apply_negative_policy(records: pd.DataFrame, negative_maturity_policy: str) -> None:
    negative = records[MATURITY_OFFSET] < 0
    if not negative.any():
        return
    rows = records.index[negative].tolist()
    if negative_maturity_policy == "reject":
        raise NegativeMaturityError(len(rows), rows)
    message = (
        f"{len(rows)} {'record was' if len(rows) == 1 else 'records were'} evaluated "
        f"before the origin period (rows: {', '.join(repr(r) for r in rows[:10])}); "
        "keeping them in the triangle"
    )
    logger.warning(message)
    warnings.warn(message, NegativeMaturityWarning, stacklevel=3)


def add_development_columns(
    records: pd.DataFrame,
    months_per_period: int = 12,
    negative_maturity_policy: str = "warn",
) -> pd.DataFrame:
    """Return a copy of ``records`` with ``origin_period`` and ``maturity_offset``.

    Args:
        records: Normalized record table with ``file_year`` and ``loss_date``.
        months_per_period: Months represented by one year of difference.
        negative_maturity_policy: ``"warn"`` to issue a
            :class:`NegativeMaturityWarning` and keep the records, ``"reject"``
            to raise :class:`NegativeMaturityError`.

    Returns:
        New DataFrame with the two derived integer columns appended.

    Raises:
        MissingColumnError: If ``file_year`` or ``loss_date`` is absent.
        DateParseError: For the first unparseable date or file year.
        NegativeMaturityError: Under the reject policy, if any offset is negative.
    """
    _check_policy(negative_maturity_policy)
    require_columns(records, [FILE_YEAR, LOSS_DATE])

    origins = _origin_series(records[LOSS_DATE])
    years = _file_year_series(records[FILE_YEAR])

    augmented = records.copy()
    augmented[ORIGIN_PERIOD] = origins
    augmented[MATURITY_OFFSET] = (years - origins) * months_per_period

    _apply_negative_policy(augmented, negative_maturity_policy)
    logger.debug(f"Derived development columns for {len(augmented)} records")
    return augmented


def _label_series(labels: pd.Series, column: str) -> pd.Series:
    if pd.api.types.is_bool_dtype(labels):
        bad = pd.Series(True, index=labels.index)
    elif pd.api.types.is_integer_dtype(labels):
        bad = labels.isna()
    else:
        numeric = pd.to_numeric(labels, errors="coerce").astype("float64")
        # NaN and inf both fail the whole-number test
        bad = ~np.isfinite(numeric) | (numeric % 1 != 0)
    if bad.any():
        first = bad.idxmax()
        raise InvalidPeriodError(column, labels[first], first)
    return pd.to_numeric(labels).astype("int64")


def validate_development_columns(
    records: pd.DataFrame, negative_maturity_policy: str = "warn"
) -> pd.DataFrame:
    """Check a table whose ``origin_period`` and ``maturity_offset`` were supplied.

    Both columns must hold whole numbers; the negative-maturity policy is
    applied exactly as in :func:`add_development_columns`.

    Returns:
        Copy of ``records`` with both columns cast to ``int64``.

    Raises:
        MissingColumnError: If either column is absent.
        InvalidPeriodError: For the first missing, infinite or fractional label.
        NegativeMaturityError: Under the reject policy, if any offset is negative.
    """
    _check_policy(negative_maturity_policy)
    require_columns(records, [ORIGIN_PERIOD, MATURITY_OFFSET])

    checked = records.copy()
    checked[ORIGIN_PERIOD] = _label_series(records[ORIGIN_PERIOD], ORIGIN_PERIOD)
    checked[MATURITY_OFFSET] = _label_series(records[MATURITY_OFFSET], MATURITY_OFFSET)
    _apply_negative_policy(checked, negative_maturity_policy)
    return checked
