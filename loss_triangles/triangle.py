"""Development triangle construction.

A development triangle arranges a cumulative claims metric by origin period
(rows) and maturity offset in months (columns). Cells with no contributing
records are *missing* and are kept apart from cells whose contributions sum
to zero: a reserving method treats an unobserved point very differently
from an observed zero.

Example:
    Build a paid-loss triangle from a normalized record table::

        from loss_triangles.triangle import build_triangle

        triangle = build_triangle(records, metric_column="paid")
        triangle.cell(2012, 12)      # 100.0
        triangle.cell(2012, 36)      # None (missing)
        triangle.latest_diagonal()   # most mature value per origin
"""

from dataclasses import dataclass, field
import logging
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from .development import (
    MATURITY_OFFSET,
    ORIGIN_PERIOD,
    add_development_columns,
    require_columns,
    validate_development_columns,
)
from .exceptions import InvalidMetricError, TriangleError

logger = logging.getLogger(__name__)


def _empty_values() -> pd.DataFrame:
    return pd.DataFrame(
        index=pd.Index([], dtype="int64", name=ORIGIN_PERIOD),
        columns=pd.Index([], dtype="int64", name=MATURITY_OFFSET),
        dtype="float64",
    )


@dataclass(frozen=True, eq=False)
class Triangle:
    """Dense development triangle with an explicit missing-value marker.

    Missing cells are stored as ``NaN`` in the underlying frame and reported
    as ``None`` by :meth:`cell`.

    Attributes:
        metric: Name of the aggregated metric column.
    """

    _values: pd.DataFrame = field(repr=False)
    metric: str = "paid"

    @classmethod
    def empty(cls, metric: str = "paid") -> "Triangle":
        """Triangle with no origins and no maturities."""
        return cls(_empty_values(), metric)

    @property
    def values(self) -> pd.DataFrame:
        """Copy of the matrix, indexed by origin period and maturity offset."""
        return self._values.copy()

    @property
    def origins(self) -> Tuple[int, ...]:
        """Row labels, ascending."""
        return tuple(int(o) for o in self._values.index)

    @property
    def maturities(self) -> Tuple[int, ...]:
        """Column labels, ascending."""
        return tuple(int(m) for m in self._values.columns)

    @property
    def shape(self) -> Tuple[int, int]:
        return self._values.shape

    @property
    def is_empty(self) -> bool:
        return self._values.size == 0

    def _check_labels(self, origin: int, maturity: int) -> None:
        if origin not in self._values.index:
            raise KeyError(f"Origin period {origin} is not in the triangle")
        if maturity not in self._values.columns:
            raise KeyError(f"Maturity offset {maturity} is not in the triangle")

    def cell(self, origin: int, maturity: int) -> Optional[float]:
        """Return the aggregated value at (origin, maturity).

        Args:
            origin: Origin period (row label).
            maturity: Maturity offset in months (column label).

        Returns:
            The summed metric, or ``None`` if no record contributed.

        Raises:
            KeyError: If either label is not an axis label.
        """
        self._check_labels(origin, maturity)
        value = self._values.at[origin, maturity]
        return None if pd.isna(value) else float(value)

    def is_missing(self, origin: int, maturity: int) -> bool:
        """True when no record contributed to the cell."""
        return self.cell(origin, maturity) is None

    def missing_mask(self) -> pd.DataFrame:
        """Boolean frame, True where a cell is missing."""
        return self._values.isna()

    def total(self) -> float:
        """Sum of all defined cells."""
        return float(np.nansum(self._values.to_numpy(dtype="float64")))

    def latest_diagonal(self) -> pd.Series:
        """Most mature defined value for each origin.

        Origins whose cells are all missing are omitted.
        """
        latest = {}
        for origin, row in self._values.iterrows():
            defined = row.dropna()
            if not defined.empty:
                latest[int(origin)] = float(defined.iloc[-1])
        return pd.Series(latest, name=self.metric, dtype="float64").rename_axis(ORIGIN_PERIOD)

    def to_incremental(self) -> "Triangle":
        """Convert cumulative values to period-on-period increments.

        The first defined cell of a row keeps its cumulative value. A later
        cell whose predecessor column is missing becomes missing, since its
        increment cannot be determined.
        """
        cumulative = self._values
        previous = cumulative.shift(1, axis=1)
        incremental = cumulative - previous

        defined = cumulative.notna()
        first_defined = defined & defined.astype("int64").cumsum(axis=1).eq(1)
        incremental = incremental.mask(first_defined, cumulative)
        return Triangle(incremental, self.metric)

    def link_ratios(self) -> pd.DataFrame:
        """Age-to-age factors between consecutive maturity columns.

        Returns:
            Frame indexed by origin with one column per consecutive pair,
            labelled ``"12-24"`` etc. A factor is missing when either cell is
            missing or the earlier value is zero.
        """
        maturities = list(self._values.columns)
        ratios = pd.DataFrame(index=self._values.index, dtype="float64")
        for left, right in zip(maturities[:-1], maturities[1:]):
            denominator = self._values[left].where(self._values[left] != 0)
            ratios[f"{left}-{right}"] = self._values[right] / denominator
        return ratios

    def to_long(self) -> pd.DataFrame:
        """Tidy (origin_period, maturity_offset, metric) rows for defined cells."""
        if self.is_empty:
            return pd.DataFrame(
                {
                    ORIGIN_PERIOD: pd.Series(dtype="int64"),
                    MATURITY_OFFSET: pd.Series(dtype="int64"),
                    self.metric: pd.Series(dtype="float64"),
                }
            )
        stacked = self._values.stack(future_stack=True).dropna()
        return stacked.rename(self.metric).reset_index()

    def equals(self, other: "Triangle") -> bool:
        """Same metric, same labels, same values and same missing pattern."""
        if not isinstance(other, Triangle) or self.metric != other.metric:
            return False
        if self.origins != other.origins or self.maturities != other.maturities:
            return False
        return self._values.equals(other._values)

    def __repr__(self) -> str:
        return (
            f"Triangle(metric={self.metric!r}, origins={len(self.origins)}, "
            f"maturities={len(self.maturities)})"
        )


def _coerce_metric(records: pd.DataFrame, metric_column: str) -> pd.Series:
    values = records[metric_column]
    if pd.api.types.is_bool_dtype(values):
        raise InvalidMetricError(metric_column, values.head().tolist())
    coerced = pd.to_numeric(values, errors="coerce")
    invalid = coerced.isna() & values.notna()
    if invalid.any():
        raise InvalidMetricError(metric_column, values[invalid].tolist())
    return coerced.astype("float64")


def build_triangle(
    records: pd.DataFrame,
    metric_column: str = "paid",
    months_per_period: int = 12,
    negative_maturity_policy: str = "warn",
) -> Triangle:
    """Pivot a record table into a development triangle.

    Derived columns are computed when ``origin_period`` and
    ``maturity_offset`` are not both present already; supplied ones are
    checked for whole-number labels and the negative-maturity policy. Rows
    and columns are sorted numerically; records are accumulated in (origin,
    maturity, value) order so any permutation of the input gives an identical
    result.

    Args:
        records: Normalized record table.
        metric_column: Numeric column to aggregate.
        months_per_period: Months per year of development.
        negative_maturity_policy: ``"warn"`` or ``"reject"``.

    Returns:
        The development triangle.

    Raises:
        MissingColumnError: If a key column or the metric column is absent.
        DateParseError: If any record has an unparseable date or file year.
        InvalidMetricError: If the metric column holds non-numeric values.
        InvalidPeriodError: If supplied derived columns hold non-integral labels.
        NegativeMaturityError: Under the reject policy.
    """
    require_columns(records, [metric_column])
    if not {ORIGIN_PERIOD, MATURITY_OFFSET} <= set(records.columns):
        records = add_development_columns(
            records,
            months_per_period=months_per_period,
            negative_maturity_policy=negative_maturity_policy,
        )
    else:
        records = validate_development_columns(
            records, negative_maturity_policy=negative_maturity_policy
        )

    if records.empty:
        logger.info("No records supplied; returning an empty triangle")
        return Triangle.empty(metric_column)

    frame = pd.DataFrame(
        {
            ORIGIN_PERIOD: records[ORIGIN_PERIOD].astype("int64").to_numpy(),
            MATURITY_OFFSET: records[MATURITY_OFFSET].astype("int64").to_numpy(),
            metric_column: _coerce_metric(records, metric_column).to_numpy(),
        }
    )
    frame = frame.sort_values(
        [ORIGIN_PERIOD, MATURITY_OFFSET, metric_column], kind="mergesort", na_position="last"
    )

    # min_count=1 keeps cells whose only contributions are blank as missing
    summed = frame.groupby([ORIGIN_PERIOD, MATURITY_OFFSET], sort=True)[metric_column].sum(
        min_count=1
    )
    values = summed.unstack(MATURITY_OFFSET)

    origins = np.sort(frame[ORIGIN_PERIOD].unique())
    maturities = np.sort(frame[MATURITY_OFFSET].unique())
    values = values.reindex(
        index=pd.Index(origins, dtype="int64", name=ORIGIN_PERIOD),
        columns=pd.Index(maturities, dtype="int64", name=MATURITY_OFFSET),
    ).astype("float64")

    logger.info(
        f"Built {metric_column} triangle: {len(origins)} origin periods x "
        f"{len(maturities)} maturities from {len(frame)} records"
    )
    return Triangle(values, metric_column)


class TriangleBuilder:
    """Collects record tables from any number of sources, then builds once.

    The builder holds no labels until :meth:`build` has seen every record,
    so tables may be added in any order. Once built it is finalized.

    Example::

        builder = TriangleBuilder(metric_column="incurred")
        for frame in frames:
            builder.add(frame)
        triangle = builder.build()
    """

    def __init__(
        self,
        metric_column: str = "paid",
        months_per_period: int = 12,
        negative_maturity_policy: str = "warn",
    ):
        self.metric_column = metric_column
        self.months_per_period = months_per_period
        self.negative_maturity_policy = negative_maturity_policy
        self._frames: List[pd.DataFrame] = []
        self._result: Optional[Triangle] = None

    @property
    def finalized(self) -> bool:
        return self._result is not None

    def add(self, records: pd.DataFrame) -> "TriangleBuilder":
        """Queue a record table.

        Raises:
            TriangleError: If the builder has already been finalized.
        """
        if self.finalized:
            raise TriangleError("TriangleBuilder is finalized; create a new builder")
        self._frames.append(records)
        return self

    def extend(self, frames: Iterable[pd.DataFrame]) -> "TriangleBuilder":
        for records in frames:
            self.add(records)
        return self

    def build(self) -> Triangle:
        """Concatenate every queued table and build the triangle.

        Calling ``build`` again returns the same triangle.
        """
        if self._result is not None:
            return self._result
        non_empty = [f for f in self._frames if not f.empty]
        if non_empty:
            records = pd.concat(non_empty, ignore_index=True)
        elif self._frames:
            records = self._frames[0]
        else:
            records = pd.DataFrame(columns=[self.metric_column, ORIGIN_PERIOD, MATURITY_OFFSET])
        self._result = build_triangle(
            records,
            metric_column=self.metric_column,
            months_per_period=self.months_per_period,
            negative_maturity_policy=self.negative_maturity_policy,
        )
        self._frames = []
        return self._result
