"""Tests for development triangle construction."""

import numpy as np
import pandas as pd
import pytest

from loss_triangles._warnings import NegativeMaturityWarning
from loss_triangles.exceptions import (
    DateParseError,
    InvalidMetricError,
    InvalidPeriodError,
    MissingColumnError,
    NegativeMaturityError,
    TriangleError,
)
from loss_triangles.triangle import Triangle, TriangleBuilder, build_triangle


def _records(rows, metric="paid"):
    """Build a record table from (file_year, loss_date, value) tuples."""
    frame = pd.DataFrame(rows, columns=["file_year", "loss_date", metric])
    frame["loss_date"] = pd.to_datetime(frame["loss_date"])
    return frame


class TestBuildTriangle:
    """Test the pivot from records to triangle."""

    def test_two_evaluations_of_one_origin(self):
        """Row 2012 gets 100 at 12 months and 150 at 24 months."""
        triangle = build_triangle(
            _records([(2013, "2012-06-01", 100), (2014, "2012-06-01", 150)])
        )
        assert triangle.origins == (2012,)
        assert triangle.maturities == (12, 24)
        assert triangle.cell(2012, 12) == 100
        assert triangle.cell(2012, 24) == 150

    def test_duplicates_are_summed(self):
        """Two records in one cell add up rather than overwrite."""
        triangle = build_triangle(
            _records([(2013, "2013-02-01", 50), (2013, "2013-08-01", 70)])
        )
        assert triangle.maturities == (0,)
        assert triangle.cell(2013, 0) == 120

    def test_empty_input(self):
        triangle = build_triangle(_records([]))
        assert triangle.origins == ()
        assert triangle.maturities == ()
        assert triangle.is_empty
        assert triangle.shape == (0, 0)
        assert triangle.total() == 0.0

    def test_labels_sorted_and_complete(self, sample_records):
        triangle = build_triangle(sample_records)
        assert triangle.origins == (2012, 2013, 2014)
        assert triangle.maturities == (12, 24, 36)
        assert list(triangle.values.index) == [2012, 2013, 2014]
        assert triangle.values.index.name == "origin_period"
        assert triangle.values.columns.name == "maturity_offset"

    def test_missing_cells(self, sample_records):
        triangle = build_triangle(sample_records)
        assert triangle.cell(2013, 36) is None
        assert triangle.is_missing(2014, 24)
        assert not triangle.is_missing(2014, 12)
        assert int(triangle.missing_mask().to_numpy().sum()) == 3

    def test_zero_is_not_missing(self):
        """A cell that sums to zero is defined and distinguishable from missing."""
        triangle = build_triangle(
            _records(
                [
                    (2014, "2013-05-01", 50),
                    (2014, "2013-07-01", -50),
                    (2015, "2013-05-01", 10),
                    (2015, "2014-05-01", 7),
                ]
            )
        )
        assert triangle.maturities == (12, 24)
        assert triangle.cell(2013, 12) == 0.0
        assert not triangle.is_missing(2013, 12)
        assert triangle.cell(2014, 24) is None
        assert triangle.is_missing(2014, 24)

    def test_conservation_of_total(self, sample_records):
        triangle = build_triangle(sample_records)
        assert triangle.total() == pytest.approx(sample_records["paid"].sum())
        assert triangle.total() == 610.0

    def test_row_order_independence(self):
        """Any permutation of the records gives an identical triangle."""
        rng = np.random.default_rng(42)
        records = pd.DataFrame(
            {
                "file_year": rng.integers(2015, 2020, size=200),
                "loss_date": pd.to_datetime("2014-01-01")
                + pd.to_timedelta(rng.integers(0, 5 * 365, size=200), unit="D"),
                "paid": rng.normal(1000.0, 300.0, size=200),
            }
        )
        with pytest.warns(NegativeMaturityWarning):
            first = build_triangle(records)
        with pytest.warns(NegativeMaturityWarning):
            second = build_triangle(records.sample(frac=1.0, random_state=3))
        assert first.equals(second)
        assert first.values.equals(second.values)

    def test_build_twice_is_identical(self, sample_records):
        assert build_triangle(sample_records).equals(build_triangle(sample_records))

    def test_origin_with_only_blank_values_still_listed(self):
        """An origin referenced by a record appears even if all its cells are missing."""
        triangle = build_triangle(
            _records([(2014, "2013-05-01", 10), (2014, "2014-01-01", np.nan)])
        )
        assert triangle.origins == (2013, 2014)
        assert triangle.maturities == (0, 12)
        assert triangle.cell(2014, 0) is None
        assert triangle.cell(2013, 12) == 10

    def test_negative_maturity_included(self):
        records = _records([(2011, "2012-03-01", 25), (2013, "2012-03-01", 75)])
        with pytest.warns(NegativeMaturityWarning):
            triangle = build_triangle(records)
        assert triangle.maturities == (-12, 12)
        assert triangle.cell(2012, -12) == 25
        assert triangle.total() == 100

    def test_negative_maturity_rejected(self):
        records = _records([(2011, "2012-03-01", 25)])
        with pytest.raises(NegativeMaturityError):
            build_triangle(records, negative_maturity_policy="reject")

    def test_metric_column_is_configurable(self):
        records = _records([(2014, "2013-05-01", 400)], metric="incurred")
        records["paid"] = 1.0
        triangle = build_triangle(records, metric_column="incurred")
        assert triangle.metric == "incurred"
        assert triangle.cell(2013, 12) == 400

    def test_missing_metric_column(self, sample_records):
        with pytest.raises(MissingColumnError, match="incurred"):
            build_triangle(sample_records, metric_column="incurred")

    def test_non_numeric_metric(self, sample_records):
        records = sample_records.astype({"paid": object})
        records.loc[2, "paid"] = "n/a"
        with pytest.raises(InvalidMetricError, match="n/a"):
            build_triangle(records)

    def test_numeric_strings_accepted(self):
        records = _records([(2014, "2013-05-01", "1250.5")])
        assert build_triangle(records).cell(2013, 12) == 1250.5

    def test_date_error_aborts_build(self, sample_records):
        records = sample_records.astype({"loss_date": object})
        records.loc[4, "loss_date"] = "sometime"
        with pytest.raises(DateParseError):
            build_triangle(records)

    def test_pre_augmented_records(self):
        """Tables that already carry the derived columns are pivoted directly."""
        records = pd.DataFrame(
            {"origin_period": [2010, 2010], "maturity_offset": [12, 24], "paid": [3.0, 4.0]}
        )
        triangle = build_triangle(records)
        assert triangle.cell(2010, 24) == 4.0

    def test_pre_augmented_negative_offset_warns(self):
        records = pd.DataFrame(
            {"origin_period": [2012], "maturity_offset": [-12], "paid": [5.0]}
        )
        with pytest.warns(NegativeMaturityWarning):
            triangle = build_triangle(records)
        assert triangle.maturities == (-12,)

    def test_pre_augmented_negative_offset_reject(self):
        records = pd.DataFrame(
            {"origin_period": [2012], "maturity_offset": [-12], "paid": [5.0]}
        )
        with pytest.raises(NegativeMaturityError):
            build_triangle(records, negative_maturity_policy="reject")

    @pytest.mark.parametrize(
        "origins, maturities",
        [([2012.0, np.nan], [12, 24]), ([2012.7, 2013.0], [12, 24]), ([2012, 2013], [12.9, 0])],
    )
    def test_pre_augmented_bad_labels(self, origins, maturities):
        """Missing or fractional labels are errors, never truncated."""
        records = pd.DataFrame(
            {"origin_period": origins, "maturity_offset": maturities, "paid": [1.0, 2.0]}
        )
        with pytest.raises(InvalidPeriodError):
            build_triangle(records)

    def test_quarterly_months(self, sample_records):
        triangle = build_triangle(sample_records, months_per_period=3)
        assert triangle.maturities == (3, 6, 9)


class TestTriangleAccessors:
    """Test triangle views."""

    @pytest.fixture
    def triangle(self, sample_records):
        return build_triangle(sample_records)

    def test_cell_unknown_label(self, triangle):
        with pytest.raises(KeyError, match="Origin period 1999"):
            triangle.cell(1999, 12)
        with pytest.raises(KeyError, match="Maturity offset 48"):
            triangle.cell(2012, 48)

    def test_values_is_a_copy(self, triangle):
        values = triangle.values
        values.loc[2012, 12] = -1
        assert triangle.cell(2012, 12) == 100

    def test_latest_diagonal(self, triangle):
        latest = triangle.latest_diagonal()
        assert latest.to_dict() == {2012: 180.0, 2013: 90.0, 2014: 40.0}
        assert latest.name == "paid"

    def test_to_incremental(self, triangle):
        incremental = triangle.to_incremental()
        assert incremental.cell(2012, 12) == 100
        assert incremental.cell(2012, 24) == 50
        assert incremental.cell(2012, 36) == 30
        assert incremental.cell(2013, 24) == 40
        assert incremental.cell(2013, 36) is None
        assert incremental.cell(2014, 12) == 40
        assert incremental.total() == pytest.approx(180 + 90 + 40)

    def test_to_incremental_gap(self):
        """A value after a missing column cannot be differenced."""
        triangle = build_triangle(
            _records(
                [
                    (2013, "2012-01-01", 10),
                    (2015, "2012-01-01", 30),
                    (2014, "2013-01-01", 5),
                    (2015, "2013-01-01", 8),
                ]
            )
        )
        incremental = triangle.to_incremental()
        assert incremental.cell(2012, 12) == 10
        assert incremental.cell(2012, 36) is None

    def test_link_ratios(self, triangle):
        ratios = triangle.link_ratios()
        assert list(ratios.columns) == ["12-24", "24-36"]
        assert ratios.loc[2012, "12-24"] == pytest.approx(1.5)
        assert ratios.loc[2013, "12-24"] == pytest.approx(1.8)
        assert ratios.loc[2012, "24-36"] == pytest.approx(1.2)
        assert np.isnan(ratios.loc[2014, "12-24"])

    def test_link_ratio_zero_denominator(self):
        triangle = build_triangle(_records([(2013, "2012-01-01", 0), (2014, "2012-01-01", 5)]))
        assert np.isnan(triangle.link_ratios().loc[2012, "12-24"])

    def test_to_long(self, triangle):
        long = triangle.to_long()
        assert list(long.columns) == ["origin_period", "maturity_offset", "paid"]
        assert len(long) == 6
        assert long["paid"].sum() == 610

    def test_to_long_empty(self):
        assert Triangle.empty().to_long().empty

    def test_equals(self, triangle, sample_records):
        other = build_triangle(sample_records.rename(columns={"paid": "incurred"}), "incurred")
        assert not triangle.equals(other)
        assert not triangle.equals("triangle")

    def test_repr(self, triangle):
        assert repr(triangle) == "Triangle(metric='paid', origins=3, maturities=3)"


class TestTriangleBuilder:
    """Test the collect-then-build builder."""

    def test_sources_in_any_order(self, sample_records):
        forward = TriangleBuilder()
        for _, group in sample_records.groupby("file_year"):
            forward.add(group)
        backward = TriangleBuilder()
        for _, group in reversed(list(sample_records.groupby("file_year"))):
            backward.add(group)
        assert forward.build().equals(backward.build())
        assert forward.build().equals(build_triangle(sample_records))

    def test_finalized_after_build(self, sample_records):
        builder = TriangleBuilder().extend([sample_records])
        triangle = builder.build()
        assert builder.finalized
        assert builder.build() is triangle
        with pytest.raises(TriangleError, match="finalized"):
            builder.add(sample_records)

    def test_no_frames(self):
        triangle = TriangleBuilder(metric_column="incurred").build()
        assert triangle.is_empty
        assert triangle.metric == "incurred"

    def test_error_leaves_builder_open(self, sample_records):
        bad = sample_records.astype({"loss_date": object})
        bad.loc[0, "loss_date"] = "??"
        builder = TriangleBuilder().add(bad)
        with pytest.raises(DateParseError):
            builder.build()
        assert not builder.finalized
