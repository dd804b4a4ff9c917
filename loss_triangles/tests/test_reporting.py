"""Tests for triangle export and formatting."""

from openpyxl import load_workbook
import pandas as pd
import pytest

from loss_triangles.reporting import export_triangle, format_triangle, sheet_name
from loss_triangles.triangle import Triangle, build_triangle


@pytest.fixture
def triangle():
    """Triangle with a zero cell and a missing cell."""
    records = pd.DataFrame(
        {
            "file_year": [2014, 2014, 2015, 2015],
            "loss_date": pd.to_datetime(["2013-02-01", "2013-04-01", "2013-02-01", "2014-06-30"]),
            "paid": [1500.0, -1500.0, 2500.0, 1234567.0],
        }
    )
    return build_triangle(records)


class TestFormatTriangle:
    """Test display formatting."""

    def test_thousands_and_missing(self, triangle):
        formatted = format_triangle(triangle, missing="-")
        assert formatted.loc[2013, 12] == "0"
        assert formatted.loc[2013, 24] == "2,500"
        assert formatted.loc[2014, 12] == "1,234,567"
        assert formatted.loc[2014, 24] == "-"

    def test_decimals(self, triangle):
        assert format_triangle(triangle, decimals=2).loc[2013, 24] == "2,500.00"

    def test_empty(self):
        assert format_triangle(Triangle.empty()).empty


class TestExportTriangle:
    """Test CSV and Excel export."""

    def test_csv_keeps_missing_blank(self, triangle, tmp_path):
        path = export_triangle(triangle, tmp_path / "out" / "paid.csv")
        lines = path.read_text().splitlines()
        assert lines[0] == "origin_period,12,24"
        assert lines[1] == "2013,0.0,2500.0"
        assert lines[2] == "2014,1234567.0,"

    def test_csv_read_back(self, triangle, tmp_path):
        path = export_triangle(triangle, tmp_path / "paid.csv")
        frame = pd.read_csv(path, index_col=0)
        assert frame.loc[2013, "12"] == 0
        assert pd.isna(frame.loc[2014, "24"])

    def test_xlsx(self, triangle, tmp_path):
        path = export_triangle(triangle, tmp_path / "paid.xlsx")
        workbook = load_workbook(path)
        assert workbook.sheetnames == ["paid", "latest_diagonal", "link_ratios"]
        sheet = workbook["paid"]
        assert sheet["A1"].value == "origin_period"
        assert sheet["B1"].value == 12
        assert sheet["B2"].value == 0
        assert sheet["C3"].value is None
        assert sheet["A1"].font.bold

    def test_xlsx_metric_named_like_auxiliary_sheet(self, triangle, tmp_path):
        renamed = Triangle(triangle.values, "latest_diagonal")
        workbook = load_workbook(export_triangle(renamed, tmp_path / "ld.xlsx"))
        assert workbook.sheetnames == ["latest_diagonal_triangle", "latest_diagonal", "link_ratios"]

    @pytest.mark.parametrize(
        "metric, expected",
        [
            ("paid", "paid"),
            ("paid/incurred [net]", "paid_incurred _net_"),
            ("LINK_RATIOS", "LINK_RATIOS_triangle"),
            ("x" * 40, "x" * 31),
            ("''", "triangle"),
        ],
    )
    def test_sheet_name(self, metric, expected):
        assert sheet_name(metric) == expected

    def test_format_overrides_suffix(self, triangle, tmp_path):
        path = export_triangle(triangle, tmp_path / "paid.dat", file_format="csv")
        assert path.read_text().startswith("origin_period")

    def test_unsupported_format(self, triangle, tmp_path):
        with pytest.raises(ValueError, match="Unsupported export format"):
            export_triangle(triangle, tmp_path / "paid.parquet")

    def test_empty_triangle(self, tmp_path):
        path = export_triangle(Triangle.empty(), tmp_path / "empty.csv")
        assert path.exists()
