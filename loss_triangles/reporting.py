"""Tabular output for development triangles.

Missing cells are written blank in both CSV and Excel output and zero cells
are written as ``0``, so the distinction survives a round trip through a
spreadsheet.
"""

import logging
from pathlib import Path
import re
from typing import Optional, Union

from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
import pandas as pd

from .triangle import Triangle

logger = logging.getLogger(__name__)

LATEST_SHEET = "latest_diagonal"
RATIOS_SHEET = "link_ratios"

# Characters Excel does not allow in worksheet names
_SHEET_FORBIDDEN = re.compile(r"[\[\]:*?/\\]")


def sheet_name(metric: str) -> str:
    """Worksheet name for a metric's triangle.

    Forbidden characters become underscores and the name is cut to Excel's
    31-character limit. A name that would clash (case-insensitively) with
    the auxiliary sheets gets a ``_triangle`` suffix.
    """
    name = _SHEET_FORBIDDEN.sub("_", metric).strip("'")[:31] or "triangle"
    if name.lower() in (LATEST_SHEET, RATIOS_SHEET):
        name = f"{name[:22]}_triangle"
    return name


def format_triangle(triangle: Triangle, decimals: int = 0, missing: str = "") -> pd.DataFrame:
    """Render a triangle as strings with thousands separators.

    Args:
        triangle: Triangle to format.
        decimals: Number of decimal places.
        missing: Text shown for missing cells.

    Returns:
        DataFrame of strings with the triangle's labels.
    """
    values = triangle.values
    return values.apply(
        lambda col: col.map(lambda v: missing if pd.isna(v) else f"{v:,.{decimals}f}")
    ).astype(object)


def export_triangle(
    triangle: Triangle,
    path: Union[str, Path],
    file_format: Optional[str] = None,
) -> Path:
    """Write a triangle to CSV or Excel.

    Args:
        triangle: Triangle to export.
        path: Destination file. Parent directories are created.
        file_format: ``"csv"`` or ``"xlsx"``; inferred from the suffix when None.

    Returns:
        Path of the written file.

    Raises:
        ValueError: If the format is not supported.
    """
    path = Path(path)
    file_format = (file_format or path.suffix.lstrip(".") or "csv").lower()
    if file_format not in ("csv", "xlsx"):
        raise ValueError(f"Unsupported export format: {file_format}. Must be 'csv' or 'xlsx'")
    path.parent.mkdir(parents=True, exist_ok=True)

    if file_format == "csv":
        triangle.values.rename_axis(columns=None).to_csv(path, na_rep="")
    else:
        _write_excel(triangle, path)

    logger.info(f"Exported {triangle.metric} triangle {triangle.shape} to {path}")
    return path


def _write_excel(triangle: Triangle, path: Path) -> None:
    sheet = sheet_name(triangle.metric)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        triangle.values.rename_axis(columns=None).to_excel(writer, sheet_name=sheet)
        triangle.latest_diagonal().to_frame().to_excel(writer, sheet_name=LATEST_SHEET)
        triangle.link_ratios().to_excel(writer, sheet_name=RATIOS_SHEET)

        for ws in writer.book.worksheets:
            for cell in ws[1]:
                cell.font = Font(bold=True)
            ws.column_dimensions["A"].width = 15
            for col_idx in range(2, ws.max_column + 1):
                ws.column_dimensions[get_column_letter(col_idx)].width = 14
        ws = writer.book[sheet]
        for row in ws.iter_rows(min_row=2, min_col=2):
            for cell in row:
                cell.number_format = "#,##0"
