"""Source discovery and record normalization.

Claims extracts usually arrive as one spreadsheet per evaluation year, e.g.
``claims_2013.xlsx``, ``claims_2014.xlsx``. This module finds those files,
reads each one with pandas, renames its columns to the canonical names,
tags every row with the evaluation year and concatenates the result into a
single record table with a stable column set::

    file_year | loss_date | <metric>

The file listing carries no ordering guarantee; the triangle builder sorts
its own axes, so neither discovery nor parallel reading needs to.
"""

from concurrent.futures import ThreadPoolExecutor
import logging
from pathlib import Path
import re
from typing import IO, Iterable, List, Optional, Sequence, Union

import pandas as pd

from .config import FILE_YEAR, LOSS_DATE, IngestionConfig, TriangleConfig
from .development import require_columns
from .exceptions import SourceDiscoveryError

logger = logging.getLogger(__name__)

SourceType = Union[str, Path, IO]

EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}


def discover_sources(directory: Union[str, Path], pattern: str = "*.xlsx") -> List[Path]:
    """List source files in a directory matching a glob pattern.

    Args:
        directory: Directory to search (not recursive unless the pattern is).
        pattern: Glob pattern, e.g. ``"*.xlsx"`` or ``"**/claims_*.csv"``.

    Returns:
        Matching files sorted by path.

    Raises:
        SourceDiscoveryError: If the directory does not exist or nothing matches.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise SourceDiscoveryError(f"Source directory not found: {directory}")
    # Skip Excel lock files such as "~$claims_2014.xlsx"
    sources = sorted(
        p for p in directory.glob(pattern) if p.is_file() and not p.name.startswith("~$")
    )
    if not sources:
        raise SourceDiscoveryError(f"No files matching '{pattern}' in {directory}")
    logger.info(f"Discovered {len(sources)} source files in {directory}")
    return sources


def infer_file_year(source: Union[str, Path], pattern: str = r"(\d{4})") -> int:
    """Extract the evaluation year from a file name.

    The last match in the file stem is used, so ``"2014_claims_2013.xlsx"``
    yields 2013.

    Raises:
        SourceDiscoveryError: If the pattern does not match.
    """
    stem = Path(source).stem
    matches = re.findall(pattern, stem)
    if not matches:
        raise SourceDiscoveryError(f"Cannot infer file year from '{Path(source).name}'")
    return int(matches[-1])


def _source_name(source: SourceType) -> str:
    if isinstance(source, (str, Path)):
        return Path(source).name
    return str(getattr(source, "name", "<stream>"))


def _read_table(source: SourceType, sheet_name: Optional[str]) -> pd.DataFrame:
    suffix = Path(_source_name(source)).suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(source)
    if suffix and suffix not in EXCEL_SUFFIXES:
        raise SourceDiscoveryError(f"Unsupported source format '{suffix}': {_source_name(source)}")
    return pd.read_excel(source, sheet_name=sheet_name if sheet_name is not None else 0)


def normalize_columns(table: pd.DataFrame, column_map: dict) -> pd.DataFrame:
    """Strip column names and rename them through ``column_map``."""
    table = table.rename(columns=lambda c: str(c).strip())
    return table.rename(columns=column_map)


def read_source(
    source: SourceType,
    ingestion: Optional[IngestionConfig] = None,
    metric_column: str = "paid",
    file_year: Optional[int] = None,
) -> pd.DataFrame:
    """Read one source into the canonical record layout.

    The evaluation year is taken, in order of preference, from a
    ``file_year`` column in the source, the ``file_year`` argument,
    ``ingestion.file_year``, and finally the file name.

    Args:
        source: Path or file-like object. File-like objects are read as Excel
            unless their ``name`` ends in ``.csv``.
        ingestion: Column map, sheet and file-year settings.
        metric_column: Canonical name of the metric to keep.
        file_year: Evaluation year for this source.

    Returns:
        DataFrame with columns ``file_year``, ``loss_date`` and the metric.

    Raises:
        MissingColumnError: If a canonical column is absent after renaming.
        SourceDiscoveryError: If no evaluation year can be determined.
    """
    ingestion = ingestion or IngestionConfig()
    name = _source_name(source)
    table = normalize_columns(_read_table(source, ingestion.sheet_name), ingestion.column_map)

    if FILE_YEAR not in table.columns:
        year = file_year if file_year is not None else ingestion.file_year
        if year is None:
            if not isinstance(source, (str, Path)):
                raise SourceDiscoveryError(f"No file year given for stream source {name}")
            year = infer_file_year(source, ingestion.file_year_pattern)
        table[FILE_YEAR] = int(year)

    require_columns(table, [FILE_YEAR, LOSS_DATE, metric_column], source=name)
    records = table[[FILE_YEAR, LOSS_DATE, metric_column]].copy()
    logger.debug(f"Read {len(records)} records from {name}")
    return records


def empty_records(metric_column: str = "paid") -> pd.DataFrame:
    """Record table with the canonical columns and no rows."""
    return pd.DataFrame(
        {
            FILE_YEAR: pd.Series(dtype="int64"),
            LOSS_DATE: pd.Series(dtype="datetime64[ns]"),
            metric_column: pd.Series(dtype="float64"),
        }
    )


def load_records(
    sources: Iterable[SourceType],
    ingestion: Optional[IngestionConfig] = None,
    triangle: Optional[TriangleConfig] = None,
) -> pd.DataFrame:
    """Read every source and concatenate into one normalized record table.

    With ``ingestion.max_workers > 1`` sources are read concurrently; all of
    them are gathered before the table is returned.

    Args:
        sources: Paths or file-like objects.
        ingestion: Ingestion settings.
        triangle: Supplies the metric column name.

    Returns:
        Concatenated record table with ``file_year``, ``loss_date`` and the metric.
    """
    ingestion = ingestion or IngestionConfig()
    metric_column = (triangle or TriangleConfig()).metric_column
    source_list: Sequence[SourceType] = list(sources)
    if not source_list:
        logger.info("No sources supplied")
        return empty_records(metric_column)

    def _read(source: SourceType) -> pd.DataFrame:
        return read_source(source, ingestion, metric_column)

    if ingestion.max_workers > 1 and len(source_list) > 1:
        workers = min(ingestion.max_workers, len(source_list))
        logger.debug(f"Reading {len(source_list)} sources with {workers} workers")
        with ThreadPoolExecutor(max_workers=workers) as executor:
            frames = list(executor.map(_read, source_list))
    else:
        frames = [_read(source) for source in source_list]

    non_empty = [frame for frame in frames if not frame.empty]
    if not non_empty:
        return empty_records(metric_column)
    records = pd.concat(non_empty, ignore_index=True)
    logger.info(f"Loaded {len(records)} records from {len(source_list)} sources")
    return records
