"""Pytest configuration and shared fixtures."""

import logging

import matplotlib

matplotlib.use("Agg")

import pandas as pd  # noqa: E402
import pytest  # noqa: E402


@pytest.fixture
def sample_records():
    """Three accident years evaluated at year-ends 2013 to 2015.

    Resulting paid triangle::

                  12     24     36
        2012     100    150    180
        2013      50     90      -
        2014      40      -      -
    """
    return pd.DataFrame(
        {
            "file_year": [2013, 2014, 2014, 2015, 2015, 2015],
            "loss_date": pd.to_datetime(
                [
                    "2012-06-01",
                    "2012-06-01",
                    "2013-03-15",
                    "2012-06-01",
                    "2013-03-15",
                    "2014-11-30",
                ]
            ),
            "paid": [100.0, 150.0, 50.0, 180.0, 90.0, 40.0],
        }
    )


@pytest.fixture
def claims_directory(tmp_path):
    """Yearly CSV extracts with spreadsheet-style column names."""
    extracts = {
        2013: [("2012-06-01", 100.0)],
        2014: [("2012-06-01", 150.0), ("2013-03-15", 50.0)],
        2015: [("2012-06-01", 120.0), ("2012-09-30", 60.0), ("2013-03-15", 90.0)],
    }
    source_dir = tmp_path / "extracts"
    source_dir.mkdir()
    for year, rows in extracts.items():
        frame = pd.DataFrame(rows, columns=["Loss Date", "Paid Loss"])
        frame["Claim Id"] = [f"C{year}-{i}" for i in range(len(rows))]
        frame.to_csv(source_dir / f"claims_{year}.csv", index=False)
    return source_dir


@pytest.fixture
def column_map():
    """Source-to-canonical column names for ``claims_directory``."""
    return {"Loss Date": "loss_date", "Paid Loss": "paid"}


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo handler and level changes made by setup_logging."""
    logger = logging.getLogger("loss_triangles")
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
