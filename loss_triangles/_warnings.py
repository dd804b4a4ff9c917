"""Custom warning classes for the loss_triangles package.

These warning classes allow users to programmatically filter, suppress,
or capture warnings using Python's standard ``warnings`` module.

Example:
    Silence negative-maturity diagnostics for a known-dirty extract::

        import warnings
        from loss_triangles._warnings import NegativeMaturityWarning

        warnings.filterwarnings("ignore", category=NegativeMaturityWarning)

    Capture data-quality warnings while building a triangle::

        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always", DataQualityWarning)
            triangle = build_triangle(records)
            quality_issues = [x for x in w if issubclass(x.category, DataQualityWarning)]
"""


class LossTrianglesWarning(UserWarning):
    """Base class for all loss-triangles warnings."""


class DataQualityWarning(LossTrianglesWarning):
    """Data anomalies that do not stop a triangle from being built."""


class NegativeMaturityWarning(DataQualityWarning):
    """A record was evaluated before its own origin period.

    Issued when ``file_year`` precedes the loss year, giving a negative
    maturity offset. The record is still placed in the triangle.
    """
