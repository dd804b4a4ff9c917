"""Loss Triangles"""

from ._version import __version__

# Submodules pull in pandas and matplotlib; import them only when accessed

__all__ = [
    "__version__",
    "Config",
    "DateParseError",
    "InvalidMetricError",
    "InvalidPeriodError",
    "MissingColumnError",
    "NegativeMaturityError",
    "NegativeMaturityWarning",
    "SourceDiscoveryError",
    "Triangle",
    "TriangleBuilder",
    "TriangleError",
    "add_development_columns",
    "build_triangle",
    "load_records",
    "run_pipeline",
]


def __getattr__(name):
    """Lazy import modules to keep ``import loss_triangles`` light."""
    if name == "Config":
        from .config import Config

        return Config
    elif name in [
        "DateParseError",
        "InvalidMetricError",
        "InvalidPeriodError",
        "MissingColumnError",
        "NegativeMaturityError",
        "SourceDiscoveryError",
        "TriangleError",
    ]:
        from . import exceptions

        return getattr(exceptions, name)
    elif name == "NegativeMaturityWarning":
        from ._warnings import NegativeMaturityWarning

        return NegativeMaturityWarning
    elif name in ["Triangle", "TriangleBuilder", "build_triangle"]:
        from . import triangle

        return getattr(triangle, name)
    elif name == "add_development_columns":
        from .development import add_development_columns

        return add_development_columns
    elif name == "load_records":
        from .ingestion import load_records

        return load_records
    elif name == "run_pipeline":
        from .pipeline import run_pipeline

        return run_pipeline
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
