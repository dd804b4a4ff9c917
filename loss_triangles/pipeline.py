"""End-to-end triangle run: discover, load, build, export and chart.

Example:
    Run with a YAML configuration::

        from pathlib import Path
        from loss_triangles.config import Config
        from loss_triangles.pipeline import run_pipeline

        result = run_pipeline(Config.from_yaml(Path("triangle.yaml")))
        print(result.triangle.values)
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd

from .config import Config
from .ingestion import SourceType, discover_sources, load_records
from .reporting import export_triangle
from .triangle import Triangle, TriangleBuilder
from .visualization import plot_development, plot_triangle_heatmap, save_figure

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Outputs of a triangle run."""

    records: pd.DataFrame
    triangle: Triangle
    exported_path: Optional[Path] = None
    figure_paths: List[Path] = field(default_factory=list)


def run_pipeline(
    config: Config, sources: Optional[Sequence[SourceType]] = None
) -> PipelineResult:
    """Build a triangle according to ``config``.

    Args:
        config: Run configuration.
        sources: Explicit sources; when None they are discovered from
            ``config.ingestion.source_directory``.

    Returns:
        Records, triangle and the paths of anything written.
    """
    if sources is None:
        sources = discover_sources(config.ingestion.source_directory, config.ingestion.file_pattern)

    records = load_records(sources, config.ingestion, config.triangle)
    builder = TriangleBuilder(
        metric_column=config.triangle.metric_column,
        months_per_period=config.triangle.months_per_period,
        negative_maturity_policy=config.triangle.negative_maturity_policy,
    )
    triangle = builder.add(records).build()
    result = PipelineResult(records=records, triangle=triangle)

    output_dir = config.output.output_path
    stem = f"{config.triangle.metric_column}_triangle"
    if config.output.export:
        result.exported_path = export_triangle(
            triangle, output_dir / f"{stem}.{config.output.file_format}"
        )
    if config.output.save_plots:
        fmt = config.output.plot_format
        result.figure_paths.append(
            save_figure(plot_development(triangle), output_dir / f"{stem}_development.{fmt}")
        )
        result.figure_paths.append(
            save_figure(plot_triangle_heatmap(triangle), output_dir / f"{stem}_heatmap.{fmt}")
        )

    logger.info(
        f"Pipeline complete: {len(records)} records, triangle shape {triangle.shape}"
    )
    return result
