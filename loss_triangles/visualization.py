"""Charts for development triangles.

WSJ-style line charts of development by origin period and annotated
heatmaps. Missing cells are never drawn as zero: lines skip them and the
heatmap masks them.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from matplotlib.figure import Figure
import matplotlib.pyplot as plt
from matplotlib.ticker import FuncFormatter
import numpy as np
import seaborn as sns

from .triangle import Triangle

logger = logging.getLogger(__name__)

# WSJ Color Palette
WSJ_COLORS = {
    "blue": "#0080C7",  # Primary blue
    "dark_blue": "#003F5C",
    "red": "#D32F2F",
    "green": "#4CAF50",
    "gray": "#666666",  # Secondary text
    "light_gray": "#E0E0E0",  # Grid
    "orange": "#FF9800",
    "purple": "#7B1FA2",
    "teal": "#00796B",
}

COLOR_SEQUENCE = [
    WSJ_COLORS["blue"],
    WSJ_COLORS["red"],
    WSJ_COLORS["green"],
    WSJ_COLORS["orange"],
    WSJ_COLORS["purple"],
    WSJ_COLORS["teal"],
    WSJ_COLORS["dark_blue"],
]


def set_wsj_style():
    """Set matplotlib to use WSJ-style formatting."""
    plt.style.use("seaborn-v0_8-whitegrid")
    plt.rcParams.update(
        {
            "font.family": "sans-serif",
            "font.sans-serif": ["Arial", "Helvetica", "DejaVu Sans"],
            "font.size": 11,
            "axes.titlesize": 14,
            "axes.labelsize": 12,
            "legend.fontsize": 10,
            "axes.spines.top": False,
            "axes.spines.right": False,
            "axes.edgecolor": WSJ_COLORS["gray"],
            "axes.linewidth": 0.8,
            "grid.color": WSJ_COLORS["light_gray"],
            "grid.linewidth": 0.5,
            "lines.linewidth": 2,
        }
    )


def format_currency(value: float, decimals: int = 0, abbreviate: bool = False) -> str:
    """Format value as currency.

    Examples:
        >>> format_currency(1000)
        '$1,000'
        >>> format_currency(1500000, abbreviate=True)
        '$1.5M'
        >>> format_currency(-250)
        '-$250'
    """
    sign = "-" if value < 0 else ""
    value = abs(value)
    if abbreviate:
        if value >= 1e9:
            return f"{sign}${value/1e9:.{decimals or 1}f}B"
        if value >= 1e6:
            return f"{sign}${value/1e6:.{decimals or 1}f}M"
        if value >= 1e3:
            return f"{sign}${value/1e3:.{decimals or 1}f}K"
        return f"{sign}${value:.{decimals}f}"
    return f"{sign}${value:,.{decimals}f}"


def plot_development(
    triangle: Triangle,
    ax: Optional[plt.Axes] = None,
    title: Optional[str] = None,
) -> Figure:
    """Plot cumulative development, one line per origin period.

    Args:
        triangle: Triangle to plot.
        ax: Axes to draw on; a new figure is created when None.
        title: Chart title. Defaults to ``"<Metric> development by origin period"``.

    Returns:
        The figure containing the chart.
    """
    set_wsj_style()
    if ax is None:
        fig, ax = plt.subplots(figsize=(10, 6))
    else:
        fig = ax.get_figure()

    values = triangle.values
    for i, (origin, row) in enumerate(values.iterrows()):
        defined = row.dropna()
        if defined.empty:
            continue
        ax.plot(
            defined.index.to_numpy(),
            defined.to_numpy(),
            marker="o",
            markersize=4,
            color=COLOR_SEQUENCE[i % len(COLOR_SEQUENCE)],
            label=str(origin),
        )

    label = triangle.metric.replace("_", " ").title()
    ax.set_xlabel("Maturity (months)")
    ax.set_ylabel(label)
    ax.set_title(title or f"{label} development by origin period")
    ax.yaxis.set_major_formatter(FuncFormatter(lambda x, _: format_currency(x, abbreviate=True)))
    if triangle.maturities:
        ax.set_xticks(list(triangle.maturities))
    if ax.get_legend_handles_labels()[0]:
        ax.legend(title="Origin", loc="upper left", bbox_to_anchor=(1.0, 1.0), frameon=False)
    fig.tight_layout()
    return fig


def plot_triangle_heatmap(
    triangle: Triangle,
    ax: Optional[plt.Axes] = None,
    annotate: bool = True,
) -> Figure:
    """Annotated heatmap of the triangle with missing cells masked."""
    set_wsj_style()
    if ax is None:
        fig, ax = plt.subplots(figsize=(1.2 * max(len(triangle.maturities), 4) + 2, 6))
    else:
        fig = ax.get_figure()

    if not np.isfinite(triangle.values.to_numpy(dtype="float64")).any():
        ax.set_axis_off()
        ax.set_title(f"{triangle.metric}: no data")
        return fig

    values = triangle.values
    sns.heatmap(
        values,
        mask=triangle.missing_mask().to_numpy(),
        annot=annotate,
        fmt=",.0f",
        cmap="Blues",
        cbar_kws={"label": triangle.metric},
        linewidths=0.5,
        linecolor=WSJ_COLORS["light_gray"],
        ax=ax,
    )
    ax.set_xlabel("Maturity (months)")
    ax.set_ylabel("Origin period")
    ax.set_title(f"{triangle.metric.replace('_', ' ').title()} triangle")
    fig.tight_layout()
    return fig


def save_figure(fig: Figure, path: Union[str, Path], dpi: int = 150) -> Path:
    """Save a figure, creating parent directories, and close it."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Saved figure to {path}")
    return path
