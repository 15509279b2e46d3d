"""
Render adapter for collapsed power maps.

prepare_raster() turns a collapsed 2-D array into the contract expected by
the rendering backend: values already clipped into the value range, paired
with the row and column labels in array order. The remaining functions draw
rasters with matplotlib: one heatmap per condition plus a vertical color
legend.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.colors import Colormap, LinearSegmentedColormap

from ieeg_power.labeled import LabeledArray
from ieeg_power.reduce import ValueRange, clip, symmetric_value_range

logger = logging.getLogger(__name__)

PALETTES = {
    "BlueGrayRed": ["cyan", "navy", "gray", "darkred", "yellow"],
    "BlueWhiteRed": [
        "#053061", "#2166ac", "#4393c3", "#92c5de", "#d1e5f0", "#ffffff",
        "#fddbc7", "#f4a582", "#d6604d", "#b2182b", "#67001f",
    ],
}

AXIS_LABELS = {
    "Time": "Time (s)",
    "Frequency": "Frequency (Hz)",
    "Trial": "Trial",
    "Electrode": "Electrode",
}


@dataclass(frozen=True)
class Raster:
    """
    Clipped 2-D map ready for rendering.

    Attributes:
        values: 2-D array clipped into value_range, shape (n_rows, n_columns)
        row_labels: Labels of the first dimension (drawn on the x axis)
        column_labels: Labels of the second dimension (drawn on the y axis)
        dims: (row dimension name, column dimension name)
        value_range: Color range the values were clipped to
    """

    values: np.ndarray
    row_labels: np.ndarray
    column_labels: np.ndarray
    dims: tuple[str, str]
    value_range: ValueRange


def make_palette(colors: str | Sequence[str] = "BlueGrayRed", n: int = 255) -> Colormap:
    """
    Build a color lookup table by interpolating a list of colors.

    Args:
        colors: Palette name from PALETTES or a list of matplotlib colors
        n: Number of colors in the table

    Returns:
        LinearSegmentedColormap with `n` entries
    """
    if isinstance(colors, str):
        if colors not in PALETTES:
            raise ValueError(
                f"Unknown palette '{colors}'. Available palettes: {list(PALETTES)}"
            )
        name, colors = colors, PALETTES[colors]
    else:
        name = "custom"
    if len(colors) < 2:
        raise ValueError("A palette needs at least two colors")
    return LinearSegmentedColormap.from_list(name, list(colors), N=n)


def prepare_raster(
    array: LabeledArray,
    value_range: ValueRange | tuple[float, float] | None = None,
    mode: str = "legacy",
) -> Raster:
    """
    Clip a 2-D map into its value range and pair it with its axis labels.

    Args:
        array: 2-D LabeledArray, e.g. collapse(..., keep=["Time", "Frequency"])
        value_range: Explicit range, or None for a range symmetric around zero
        mode: Clip mode ('legacy' or 'symmetric')

    Returns:
        Raster

    Raises:
        ValueError: If the array is not 2-D
    """
    if array.ndim != 2:
        raise ValueError(f"A raster needs a 2-D array, got {array!r}")
    if value_range is None:
        value_range = symmetric_value_range(array)
    elif not isinstance(value_range, ValueRange):
        value_range = ValueRange(*value_range)

    clipped = clip(array, value_range.low, value_range.high, mode=mode)
    rows, columns = array.dims
    return Raster(
        values=clipped.data,
        row_labels=array.axis(rows),
        column_labels=array.axis(columns),
        dims=(rows, columns),
        value_range=value_range,
    )


def plot_raster(
    raster: Raster,
    ax: plt.Axes | None = None,
    cmap: Colormap | str = "BlueGrayRed",
    title: str = "",
):
    """
    Draw a raster as a heatmap, rows on the x axis and columns on the y axis.

    Returns:
        The matplotlib QuadMesh (usable for a colorbar)
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 4))
    if isinstance(cmap, str):
        cmap = make_palette(cmap)

    mesh = ax.pcolormesh(
        raster.row_labels,
        raster.column_labels,
        raster.values.T,
        cmap=cmap,
        vmin=raster.value_range.low,
        vmax=raster.value_range.high,
        shading="nearest",
    )
    ax.set_xlabel(AXIS_LABELS.get(raster.dims[0], raster.dims[0]))
    ax.set_ylabel(AXIS_LABELS.get(raster.dims[1], raster.dims[1]))
    if title:
        ax.set_title(title)
    return mesh


def plot_value_legend(
    ax: plt.Axes, value_range: ValueRange, cmap: Colormap, n: int = 255
) -> None:
    """Draw a vertical color legend with ticks at the bounds and zero."""
    levels = np.linspace(value_range.low, value_range.high, n)
    ax.pcolormesh(
        [0.0, 1.0],
        levels,
        np.tile(levels[:, None], (1, 2)),
        cmap=cmap,
        vmin=value_range.low,
        vmax=value_range.high,
        shading="nearest",
    )
    ticks = [value_range.low, value_range.high]
    if value_range.low < 0 < value_range.high:
        ticks.insert(1, 0.0)
    ax.set_yticks(ticks)
    ax.set_xticks([])
    ax.set_box_aspect(8)


def plot_condition_grid(
    rasters: Mapping[str, Raster],
    cmap: Colormap | str = "BlueGrayRed",
    ncols: int = 4,
    figsize: tuple[float, float] = (16.0, 8.0),
    output_path: Path | None = None,
    dpi: int = 150,
) -> plt.Figure:
    """
    Plot one heatmap per condition and a shared color legend.

    All rasters must share the same value range so colors are comparable.

    Args:
        rasters: Panel title -> Raster, in display order
        cmap: Colormap or palette name
        ncols: Panels per row (the legend takes the last cell)
        figsize: Figure size in inches
        output_path: Optional PNG path
        dpi: Resolution when saving

    Returns:
        Matplotlib Figure

    Raises:
        ValueError: If no raster is given or value ranges differ
    """
    if not rasters:
        raise ValueError("No raster to plot")
    ranges = {raster.value_range for raster in rasters.values()}
    if len(ranges) != 1:
        raise ValueError(f"All panels must share one value range, got {ranges}")
    value_range = ranges.pop()
    if isinstance(cmap, str):
        cmap = make_palette(cmap)

    n_cells = len(rasters) + 1
    ncols = min(ncols, n_cells)
    nrows = math.ceil(n_cells / ncols)
    logger.info(f"Plotting {len(rasters)} condition panels ({nrows}x{ncols} grid)")

    fig, axes = plt.subplots(nrows, ncols, figsize=figsize, squeeze=False)
    flat_axes = axes.ravel()
    for ax, (title, raster) in zip(flat_axes, rasters.items()):
        plot_raster(raster, ax=ax, cmap=cmap, title=title)

    plot_value_legend(flat_axes[len(rasters)], value_range, cmap, n=cmap.N)
    for ax in flat_axes[n_cells:]:
        ax.set_visible(False)

    fig.tight_layout()

    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=dpi, bbox_inches="tight")
        logger.info(f"Condition grid saved to: {output_path}")

    return fig
