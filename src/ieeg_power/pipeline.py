"""
Condition spectrogram pipeline.

Builds one baseline-corrected Time x Frequency map per condition:

1. Load power (Frequency x Time x Trial x Electrode) for the configured
   electrodes, time window and frequencies
2. Baseline-correct it (decibel by default)
3. For each panel, select the trials of its condition(s) (and optionally
   electrodes), average over trials and electrodes into a Time x Frequency map
4. Clip every map into a shared value range and render them side by side
   with a color legend

Usage:
    python -m ieeg_power --input exports/sub-01_power.h5 --config configs/figure1.yml
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from ieeg_power.baseline import apply_baseline_config
from ieeg_power.config import ConditionPanel, PipelineConfig
from ieeg_power.exceptions import IeegPowerError
from ieeg_power.export import HDF5PowerSource
from ieeg_power.labeled import LabeledArray
from ieeg_power.plotting import Raster, make_palette, plot_condition_grid, prepare_raster
from ieeg_power.reduce import ValueRange, collapse, subset, symmetric_value_range
from ieeg_power.repository import SpectrogramRepository, load
from ieeg_power.sources import PowerSource

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

__version__ = "0.1.0"


class PipelineError(IeegPowerError):
    """Exception raised for pipeline execution failures."""

    pass


@dataclass
class PipelineResult:
    """
    Outputs of one pipeline run.

    Attributes:
        repository: Loaded repository (with its baselined view attached)
        maps: Panel title -> collapsed Time x Frequency map (unclipped)
        rasters: Panel title -> clipped raster
        value_range: Shared color range
        figure_path: Saved figure, or None
    """

    repository: SpectrogramRepository
    maps: dict[str, LabeledArray]
    rasters: dict[str, Raster]
    value_range: ValueRange
    figure_path: Path | None


def default_panels(repository: SpectrogramRepository) -> tuple[ConditionPanel, ...]:
    """One panel per condition of the loaded trials, sorted by label."""
    return tuple(
        ConditionPanel(title=f"Condition: {label}", conditions=(label,))
        for label in sorted(repository.trial_index.conditions)
    )


def condition_map(
    repository: SpectrogramRepository,
    panel: ConditionPanel,
    nan_policy: str = "propagate",
) -> LabeledArray:
    """
    Average baselined power over the panel's trials and electrodes.

    Returns:
        Time x Frequency LabeledArray

    Raises:
        PipelineError: If no baseline has been applied
        EmptySelection: If the panel selects no trial or no electrode
    """
    view = repository.baselined
    if view is None:
        raise PipelineError("No baselined view: apply a baseline before averaging")

    trials = repository.trial_index.trials_for(panel.conditions)
    selected = subset(
        view,
        trial_predicate=trials,
        electrode_predicate=list(panel.electrodes) or None,
    )
    logger.info(
        f"Panel '{panel.title}': {selected.shape[2]} trials, "
        f"{selected.shape[3]} electrodes"
    )
    return collapse(selected, keep=["Time", "Frequency"], nan_policy=nan_policy)


def compute_condition_rasters(
    repository: SpectrogramRepository,
    panels: tuple[ConditionPanel, ...],
    zlim: tuple[float, float] | None = None,
) -> tuple[dict[str, LabeledArray], dict[str, Raster], ValueRange]:
    """
    Build the collapsed map and clipped raster of every panel.

    Args:
        repository: Repository with an active baselined view
        panels: Panels to compute
        zlim: Shared (low, high) range, or None for a range symmetric around
            zero covering every map

    Returns:
        (maps, rasters, value_range)
    """
    context = repository.context
    maps = {
        panel.title: condition_map(repository, panel, nan_policy=context.nan_policy)
        for panel in panels
    }
    if zlim is None:
        value_range = symmetric_value_range(
            np.concatenate([m.data.ravel() for m in maps.values()])
        )
        logger.info(f"Derived symmetric value range: ±{value_range.high:.2f}")
    else:
        value_range = ValueRange(*zlim)

    rasters = {
        title: prepare_raster(power_map, value_range, mode=context.clip_mode)
        for title, power_map in maps.items()
    }
    return maps, rasters, value_range


def run_condition_pipeline(
    source: PowerSource,
    config: PipelineConfig,
    output_dir: Path | None = None,
    save_figure: bool = True,
) -> PipelineResult:
    """
    Load, baseline, average per condition and render.

    Args:
        source: Power source
        config: Pipeline configuration
        output_dir: Figure directory (default: <output_root>/<project_name>)
        save_figure: Write the figure as PNG

    Returns:
        PipelineResult
    """
    context = config.context
    logger.info("=" * 60)
    logger.info(f"Condition spectrogram pipeline: {context.subject_id}")
    logger.info("=" * 60)

    repository = load(
        source,
        electrodes=list(config.load.electrodes) or None,
        time_window=config.load.time_window_sec,
        frequency_set=config.load.frequencies_hz,
        context=context,
    )
    apply_baseline_config(repository, config.baseline)

    panels = config.panels or default_panels(repository)
    maps, rasters, value_range = compute_condition_rasters(
        repository, panels, zlim=config.plot.zlim
    )

    figure_path = None
    if save_figure:
        output_dir = output_dir or (context.output_root / context.project_name)
        figure_path = (
            Path(output_dir)
            / f"sub-{context.subject_code}_desc-conditions_spectrogram.png"
        )
    fig = plot_condition_grid(
        rasters,
        cmap=make_palette(config.plot.palette, n=config.plot.n_colors),
        ncols=config.plot.ncols,
        figsize=config.plot.figsize,
        output_path=figure_path,
        dpi=config.plot.dpi,
    )
    plt.close(fig)

    return PipelineResult(
        repository=repository,
        maps=maps,
        rasters=rasters,
        value_range=value_range,
        figure_path=figure_path,
    )


def parse_args(argv: list[str] | None = None):
    """Parse command-line arguments."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Baseline-corrected power spectrograms by condition",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One panel per condition, default settings
  python -m ieeg_power --input exports/sub-01_power.h5

  # Panels, baseline and color range from a configuration file
  python -m ieeg_power --input exports/sub-01_power.h5 \\
      --config configs/figure1.yml --output figures/
        """,
    )
    parser.add_argument(
        "--input",
        type=Path,
        required=True,
        help="HDF5 file written by ieeg_power.export.export_repository",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (uses defaults if not provided)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output directory for the figure (default: <output_root>/<project_name>)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"ieeg-power {__version__}",
        help="Show version and exit",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Command-line interface for the condition spectrogram pipeline."""
    args = parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled")

    if not args.input.exists():
        logger.error(f"Input file not found: {args.input}")
        sys.exit(1)

    try:
        source = HDF5PowerSource(args.input)
        if args.config:
            logger.info(f"Loading configuration from: {args.config}")
            config = PipelineConfig.from_yaml(args.config)
        else:
            logger.info("Using default configuration with the subject stored in the file")
            config = PipelineConfig(context=source.context())

        result = run_condition_pipeline(source, config, output_dir=args.output)
    except (IeegPowerError, FileNotFoundError, ValueError) as e:
        logger.error(f"Pipeline failed: {e}")
        sys.exit(1)

    logger.info(
        f"Rendered {len(result.rasters)} panels, value range {result.value_range.as_tuple()}"
    )
    logger.info(f"Figure: {result.figure_path}")
    logger.info("Pipeline completed successfully!")
    sys.exit(0)


if __name__ == "__main__":
    main()
