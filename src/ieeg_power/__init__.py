"""
ieeg_power: Time-frequency power analysis for intracranial EEG.

This package loads Frequency x Time x Trial x Electrode power spectrograms,
baseline-corrects them, selects trials by experimental condition and
electrodes, averages them into Time x Frequency maps and renders one map per
condition.
"""

from ieeg_power.baseline import (
    BaselinedView,
    apply_baseline,
    apply_baseline_config,
)
from ieeg_power.config import (
    AnalysisContext,
    BaselineConfig,
    ConditionPanel,
    LoadConfig,
    PipelineConfig,
    PlotConfig,
)
from ieeg_power.exceptions import (
    DataUnavailable,
    EmptySelection,
    IeegPowerError,
    InvalidWindow,
    UnknownCondition,
)
from ieeg_power.export import HDF5PowerSource, export_repository
from ieeg_power.labeled import POWER_DIMS, LabeledArray
from ieeg_power.pipeline import run_condition_pipeline
from ieeg_power.plotting import (
    Raster,
    make_palette,
    plot_condition_grid,
    plot_raster,
    prepare_raster,
)
from ieeg_power.reduce import (
    ValueRange,
    clip,
    collapse,
    subset,
    symmetric_value_range,
)
from ieeg_power.repository import SpectrogramRepository, load
from ieeg_power.sources import (
    ArrayPowerSource,
    EpochsPowerSource,
    PowerData,
    suggest_wavelet_cycles,
)
from ieeg_power.trials import TrialIndex

__version__ = "0.1.0"

# Public API
__all__ = [
    # Configuration
    "AnalysisContext",
    "LoadConfig",
    "BaselineConfig",
    "PlotConfig",
    "ConditionPanel",
    "PipelineConfig",
    # Errors
    "IeegPowerError",
    "DataUnavailable",
    "InvalidWindow",
    "UnknownCondition",
    "EmptySelection",
    # Data model
    "POWER_DIMS",
    "LabeledArray",
    "TrialIndex",
    "SpectrogramRepository",
    # Loading
    "load",
    "PowerData",
    "ArrayPowerSource",
    "EpochsPowerSource",
    "HDF5PowerSource",
    "suggest_wavelet_cycles",
    # Baseline
    "BaselinedView",
    "apply_baseline",
    "apply_baseline_config",
    # Subset/Reduce
    "subset",
    "collapse",
    "clip",
    "ValueRange",
    "symmetric_value_range",
    # Rendering
    "Raster",
    "prepare_raster",
    "make_palette",
    "plot_raster",
    "plot_condition_grid",
    # Export
    "export_repository",
    # Pipeline
    "run_condition_pipeline",
]
