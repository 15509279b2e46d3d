"""
Configuration for the time-frequency power pipeline.

Settings are frozen dataclasses validated in `__post_init__` and serialized
to/from YAML so an analysis can be reproduced from a single file.

The AnalysisContext carries the per-session settings (which subject, how
strict condition lookups are, how values are clipped). It is passed
explicitly to the operations that need it instead of living in a global.
"""

from dataclasses import asdict, dataclass, field
from numbers import Number
from pathlib import Path
from typing import Literal

import yaml

BASELINE_METHODS = ("decibel", "percentage", "zscore", "sqrt_percentage", "sqrt_zscore")
BASELINE_UNITS = ("Frequency", "Trial", "Electrode")
CLIP_MODES = ("legacy", "symmetric")
NAN_POLICIES = ("propagate", "omit")


@dataclass(frozen=True)
class AnalysisContext:
    """
    Explicit per-session analysis context.

    Attributes:
        project_name: Project (dataset) name, e.g. OpenNeuro accession number
        subject_code: Subject code within the project
        strict_conditions: Raise UnknownCondition on unmatched condition labels
            instead of logging a warning
        clip_mode: 'legacy' clamps values >= high, 'symmetric' clamps values > high
        nan_policy: 'propagate' keeps NaN in means, 'omit' ignores NaN
        data_root: Root path of input data
        output_root: Root path for figures and exports
    """

    project_name: str = "demo"
    subject_code: str = "DemoSubject"
    strict_conditions: bool = False
    clip_mode: Literal["legacy", "symmetric"] = "legacy"
    nan_policy: Literal["propagate", "omit"] = "propagate"
    data_root: Path = Path("data/raw")
    output_root: Path = Path("data/derivatives/ieeg-power")

    def __post_init__(self) -> None:
        """Validate context fields."""
        if not self.project_name or not self.project_name.strip():
            raise ValueError("project_name cannot be empty")
        if not self.subject_code or not self.subject_code.strip():
            raise ValueError("subject_code cannot be empty")
        if self.clip_mode not in CLIP_MODES:
            raise ValueError(
                f"clip_mode must be one of {CLIP_MODES}, got '{self.clip_mode}'"
            )
        if self.nan_policy not in NAN_POLICIES:
            raise ValueError(
                f"nan_policy must be one of {NAN_POLICIES}, got '{self.nan_policy}'"
            )
        object.__setattr__(self, "data_root", Path(self.data_root))
        object.__setattr__(self, "output_root", Path(self.output_root))

    @property
    def subject_id(self) -> str:
        """Project-qualified subject id, e.g. 'demo/DemoSubject'."""
        return f"{self.project_name}/{self.subject_code}"


@dataclass(frozen=True)
class LoadConfig:
    """
    Selection of the power data to load.

    Attributes:
        electrodes: Electrode labels to load (empty = all available)
        time_window_sec: Closed (start, end) window relative to trial onset,
            or None for the whole epoch
        frequencies_hz: Frequencies to load, or None for all available
    """

    electrodes: tuple = ()
    time_window_sec: tuple[float, float] | None = None
    frequencies_hz: tuple[float, ...] | None = None

    def __post_init__(self) -> None:
        """Validate load selection."""
        object.__setattr__(self, "electrodes", _as_labels(self.electrodes))
        if self.time_window_sec is not None:
            window = tuple(float(value) for value in self.time_window_sec)
            if len(window) != 2:
                raise ValueError(
                    f"time_window_sec must have two values, got {self.time_window_sec}"
                )
            if window[0] > window[1]:
                raise ValueError(
                    f"time_window_sec start ({window[0]}) must be <= end ({window[1]})"
                )
            object.__setattr__(self, "time_window_sec", window)
        if self.frequencies_hz is not None:
            frequencies = tuple(float(value) for value in self.frequencies_hz)
            if not frequencies:
                raise ValueError("frequencies_hz cannot be empty")
            if any(value <= 0 for value in frequencies):
                raise ValueError(
                    f"frequencies_hz must be positive, got {frequencies}"
                )
            object.__setattr__(self, "frequencies_hz", frequencies)


@dataclass(frozen=True)
class BaselineConfig:
    """
    Baseline correction settings.

    Attributes:
        windows_sec: One or more closed (start, end) windows on the Time axis;
            the reference samples are their union
        method: 'decibel', 'percentage', 'zscore', 'sqrt_percentage' or
            'sqrt_zscore'
        units: Dimensions for which a separate reference is computed.
            Frequency and Electrode are always included; add 'Trial' for a
            per-trial reference.
    """

    windows_sec: tuple[tuple[float, float], ...] = ((-1.0, -0.5),)
    method: str = "decibel"
    units: tuple[str, ...] = ("Frequency", "Electrode")

    def __post_init__(self) -> None:
        """Validate baseline parameters."""
        windows = normalize_windows(self.windows_sec)
        for start, end in windows:
            if start > end:
                raise ValueError(
                    f"Baseline window start ({start}) must be <= end ({end})"
                )
        object.__setattr__(self, "windows_sec", windows)
        if self.method not in BASELINE_METHODS:
            raise ValueError(
                f"method must be one of {BASELINE_METHODS}, got '{self.method}'"
            )
        units = tuple(self.units)
        invalid = [unit for unit in units if unit not in BASELINE_UNITS]
        if invalid:
            raise ValueError(
                f"units must be drawn from {BASELINE_UNITS}, got invalid {invalid}"
            )
        object.__setattr__(self, "units", units)


@dataclass(frozen=True)
class PlotConfig:
    """
    Rendering options for the condition spectrogram grid.

    Attributes:
        zlim: (low, high) color range, or None to use a range symmetric
            around zero derived from the data
        palette: Named palette ('BlueGrayRed', 'BlueWhiteRed')
        n_colors: Number of colors in the lookup table
        ncols: Panels per row in the grid
        figsize: Figure size (width, height) in inches
        dpi: Resolution of saved figures
    """

    zlim: tuple[float, float] | None = (-13.0, 13.0)
    palette: str = "BlueGrayRed"
    n_colors: int = 255
    ncols: int = 4
    figsize: tuple[float, float] = (16.0, 8.0)
    dpi: int = 150

    def __post_init__(self) -> None:
        """Validate plot parameters."""
        if self.zlim is not None:
            zlim = tuple(float(value) for value in self.zlim)
            if len(zlim) != 2 or zlim[0] >= zlim[1]:
                raise ValueError(f"zlim must be (low, high) with low < high, got {self.zlim}")
            object.__setattr__(self, "zlim", zlim)
        if self.n_colors < 2:
            raise ValueError(f"n_colors must be at least 2, got {self.n_colors}")
        if self.ncols <= 0:
            raise ValueError(f"ncols must be positive, got {self.ncols}")
        if self.dpi <= 0:
            raise ValueError(f"dpi must be positive, got {self.dpi}")
        object.__setattr__(self, "figsize", tuple(float(v) for v in self.figsize))


@dataclass(frozen=True)
class ConditionPanel:
    """
    One panel of the condition grid.

    Attributes:
        title: Panel title, e.g. '0.16 cycles/deg'
        conditions: Condition labels whose trials are averaged in the panel
        electrodes: Electrodes averaged in the panel (empty = all loaded)
    """

    title: str
    conditions: tuple[str, ...]
    electrodes: tuple = ()

    def __post_init__(self) -> None:
        """Validate panel definition."""
        conditions = self.conditions
        if isinstance(conditions, str):
            conditions = (conditions,)
        conditions = tuple(str(label) for label in conditions)
        if not conditions:
            raise ValueError(f"Panel '{self.title}' needs at least one condition")
        object.__setattr__(self, "conditions", conditions)
        object.__setattr__(self, "electrodes", _as_labels(self.electrodes))


@dataclass
class PipelineConfig:
    """
    Complete configuration of the condition spectrogram pipeline.

    Attributes:
        context: Analysis context (subject, strictness, clipping)
        load: Data selection
        baseline: Baseline correction settings
        plot: Rendering options
        panels: Condition panels to render
    """

    context: AnalysisContext = field(default_factory=AnalysisContext)
    load: LoadConfig = field(default_factory=LoadConfig)
    baseline: BaselineConfig = field(default_factory=BaselineConfig)
    plot: PlotConfig = field(default_factory=PlotConfig)
    panels: tuple[ConditionPanel, ...] = ()

    def __post_init__(self) -> None:
        """Convert panel entries and validate titles."""
        panels = tuple(
            panel if isinstance(panel, ConditionPanel) else ConditionPanel(**panel)
            for panel in self.panels
        )
        titles = [panel.title for panel in panels]
        if len(set(titles)) != len(titles):
            raise ValueError(f"Panel titles must be unique, got {titles}")
        self.panels = panels

    def to_dict(self) -> dict:
        """
        Convert configuration to a YAML-friendly dictionary.

        Returns:
            Dictionary of plain Python values (lists instead of tuples,
            strings instead of paths)
        """
        return _plain(asdict(self))

    def to_yaml(self, file_path: Path) -> None:
        """
        Save configuration to YAML file.

        Args:
            file_path: Path to save the YAML configuration.
        """
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as yaml_file:
            yaml.safe_dump(
                self.to_dict(),
                yaml_file,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )

    @classmethod
    def from_dict(cls, config_dict: dict) -> "PipelineConfig":
        """
        Create configuration from dictionary.

        Missing sections fall back to their defaults.

        Raises:
            ValueError: If values are invalid or unknown keys are given
        """
        try:
            context = AnalysisContext(**config_dict.get("context", {}))
            load = LoadConfig(**config_dict.get("load", {}))
            baseline = BaselineConfig(**config_dict.get("baseline", {}))
            plot = PlotConfig(**config_dict.get("plot", {}))
            panels = tuple(
                ConditionPanel(**panel) for panel in config_dict.get("panels", [])
            )
        except TypeError as e:
            raise ValueError(f"Invalid configuration: {e}") from e

        return cls(
            context=context,
            load=load,
            baseline=baseline,
            plot=plot,
            panels=panels,
        )

    @classmethod
    def from_yaml(cls, file_path: Path) -> "PipelineConfig":
        """
        Load configuration from YAML file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the YAML content is empty or invalid.
        """
        if not file_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        with open(file_path, "r", encoding="utf-8") as yaml_file:
            config_dict = yaml.safe_load(yaml_file)

        if config_dict is None:
            raise ValueError(f"Empty or invalid YAML file: {file_path}")

        return cls.from_dict(config_dict)


def normalize_windows(windows) -> tuple[tuple[float, float], ...]:
    """
    Normalize one window `(lo, hi)` or several `[(lo, hi), ...]` to a tuple
    of float pairs.

    Raises:
        ValueError: If no window is given or a window is not a pair
    """
    windows = tuple(windows)
    if not windows:
        raise ValueError("At least one baseline window is required")
    if all(not isinstance(item, (list, tuple)) for item in windows):
        windows = (windows,)
    normalized = []
    for window in windows:
        if len(window) != 2:
            raise ValueError(f"Baseline window must be (start, end), got {window}")
        normalized.append((float(window[0]), float(window[1])))
    return tuple(normalized)


def _plain(value):
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, Path):
        return str(value)
    return value


def _as_labels(value) -> tuple:
    """Wrap a single label (e.g. `114` or `"LA3"`) into a 1-tuple."""
    if isinstance(value, (str, bytes, Number)):
        return (value,)
    return tuple(value)
