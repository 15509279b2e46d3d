"""
Baseline Normalizer.

Rescales power against a reference (baseline) window on the Time axis. The
reference statistics are computed separately for every Frequency x
Electrode pair (and every trial if 'Trial' is in `units`), pooling the Time
samples inside the baseline window and, unless computed per trial, all
trials.

Methods (m = reference mean, s = reference standard deviation):
- 'decibel':          10 * log10(power / m)
- 'percentage':       100 * (power / m - 1)
- 'zscore':           (power - m) / s
- 'sqrt_percentage':  'percentage' on sqrt(power) (amplitude)
- 'sqrt_zscore':      'zscore' on sqrt(power) (amplitude)

The result is a new array; the raw power of the repository is unchanged.

References:
    - Cohen (2014). Analyzing Neural Time Series Data, ch. 18 (baseline
      normalization of time-frequency power).
"""

import logging
from dataclasses import dataclass

import numpy as np

from ieeg_power.config import (
    BASELINE_METHODS,
    BASELINE_UNITS,
    BaselineConfig,
    normalize_windows,
)
from ieeg_power.exceptions import InvalidWindow
from ieeg_power.labeled import POWER_DIMS, LabeledArray
from ieeg_power.repository import SpectrogramRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BaselinedView:
    """
    Baseline-corrected power.

    Attributes:
        data: Baselined values, dims (Frequency, Time, Trial, Electrode)
        windows: Baseline windows (seconds) used for the reference
        method: Normalization method
        units: Dimensions with a separate reference
        reference_mask: Boolean mask over the Time axis of the reference samples
    """

    data: LabeledArray
    windows: tuple[tuple[float, float], ...]
    method: str
    units: tuple[str, ...]
    reference_mask: np.ndarray


def baseline_time_mask(
    time_points: np.ndarray, windows
) -> tuple[np.ndarray, tuple[tuple[float, float], ...]]:
    """
    Mark the time points that fall inside any closed baseline window.

    Args:
        time_points: Time axis (seconds)
        windows: One (lo, hi) window or a sequence of windows

    Returns:
        (mask, normalized windows)

    Raises:
        InvalidWindow: If a window is malformed or reversed, or no time point
            falls inside any window
    """
    try:
        windows = normalize_windows(windows)
    except (TypeError, ValueError) as e:
        raise InvalidWindow(f"Invalid baseline window {windows!r}: {e}") from e

    time_points = np.asarray(time_points, dtype=float)
    if len(time_points) == 0:
        raise InvalidWindow("Time axis is empty")
    first, last = time_points[0], time_points[-1]

    mask = np.zeros(len(time_points), dtype=bool)
    for lo, hi in windows:
        if lo > hi:
            raise InvalidWindow(f"Baseline window start ({lo}) is after end ({hi})")
        inside = (time_points >= lo) & (time_points <= hi)
        if not inside.any():
            logger.warning(
                f"Baseline window [{lo}, {hi}] s contains no time point "
                f"(time axis: [{first}, {last}] s)"
            )
        elif lo < first or hi > last:
            logger.warning(
                f"Baseline window [{lo}, {hi}] s extends beyond the time axis "
                f"[{first}, {last}] s; only samples inside the axis are used"
            )
        mask |= inside

    if not mask.any():
        raise InvalidWindow(
            f"Baseline window(s) {list(windows)} do not intersect the time axis "
            f"[{first}, {last}] s"
        )
    return mask, windows


def apply_baseline(
    repository: SpectrogramRepository,
    window,
    method: str = "decibel",
    units=("Frequency", "Electrode"),
) -> BaselinedView:
    """
    Baseline-correct the repository's power.

    The new view replaces the repository's active baselined view.

    Args:
        repository: Repository holding the raw power
        window: Closed (lo, hi) baseline window in seconds, or several windows
        method: One of BASELINE_METHODS
        units: Dimensions with their own reference. Frequency and Electrode
            are always included; add 'Trial' for per-trial references.

    Returns:
        BaselinedView with the corrected power

    Raises:
        InvalidWindow: If the window does not intersect the Time axis
        ValueError: If method or units are invalid

    Example:
        >>> view = apply_baseline(repository, (-1.0, -0.5), method="decibel")
        >>> view.data.shape  # Frequency x Time x Trial x Electrode
    """
    if method not in BASELINE_METHODS:
        raise ValueError(
            f"Unknown baseline method '{method}'. Valid methods: {BASELINE_METHODS}"
        )
    if isinstance(units, str):
        units = (units,)
    invalid = [unit for unit in units if unit not in BASELINE_UNITS]
    if invalid:
        raise ValueError(
            f"Baseline units must be drawn from {BASELINE_UNITS}, got {invalid}"
        )
    requested = set(units) | {"Frequency", "Electrode"}
    units = tuple(dim for dim in POWER_DIMS if dim in requested)

    mask, windows = baseline_time_mask(repository.time_points, window)

    logger.info(
        f"Applying '{method}' baseline: windows={list(windows)} s, "
        f"{int(mask.sum())}/{len(mask)} reference time points, units={units}"
    )

    values = repository.power.data.astype(float)
    if method.startswith("sqrt_"):
        values = np.sqrt(values)

    pooled_axes = tuple(
        position
        for position, dim in enumerate(POWER_DIMS)
        if dim not in units
    )
    reference = values[:, mask, :, :]
    reference_mean = reference.mean(axis=pooled_axes, keepdims=True)

    with np.errstate(divide="ignore", invalid="ignore"):
        if method == "decibel":
            result = 10.0 * np.log10(values / reference_mean)
        elif method in ("percentage", "sqrt_percentage"):
            result = 100.0 * (values / reference_mean - 1.0)
        else:
            reference_std = reference.std(axis=pooled_axes, keepdims=True)
            result = (values - reference_mean) / reference_std

    n_bad = int(np.count_nonzero(~np.isfinite(result)))
    if n_bad:
        logger.warning(
            f"Baseline produced {n_bad} non-finite values "
            f"(zero or non-finite reference power)"
        )

    mask.setflags(write=False)
    view = BaselinedView(
        data=LabeledArray(result, POWER_DIMS, repository.power.axes, copy=False),
        windows=windows,
        method=method,
        units=units,
        reference_mask=mask,
    )
    repository.attach_baselined(view)
    return view


def apply_baseline_config(
    repository: SpectrogramRepository, config: BaselineConfig
) -> BaselinedView:
    """Apply the baseline described by a BaselineConfig."""
    return apply_baseline(
        repository, config.windows_sec, method=config.method, units=config.units
    )
