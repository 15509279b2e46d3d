"""
Subset/Reduce Engine.

Operations on labeled power arrays:
- subset(): keep the labels of one or more dimensions that satisfy a
  predicate (e.g. the trials of one condition, one electrode)
- collapse(): average over every dimension that is not kept, e.g. Frequency
  x Time x Trial x Electrode -> Time x Frequency
- clip(): clamp values into a color range before rendering

All operations return new arrays and never modify their input.

Example:
    >>> trials = repository.trial_index.trials_for({"4"})
    >>> selected = subset(view.data, trial_predicate=trials)
    >>> time_by_freq = collapse(selected, keep=["Time", "Frequency"])
    >>> clipped = clip(time_by_freq, -13, 13)
"""

import logging
import warnings
from collections.abc import Collection
from dataclasses import dataclass
from typing import Any, Callable, Sequence, Union

import numpy as np

from ieeg_power.config import CLIP_MODES, NAN_POLICIES
from ieeg_power.exceptions import EmptySelection
from ieeg_power.labeled import LabeledArray

logger = logging.getLogger(__name__)

Predicate = Union[Callable[[Any], bool], Collection]


def _as_labeled(array) -> LabeledArray:
    """Accept a LabeledArray or anything holding one in `.data` (BaselinedView)."""
    if isinstance(array, LabeledArray):
        return array
    data = getattr(array, "data", None)
    if isinstance(data, LabeledArray):
        return data
    raise TypeError(f"Expected a LabeledArray, got {type(array).__name__}")


def _predicate_mask(labels: np.ndarray, predicate: Predicate) -> np.ndarray:
    values = labels.tolist()
    if callable(predicate):
        return np.array([bool(predicate(label)) for label in values], dtype=bool)
    if isinstance(predicate, (str, bytes)) or not isinstance(predicate, Collection):
        accepted = {predicate}
    else:
        accepted = set(predicate)
    return np.array([label in accepted for label in values], dtype=bool)


def subset(
    array,
    trial_predicate: Predicate | None = None,
    electrode_predicate: Predicate | None = None,
    **axis_predicates: Predicate,
) -> LabeledArray:
    """
    Restrict an array to the labels that satisfy per-dimension predicates.

    A predicate is either a callable applied to each label or a collection
    of accepted labels. Predicates on different dimensions are combined with
    AND, so the result does not depend on the order in which they are applied.

    Args:
        array: LabeledArray (or BaselinedView)
        trial_predicate: Predicate on the Trial dimension
        electrode_predicate: Predicate on the Electrode dimension
        **axis_predicates: Predicates on other dimensions by name,
            e.g. Time=lambda t: t >= 0

    Returns:
        New LabeledArray with the same dims, label order preserved

    Raises:
        EmptySelection: If a predicate selects no label of its dimension
        ValueError: If a dimension name is unknown or given twice

    Example:
        >>> subset(baselined, trial_predicate=av_trials, electrode_predicate=[14])
    """
    array = _as_labeled(array)

    predicates = dict(axis_predicates)
    for dim, predicate in (("Trial", trial_predicate), ("Electrode", electrode_predicate)):
        if predicate is None:
            continue
        if dim in predicates:
            raise ValueError(f"Predicate for '{dim}' given twice")
        predicates[dim] = predicate

    indices = [np.arange(size) for size in array.shape]
    new_axes = dict(array.axes)
    for dim, predicate in predicates.items():
        position = array.axis_position(dim)
        labels = array.axis(dim)
        mask = _predicate_mask(labels, predicate)
        if not mask.any():
            raise EmptySelection(
                f"Selection on '{dim}' matches none of its {len(labels)} labels"
            )
        indices[position] = np.flatnonzero(mask)
        new_axes[dim] = labels[mask]
        logger.debug(f"subset: kept {int(mask.sum())}/{len(labels)} labels of '{dim}'")

    values = array.data[np.ix_(*indices)]
    return LabeledArray(values, array.dims, new_axes, copy=False)


def collapse(
    array,
    keep: Sequence[str],
    nan_policy: str = "propagate",
) -> LabeledArray:
    """
    Average over every dimension not in `keep`.

    Args:
        array: LabeledArray (or BaselinedView)
        keep: Dimensions to keep, in the order of the output dimensions
        nan_policy: 'propagate' (plain mean, any NaN yields NaN) or 'omit'
            (ignore NaN; a group of only NaN yields NaN)

    Returns:
        New LabeledArray with dims == tuple(keep)

    Raises:
        EmptySelection: If a dimension to average over has no entries
        ValueError: If keep names unknown or duplicated dims, or nan_policy
            is invalid

    Example:
        >>> collapse(power, keep=["Time", "Frequency"]).shape
        (n_times, n_frequencies)
    """
    array = _as_labeled(array)
    keep = tuple(keep)
    if len(set(keep)) != len(keep):
        raise ValueError(f"keep contains duplicated dimensions: {keep}")
    for dim in keep:
        array.axis_position(dim)
    if nan_policy not in NAN_POLICIES:
        raise ValueError(
            f"nan_policy must be one of {NAN_POLICIES}, got '{nan_policy}'"
        )

    reduced = tuple(
        position for position, dim in enumerate(array.dims) if dim not in keep
    )
    empty = [array.dims[position] for position in reduced if array.shape[position] == 0]
    if empty:
        raise EmptySelection(f"Cannot average over empty dimension(s): {empty}")

    if not reduced:
        values = array.data.astype(float)
    elif nan_policy == "omit":
        with np.errstate(invalid="ignore"), warnings.catch_warnings():
            warnings.simplefilter("ignore", category=RuntimeWarning)
            values = np.nanmean(array.data, axis=reduced)
    else:
        values = np.mean(array.data, axis=reduced)

    remaining = [dim for dim in array.dims if dim in keep]
    order = [remaining.index(dim) for dim in keep]
    values = np.transpose(values, order).copy()
    return LabeledArray(
        values, keep, {dim: array.axis(dim) for dim in keep}, copy=False
    )


def clip(array, low: float, high: float, mode: str = "legacy"):
    """
    Clamp values into [low, high].

    Values below `low` become `low`. In 'legacy' mode values greater than or
    equal to `high` become `high`; in 'symmetric' mode only values strictly
    greater than `high` do. Both modes return the same numbers; they differ in
    which values count as clamped.
    NaN values are left unchanged.

    Args:
        array: LabeledArray, BaselinedView or numpy array
        low: Lower bound
        high: Upper bound
        mode: 'legacy' or 'symmetric'

    Returns:
        Clipped copy of the same kind as the input (LabeledArray for labeled
        input, ndarray otherwise)

    Raises:
        ValueError: If low > high or mode is unknown
    """
    if low > high:
        raise ValueError(f"clip() needs low <= high, got low={low}, high={high}")
    if mode not in CLIP_MODES:
        raise ValueError(f"mode must be one of {CLIP_MODES}, got '{mode}'")

    labeled = None
    if isinstance(array, np.ndarray):
        values = array.astype(float, copy=True)
    else:
        labeled = _as_labeled(array)
        values = labeled.data.astype(float, copy=True)

    below = values < low
    above = values >= high if mode == "legacy" else values > high
    values[below] = low
    values[above] = high
    logger.debug(
        f"clip: {int(below.sum())} values raised to {low}, "
        f"{int(above.sum())} values lowered to {high}"
    )

    if labeled is None:
        return values
    return LabeledArray(values, labeled.dims, labeled.axes, copy=False)


@dataclass(frozen=True)
class ValueRange:
    """
    Color range (zlim) of a rendered map.

    Attributes:
        low: Lower bound
        high: Upper bound, strictly greater than low
    """

    low: float
    high: float

    def __post_init__(self) -> None:
        """Validate bounds."""
        object.__setattr__(self, "low", float(self.low))
        object.__setattr__(self, "high", float(self.high))
        if not np.isfinite(self.low) or not np.isfinite(self.high):
            raise ValueError(f"Value range must be finite, got ({self.low}, {self.high})")
        if self.low >= self.high:
            raise ValueError(
                f"Value range low ({self.low}) must be < high ({self.high})"
            )

    def as_tuple(self) -> tuple[float, float]:
        return (self.low, self.high)


def symmetric_value_range(array) -> ValueRange:
    """
    Range symmetric around zero covering the data: max(|finite values|) * (-1, 1).

    Raises:
        ValueError: If the data has no finite non-zero value
    """
    values = array if isinstance(array, np.ndarray) else _as_labeled(array).data
    finite = np.asarray(values, dtype=float)
    finite = finite[np.isfinite(finite)]
    limit = float(np.max(np.abs(finite))) if finite.size else 0.0
    if limit == 0.0:
        raise ValueError(
            "Cannot derive a symmetric value range: data has no finite non-zero value"
        )
    return ValueRange(-limit, limit)
