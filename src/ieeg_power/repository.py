"""
Spectrogram Repository.

Holds the Frequency x Time x Trial x Electrode power of one subject for a
selection of electrodes, a time window and a frequency set, together with
the epoch table of the loaded trials and the analysis context it was loaded
with.

The raw power is read-only. Baseline correction (ieeg_power.baseline)
produces a separate baselined view that is attached to the repository; raw
and baselined power coexist. A repository keeps only the most recent
baselined view; use separate repositories to compare several baselines.
"""

import logging
from typing import Iterable, Sequence

import numpy as np

from ieeg_power.config import AnalysisContext
from ieeg_power.exceptions import DataUnavailable
from ieeg_power.labeled import POWER_DIMS, LabeledArray
from ieeg_power.sources import PowerSource
from ieeg_power.trials import TrialIndex

logger = logging.getLogger(__name__)


class SpectrogramRepository:
    """
    Power spectrogram of one subject.

    Attributes:
        power: Raw power, dims (Frequency, Time, Trial, Electrode)
        trial_index: Conditions and covariates of the loaded trials
        context: Analysis context the repository was loaded with
        baselined: Most recent BaselinedView, or None
    """

    def __init__(
        self,
        power: LabeledArray,
        trial_index: TrialIndex,
        context: AnalysisContext | None = None,
    ) -> None:
        if power.dims != POWER_DIMS:
            raise ValueError(
                f"Power dimensions must be {POWER_DIMS}, got {power.dims}"
            )
        missing = [trial for trial in power.axis("Trial").tolist() if trial not in trial_index]
        if missing:
            raise DataUnavailable(
                f"Trials {missing} have no entry in the epoch table"
            )
        self._power = power
        self._trial_index = trial_index.restrict(power.axis("Trial").tolist())
        self._context = context or AnalysisContext()
        self._baselined = None

    @property
    def power(self) -> LabeledArray:
        return self._power

    @property
    def trial_index(self) -> TrialIndex:
        return self._trial_index

    @property
    def context(self) -> AnalysisContext:
        return self._context

    @property
    def baselined(self):
        """Most recent BaselinedView, or None if no baseline was applied."""
        return self._baselined

    @property
    def frequencies(self) -> np.ndarray:
        return self._power.axis("Frequency")

    @property
    def time_points(self) -> np.ndarray:
        return self._power.axis("Time")

    @property
    def trials(self) -> np.ndarray:
        return self._power.axis("Trial")

    @property
    def electrodes(self) -> np.ndarray:
        return self._power.axis("Electrode")

    @property
    def shape(self) -> tuple[int, ...]:
        return self._power.shape

    def attach_baselined(self, view) -> None:
        """Replace the active baselined view."""
        if view.data.dims != POWER_DIMS or view.data.shape != self._power.shape:
            raise ValueError(
                f"Baselined view {view.data!r} does not match repository {self._power!r}"
            )
        if self._baselined is not None:
            logger.info("Replacing the active baselined view")
        self._baselined = view

    def __repr__(self) -> str:
        frequency_range = (
            f"{self.frequencies[0]:g}-{self.frequencies[-1]:g} Hz"
            if len(self.frequencies)
            else "none"
        )
        return (
            f"SpectrogramRepository({self._context.subject_id}, "
            f"{len(self.electrodes)} electrodes, {len(self.trials)} trials, "
            f"{len(self.time_points)} time points, {frequency_range}, "
            f"baselined={self._baselined is not None})"
        )


def load(
    source: PowerSource,
    electrodes: Iterable | None = None,
    time_window: tuple[float, float] | None = None,
    frequency_set: Sequence[float] | None = None,
    context: AnalysisContext | None = None,
) -> SpectrogramRepository:
    """
    Load a power spectrogram repository from a data source.

    Args:
        source: Power source (ArrayPowerSource, EpochsPowerSource,
            HDF5PowerSource, ...)
        electrodes: Electrode labels in the desired order, or None for all
        time_window: Closed (start, end) window in seconds, or None for all
        frequency_set: Frequencies in Hz, or None for all the source offers
        context: Analysis context; defaults to AnalysisContext()

    Returns:
        SpectrogramRepository with raw power only (no baseline yet)

    Raises:
        DataUnavailable: If the source cannot provide the requested
            electrodes, frequencies or time window

    Example:
        >>> repository = load(source, electrodes=[14, 15], time_window=(-1, 2))
        >>> repository.shape  # Frequency x Time x Trial x Electrode
    """
    context = context or AnalysisContext()
    if electrodes is not None:
        electrodes = list(dict.fromkeys(electrodes))
    if frequency_set is not None:
        frequency_set = [float(value) for value in frequency_set]

    logger.info(
        f"Loading power for {context.subject_id}: electrodes={electrodes}, "
        f"time_window={time_window}, "
        f"frequencies={'all' if frequency_set is None else len(frequency_set)}"
    )

    data = source.read(electrodes, time_window, frequency_set)

    power = LabeledArray(
        data.power,
        POWER_DIMS,
        {
            "Frequency": data.frequencies,
            "Time": data.time_points,
            "Trial": data.trials,
            "Electrode": data.electrodes,
        },
    )
    if 0 in power.shape:
        raise DataUnavailable(f"Source returned an empty power array: {power!r}")

    trial_index = TrialIndex.from_table(
        data.trial_table, strict=context.strict_conditions
    )
    repository = SpectrogramRepository(power, trial_index, context)
    logger.info(f"Loaded {repository!r}")
    return repository
