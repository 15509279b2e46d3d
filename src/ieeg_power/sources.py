"""
Data sources for time-frequency power.

A power source is the upstream collaborator of the repository loader: given
electrodes, a time window and a set of frequencies, it returns a fully
materialized Frequency x Time x Trial x Electrode power array plus the four
axis label sequences and the epoch table. Sources raise DataUnavailable when
a request cannot be satisfied.

Sources:
- ArrayPowerSource: power already held in memory (precomputed or synthetic)
- EpochsPowerSource: Morlet wavelet power computed by MNE from mne.Epochs
- HDF5PowerSource (ieeg_power.export): power exported to an HDF5 file

Wavelet computation itself is delegated to MNE; this module only selects
channels, frequencies and the time window and reorders the result.

References:
    - MNE time-frequency: https://mne.tools/stable/generated/mne.Epochs.html#mne.Epochs.compute_tfr
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

import mne
import numpy as np
import pandas as pd

from ieeg_power.exceptions import DataUnavailable
from ieeg_power.trials import CONDITION_COLUMN, TRIAL_COLUMN

logger = logging.getLogger(__name__)

FREQUENCY_TOLERANCE_HZ = 1e-6


@dataclass(frozen=True)
class PowerData:
    """
    Materialized power returned by a source.

    Attributes:
        power: Array of shape (n_frequencies, n_times, n_trials, n_electrodes)
        frequencies: Frequency labels (Hz)
        time_points: Time labels (seconds)
        trials: Trial ids
        electrodes: Electrode labels
        trial_table: Epoch table with at least Trial and Condition columns
    """

    power: np.ndarray
    frequencies: np.ndarray
    time_points: np.ndarray
    trials: np.ndarray
    electrodes: np.ndarray
    trial_table: pd.DataFrame


class PowerSource(Protocol):
    """Anything that can materialize power for a request."""

    def read(
        self,
        electrodes: Sequence | None,
        time_window: tuple[float, float] | None,
        frequencies: Sequence[float] | None,
    ) -> PowerData:
        ...


def select_labels(
    available: np.ndarray, requested: Iterable | None, dim: str
) -> np.ndarray:
    """
    Find the positions of requested labels, preserving request order.

    Args:
        available: Labels provided by the source
        requested: Labels to select, or None for all
        dim: Dimension name for error messages

    Returns:
        Integer positions into `available`

    Raises:
        DataUnavailable: If a requested label is not available or nothing
            was requested
    """
    if requested is None:
        return np.arange(len(available))

    requested = list(dict.fromkeys(requested))
    if not requested:
        raise DataUnavailable(f"No {dim} labels requested")

    positions = []
    missing = []
    numeric = np.issubdtype(np.asarray(available).dtype, np.number)
    for label in requested:
        if numeric and isinstance(label, (int, float, np.number)):
            matches = np.flatnonzero(
                np.abs(available - label) <= FREQUENCY_TOLERANCE_HZ
            )
        else:
            matches = np.flatnonzero(available.astype(str) == str(label))
        if len(matches) == 0:
            missing.append(label)
        else:
            positions.append(int(matches[0]))

    if missing:
        raise DataUnavailable(
            f"{dim} {missing} not available. Available {dim}: {available.tolist()}"
        )
    return np.asarray(positions, dtype=int)


def select_time_window(
    time_points: np.ndarray, time_window: tuple[float, float] | None
) -> np.ndarray:
    """
    Find the positions of time points inside a closed window.

    Raises:
        DataUnavailable: If the window is reversed or contains no time point
    """
    if time_window is None:
        return np.arange(len(time_points))

    start, end = time_window
    if start > end:
        raise DataUnavailable(f"Time window start ({start}) is after end ({end})")

    positions = np.flatnonzero((time_points >= start) & (time_points <= end))
    if len(positions) == 0:
        raise DataUnavailable(
            f"Time window [{start}, {end}] s contains no sample. "
            f"Available range: [{time_points[0]}, {time_points[-1]}] s"
        )
    if start < time_points[0] or end > time_points[-1]:
        logger.warning(
            f"Time window [{start}, {end}] s extends beyond the available "
            f"range [{time_points[0]}, {time_points[-1]}] s and was truncated"
        )
    return positions


def default_trial_table(trials: Sequence, condition: str = "all") -> pd.DataFrame:
    """Epoch table assigning every trial to one condition."""
    return pd.DataFrame({TRIAL_COLUMN: list(trials), CONDITION_COLUMN: condition})


class ArrayPowerSource:
    """
    In-memory power source.

    Args:
        power: Array of shape (n_frequencies, n_times, n_trials, n_electrodes)
        frequencies: Frequency labels (Hz)
        time_points: Time labels (seconds), increasing
        trials: Trial ids
        electrodes: Electrode labels
        trial_table: Epoch table; defaults to one condition 'all'
    """

    def __init__(
        self,
        power: np.ndarray,
        frequencies: Sequence[float],
        time_points: Sequence[float],
        trials: Sequence,
        electrodes: Sequence,
        trial_table: pd.DataFrame | None = None,
    ) -> None:
        self._power = np.array(power, dtype=float)
        self._frequencies = np.asarray(frequencies, dtype=float)
        self._time_points = np.asarray(time_points, dtype=float)
        self._trials = np.asarray(trials)
        self._electrodes = np.asarray(electrodes)

        expected = (
            len(self._frequencies),
            len(self._time_points),
            len(self._trials),
            len(self._electrodes),
        )
        if self._power.shape != expected:
            raise ValueError(
                f"Power shape {self._power.shape} does not match axis lengths "
                f"(Frequency, Time, Trial, Electrode) = {expected}"
            )
        self._trial_table = (
            default_trial_table(self._trials.tolist())
            if trial_table is None
            else trial_table.copy()
        )

    def read(
        self,
        electrodes: Sequence | None,
        time_window: tuple[float, float] | None,
        frequencies: Sequence[float] | None,
    ) -> PowerData:
        electrode_idx = select_labels(self._electrodes, electrodes, "Electrode")
        frequency_idx = select_labels(self._frequencies, frequencies, "Frequency")
        time_idx = select_time_window(self._time_points, time_window)

        trial_idx = np.arange(len(self._trials))
        power = self._power[np.ix_(frequency_idx, time_idx, trial_idx, electrode_idx)]
        return PowerData(
            power=power,
            frequencies=self._frequencies[frequency_idx],
            time_points=self._time_points[time_idx],
            trials=self._trials.copy(),
            electrodes=self._electrodes[electrode_idx],
            trial_table=self._trial_table.copy(),
        )


def suggest_wavelet_cycles(
    frequencies: Sequence[float],
    frequency_range: tuple[float, float] = (2.0, 200.0),
    cycle_range: tuple[float, float] = (3.0, 20.0),
) -> np.ndarray:
    """
    Suggest Morlet wavelet cycles per frequency.

    Cycles grow linearly with log-frequency from `cycle_range[0]` at
    `frequency_range[0]` to `cycle_range[1]` at `frequency_range[1]`, and are
    clamped to `cycle_range` outside the frequency range. Few cycles at low
    frequencies keep time resolution; many cycles at high frequencies keep
    frequency resolution.

    Args:
        frequencies: Wavelet frequencies (Hz), positive
        frequency_range: (low, high) frequencies anchoring the interpolation
        cycle_range: (low, high) number of cycles

    Returns:
        Array of cycles, one per frequency

    Example:
        >>> suggest_wavelet_cycles(np.arange(2, 201, 4))
    """
    frequencies = np.asarray(frequencies, dtype=float)
    if np.any(frequencies <= 0):
        raise ValueError(f"Frequencies must be positive, got {frequencies.tolist()}")
    low_freq, high_freq = frequency_range
    if not 0 < low_freq < high_freq:
        raise ValueError(
            f"frequency_range must satisfy 0 < low < high, got {frequency_range}"
        )
    low_cycles, high_cycles = cycle_range
    if not 0 < low_cycles <= high_cycles:
        raise ValueError(
            f"cycle_range must satisfy 0 < low <= high, got {cycle_range}"
        )

    return np.interp(
        np.log(frequencies),
        [np.log(low_freq), np.log(high_freq)],
        [low_cycles, high_cycles],
    )


class EpochsPowerSource:
    """
    Morlet wavelet power computed from MNE epochs.

    Trials are numbered from 1 in epoch order and their condition is the
    event name of the epoch. Electrodes are channel names. Power is computed
    on the whole epoch and cropped to the requested window afterwards, so
    the window edges are not affected by convolution edge effects more than
    the epoch edges are.

    Args:
        epochs: Preloaded mne.Epochs
        n_cycles: Cycles per frequency; None uses suggest_wavelet_cycles()
        decim: Decimation factor applied to the wavelet output
    """

    def __init__(
        self,
        epochs: mne.BaseEpochs,
        n_cycles: float | np.ndarray | None = None,
        decim: int = 1,
    ) -> None:
        self.epochs = epochs
        self.n_cycles = n_cycles
        self.decim = decim

    def trial_table(self) -> pd.DataFrame:
        """Epoch table built from the epochs' events."""
        code_to_name = {code: name for name, code in self.epochs.event_id.items()}
        codes = self.epochs.events[:, 2]
        return pd.DataFrame(
            {
                TRIAL_COLUMN: np.arange(1, len(codes) + 1),
                CONDITION_COLUMN: [code_to_name.get(code, str(code)) for code in codes],
                "Onset": self.epochs.events[:, 0] / self.epochs.info["sfreq"],
            }
        )

    def read(
        self,
        electrodes: Sequence | None,
        time_window: tuple[float, float] | None,
        frequencies: Sequence[float] | None,
    ) -> PowerData:
        if frequencies is None:
            raise DataUnavailable(
                "Epochs do not carry precomputed frequencies: a frequency set is required"
            )
        frequencies = np.asarray(list(frequencies), dtype=float)
        nyquist = self.epochs.info["sfreq"] / 2.0
        if np.any(frequencies <= 0) or np.any(frequencies >= nyquist):
            raise DataUnavailable(
                f"Frequencies must lie in (0, {nyquist}) Hz for sampling rate "
                f"{self.epochs.info['sfreq']} Hz, got {frequencies.tolist()}"
            )

        channel_names = np.asarray(self.epochs.ch_names)
        channel_idx = select_labels(channel_names, electrodes, "Electrode")
        picks = channel_names[channel_idx].tolist()

        n_cycles = (
            suggest_wavelet_cycles(frequencies)
            if self.n_cycles is None
            else self.n_cycles
        )
        logger.info(
            f"Computing Morlet power: {len(picks)} channels, {len(frequencies)} "
            f"frequencies ({frequencies[0]}-{frequencies[-1]} Hz), "
            f"{len(self.epochs)} epochs"
        )
        tfr = self.epochs.compute_tfr(
            method="morlet",
            freqs=frequencies,
            n_cycles=n_cycles,
            picks=picks,
            average=False,
            return_itc=False,
            decim=self.decim,
            output="power",
            use_fft=True,
            verbose=False,
        )

        # MNE may return picks in channel order; restore the requested order
        channel_order = [tfr.ch_names.index(name) for name in picks]
        # (epochs, channels, freqs, times) -> (freqs, times, epochs, channels)
        power = np.transpose(tfr.get_data()[:, channel_order], (2, 3, 0, 1))
        times = np.asarray(tfr.times, dtype=float)
        time_idx = select_time_window(times, time_window)

        table = self.trial_table()
        return PowerData(
            power=power[:, time_idx, :, :].copy(),
            frequencies=frequencies,
            time_points=times[time_idx],
            trials=table[TRIAL_COLUMN].to_numpy(),
            electrodes=np.asarray(picks),
            trial_table=table,
        )
