"""
Demonstration of the condition spectrogram workflow on synthetic sEEG data.

Builds MNE epochs for seven visual/auditory noise conditions in which some
conditions carry a high-gamma response after stimulus onset, then:

1. Computes Morlet power with suggested wavelet cycles
2. Applies a decibel baseline
3. Averages trials and electrodes per condition into Time x Frequency maps
4. Renders the condition grid and exports the repository to HDF5

Note: This is a demonstration script. Real analyses load epochs from the
recording (or an exported HDF5 file) instead of simulating them.
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import mne
import numpy as np

from ieeg_power import (
    AnalysisContext,
    BaselineConfig,
    ConditionPanel,
    EpochsPowerSource,
    LoadConfig,
    PipelineConfig,
    PlotConfig,
    export_repository,
    run_condition_pipeline,
    suggest_wavelet_cycles,
)

SFREQ = 250.0
FREQUENCIES = np.arange(2.0, 120.0, 4.0)
CONDITIONS = {
    "White noise": "1",
    "Pink noise": "2",
    "Brown noise": "3",
    "0.16 cycles/deg": "4",
    "0.32 cycles/deg": "5",
    "0.64 cycles/deg": "6",
    "1.28 cycles/deg": "7",
}
# Gamma response amplitude (relative to noise) per condition code
RESPONSE_GAIN = {"1": 0.0, "2": 0.5, "3": 1.0, "4": 1.5, "5": 2.0, "6": 2.5, "7": 3.0}


def simulate_epochs(n_per_condition: int = 6, seed: int = 7) -> mne.EpochsArray:
    """Simulate two sEEG contacts with a 90 Hz burst 0.1-0.5 s after onset."""
    rng = np.random.default_rng(seed)
    times = np.arange(-1.0, 1.5, 1.0 / SFREQ)
    burst = np.sin(2 * np.pi * 90.0 * times) * ((times > 0.1) & (times < 0.5))

    codes = np.repeat([int(code) for code in RESPONSE_GAIN], n_per_condition)
    rng.shuffle(codes)
    data = rng.standard_normal((len(codes), 2, len(times)))
    for epoch, code in enumerate(codes):
        data[epoch] += RESPONSE_GAIN[str(code)] * burst

    events = np.column_stack(
        [np.arange(len(codes)) * int(3 * SFREQ) + int(SFREQ), np.zeros(len(codes), int), codes]
    )
    info = mne.create_info(["LA14", "LA15"], sfreq=SFREQ, ch_types="seeg")
    return mne.EpochsArray(
        data * 1e-5,
        info,
        events=events,
        tmin=-1.0,
        event_id={code: int(code) for code in RESPONSE_GAIN},
        verbose=False,
    )


def main() -> None:
    print("=" * 70)
    print("Condition spectrogram demonstration")
    print("=" * 70)

    epochs = simulate_epochs()
    print(f"\nSimulated {len(epochs)} epochs, channels {epochs.ch_names}")

    cycles = suggest_wavelet_cycles(FREQUENCIES)
    print(f"Wavelet cycles: {cycles[0]:.1f} at {FREQUENCIES[0]:g} Hz, "
          f"{cycles[-1]:.1f} at {FREQUENCIES[-1]:g} Hz")

    config = PipelineConfig(
        context=AnalysisContext(
            project_name="demo",
            subject_code="Synthetic01",
            output_root=Path("data/derivatives/ieeg-power"),
        ),
        load=LoadConfig(time_window_sec=(-0.8, 1.2), frequencies_hz=tuple(FREQUENCIES)),
        baseline=BaselineConfig(windows_sec=((-0.6, -0.1),), method="decibel"),
        plot=PlotConfig(zlim=(-13.0, 13.0)),
        panels=tuple(
            ConditionPanel(title=title, conditions=(code,))
            for title, code in CONDITIONS.items()
        ),
    )

    result = run_condition_pipeline(EpochsPowerSource(epochs, n_cycles=cycles), config)
    print(f"\nRepository: {result.repository!r}")
    for title, power_map in result.maps.items():
        print(f"  {title:>16}: peak {np.nanmax(power_map.data):6.2f} dB")
    print(f"\nFigure: {result.figure_path}")

    export_path = (
        config.context.output_root
        / config.context.project_name
        / f"sub-{config.context.subject_code}_power.h5"
    )
    export_repository(result.repository, export_path)
    print(f"Export: {export_path}")
    print("\nReproduce the figure from the export with:")
    print(f"  python -m ieeg_power --input {export_path}")


if __name__ == "__main__":
    main()
