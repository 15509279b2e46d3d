"""
Shared fixtures: small synthetic power repositories.

Shapes follow Frequency x Time x Trial x Electrode = 3 x 5 x 4 x 2.
"""

import matplotlib

matplotlib.use("Agg")  # Use non-interactive backend for testing
import numpy as np
import pandas as pd
import pytest

from ieeg_power.sources import ArrayPowerSource

FREQUENCIES = [10.0, 20.0, 30.0]
TIME_POINTS = [-0.4, -0.2, 0.0, 0.2, 0.4]
TRIALS = [1, 2, 3, 4]
ELECTRODES = [14, 15]


@pytest.fixture
def epoch_table():
    """Epoch table with audio-visual (_av) and audio-only (_a) trials."""
    return pd.DataFrame(
        {
            "Trial": TRIALS,
            "Condition": ["drive_av", "last_av", "drive_a", "last_a"],
            "Onset": [1.5, 4.5, 7.5, 10.5],
        }
    )


@pytest.fixture
def random_power():
    """Positive random power values."""
    rng = np.random.default_rng(42)
    return rng.uniform(0.5, 2.0, size=(3, 5, 4, 2))


@pytest.fixture
def array_source(random_power, epoch_table):
    return ArrayPowerSource(
        random_power, FREQUENCIES, TIME_POINTS, TRIALS, ELECTRODES, epoch_table
    )


@pytest.fixture
def step_power():
    """Power of 2.0 everywhere except 1.0 at the last two time points."""
    power = np.full((3, 5, 4, 2), 2.0)
    power[:, 3:, :, :] = 1.0
    return power


@pytest.fixture
def step_source(step_power, epoch_table):
    return ArrayPowerSource(
        step_power, FREQUENCIES, TIME_POINTS, TRIALS, ELECTRODES, epoch_table
    )
