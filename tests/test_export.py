"""
Tests for HDF5 export and the HDF5 power source.
"""

import h5py
import numpy as np
import pandas as pd
import pytest

from conftest import FREQUENCIES, TIME_POINTS
from ieeg_power.baseline import apply_baseline
from ieeg_power.config import AnalysisContext
from ieeg_power.exceptions import DataUnavailable
from ieeg_power.export import FORMAT_VERSION, HDF5PowerSource, export_repository
from ieeg_power.repository import load
from ieeg_power.sources import ArrayPowerSource


@pytest.fixture
def repository(array_source):
    context = AnalysisContext(project_name="ds005953", subject_code="ds005953_01")
    return load(array_source, context=context)


def test_export_layout(repository, tmp_path):
    apply_baseline(repository, (-0.4, -0.2))
    path = export_repository(repository, tmp_path / "exports" / "sub-01_power.h5")

    with h5py.File(path, "r") as h5_file:
        assert h5_file.attrs["format_version"] == FORMAT_VERSION
        assert h5_file.attrs["project_name"] == "ds005953"
        assert h5_file.attrs["subject_code"] == "ds005953_01"
        assert h5_file["power"].shape == (3, 5, 4, 2)
        assert h5_file["axes/Frequency"][()].tolist() == FREQUENCIES
        assert h5_file["axes/Time"][()].tolist() == TIME_POINTS
        assert list(h5_file["trials"].attrs["columns"]) == ["Trial", "Condition", "Onset"]
        assert h5_file["baselined"].attrs["method"] == "decibel"
        np.testing.assert_allclose(h5_file["baselined"].attrs["windows"], [[-0.4, -0.2]])
        np.testing.assert_allclose(h5_file["baselined"][()], repository.baselined.data.data)


def test_export_without_baselined_view(repository, tmp_path):
    path = export_repository(repository, tmp_path / "power.h5")

    with h5py.File(path, "r") as h5_file:
        assert "baselined" not in h5_file


def test_hdf5_source_reads_back(repository, tmp_path, random_power):
    path = export_repository(repository, tmp_path / "power.h5")
    source = HDF5PowerSource(path)

    reloaded = load(source, context=source.context())

    np.testing.assert_array_equal(reloaded.power.data, random_power)
    assert reloaded.electrodes.tolist() == [14, 15]
    assert reloaded.context.subject_id == "ds005953/ds005953_01"
    assert reloaded.trial_index.trials_for("drive_av") == frozenset({1})
    assert reloaded.trial_index.covariate(4, "Onset") == 10.5


def test_hdf5_source_selection(repository, tmp_path, random_power):
    source = HDF5PowerSource(export_repository(repository, tmp_path / "power.h5"))

    reloaded = load(
        source, electrodes=[15], time_window=(0.0, 0.4), frequency_set=[20.0]
    )

    assert reloaded.shape == (1, 3, 4, 1)
    np.testing.assert_array_equal(
        reloaded.power.data, random_power[np.ix_([1], [2, 3, 4], [0, 1, 2, 3], [1])]
    )


def test_hdf5_source_string_labels(random_power, tmp_path):
    table = pd.DataFrame({"Trial": ["t1", "t2", "t3", "t4"], "Condition": list("1142")})
    source = ArrayPowerSource(
        random_power, FREQUENCIES, TIME_POINTS, ["t1", "t2", "t3", "t4"], ["LA1", "LA2"], table
    )
    path = export_repository(load(source), tmp_path / "labels.h5")

    reloaded = load(HDF5PowerSource(path), electrodes=["LA2"])

    assert reloaded.electrodes.tolist() == ["LA2"]
    assert reloaded.trials.tolist() == ["t1", "t2", "t3", "t4"]
    assert reloaded.trial_index.trials_for("1") == frozenset({"t1", "t2"})


def test_hdf5_source_unavailable_electrode(repository, tmp_path):
    source = HDF5PowerSource(export_repository(repository, tmp_path / "power.h5"))

    with pytest.raises(DataUnavailable):
        load(source, electrodes=[99])


def test_hdf5_source_context_overrides(repository, tmp_path):
    source = HDF5PowerSource(export_repository(repository, tmp_path / "power.h5"))

    context = source.context(strict_conditions=True)

    assert context.project_name == "ds005953"
    assert context.strict_conditions is True


def test_hdf5_source_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        HDF5PowerSource(tmp_path / "missing.h5")


def test_hdf5_source_without_power(tmp_path):
    path = tmp_path / "empty.h5"
    with h5py.File(path, "w") as h5_file:
        h5_file.attrs["format_version"] = FORMAT_VERSION

    with pytest.raises(DataUnavailable, match="no power data"):
        load(HDF5PowerSource(path))


def test_hdf5_source_reordered_selection(repository, tmp_path, random_power):
    """Frequencies and electrodes come back in request order, not file order."""
    source = HDF5PowerSource(export_repository(repository, tmp_path / "power.h5"))

    reloaded = load(
        source, electrodes=[15, 14], time_window=(-0.2, 0.2), frequency_set=[30.0, 10.0]
    )

    assert reloaded.frequencies.tolist() == [30.0, 10.0]
    assert reloaded.electrodes.tolist() == [15, 14]
    np.testing.assert_array_equal(
        reloaded.power.data, random_power[np.ix_([2, 0], [1, 2, 3], [0, 1, 2, 3], [1, 0])]
    )
