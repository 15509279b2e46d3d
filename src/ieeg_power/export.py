"""
HDF5 export of power repositories.

Writes a repository to a self-describing HDF5 file for later analysis (in
Python, MATLAB or R), and reads such a file back as a power source.

File layout:
    /power                      float64 (Frequency, Time, Trial, Electrode)
    /axes/Frequency             float64
    /axes/Time                  float64
    /axes/Trial                 int64 or UTF-8 strings
    /axes/Electrode             int64 or UTF-8 strings
    /trials/<column>            one dataset per epoch table column
    /baselined                  optional, same shape as /power
    root attrs:      format_version, project_name, subject_code
    /trials attrs:   columns (column order)
    /baselined attrs: method, windows, units
"""

import logging
from pathlib import Path
from typing import Sequence

import h5py
import numpy as np
import pandas as pd

from ieeg_power.config import AnalysisContext
from ieeg_power.exceptions import DataUnavailable
from ieeg_power.labeled import POWER_DIMS
from ieeg_power.repository import SpectrogramRepository
from ieeg_power.sources import PowerData, select_labels, select_time_window

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def _write_labels(group: h5py.Group, name: str, values) -> None:
    values = np.asarray(values)
    if values.dtype.kind in "OUS":
        group.create_dataset(
            name, data=values.astype(str).astype(object), dtype=h5py.string_dtype()
        )
    else:
        group.create_dataset(name, data=values)


def _read_labels(dataset: h5py.Dataset) -> np.ndarray:
    if h5py.check_string_dtype(dataset.dtype) is not None:
        return np.asarray(dataset.asstr()[()], dtype=str)
    return dataset[()]


def export_repository(
    repository: SpectrogramRepository,
    path: Path,
    include_baselined: bool = True,
) -> Path:
    """
    Write a repository to HDF5.

    Args:
        repository: Repository to export
        path: Output .h5 file (parent directories are created)
        include_baselined: Also write the active baselined view, if any

    Returns:
        Path of the written file

    Example:
        >>> export_repository(repository, Path("exports/sub-01_power.h5"))
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with h5py.File(path, "w") as h5_file:
        h5_file.attrs["format_version"] = FORMAT_VERSION
        h5_file.attrs["project_name"] = repository.context.project_name
        h5_file.attrs["subject_code"] = repository.context.subject_code

        h5_file.create_dataset("power", data=repository.power.data, compression="gzip")

        axes_group = h5_file.create_group("axes")
        for dim in POWER_DIMS:
            _write_labels(axes_group, dim, repository.power.axis(dim))

        table = repository.trial_index.to_frame()
        trials_group = h5_file.create_group("trials")
        trials_group.attrs["columns"] = [str(column) for column in table.columns]
        for column in table.columns:
            _write_labels(trials_group, str(column), table[column].to_numpy())

        view = repository.baselined
        if include_baselined and view is not None:
            dataset = h5_file.create_dataset(
                "baselined", data=view.data.data, compression="gzip"
            )
            dataset.attrs["method"] = view.method
            dataset.attrs["windows"] = np.asarray(view.windows, dtype=float)
            dataset.attrs["units"] = list(view.units)

    logger.info(f"Exported {repository!r} to: {path}")
    return path


class HDF5PowerSource:
    """
    Power source backed by a file written by export_repository().

    Args:
        path: HDF5 file path

    Raises:
        FileNotFoundError: If the file does not exist
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"HDF5 power file not found: {self.path}")

    def context(self, **overrides) -> AnalysisContext:
        """Analysis context stored in the file, with optional overrides."""
        with h5py.File(self.path, "r") as h5_file:
            stored = {
                "project_name": str(h5_file.attrs.get("project_name", "demo")),
                "subject_code": str(h5_file.attrs.get("subject_code", "DemoSubject")),
            }
        stored.update(overrides)
        return AnalysisContext(**stored)

    def read(
        self,
        electrodes: Sequence | None,
        time_window: tuple[float, float] | None,
        frequencies: Sequence[float] | None,
    ) -> PowerData:
        with h5py.File(self.path, "r") as h5_file:
            if "power" not in h5_file or "axes" not in h5_file:
                raise DataUnavailable(
                    f"{self.path} has no power data. "
                    f"Expected a file written by export_repository()"
                )
            axes = {dim: _read_labels(h5_file["axes"][dim]) for dim in POWER_DIMS}

            electrode_idx = select_labels(axes["Electrode"], electrodes, "Electrode")
            frequency_idx = select_labels(axes["Frequency"], frequencies, "Frequency")
            time_idx = select_time_window(axes["Time"], time_window)

            # h5py accepts one increasing index list per read: read the
            # frequency rows in file order over the contiguous time block,
            # then restore the requested order in memory
            rows, request_order = np.unique(frequency_idx, return_inverse=True)
            block = h5_file["power"][
                rows.tolist(), int(time_idx[0]) : int(time_idx[-1]) + 1, :, :
            ]
            power = block[request_order][:, :, :, electrode_idx]
            trials_group = h5_file["trials"]
            columns = [str(column) for column in trials_group.attrs["columns"]]
            table = pd.DataFrame(
                {column: _read_labels(trials_group[column]) for column in columns},
                columns=columns,
            )

        logger.debug(f"Read power {power.shape} from {self.path}")
        return PowerData(
            power=power,
            frequencies=axes["Frequency"][frequency_idx],
            time_points=axes["Time"][time_idx],
            trials=axes["Trial"],
            electrodes=axes["Electrode"][electrode_idx],
            trial_table=table,
        )
