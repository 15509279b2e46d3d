"""
Labeled N-dimensional arrays.

A LabeledArray couples a numpy array with a name for each dimension and an
ordered label sequence (axis) for each dimension, e.g. a power spectrogram
with dims ("Frequency", "Time", "Trial", "Electrode") and axes holding the
frequencies in Hz, the time points in seconds, the trial ids and the
electrode ids.

Both the data and the axes are stored read-only. Every operation returns a
new LabeledArray backed by a new allocation, so a derived view can never be
used to modify the array it was derived from.
"""

from types import MappingProxyType
from typing import Iterable, Mapping, Sequence

import numpy as np


POWER_DIMS = ("Frequency", "Time", "Trial", "Electrode")


def make_axis(labels: Iterable, name: str = "axis") -> np.ndarray:
    """
    Build an immutable axis from a label sequence.

    Args:
        labels: Ordered labels (numbers or strings)
        name: Dimension name, used in error messages

    Returns:
        Read-only 1-D numpy array with a copy of the labels

    Raises:
        ValueError: If labels are not one-dimensional or contain duplicates
    """
    axis = np.array(list(labels) if not isinstance(labels, np.ndarray) else labels)
    if axis.ndim != 1:
        raise ValueError(
            f"Axis '{name}' must be one-dimensional, got shape {axis.shape}"
        )
    if len(np.unique(axis)) != len(axis):
        raise ValueError(f"Axis '{name}' contains duplicated labels: {axis.tolist()}")
    axis.setflags(write=False)
    return axis


class LabeledArray:
    """
    Read-only numpy array with named dimensions and per-dimension labels.

    Args:
        data: Values, one array dimension per name in `dims`
        dims: Dimension names
        axes: Labels per dimension name
        copy: Copy `data` (default). With copy=False the given ndarray is
            used as is and is made read-only in place, so the caller's own
            array can no longer be written either.

    Attributes:
        data: Read-only ndarray
        dims: Dimension names, in array order
        axes: Mapping from dimension name to its read-only label array
    """

    def __init__(
        self,
        data: np.ndarray,
        dims: Sequence[str],
        axes: Mapping[str, Iterable],
        copy: bool = True,
    ) -> None:
        dims = tuple(dims)
        if len(set(dims)) != len(dims):
            raise ValueError(f"Dimension names must be unique, got {dims}")

        values = np.array(data, copy=True) if copy else np.asarray(data)
        if values.ndim != len(dims):
            raise ValueError(
                f"Data has {values.ndim} dimensions but {len(dims)} names were "
                f"given: {dims}"
            )

        missing = [dim for dim in dims if dim not in axes]
        if missing:
            raise ValueError(f"Missing axis labels for dimensions: {missing}")

        built_axes = {}
        for position, dim in enumerate(dims):
            axis = axes[dim]
            if not (isinstance(axis, np.ndarray) and not axis.flags.writeable):
                axis = make_axis(axis, dim)
            if len(axis) != values.shape[position]:
                raise ValueError(
                    f"Axis '{dim}' has {len(axis)} labels but the data has "
                    f"{values.shape[position]} entries along that dimension"
                )
            built_axes[dim] = axis

        values.setflags(write=False)
        self._data = values
        self._dims = dims
        self._axes = MappingProxyType(built_axes)

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def dims(self) -> tuple[str, ...]:
        return self._dims

    @property
    def axes(self) -> Mapping[str, np.ndarray]:
        return self._axes

    @property
    def shape(self) -> tuple[int, ...]:
        return self._data.shape

    @property
    def ndim(self) -> int:
        return self._data.ndim

    def axis(self, dim: str) -> np.ndarray:
        """Return the labels of dimension `dim`."""
        return self._axes[self._check_dim(dim)]

    def axis_position(self, dim: str) -> int:
        """Return the array position of dimension `dim`."""
        return self._dims.index(self._check_dim(dim))

    def take(self, dim: str, indices: Sequence[int] | np.ndarray) -> "LabeledArray":
        """
        Select entries of one dimension by integer position.

        Returns:
            New LabeledArray; the selected data is always copied
        """
        position = self.axis_position(dim)
        indices = np.asarray(indices, dtype=int)
        new_axes = dict(self._axes)
        new_axes[dim] = make_axis(self._axes[dim][indices], dim)
        values = np.take(self._data, indices, axis=position)
        return LabeledArray(values, self._dims, new_axes, copy=False)

    def transpose(self, *dims: str) -> "LabeledArray":
        """Reorder dimensions by name."""
        if sorted(dims) != sorted(self._dims):
            raise ValueError(
                f"transpose() needs every dimension exactly once: got {dims}, "
                f"array has {self._dims}"
            )
        order = [self._dims.index(dim) for dim in dims]
        values = np.transpose(self._data, order).copy()
        return LabeledArray(values, dims, self._axes, copy=False)

    def with_data(self, data: np.ndarray) -> "LabeledArray":
        """Return a new array with the same dims and axes but different values."""
        return LabeledArray(data, self._dims, self._axes)

    def to_numpy(self) -> np.ndarray:
        """Return a writable copy of the values."""
        return self._data.copy()

    def _check_dim(self, dim: str) -> str:
        if dim not in self._axes:
            raise ValueError(
                f"Unknown dimension '{dim}'. Available dimensions: {self._dims}"
            )
        return dim

    def __repr__(self) -> str:
        sizes = ", ".join(
            f"{dim}={size}" for dim, size in zip(self._dims, self._data.shape)
        )
        return f"LabeledArray({sizes}, dtype={self._data.dtype})"
