"""Loader for the pre-cleaned remote-sensing case study.

The case study ships as a rectangular matrix of observations (rows are
weekly time steps, columns are longitude pixels along one latitude band)
plus a side table of coordinates (latitude, longitude and time values).
This module only reads those two files and hands single longitude columns
to the early-warning engine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from resilience.errors import InvalidParameter
from resilience.types import ScalarSeries

logger = logging.getLogger(__name__)

_COORD_ALIASES = {
    "lat": ("lat", "latitude"),
    "lon": ("lon", "longitude"),
    "time": ("time", "t", "date"),
}


@dataclass
class RemoteSensingDataset:
    """Observation matrix with its coordinate metadata."""
    matrix: NDArray        # (n_time, n_lon)
    latitude: NDArray
    longitude: NDArray
    time: NDArray

    def __post_init__(self):
        self.matrix = np.asarray(self.matrix, dtype=float)
        self.latitude = np.asarray(self.latitude)
        self.longitude = np.asarray(self.longitude, dtype=float)
        self.time = np.asarray(self.time)
        if self.matrix.ndim != 2:
            raise InvalidParameter(f"observation matrix must be 2-D, got {self.matrix.shape}")
        n_time, n_lon = self.matrix.shape
        if len(self.time) != n_time:
            raise InvalidParameter(
                f"matrix has {n_time} rows but {len(self.time)} time values"
            )
        if len(self.longitude) != n_lon:
            raise InvalidParameter(
                f"matrix has {n_lon} columns but {len(self.longitude)} longitudes"
            )

    @property
    def shape(self) -> tuple[int, int]:
        return self.matrix.shape

    def nearest_longitude_index(self, lon: float) -> int:
        return int(np.argmin(np.abs(self.longitude - lon)))

    def to_frame(self) -> pd.DataFrame:
        """Matrix as a DataFrame indexed by time with longitude column labels."""
        return pd.DataFrame(self.matrix, index=self.time, columns=self.longitude)


# ---------------------------------------------------------------------------
# File readers
# ---------------------------------------------------------------------------

def load_observation_matrix(path: str | Path, key: str | None = None) -> NDArray:
    """Read a 2-D observation matrix from ``.csv``, ``.npy`` or ``.npz``.

    CSV files are read without a header row.  For ``.npz`` archives the
    array named ``key`` is used, or the first array when ``key`` is None.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        matrix = pd.read_csv(path, header=None).to_numpy(dtype=float)
    elif suffix == ".npy":
        matrix = np.load(path)
    elif suffix == ".npz":
        with np.load(path) as archive:
            name = key if key is not None else archive.files[0]
            if name not in archive.files:
                raise InvalidParameter(f"{path.name} has no array {name!r}")
            matrix = archive[name]
    else:
        raise InvalidParameter(f"Unsupported matrix format: {path.suffix!r}")
    matrix = np.asarray(matrix, dtype=float)
    if matrix.ndim != 2:
        raise InvalidParameter(f"{path.name} holds a {matrix.ndim}-D array, expected 2-D")
    logger.info("Loaded observation matrix %s with shape %s", path.name, matrix.shape)
    return matrix


def _pick(mapping: dict[str, NDArray], coord: str, source: str) -> NDArray:
    for alias in _COORD_ALIASES[coord]:
        if alias in mapping:
            return mapping[alias]
    raise InvalidParameter(f"{source} has no {coord!r} coordinate")


def load_coordinates(path: str | Path) -> dict[str, NDArray]:
    """Read latitude, longitude and time vectors.

    Accepts an ``.npz`` archive with ``lat``/``lon``/``time`` arrays or a
    CSV with those columns.  The vectors have different lengths, so CSV
    columns padded with empty cells are trimmed.  Time values stored as date
    strings are parsed to ``datetime64``.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".npz":
        with np.load(path) as archive:
            raw = {name: archive[name] for name in archive.files}
    elif suffix == ".csv":
        frame = pd.read_csv(path)
        frame.columns = [str(col).strip().lower() for col in frame.columns]
        raw = {col: frame[col].dropna().to_numpy() for col in frame.columns}
    else:
        raise InvalidParameter(f"Unsupported coordinate format: {path.suffix!r}")
    coords = {coord: np.asarray(_pick(raw, coord, path.name)) for coord in _COORD_ALIASES}
    if coords["time"].dtype.kind in "OUS":
        # date strings such as "2004-06-01"
        try:
            coords["time"] = pd.to_datetime(coords["time"]).to_numpy()
        except (ValueError, TypeError) as exc:
            raise InvalidParameter(f"{path.name}: time values are neither numeric nor dates") from exc
    return coords


def load_dataset(matrix_path: str | Path, coords_path: str | Path) -> RemoteSensingDataset:
    """Load the observation matrix and its coordinates into one dataset."""
    matrix = load_observation_matrix(matrix_path)
    coords = load_coordinates(coords_path)
    return RemoteSensingDataset(
        matrix=matrix,
        latitude=coords["lat"],
        longitude=coords["lon"],
        time=coords["time"],
    )


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def select_longitude(
    dataset: RemoteSensingDataset,
    lon: float,
    dropna: bool = True,
) -> ScalarSeries:
    """Time series of the pixel column nearest to ``lon``."""
    j = dataset.nearest_longitude_index(lon)
    values = dataset.matrix[:, j]
    index = dataset.time
    if dropna:
        keep = np.isfinite(values)
        if not keep.all():
            logger.debug("Dropping %d missing rows at lon=%g", int((~keep).sum()), dataset.longitude[j])
        values, index = values[keep], index[keep]
    return ScalarSeries(values, index, name=f"lon={dataset.longitude[j]:g}")
