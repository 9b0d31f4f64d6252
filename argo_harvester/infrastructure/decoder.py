"""
Infrastructure adapter decoding NetCDF profile archives with xarray.
"""

import io
import logging
from typing import Mapping

import numpy
import pandas
import xarray

from ..application.domain import ArchiveDecoder, RawArchivePayload
from ..application.exceptions import DecodeError

_DEFAULT_VARIABLES = {
    "temperature": "temp",
    "depth": "pres",
    "latitude": "latitude",
    "longitude": "longitude",
    "time": "juld",
}
_DEFAULT_EPOCH = "1950-01-01T00:00:00"

# Leading bytes of NetCDF-3 classic and NetCDF-4 (HDF5) files
_ENGINES = (
    (b"CDF", "scipy"),
    (b"\x89HDF", "h5netcdf"),
)


class NetcdfArchiveDecoder(ArchiveDecoder):
    """
    An adapter that implements the ArchiveDecoder port for ARGO NetCDF files.

    Times are stored as fractional days since a fixed epoch and are converted
    to absolute datetime64 values here.
    """

    def __init__(
        self,
        variables: Mapping[str, str] = None,
        epoch: str = _DEFAULT_EPOCH,
    ):
        """Initializes the decoder."""
        self.logger = logging.getLogger(self.__class__.__name__)
        overrides = {
            key: name
            for key, name in (variables or {}).items()
            if key in _DEFAULT_VARIABLES
        }
        self.variables = {**_DEFAULT_VARIABLES, **overrides}
        self.epoch = pandas.Timestamp(epoch)

    def _to_levels_by_profiles(
        self, dataset: xarray.Dataset, key: str, profile_dim: str
    ) -> numpy.ndarray:
        """Reads a measured variable as a (levels, profiles) array."""
        values = (
            dataset[self.variables[key]]
            .transpose(..., profile_dim)
            .values.astype("float64")
        )
        if values.ndim == 1:
            values = values.reshape(1, -1)
        if values.ndim != 2:
            raise DecodeError(
                f"Variable {self.variables[key]!r} has {values.ndim} "
                f"dimensions, expected at most 2"
            )
        return values

    def _per_profile(
        self, dataset: xarray.Dataset, key: str, count: int
    ) -> numpy.ndarray:
        """Reads a per-profile scalar variable as a flat array."""
        values = numpy.atleast_1d(dataset[self.variables[key]].values)
        values = values.astype("float64").ravel()
        if len(values) != count:
            raise DecodeError(
                f"Variable {self.variables[key]!r} holds {len(values)} "
                f"values for {count} profiles"
            )
        return values

    def _absolute_times(self, offsets: numpy.ndarray) -> numpy.ndarray:
        """Adds day offsets to the epoch; missing offsets become NaT."""
        times = self.epoch + pandas.to_timedelta(offsets, unit="D")
        return times.to_numpy(dtype="datetime64[ns]")

    @staticmethod
    def _engine_for(blob: bytes) -> str:
        for magic, engine in _ENGINES:
            if blob.startswith(magic):
                return engine
        raise DecodeError(f"Unrecognised archive format (starts with {blob[:4]!r})")

    def _extract(self, dataset: xarray.Dataset) -> RawArchivePayload:
        time_var = dataset[self.variables["time"]]
        if time_var.ndim != 1:
            raise DecodeError(
                f"Time variable {self.variables['time']!r} is not 1-D"
            )

        profile_dim = time_var.dims[0]
        offsets = time_var.values.astype("float64")
        count = len(offsets)

        temperature = self._to_levels_by_profiles(dataset, "temperature", profile_dim)
        depth = self._to_levels_by_profiles(dataset, "depth", profile_dim)
        if temperature.shape != depth.shape:
            raise DecodeError(
                f"Temperature shape {temperature.shape} does not match "
                f"depth shape {depth.shape}"
            )

        return RawArchivePayload(
            temperature=temperature,
            depth=depth,
            latitude=self._per_profile(dataset, "latitude", count),
            longitude=self._per_profile(dataset, "longitude", count),
            time=self._absolute_times(offsets),
        )

    def decode(self, blob: bytes) -> RawArchivePayload:
        """
        Decodes NetCDF bytes into parallel profile arrays.

        This public method fulfills the ArchiveDecoder port contract. Fill
        values are masked to NaN by xarray; time decoding is done here so
        the configured epoch is honoured.

        Args:
            blob: The raw archive bytes.

        Returns:
            The decoded RawArchivePayload.

        Raises:
            DecodeError: If the bytes are not a readable archive or a required
                variable is missing or mis-shaped.
        """

        engine = self._engine_for(blob)
        try:
            with xarray.open_dataset(
                io.BytesIO(blob), engine=engine, decode_times=False
            ) as dataset:
                payload = self._extract(dataset)
        except DecodeError:
            raise
        # Truncated NetCDF-3 files surface as IndexError and friends from scipy.
        except Exception as e:
            raise DecodeError(f"Failed to decode archive: {e}") from e

        self.logger.debug(f"Decoded {payload.profile_count} profiles")
        return payload
