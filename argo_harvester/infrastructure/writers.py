"""
Infrastructure adapters persisting the result collection to disk.
"""

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Generator

import numpy
import pandas
import pyarrow
import pyarrow.parquet as parquet
import scipy.io

from ..application.domain import ProfileWriter, ResultCollection
from ..application.exceptions import PersistenceError

PROFILE_SCHEMA = pyarrow.schema(
    [
        ("temp", pyarrow.list_(pyarrow.float64())),
        ("depth", pyarrow.list_(pyarrow.float64())),
        ("date", pyarrow.timestamp("ns")),
        ("lat", pyarrow.float64()),
        ("lon", pyarrow.float64()),
    ]
)

# MATLAB datenum of 1970-01-01
_DATENUM_UNIX_EPOCH = 719529.0
_UNIX_EPOCH = numpy.datetime64("1970-01-01T00:00:00", "ns")


def to_frame(collection: ResultCollection) -> pandas.DataFrame:
    """Flattens a collection into one row per profile."""
    return pandas.DataFrame(
        {
            "temp": [p.temperature for p in collection],
            "depth": [p.depth for p in collection],
            "date": pandas.to_datetime([p.time for p in collection]),
            "lat": [p.latitude for p in collection],
            "lon": [p.longitude for p in collection],
        },
        columns=PROFILE_SCHEMA.names,
    )


def to_datenum(time: numpy.datetime64) -> float:
    """Converts an instant to a MATLAB serial date number."""
    elapsed = numpy.datetime64(time, "ns") - _UNIX_EPOCH
    return float(elapsed / numpy.timedelta64(1, "D")) + _DATENUM_UNIX_EPOCH


@contextlib.contextmanager
def _atomic_target(destination: Path) -> Generator[Path, None, None]:
    """Provides a temporary '.part' path and ensures cleanup."""
    part_path = destination.with_suffix(destination.suffix + ".part")
    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        yield part_path
    finally:
        part_path.unlink(missing_ok=True)


class ParquetProfileWriter(ProfileWriter):
    """An adapter that implements the ProfileWriter port with Parquet."""

    def __init__(self):
        """Initializes the writer."""
        self.logger = logging.getLogger(self.__class__.__name__)

    def _blocking_write(self, collection: ResultCollection, destination: Path):
        """Converts the collection to an Arrow table and writes it."""
        try:
            if len(collection):
                table = pyarrow.Table.from_pandas(
                    to_frame(collection), schema=PROFILE_SCHEMA, preserve_index=False
                )
            else:
                table = PROFILE_SCHEMA.empty_table()
            with _atomic_target(destination) as part_path:
                parquet.write_table(table, part_path)
                part_path.rename(destination)
        except (OSError, ValueError, pyarrow.ArrowException) as e:
            raise PersistenceError(f"Failed to write {destination}: {e}") from e

    async def write(self, collection: ResultCollection, destination: Path):
        """
        Writes the collection to a Parquet file.

        The heavy, blocking I/O runs in a separate thread to avoid blocking
        the event loop.

        Raises:
            PersistenceError: If conversion or writing fails.
        """

        self.logger.info(f"Writing {len(collection)} profiles to {destination.name}...")
        await asyncio.to_thread(self._blocking_write, collection, destination)
        self.logger.info(f"Finished writing {destination.name}")


class MatProfileWriter(ProfileWriter):
    """
    An adapter that writes the collection as a MATLAB struct array named
    ``argoprofs`` with fields temp, depth, date (datenum), lat and lon.
    """

    _FIELDS = ("temp", "depth", "date", "lat", "lon")

    def __init__(self, variable_name: str = "argoprofs"):
        """Initializes the writer."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.variable_name = variable_name

    def _to_struct_array(self, collection: ResultCollection) -> numpy.ndarray:
        records = numpy.empty(
            (1, len(collection)), dtype=[(name, object) for name in self._FIELDS]
        )
        for i, profile in enumerate(collection):
            records["temp"][0, i] = profile.temperature.reshape(-1, 1)
            records["depth"][0, i] = profile.depth.reshape(-1, 1)
            records["date"][0, i] = to_datenum(profile.time)
            records["lat"][0, i] = profile.latitude
            records["lon"][0, i] = profile.longitude
        return records

    def _blocking_write(self, collection: ResultCollection, destination: Path):
        try:
            records = self._to_struct_array(collection)
            with _atomic_target(destination) as part_path:
                with open(part_path, "wb") as out_fh:
                    scipy.io.savemat(out_fh, {self.variable_name: records})
                part_path.rename(destination)
        except (OSError, ValueError, TypeError) as e:
            raise PersistenceError(f"Failed to write {destination}: {e}") from e

    async def write(self, collection: ResultCollection, destination: Path):
        """Writes the collection to a MATLAB .mat file."""
        self.logger.info(f"Writing {len(collection)} profiles to {destination.name}...")
        await asyncio.to_thread(self._blocking_write, collection, destination)
        self.logger.info(f"Finished writing {destination.name}")
