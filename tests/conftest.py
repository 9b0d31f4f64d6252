"""Shared fakes and builders for the harvester test suite."""

from datetime import datetime

import numpy
import pytest
import xarray

from argo_harvester.application.domain import (
    ArchiveDecoder,
    ArchiveSource,
    IndexSource,
    ProfileWriter,
    RawArchivePayload,
    SearchWindow,
)
from argo_harvester.application.exceptions import (
    DecodeError,
    ResourceNotFoundError,
)

HEADER = "flag,float,file,date_min,date_max,lat_min,lat_max,lon_min,lon_max,n_prof,depth_max"
ARCHIVE_ROOT = "https://catalog.test/argo/gadr/"


def index_line(
    path,
    date_min="2018-01-05T00:00:00",
    date_max="2018-01-20T12:00:00",
    lat=(10.0, 20.0),
    lon=(-40.0, -30.0),
    depth=1500.0,
    flag="1",
):
    return ",".join(
        [
            flag,
            "3900123",
            path,
            date_min,
            date_max,
            str(lat[0]),
            str(lat[1]),
            str(lon[0]),
            str(lon[1]),
            "3",
            str(depth),
        ]
    )


def index_text(*lines):
    return "\n".join([HEADER, *lines]) + "\n"


def payload(times, levels=3, lat=12.5, lon=-35.0):
    """Builds a payload whose column i has temperature i at every level."""
    count = len(times)
    columns = numpy.arange(count, dtype="float64")
    return RawArchivePayload(
        temperature=numpy.tile(columns, (levels, 1)),
        depth=numpy.tile(numpy.arange(levels, dtype="float64").reshape(-1, 1) * 10.0, (1, count)),
        latitude=numpy.full(count, lat),
        longitude=numpy.full(count, lon),
        time=numpy.array(
            [numpy.datetime64("2018-01-01T00:00:00", "ns") + numpy.timedelta64(t, "h") for t in times],
            dtype="datetime64[ns]",
        ),
    )


def netcdf_archive(*drop):
    """NetCDF-3 bytes holding two profiles of three levels each."""
    dataset = xarray.Dataset(
        {
            "temp": (("n_prof", "n_levels"), [[10.0, 9.0, 8.0], [11.0, 10.0, 9.0]]),
            "pres": (("n_prof", "n_levels"), [[5.0, 10.0, 20.0], [4.0, 9.0, 19.0]]),
            "latitude": ("n_prof", [12.5, 13.0]),
            "longitude": ("n_prof", [-35.0, -34.5]),
            "juld": ("n_prof", [25000.0, 25010.5]),
        }
    )
    return bytes(dataset.drop_vars(list(drop)).to_netcdf(engine="scipy"))


class FakeIndexSource(IndexSource):
    """Serves index text keyed by (year, month, basin); anything else is 404."""

    def __init__(self, indices=None):
        self.indices = indices or {}
        self.requested = []

    async def fetch_index(self, cell):
        self.requested.append((cell.year, cell.month, cell.basin))
        try:
            return self.indices[(cell.year, cell.month, cell.basin)]
        except KeyError:
            raise ResourceNotFoundError(f"Not found: {cell}")


class FakeArchiveSource(ArchiveSource):
    """Returns the archive path as bytes, or 404 for unknown paths."""

    def __init__(self, known):
        self.known = set(known)
        self.requested = []

    async def fetch_archive(self, reference):
        self.requested.append(reference.path)
        if reference.path not in self.known:
            raise ResourceNotFoundError(f"Not found: {reference.url}")
        return reference.path.encode()


class FakeDecoder(ArchiveDecoder):
    """Maps archive bytes (the path) to a prepared payload."""

    def __init__(self, payloads):
        self.payloads = payloads

    def decode(self, blob):
        try:
            return self.payloads[blob.decode()]
        except KeyError:
            raise DecodeError(f"Cannot decode {blob!r}")


class MemoryWriter(ProfileWriter):
    """Keeps the written collection for inspection."""

    def __init__(self):
        self.written = []

    async def write(self, collection, destination):
        self.written.append((collection, destination))


@pytest.fixture
def january_window():
    return SearchWindow(
        time_start=datetime(2018, 1, 1),
        time_end=datetime(2018, 1, 31, 23, 59, 59),
        month_min=1,
        month_max=1,
        min_depth=0.0,
        basins=("atlantic",),
    )
