"""
This module defines the core domain models for the application.

These classes represent the pure, technology-agnostic entities and data
structures that the retrieval pipeline operates on, together with the ports
that infrastructure adapters implement.
"""

import dataclasses
from datetime import datetime
from pathlib import Path

from abc import ABC, abstractmethod
from typing import Iterator, List, Optional, Tuple

import numpy

BASINS = ("atlantic", "pacific", "indian")


# --- Domain Models ---

@dataclasses.dataclass(frozen=True)
class SearchWindow:
    """The validated retrieval criteria supplied by the caller."""

    time_start: datetime
    time_end: datetime
    month_min: int = 1
    month_max: int = 12
    lat_min: float = -90.0
    lat_max: float = 90.0
    lon_min: float = -180.0
    lon_max: float = 180.0
    min_depth: float = -10.0
    basins: Tuple[str, ...] = BASINS

    @property
    def years(self) -> range:
        return range(self.time_start.year, self.time_end.year + 1)

    @property
    def months(self) -> range:
        return range(self.month_min, self.month_max + 1)


@dataclasses.dataclass(frozen=True)
class SearchTuple:
    """One (year, month, basin) cell of the index search space."""

    year: int
    month: int
    basin: str

    @property
    def yyyy(self) -> str:
        return f"{self.year:04d}"

    @property
    def mm(self) -> str:
        return f"{self.month:02d}"

    def __str__(self) -> str:
        return f"year={self.yyyy} month={self.mm} basin={self.basin}"


@dataclasses.dataclass(frozen=True)
class CandidateRecord:
    """A parsed, not-yet-accepted entry from an index resource."""

    path: str
    date_min: datetime
    date_max: datetime
    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float
    max_depth: float


@dataclasses.dataclass(frozen=True)
class ArchiveReference:
    """A fully-qualified locator for one remote archive."""

    url: str
    path: str

    @classmethod
    def resolve(cls, archive_root: str, path: str) -> "ArchiveReference":
        url = archive_root.rstrip("/") + "/" + path.lstrip("/")
        return cls(url=url, path=path)

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclasses.dataclass(frozen=True, eq=False)
class RawArchivePayload:
    """
    Decoded parallel arrays from one archive.

    `temperature` and `depth` are shaped (levels, profiles); `latitude`,
    `longitude` and `time` hold one value per profile. `time` is a
    datetime64 array of absolute instants.
    """

    temperature: numpy.ndarray
    depth: numpy.ndarray
    latitude: numpy.ndarray
    longitude: numpy.ndarray
    time: numpy.ndarray

    @property
    def profile_count(self) -> int:
        return len(self.time)


@dataclasses.dataclass(frozen=True, eq=False)
class Profile:
    """One vertical temperature series tagged with time and position."""

    temperature: numpy.ndarray
    depth: numpy.ndarray
    time: numpy.datetime64
    latitude: float
    longitude: float


@dataclasses.dataclass(frozen=True)
class FetchOutcome:
    """The explicit result of fetching and decoding one archive."""

    reference: ArchiveReference
    payload: Optional[RawArchivePayload] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.payload is not None

    @classmethod
    def success(cls, reference, payload) -> "FetchOutcome":
        return cls(reference=reference, payload=payload)

    @classmethod
    def failure(cls, reference, reason) -> "FetchOutcome":
        return cls(reference=reference, reason=reason)


class ResultCollection:
    """An ordered, append-only sequence of retained profiles."""

    def __init__(self):
        self._profiles: List[Profile] = []

    def append(self, profile: Profile):
        self._profiles.append(profile)

    def __len__(self) -> int:
        return len(self._profiles)

    def __iter__(self) -> Iterator[Profile]:
        return iter(self._profiles)

    def __getitem__(self, index: int) -> Profile:
        return self._profiles[index]


@dataclasses.dataclass(frozen=True)
class ScanResult:
    """Output of the index scan: accepted references plus scan counters."""

    references: Tuple[ArchiveReference, ...]
    tuples_scanned: int = 0
    indices_missing: int = 0
    records_malformed: int = 0


@dataclasses.dataclass(frozen=True)
class HarvestReport:
    """Summary of a completed run."""

    destination: Path
    tuples_scanned: int
    indices_missing: int
    records_malformed: int
    references_accepted: int
    archives_failed: int
    profiles_collected: int


# --- Ports (Interfaces) ---

class IndexSource(ABC):
    """A port for any source of per-basin, per-month index resources."""

    @abstractmethod
    async def fetch_index(self, cell: SearchTuple) -> str:
        """
        Fetches the full text of the index resource for one search cell.
        Raises ResourceNotFoundError or TransportError on failure.
        """
        pass


class ArchiveSource(ABC):
    """A port for retrieving raw archive bytes."""

    @abstractmethod
    async def fetch_archive(self, reference: ArchiveReference) -> bytes:
        """
        Fetches the bytes of a single archive.
        Raises ResourceNotFoundError or TransportError on failure.
        """
        pass


class ArchiveDecoder(ABC):
    """A port for turning archive bytes into parallel profile arrays."""

    @abstractmethod
    def decode(self, blob: bytes) -> RawArchivePayload:
        """Decodes one archive. Raises DecodeError on malformed input."""
        pass


class ProfileWriter(ABC):
    """A port for persisting the final result collection."""

    @abstractmethod
    async def write(self, collection: ResultCollection, destination: Path):
        """Writes every profile to destination. Raises PersistenceError."""
        pass
