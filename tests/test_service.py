import asyncio
from pathlib import Path

import numpy

from argo_harvester.application.domain import (
    ArchiveReference,
    ArchiveSource,
    ResultCollection,
)
from argo_harvester.application.scanner import IndexScanner
from argo_harvester.application.service import (
    ArchiveFetcher,
    HarvesterService,
    ProfileAggregator,
)

from conftest import (
    ARCHIVE_ROOT,
    FakeArchiveSource,
    FakeDecoder,
    FakeIndexSource,
    MemoryWriter,
    index_line,
    index_text,
    payload,
)


def reference(path):
    return ArchiveReference.resolve(ARCHIVE_ROOT, path)


def build_service(indices, archives, payloads, concurrent_downloads=1):
    writer = MemoryWriter()
    service = HarvesterService(
        scanner=IndexScanner(FakeIndexSource(indices), ARCHIVE_ROOT),
        fetcher=ArchiveFetcher(FakeArchiveSource(archives), FakeDecoder(payloads)),
        aggregator=ProfileAggregator(),
        writer=writer,
        concurrent_downloads=concurrent_downloads,
    )
    return service, writer


def test_duplicate_timestamps_keep_first_column():
    collection = ResultCollection()

    added = ProfileAggregator().aggregate(payload([10, 20, 10, 30]), collection)

    assert added == 3
    assert len(collection) == 3
    # Column i carries temperature i, so this identifies the kept columns.
    assert [p.temperature[0] for p in collection] == [0.0, 1.0, 3.0]
    times = [p.time for p in collection]
    assert len(set(times)) == 3


def test_profile_slices_one_column():
    collection = ResultCollection()
    data = payload([1, 2], levels=4, lat=-3.5, lon=170.25)

    ProfileAggregator().aggregate(data, collection)

    profile = collection[1]
    numpy.testing.assert_array_equal(profile.temperature, [1.0, 1.0, 1.0, 1.0])
    numpy.testing.assert_array_equal(profile.depth, [0.0, 10.0, 20.0, 30.0])
    assert profile.latitude == -3.5
    assert profile.longitude == 170.25
    assert profile.time == data.time[1]


def test_empty_payload_contributes_nothing():
    collection = ResultCollection()
    assert ProfileAggregator().aggregate(payload([]), collection) == 0
    assert len(collection) == 0


async def test_fetcher_turns_missing_archive_into_failure():
    fetcher = ArchiveFetcher(FakeArchiveSource([]), FakeDecoder({}))

    outcome = await fetcher.fetch(reference("gone.nc"))

    assert not outcome.ok
    assert outcome.payload is None
    assert "gone.nc" in outcome.reason


async def test_fetcher_turns_decode_error_into_failure():
    fetcher = ArchiveFetcher(FakeArchiveSource(["corrupt.nc"]), FakeDecoder({}))

    outcome = await fetcher.fetch(reference("corrupt.nc"))

    assert not outcome.ok


async def test_failed_archive_does_not_stop_later_ones(january_window):
    indices = {
        (2018, 1, "atlantic"): index_text(
            index_line("missing.nc"), index_line("a.nc"), index_line("b.nc")
        )
    }
    service, writer = build_service(
        indices,
        archives=["a.nc", "b.nc"],
        payloads={"a.nc": payload([1, 2]), "b.nc": payload([5])},
    )

    report = await service.run(january_window, Path("out.parquet"))

    assert report.references_accepted == 3
    assert report.archives_failed == 1
    assert report.profiles_collected == 3
    collection, destination = writer.written[0]
    assert destination == Path("out.parquet")
    assert len(collection) == 3


async def test_disjoint_archives_sum_their_counts(january_window):
    indices = {
        (2018, 1, "atlantic"): index_text(index_line("a.nc"), index_line("b.nc"))
    }
    service, writer = build_service(
        indices,
        archives=["a.nc", "b.nc"],
        payloads={"a.nc": payload([1, 2, 2, 3]), "b.nc": payload([7, 8, 8])},
    )

    report = await service.run(january_window, Path("out.parquet"))

    assert report.profiles_collected == 3 + 2
    assert len(writer.written[0][0]) == 5


async def test_empty_run_still_persists(january_window):
    service, writer = build_service({}, archives=[], payloads={})

    report = await service.run(january_window, Path("empty.parquet"))

    assert report.indices_missing == 1
    assert report.profiles_collected == 0
    assert len(writer.written) == 1
    assert len(writer.written[0][0]) == 0


class SlowFirstSource(ArchiveSource):
    """Completes archives in reverse order to exercise the fan-in."""

    def __init__(self, paths):
        self.delays = {path: 0.01 * (len(paths) - i) for i, path in enumerate(paths)}

    async def fetch_archive(self, reference):
        await asyncio.sleep(self.delays[reference.path])
        return reference.path.encode()


async def test_concurrent_downloads_keep_reference_order():
    paths = ["a.nc", "b.nc", "c.nc"]
    payloads = {
        "a.nc": payload([1], lat=1.0),
        "b.nc": payload([1], lat=2.0),
        "c.nc": payload([1, 2], lat=3.0),
    }
    service = HarvesterService(
        scanner=None,
        fetcher=ArchiveFetcher(SlowFirstSource(paths), FakeDecoder(payloads)),
        aggregator=ProfileAggregator(),
        writer=MemoryWriter(),
        concurrent_downloads=3,
    )

    collection, failed = await service.harvest([reference(p) for p in paths])

    assert failed == 0
    assert [p.latitude for p in collection] == [1.0, 2.0, 3.0, 3.0]


class RecordingSource(ArchiveSource):
    """Logs when each download starts and finishes."""

    def __init__(self, events):
        self.events = events

    async def fetch_archive(self, reference):
        self.events.append(f"fetch {reference.path}")
        await asyncio.sleep(0)
        self.events.append(f"fetched {reference.path}")
        return reference.path.encode()


class RecordingAggregator(ProfileAggregator):
    def __init__(self, events):
        self.events = events

    def aggregate(self, payload, collection):
        self.events.append(f"aggregate {payload.latitude[0]:g}")
        return super().aggregate(payload, collection)


async def test_payloads_are_aggregated_while_downloads_continue():
    events = []
    paths = ["a.nc", "b.nc", "c.nc"]
    payloads = {path: payload([1], lat=float(i)) for i, path in enumerate(paths)}
    service = HarvesterService(
        scanner=None,
        fetcher=ArchiveFetcher(RecordingSource(events), FakeDecoder(payloads)),
        aggregator=RecordingAggregator(events),
        writer=MemoryWriter(),
        concurrent_downloads=1,
    )

    collection, failed = await service.harvest([reference(p) for p in paths])

    assert failed == 0
    assert len(collection) == 3
    assert events.index("aggregate 0") < events.index("fetched c.nc")
    assert [e for e in events if e.startswith("aggregate")] == [
        "aggregate 0",
        "aggregate 1",
        "aggregate 2",
    ]
