"""
The core application service and pipeline, containing pure business logic.

This module defines the main orchestrator (HarvesterService) for a retrieval
run, the fetcher (ArchiveFetcher) that turns one archive reference into an
explicit outcome, and the aggregator (ProfileAggregator) that folds decoded
payloads into the result collection.
"""

import asyncio
import logging
from pathlib import Path
from collections import deque
from typing import Sequence, Tuple

import numpy
from tqdm.contrib.logging import logging_redirect_tqdm
from tqdm import tqdm

from .domain import *
from .exceptions import DomainError, InfrastructureError
from .scanner import IndexScanner

logger = logging.getLogger(__name__)


class ArchiveFetcher:
    """Retrieves and decodes a single archive, never raising on failure."""

    def __init__(self, archive_source: ArchiveSource, decoder: ArchiveDecoder):
        """Initializes the fetcher with necessary dependencies (ports)."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.archive_source = archive_source
        self.decoder = decoder

    async def fetch(self, reference: ArchiveReference) -> FetchOutcome:
        """Fetches one archive and decodes it off the event loop.

        Args:
            reference: The archive to retrieve.

        Returns:
            A successful outcome carrying the payload, or a failed outcome
            carrying the reason. Failed outcomes contribute no profiles.
        """

        self.logger.info(f"Downloading {reference.url}")

        try:
            blob = await self.archive_source.fetch_archive(reference)
            payload = await asyncio.to_thread(self.decoder.decode, blob)
        except (InfrastructureError, DomainError) as e:
            self.logger.warning(f"File not found: {reference.url} ({e})")
            return FetchOutcome.failure(reference, str(e))

        return FetchOutcome.success(reference, payload)


class ProfileAggregator:
    """Splits payloads into profiles, keeping one per distinct timestamp."""

    def aggregate(
        self, payload: RawArchivePayload, collection: ResultCollection
    ) -> int:
        """
        Appends one Profile per distinct timestamp to the collection.

        When several columns share a timestamp, the first column wins and
        surviving columns keep their archive order.

        Returns:
            The number of profiles contributed.
        """

        _, first_columns = numpy.unique(payload.time, return_index=True)

        for column in numpy.sort(first_columns):
            collection.append(
                Profile(
                    temperature=payload.temperature[:, column].copy(),
                    depth=payload.depth[:, column].copy(),
                    time=payload.time[column],
                    latitude=float(payload.latitude[column]),
                    longitude=float(payload.longitude[column]),
                )
            )

        return len(first_columns)


class HarvesterService:
    """Orchestrates scan, fetch, aggregation and persistence for one run."""

    def __init__(
        self,
        scanner: IndexScanner,
        fetcher: ArchiveFetcher,
        aggregator: ProfileAggregator,
        writer: ProfileWriter,
        concurrent_downloads: int = 1,
    ):
        """Initializes the service with its pipeline stages."""
        self.scanner = scanner
        self.fetcher = fetcher
        self.aggregator = aggregator
        self.writer = writer
        self.concurrent_downloads = max(1, concurrent_downloads)

    async def _fetch_with_semaphore(
        self, reference: ArchiveReference, semaphore: asyncio.Semaphore
    ) -> FetchOutcome:
        """Wrapper to acquire a semaphore before fetching an archive."""
        async with semaphore:
            return await self.fetcher.fetch(reference)

    async def harvest(
        self, references: Sequence[ArchiveReference]
    ) -> Tuple[ResultCollection, int]:
        """
        Fetches every reference and aggregates the payloads.

        Downloads run ahead behind the semaphore, but outcomes are awaited
        and folded into the collection one at a time in reference order by
        this coroutine alone. Each payload is released once aggregated, and
        the result does not depend on download completion order.

        Returns:
            The collection and the number of archives that failed.
        """

        collection = ResultCollection()
        if not references:
            logger.info("No archives selected, nothing to download.")
            return collection, 0

        semaphore = asyncio.Semaphore(self.concurrent_downloads)
        tasks = [
            asyncio.create_task(
                self._fetch_with_semaphore(reference, semaphore)
            )
            for reference in references
        ]

        logger.info(
            f"Downloading {len(tasks)} archives with a concurrency "
            f"limit of {self.concurrent_downloads}..."
        )

        # Tasks are popped as they are awaited so an aggregated payload is
        # not kept alive by this queue.
        pending = deque(tasks)
        del tasks

        failed = 0
        with logging_redirect_tqdm():
            with tqdm(
                total=len(pending), desc="Archive download", unit="archive",
                disable=None,
            ) as progress_bar:
                while pending:
                    outcome = await pending.popleft()
                    progress_bar.update(1)
                    if not outcome.ok:
                        failed += 1
                        continue
                    added = self.aggregator.aggregate(outcome.payload, collection)
                    logger.debug(f"{outcome.reference.name}: {added} profiles kept")
                    del outcome

        return collection, failed

    async def run(self, window: SearchWindow, destination: Path) -> HarvestReport:
        """Executes a full retrieval run and persists the collection."""

        logger.info(
            f"Starting harvest. Window: {window.time_start} to "
            f"{window.time_end}, basins: {list(window.basins)}"
        )

        scan = await self.scanner.scan(window)
        collection, failed = await self.harvest(scan.references)

        logger.info(
            f"Data download completed, saving {len(collection)} profiles "
            f"to {destination}"
        )
        await self.writer.write(collection, destination)

        report = HarvestReport(
            destination=destination,
            tuples_scanned=scan.tuples_scanned,
            indices_missing=scan.indices_missing,
            records_malformed=scan.records_malformed,
            references_accepted=len(scan.references),
            archives_failed=failed,
            profiles_collected=len(collection),
        )
        logger.info(f"Harvest finished: {report}")
        return report
