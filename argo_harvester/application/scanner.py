"""
The first pipeline stage: turning a SearchWindow into archive references.
"""

import logging
from typing import Iterator, List, Tuple

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from .domain import (
    ArchiveReference,
    IndexSource,
    ScanResult,
    SearchTuple,
    SearchWindow,
)
from .exceptions import InfrastructureError, RecordParseError
from .records import parse_index_line, within_window


class SearchSpace:
    """
    The finite year x month x basin product covered by a window.

    Iteration is lazy and restartable: each call to ``iter`` walks the
    space again from the first cell.
    """

    def __init__(self, window: SearchWindow):
        self.window = window

    def __iter__(self) -> Iterator[SearchTuple]:
        for year in self.window.years:
            for month in self.window.months:
                for basin in self.window.basins:
                    yield SearchTuple(year=year, month=month, basin=basin)

    def __len__(self) -> int:
        return (
            len(self.window.years)
            * len(self.window.months)
            * len(self.window.basins)
        )


class IndexScanner:
    """Walks the search space and collects every acceptable archive."""

    def __init__(self, index_source: IndexSource, archive_root: str):
        """Initializes the scanner with an index source port."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.index_source = index_source
        self.archive_root = archive_root

    def _select(
        self, cell: SearchTuple, text: str, window: SearchWindow
    ) -> Tuple[List[ArchiveReference], int]:
        """Parses one index body and returns accepted references."""

        references = []
        malformed = 0

        # The first line is a header.
        for line_number, line in enumerate(text.splitlines()[1:], start=2):
            try:
                record = parse_index_line(line)
            except RecordParseError as e:
                malformed += 1
                self.logger.warning(
                    f"Skipping malformed record at line {line_number} "
                    f"of index {cell}: {e}"
                )
                continue

            if record is None:
                continue

            if record.max_depth >= window.min_depth and within_window(
                record, window
            ):
                references.append(
                    ArchiveReference.resolve(self.archive_root, record.path)
                )

        return references, malformed

    async def scan(self, window: SearchWindow) -> ScanResult:
        """
        Fetches and filters every index resource in the window's search space.

        Missing or unreachable indices and malformed records are logged and
        skipped; the scan always completes.

        Args:
            window: The validated search criteria.

        Returns:
            A ScanResult holding the references in encounter order (year,
            month, basin, then record order) and the scan counters.
        """

        space = SearchSpace(window)
        references: List[ArchiveReference] = []
        missing = 0
        malformed = 0
        scanned = 0

        self.logger.info(f"Checking {len(space)} ARGO index resources...")

        with logging_redirect_tqdm():
            for cell in tqdm(
                space, total=len(space), desc="Index scan", unit="index",
                disable=None,
            ):
                scanned += 1
                self.logger.info(f"Checking: {cell}")

                try:
                    text = await self.index_source.fetch_index(cell)
                except InfrastructureError as e:
                    missing += 1
                    self.logger.warning(
                        f"Unable to access metadata for: {cell} ({e})"
                    )
                    continue

                accepted, bad = self._select(cell, text, window)
                references.extend(accepted)
                malformed += bad

        self.logger.info(
            f"Index checks complete: {len(references)} archives selected."
        )

        return ScanResult(
            references=tuple(references),
            tuples_scanned=scanned,
            indices_missing=missing,
            records_malformed=malformed,
        )
