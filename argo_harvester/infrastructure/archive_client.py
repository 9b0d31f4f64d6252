"""HTTP implementation of the ArchiveSource port."""

import httpx

from ..application.domain import ArchiveReference, ArchiveSource
from ..application.exceptions import TransportError

from .base_client import BaseClient
from .decorators import retry_on_network_error


class HttpArchiveSource(BaseClient, ArchiveSource):
    """An archive source that streams profile files into memory."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        root_url: str,
        timeout: float,
        chunk_size: int,
    ):
        """Initializes the archive source adapter."""
        super().__init__(client, root_url, timeout)
        self.chunk_size = chunk_size

    async def _stream_from_network(self, url: str) -> bytes:
        """Manage the network request and collect the streamed body."""
        buffer = bytearray()
        async with self.client.stream("GET", url, timeout=self.timeout) as response:
            response.raise_for_status()
            expected = response.headers.get("Content-Length")
            async for chunk in response.aiter_bytes(self.chunk_size):
                buffer.extend(chunk)
            received = response.num_bytes_downloaded

        # Content-Length counts encoded bytes, so compare against the wire count.
        if expected is not None and int(expected) != received:
            raise TransportError(
                f"Size mismatch for {url}: {received} != {expected}"
            )
        return bytes(buffer)

    @retry_on_network_error
    async def _execute_download(self, url: str) -> bytes:
        """Run a single, retried download."""
        return await self._stream_from_network(url)

    async def fetch_archive(self, reference: ArchiveReference) -> bytes:
        """
        Downloads the bytes of one archive.

        This is the public method that fulfills the ArchiveSource port
        contract. Nothing is written to disk.

        Args:
            reference: The resolved archive locator.

        Returns:
            The raw archive bytes.

        Raises:
            ResourceNotFoundError: If the archive does not exist.
            TransportError: If streaming the archive fails.
        """

        try:
            blob = await self._execute_download(reference.url)
        except httpx.HTTPError as e:
            raise self._translate(reference.url, e) from e

        self.logger.info(f"Finished downloading {reference.name} ({len(blob)} B)")
        return blob
