"""HTTP implementation of the IndexSource port."""

import httpx

from ..application.domain import IndexSource, SearchTuple

from .base_client import BaseClient
from .decorators import retry_on_network_error


class HttpIndexSource(BaseClient, IndexSource):
    """An index source reading per-basin, per-month inventories over HTTP."""

    def locate(self, cell: SearchTuple) -> str:
        """Builds the index URL for one (year, month, basin) cell."""
        return (
            f"{self.root_url}{cell.basin}/{cell.yyyy}/"
            f"{cell.basin[:2]}{cell.yyyy}{cell.mm}_argoinv.txt"
        )

    @retry_on_network_error
    async def _execute_fetch(self, url: str) -> str:
        """Executes the raw HTTP GET request."""
        response = await self.client.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.text

    async def fetch_index(self, cell: SearchTuple) -> str:
        """
        Fetches the text of one index resource.

        This method serves as the public contract fulfillment for the
        IndexSource port.

        Args:
            cell: The search-space cell to look up.

        Returns:
            The full index text, header line included.

        Raises:
            ResourceNotFoundError: If the catalog has no index for the cell.
            TransportError: If the request fails for any other reason.
        """

        url = self.locate(cell)
        try:
            return await self._execute_fetch(url)
        except httpx.HTTPError as e:
            raise self._translate(url, e) from e
