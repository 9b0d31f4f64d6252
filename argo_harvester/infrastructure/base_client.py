"""Base class for async HTTP clients of the ARGO catalog."""

import logging
import httpx

from ..application.exceptions import (
    ConfigurationError,
    ResourceNotFoundError,
    TransportError,
)


class BaseClient:
    """A base client that handles an async client and a catalog root URL."""

    def __init__(self, client: httpx.AsyncClient, root_url: str, timeout: float):
        """
        Initializes the base client.

        Args:
            client: An instance of httpx.AsyncClient.
            root_url: The catalog prefix every locator is built on.
            timeout: Per-request timeout in seconds.

        Raises:
            ConfigurationError: If the root URL is missing or not HTTP(S).
        """

        if not root_url or not root_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"Root URL for {self.__class__.__name__} is missing or is "
                f"not an http(s) URL: {root_url!r}. Please check your config files."
            )

        self.client = client
        self.root_url = root_url if root_url.endswith("/") else root_url + "/"
        self.timeout = timeout
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def _translate(url: str, error: httpx.HTTPError) -> Exception:
        """Maps an httpx failure onto the application's error taxonomy."""
        if (
            isinstance(error, httpx.HTTPStatusError)
            and error.response.status_code == 404
        ):
            return ResourceNotFoundError(f"Not found: {url}")
        return TransportError(f"{type(error).__name__} for {url}: {error}")
