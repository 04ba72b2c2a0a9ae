"""
Shared HTTP plumbing for knowledge sources backed by a JSON REST API.

Concrete adapters subclass `HttpKnowledgeSource` and only describe paths and payload
normalization; status handling and error classification live here once.
"""

import logging
from typing import Any, Dict, Optional, Union

import httpx

from .base import Absent, KnowledgeSource, KnowledgeSourceError, KnowledgeSourceUnreachableError

logger = logging.getLogger(__name__)


def normalize_identifier(id_or_name: Union[int, str]) -> str:
    """Names are case-insensitive upstream; ids pass through unchanged."""
    return str(id_or_name).strip().lower()


class HttpKnowledgeSource(KnowledgeSource):
    """
    Base class for knowledge sources reached over HTTP with `httpx.AsyncClient`.

    One client is kept per source so connection pooling works across lookups within the
    running event loop. Tests inject a client built on `httpx.MockTransport`.

    Args:
        base_url (str): Root URL of the upstream API.
        timeout (float): Per-request timeout in seconds.
        client (Optional[httpx.AsyncClient]): Pre-built client, mainly for tests.
    """

    def __init__(self, base_url: str, timeout: float = 8.0, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip('/')
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Union[Any, Absent]:
        """
        GET a path and decode its JSON body.

        Returns:
            The decoded JSON, or `Absent.NOT_FOUND` on HTTP 404.

        Raises:
            KnowledgeSourceUnreachableError: The host could not be reached.
            KnowledgeSourceError: Any other transport failure, non-2xx status or invalid JSON.
        """
        name = self.get_source_name()
        try:
            response = await self._client.get(path, params=params)
        except httpx.ConnectError as e:
            raise KnowledgeSourceUnreachableError(name, f"cannot connect to {self.base_url}: {e}") from e
        except httpx.RequestError as e:
            raise KnowledgeSourceError(name, f"request to {path} failed: {e!r}") from e

        if response.status_code == 404:
            logger.info(f"[{name}] {path} not found upstream")
            return Absent.NOT_FOUND

        try:
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise KnowledgeSourceError(name, f"{path} returned HTTP {response.status_code}") from e
        except ValueError as e:
            raise KnowledgeSourceError(name, f"{path} returned invalid JSON") from e

    async def aclose(self) -> None:
        await self._client.aclose()
