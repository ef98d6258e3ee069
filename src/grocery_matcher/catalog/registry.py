"""Registry of the catalog clients the matcher can query."""

import asyncio
import logging
from typing import Dict, List, Optional

from ..exceptions import ConfigurationError
from ..models import HealthResult, SourceId
from .client import CatalogClient

logger = logging.getLogger(__name__)


class CatalogRegistry:
    """Maps SourceId to a CatalogClient. Sources are added explicitly."""

    def __init__(self, clients: Optional[List[CatalogClient]] = None):
        self._clients: Dict[str, CatalogClient] = {}
        for client in clients or []:
            self.register(client)

    def register(self, client: CatalogClient) -> None:
        source_id = str(client.source_id)
        if source_id in self._clients:
            raise ValueError(f"Catalog source '{source_id}' is already registered")
        self._clients[source_id] = client
        logger.debug(f"Registered catalog source '{source_id}'")

    def unregister(self, source_id: str) -> Optional[CatalogClient]:
        return self._clients.pop(str(source_id), None)

    def has(self, source_id: str) -> bool:
        return str(source_id) in self._clients

    def get(self, source_id: str) -> CatalogClient:
        """
        Get the client of a source.

        Raises:
            ConfigurationError: No client is registered for source_id.
        """
        client = self._clients.get(str(source_id))
        if client is None:
            available = ", ".join(self._clients) or "none"
            raise ConfigurationError(
                f"Unknown catalog source '{source_id}' (registered: {available})"
            )
        return client

    @property
    def source_ids(self) -> List[SourceId]:
        return [SourceId(s) for s in self._clients]

    def __len__(self) -> int:
        return len(self._clients)

    async def health_check_all(self) -> Dict[SourceId, HealthResult]:
        """Probe every registered source concurrently."""
        ids = self.source_ids
        results = await asyncio.gather(*(self._clients[s].health_check() for s in ids))
        return dict(zip(ids, results))

    async def aclose(self) -> None:
        """Close every client that owns network resources."""
        for client in self._clients.values():
            close = getattr(client, "aclose", None)
            if close is not None:
                await close()
