"""
Search Engine facade.

Bundles the schema manager, batch mutator, query engine and suggest engine
around one injected ``RemoteIndexService``. The service is built once by the
caller (or by ``create_search_engine`` from settings) and shared read-only by
every component; there is no process-wide handle.
"""

from typing import Optional

import structlog

from indexkit.documents.mutator import BatchMutator
from indexkit.errors import ConfigurationError
from indexkit.platform.config import Settings, get_settings
from indexkit.schema.manager import SchemaManager
from indexkit.search.query import QueryEngine
from indexkit.search.suggest import SuggestEngine
from indexkit.service.base import RemoteIndexService
from indexkit.service.http import HttpIndexService

logger = structlog.get_logger()


class SearchEngine:
    """Entry point grouping every index operation for one service."""

    def __init__(
        self,
        service: RemoteIndexService,
        max_retries: int = 3,
        atomic_max_retries: int = 10,
        conflict_max_retries: Optional[int] = None,
        conflict_backoff: float = 0.0,
        creation_delay: float = 0.0,
        suggest_top: int = 5,
    ):
        self.service = service
        self.schemas = SchemaManager(
            service,
            conflict_max_retries=conflict_max_retries,
            conflict_backoff=conflict_backoff,
            creation_delay=creation_delay,
        )
        self.documents = BatchMutator(
            service,
            max_retries=max_retries,
            atomic_max_retries=atomic_max_retries,
        )
        self.queries = QueryEngine(service)
        self.suggestions = SuggestEngine(service, default_top=suggest_top)

    async def connect(self) -> None:
        await self.service.connect()

    async def close(self) -> None:
        await self.service.close()

    async def __aenter__(self) -> "SearchEngine":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def create_search_engine(settings: Optional[Settings] = None) -> SearchEngine:
    """
    Build a SearchEngine talking to the configured search service.

    Raises:
        ConfigurationError: the service URL/name or API key is missing
    """
    settings = settings or get_settings()
    if not settings.service_url or not settings.SEARCH_API_KEY:
        raise ConfigurationError(
            "Cannot create search context without search service name or key settings. "
            "Check configuration."
        )

    service = HttpIndexService(
        base_url=settings.service_url,
        api_key=settings.SEARCH_API_KEY,
        api_version=settings.SEARCH_API_VERSION,
        timeout=settings.SEARCH_TIMEOUT_SECONDS,
    )
    logger.info("search_engine_configured", url=settings.service_url, api_version=settings.SEARCH_API_VERSION)
    return SearchEngine(
        service,
        max_retries=settings.INDEXING_MAX_RETRIES,
        atomic_max_retries=settings.ATOMIC_UPDATE_MAX_RETRIES,
        conflict_max_retries=settings.SCHEMA_CONFLICT_MAX_RETRIES,
        conflict_backoff=settings.SCHEMA_CONFLICT_BACKOFF_SECONDS,
        creation_delay=settings.SCHEMA_CREATION_DELAY_SECONDS,
        suggest_top=settings.SUGGEST_DEFAULT_TOP,
    )
