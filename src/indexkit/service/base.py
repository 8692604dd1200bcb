"""
Remote index service contract.

Implementations wrap the network transport to a document-search service and
translate its failures into the faults defined in ``indexkit.errors``:
``IndexNotFound``, ``VersionConflict``, ``TransientFault`` (and
``PartialBatchFailure``) or ``PermanentFault``. They never retry.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from indexkit.documents.batch import BatchOperation, BatchResult, Document
from indexkit.schema.models import IndexSchema
from indexkit.search.models import ContinuationToken, SearchRequest, SearchResponse


class RemoteIndexService(ABC):
    """Abstract interface for remote index and document operations."""

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close connection."""
        pass

    @abstractmethod
    async def get_index(self, name: str) -> IndexSchema:
        """
        Fetch an index definition including its version token.

        Raises:
            IndexNotFound: the index does not exist
        """
        pass

    @abstractmethod
    async def create_index(self, schema: IndexSchema) -> IndexSchema:
        """
        Create a new index.

        Raises:
            VersionConflict: an index with that name already exists
            PermanentFault: the definition was rejected
        """
        pass

    @abstractmethod
    async def create_or_update_index(
        self, schema: IndexSchema, version: Optional[str] = None
    ) -> IndexSchema:
        """
        Create or replace an index definition.

        When ``version`` is given the update only applies if the stored
        schema still carries that version token.

        Raises:
            VersionConflict: the stored schema changed since ``version``
        """
        pass

    @abstractmethod
    async def delete_index(self, name: str) -> None:
        """
        Delete an index.

        Raises:
            IndexNotFound: the index does not exist
        """
        pass

    @abstractmethod
    async def index_exists(self, name: str) -> bool:
        """Check whether an index exists."""
        pass

    @abstractmethod
    async def submit_batch(self, index: str, batch: BatchOperation) -> BatchResult:
        """
        Apply a batch of document writes.

        Raises:
            PartialBatchFailure: some items were not applied
            TransientFault: the service could not process the batch right now
            PermanentFault: the batch was rejected
        """
        pass

    @abstractmethod
    async def get_document(self, index: str, key: str) -> Document:
        """
        Fetch a document by key.

        Raises:
            IndexNotFound: the index does not exist
            DocumentNotFound: no document has this key
        """
        pass

    @abstractmethod
    async def search(self, index: str, request: SearchRequest) -> SearchResponse:
        """Run a query and return its first transport page."""
        pass

    @abstractmethod
    async def continue_search(self, index: str, token: ContinuationToken) -> SearchResponse:
        """Fetch the transport page addressed by a continuation token."""
        pass

    @abstractmethod
    async def suggest(
        self,
        index: str,
        suggester_name: str,
        prefix: str,
        params: Dict[str, Any],
    ) -> List[Document]:
        """
        Return completion candidates for ``prefix``.

        Args:
            index: Index name
            suggester_name: Suggester defined on the index
            prefix: Partial text typed by the user
            params: ``top``, ``fuzzy`` and optional ``filter``
        """
        pass
