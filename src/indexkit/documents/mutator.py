"""
Batch Mutator - upload, merge and delete documents with bounded retry.

A batch is retried as a whole: the service's per-item report does not tell
which already-applied items would be re-applied by a resubmission, so no
splitting is attempted. Upload and merge are idempotent, so re-applying a
successful item is harmless.
"""

import re
from typing import Any, Awaitable, Callable, Iterable, Optional

import structlog

from indexkit.documents.batch import BatchOperation, BatchResult, Document
from indexkit.errors import (
    IndexingExhausted,
    IndexingFailed,
    IndexNotFound,
    InvalidFieldValue,
    PermanentFault,
    TransientFault,
    UnknownField,
    VersionConflict,
)
from indexkit.service.base import RemoteIndexService

logger = structlog.get_logger()

# Caller-supplied schema creation, invoked with the missing index name
EnsureIndexFn = Callable[[str], Awaitable[Any]]

_UNKNOWN_FIELD_PATTERNS = [
    re.compile(r"property '(?P<name>[^']+)' does not exist", re.IGNORECASE),
    re.compile(r"unknown field '(?P<name>[^']+)'", re.IGNORECASE),
]

_INVALID_VALUE_PATTERNS = [
    re.compile(r"cannot convert", re.IGNORECASE),
    re.compile(r"expected type", re.IGNORECASE),
    re.compile(r"invalid value", re.IGNORECASE),
]

_FIELD_NAME = re.compile(r"(?:field|property) '(?P<name>[^']+)'", re.IGNORECASE)


class BatchMutator:
    """Submits document batches to the remote service."""

    def __init__(
        self,
        service: RemoteIndexService,
        max_retries: int = 3,
        atomic_max_retries: int = 10,
    ):
        """
        Initialize the batch mutator.

        Args:
            service: Remote index service
            max_retries: Default extra attempts for upsert/delete batches
            atomic_max_retries: Default extra attempts for atomic updates
        """
        self.service = service
        self.max_retries = max_retries
        self.atomic_max_retries = atomic_max_retries

    async def upsert_batch(
        self,
        index_name: str,
        documents: Iterable[Document],
        ensure_index_fn: Optional[EnsureIndexFn] = None,
        max_retries: Optional[int] = None,
    ) -> bool:
        """
        Create or overwrite documents by key.

        Args:
            index_name: Target index
            documents: Documents, each holding a value for the key field
            ensure_index_fn: Called with ``index_name`` when the index is absent
            max_retries: Extra attempts after a transient fault

        Raises:
            IndexNotFound: the index is absent and no ``ensure_index_fn`` given
            IndexingExhausted: every attempt hit a transient fault
        """
        if not await self.service.index_exists(index_name):
            if ensure_index_fn is None:
                raise IndexNotFound(index_name, detail="Index does not exist and no schema was supplied")
            logger.info("creating_missing_index", index=index_name)
            await ensure_index_fn(index_name)

        batch = BatchOperation.upload(documents)
        if not batch.documents:
            return True

        await self._submit(index_name, batch, self._retries(max_retries), "Indexing")
        return True

    async def delete_by_keys(
        self,
        index_name: str,
        key_field: str,
        key_values: Iterable[Any],
        max_retries: Optional[int] = None,
    ) -> bool:
        """
        Delete documents by key. Keys that do not exist are not an error.

        Raises:
            IndexingExhausted: every attempt hit a transient fault
        """
        batch = BatchOperation.delete(key_field, key_values)
        if not batch.keys:
            return True

        await self._submit(index_name, batch, self._retries(max_retries), "Deletion")
        return True

    async def update_fields_atomic(
        self,
        index_name: str,
        document: Document,
        max_retries: Optional[int] = None,
    ) -> bool:
        """
        Merge a partial document into its record, leaving other fields untouched.

        ``document`` carries the key plus only the fields to change, so
        writers owning disjoint fields of a record do not overwrite each other.

        Raises:
            UnknownField: a field is not defined on the index; add it through
                the schema manager and retry
            InvalidFieldValue: a value failed the service's type validation
            IndexingFailed: any other rejection
            IndexingExhausted: every attempt hit a transient fault
        """
        batch = BatchOperation.merge([document])
        retries = self.atomic_max_retries if max_retries is None else max_retries
        try:
            await self._submit(index_name, batch, retries, "Atomic update")
        except PermanentFault as e:
            error = _classify_write_failure(index_name, e)
            logger.warning(
                "atomic_update_rejected",
                index=index_name,
                reason=type(error).__name__,
                error=e.detail,
            )
            raise error from e
        except (IndexNotFound, VersionConflict) as e:
            logger.warning("atomic_update_rejected", index=index_name, reason=type(e).__name__, error=e.detail)
            raise IndexingFailed(index_name, e.detail, status_code=e.status_code) from e
        return True

    def _retries(self, max_retries: Optional[int]) -> int:
        return self.max_retries if max_retries is None else max_retries

    async def _submit(
        self,
        index_name: str,
        batch: BatchOperation,
        max_retries: int,
        operation: str,
    ) -> BatchResult:
        """Submit ``batch`` up to ``max_retries + 1`` times, back to back."""
        attempts = max_retries + 1
        last_fault: Optional[TransientFault] = None
        for attempt in range(1, attempts + 1):
            try:
                result = await self.service.submit_batch(index_name, batch)
            except TransientFault as e:
                last_fault = e
                logger.warning(
                    "batch_attempt_failed",
                    index=index_name,
                    kind=batch.kind.value,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=e.detail,
                )
                continue
            logger.debug("batch_applied", index=index_name, kind=batch.kind.value, count=len(batch), attempt=attempt)
            return result

        logger.error("batch_retries_exhausted", index=index_name, kind=batch.kind.value, attempts=attempts)
        raise IndexingExhausted(index_name, attempts, operation=operation) from last_fault


def _classify_write_failure(index_name: str, fault: PermanentFault) -> IndexingFailed:
    detail = fault.detail or str(fault)

    for pattern in _UNKNOWN_FIELD_PATTERNS:
        match = pattern.search(detail)
        if match:
            return UnknownField(index_name, match.group("name"), detail=detail)

    if any(pattern.search(detail) for pattern in _INVALID_VALUE_PATTERNS):
        match = _FIELD_NAME.search(detail)
        return InvalidFieldValue(index_name, detail, field_name=match.group("name") if match else None)

    return IndexingFailed(index_name, detail, status_code=fault.status_code)
