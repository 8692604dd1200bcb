"""
Exception hierarchy for indexkit.

Two families live here:

- Faults raised by ``RemoteIndexService`` implementations. They describe what
  the remote service said (status class, detail text) and carry no policy.
- Engine errors raised by the schema, batch, query and suggest components.
  They describe what went wrong in caller terms so the caller can remediate
  (for example add a missing field and retry).
"""

from typing import Any, Dict, List, Optional


class IndexKitError(Exception):
    """Base class for every error raised by indexkit."""


class ConfigurationError(IndexKitError):
    """Raised when the search service cannot be configured."""


# =========================================================================
# REMOTE SERVICE FAULTS
# =========================================================================


class RemoteServiceError(IndexKitError):
    """A failure reported by the remote search service."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail or message

    @property
    def status_class(self) -> Optional[int]:
        """HTTP-style status class (4 for 4xx, 5 for 5xx)."""
        if self.status_code is None:
            return None
        return self.status_code // 100


class TransientFault(RemoteServiceError):
    """A failure that may succeed when the same request is repeated."""


class PartialBatchFailure(TransientFault):
    """Some items of a submitted batch were not applied."""

    def __init__(
        self,
        message: str,
        item_results: Optional[List[Dict[str, Any]]] = None,
        status_code: Optional[int] = 207,
        detail: str = "",
    ):
        super().__init__(message, status_code=status_code, detail=detail)
        self.item_results = item_results or []

    @property
    def failed_keys(self) -> List[str]:
        return [str(item.get("key")) for item in self.item_results if not item.get("status", False)]


class PermanentFault(RemoteServiceError):
    """A failure that will repeat if the same request is sent again."""


class IndexNotFound(RemoteServiceError):
    """The addressed index does not exist."""

    def __init__(self, index_name: str, detail: str = ""):
        super().__init__(f"Index not found: {index_name}", status_code=404, detail=detail)
        self.index_name = index_name


class DocumentNotFound(IndexNotFound):
    """No document with the requested key exists in the index."""

    def __init__(self, index_name: str, key: str, detail: str = ""):
        RemoteServiceError.__init__(
            self,
            f"Document not found: {key} in index {index_name}",
            status_code=404,
            detail=detail,
        )
        self.index_name = index_name
        self.key = key


class VersionConflict(RemoteServiceError):
    """The schema changed since its version token was read."""

    def __init__(self, index_name: str, detail: str = "", status_code: Optional[int] = 412):
        super().__init__(
            f"Schema version conflict on index: {index_name}",
            status_code=status_code,
            detail=detail,
        )
        self.index_name = index_name


# =========================================================================
# ENGINE ERRORS
# =========================================================================


class UnsupportedType(IndexKitError):
    """A domain type (or wire type) has no counterpart on the other side."""

    def __init__(self, type_ref: Any):
        super().__init__(f"Unsupported field type: {type_ref!r}")
        self.type_ref = type_ref


class SchemaError(IndexKitError):
    """Creating or updating an index schema failed."""

    def __init__(self, index_name: str, message: str):
        super().__init__(f"Error creating index {index_name}: {message}")
        self.index_name = index_name


class DuplicateKeyField(SchemaError):
    """An index already has a key field and another one was requested."""

    def __init__(self, index_name: str, existing_key: str, requested_key: str):
        super().__init__(
            index_name,
            f"key field '{existing_key}' already defined, cannot add key field '{requested_key}'",
        )
        self.existing_key = existing_key
        self.requested_key = requested_key


class RetriesExhausted(IndexKitError):
    """A retried operation kept failing with transient faults."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class IndexingExhausted(RetriesExhausted):
    """A document batch could not be applied within the retry budget."""

    def __init__(self, index_name: str, attempts: int, operation: str = "Indexing"):
        super().__init__(
            f"{operation} of items on index {index_name} has exceeded "
            f"maximum allowable attempts ({attempts})",
            attempts=attempts,
        )
        self.index_name = index_name
        self.operation = operation


class IndexingFailed(IndexKitError):
    """A document write was rejected for a reason other than schema or value."""

    def __init__(self, index_name: str, detail: str, status_code: Optional[int] = None):
        super().__init__(f"Indexing failed on index {index_name}: {detail}")
        self.index_name = index_name
        self.detail = detail
        self.status_code = status_code


class UnknownField(IndexingFailed):
    """A document referenced a field the index schema does not define."""

    def __init__(self, index_name: str, field_name: str, detail: str = ""):
        super().__init__(index_name, detail or f"unknown field '{field_name}'", status_code=400)
        self.field_name = field_name


class InvalidFieldValue(IndexingFailed):
    """A document value failed the remote service's type validation."""

    def __init__(self, index_name: str, detail: str, field_name: Optional[str] = None):
        super().__init__(index_name, detail, status_code=400)
        self.field_name = field_name


class InvalidFilter(IndexKitError):
    """The filter expression was rejected by the remote service."""

    def __init__(self, index_name: str, filter_expression: str, detail: str = ""):
        super().__init__(f"Invalid filter on index {index_name}: {filter_expression!r} ({detail})")
        self.index_name = index_name
        self.filter_expression = filter_expression
        self.detail = detail


class UnknownSuggester(IndexKitError):
    """The named suggester is not defined on the index."""

    def __init__(self, index_name: str, suggester_name: str):
        super().__init__(f"Suggester '{suggester_name}' does not exist on index {index_name}")
        self.index_name = index_name
        self.suggester_name = suggester_name
