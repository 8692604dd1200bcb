"""
Document batches submitted to the remote service.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

# Ordered mapping from field name to a wire-typed value
Document = Dict[str, Any]


class BatchKind(str, Enum):
    """How the documents of a batch are applied."""

    UPLOAD = "upload"  # create or fully overwrite the record
    MERGE = "merge"  # update only the supplied fields of an existing record
    DELETE = "delete"  # remove records by key


@dataclass
class BatchOperation:
    """One atomic unit of writes submitted in a single request."""

    kind: BatchKind
    documents: List[Document] = field(default_factory=list)
    key_field: Optional[str] = None
    keys: List[str] = field(default_factory=list)

    @classmethod
    def upload(cls, documents: Iterable[Document]) -> "BatchOperation":
        return cls(kind=BatchKind.UPLOAD, documents=[dict(doc) for doc in documents])

    @classmethod
    def merge(cls, documents: Iterable[Document]) -> "BatchOperation":
        return cls(kind=BatchKind.MERGE, documents=[dict(doc) for doc in documents])

    @classmethod
    def delete(cls, key_field: str, keys: Iterable[Any]) -> "BatchOperation":
        return cls(kind=BatchKind.DELETE, key_field=key_field, keys=[str(key) for key in keys])

    def __len__(self) -> int:
        if self.kind == BatchKind.DELETE:
            return len(self.keys)
        return len(self.documents)


@dataclass
class BatchResult:
    """Per-item outcome reported for a fully applied batch."""

    succeeded: int
    item_results: List[Dict[str, Any]] = field(default_factory=list)
