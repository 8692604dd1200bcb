"""Document batches. The mutator lives in ``indexkit.documents.mutator``."""

from .batch import BatchKind, BatchOperation, BatchResult, Document

__all__ = ["BatchKind", "BatchOperation", "BatchResult", "Document"]
