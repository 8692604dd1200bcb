"""
indexkit - Client-side engine for remote document-search indexes.

This package manages search indexes living on a remote search service:
- schema: field type mapping, index schema models, schema evolution
- documents: batched upload/merge/delete with bounded retry
- search: faceted, paged querying and typeahead suggestions
- service: the remote service contract and its REST adapter
- platform: cross-cutting concerns (configuration, logging)
"""

from .engine import SearchEngine, create_search_engine

__version__ = "0.1.0"

__all__ = ["SearchEngine", "create_search_engine", "__version__"]
