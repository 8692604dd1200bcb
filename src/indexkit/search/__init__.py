"""Search request/response models. Engines live in ``query`` and ``suggest``."""

from .models import ContinuationToken, FacetBucket, SearchPage, SearchRequest, SearchResponse

__all__ = ["ContinuationToken", "FacetBucket", "SearchPage", "SearchRequest", "SearchResponse"]
