"""
Query Engine - faceted, paged searches over a remote index.

Two modes:

- Paged: ``top`` and/or ``skip`` given. Exactly one transport page is
  fetched; the caller pages by calling again with a larger ``skip``.
- Full walk: neither given. Every continuation page is fetched and the
  documents concatenated, facet counts summed across pages. Cost grows with
  the number of matches; use ``iter_pages``/``iter_documents`` to stop early.
"""

from typing import AsyncIterator, Dict, Iterable, List, Optional

import structlog

from indexkit.documents.batch import Document
from indexkit.errors import IndexNotFound, InvalidFilter, PermanentFault
from indexkit.search.models import FacetBucket, SearchPage, SearchRequest, SearchResponse
from indexkit.service.base import RemoteIndexService

logger = structlog.get_logger()

FacetCounts = Dict[str, Dict[str, int]]


class QueryEngine:
    """Builds and runs searches, aggregating facets across pages."""

    def __init__(self, service: RemoteIndexService):
        self.service = service

    async def search(
        self,
        index_name: str,
        query_text: str = "*",
        facet_fields: Optional[Iterable[str]] = None,
        include_total_count: Optional[bool] = None,
        top: Optional[int] = None,
        skip: Optional[int] = None,
        filter: Optional[str] = None,
    ) -> SearchPage:
        """
        Search an index.

        Args:
            index_name: Index to query
            query_text: Full-text query ("*" matches everything)
            facet_fields: Facetable fields to count values of
            include_total_count: Ask the service for the total match count
            top: Page size; switches to paged mode
            skip: Offset; switches to paged mode
            filter: Boolean filter expression, passed through verbatim

        Raises:
            InvalidFilter: the service rejected the filter expression
        """
        request = SearchRequest(
            query_text=query_text,
            filter=filter or None,
            facets=list(facet_fields) if facet_fields else None,
            include_total_count=include_total_count,
            top=top,
            skip=skip,
        )
        return await self.execute(index_name, request)

    async def execute(self, index_name: str, request: SearchRequest) -> SearchPage:
        """Run a prepared request in paged or full-walk mode."""
        if request.is_paged:
            response = await self._first_page(index_name, request)
            return SearchPage(
                documents=list(response.documents),
                facets=_facet_counts(response.facets, request.facets),
                total_count=response.total_count,
            )

        page = SearchPage()
        pages = 0
        async for response in self.iter_pages(index_name, request):
            pages += 1
            page.documents.extend(response.documents)
            _add_facet_counts(page.facets, _facet_counts(response.facets, request.facets))
            if page.total_count is None:
                page.total_count = response.total_count

        logger.debug("search_walk_complete", index=index_name, pages=pages, documents=len(page.documents))
        return page

    async def iter_pages(self, index_name: str, request: SearchRequest) -> AsyncIterator[SearchResponse]:
        """
        Yield every transport page of a query, following continuation tokens.

        Each call starts the query afresh; pages not consumed are never fetched.
        """
        response = await self._first_page(index_name, request)
        yield response

        while response.continuation_token is not None:
            logger.debug("search_continuation", index=index_name)
            response = await self.service.continue_search(index_name, response.continuation_token)
            yield response

    async def iter_documents(self, index_name: str, request: SearchRequest) -> AsyncIterator[Document]:
        async for response in self.iter_pages(index_name, request):
            for document in response.documents:
                yield document

    async def get_document(self, index_name: str, key: str) -> Optional[Document]:
        """Fetch a document by key; None when it (or the index) is absent."""
        try:
            return await self.service.get_document(index_name, str(key))
        except IndexNotFound:
            return None

    async def _first_page(self, index_name: str, request: SearchRequest) -> SearchResponse:
        try:
            return await self.service.search(index_name, request)
        except PermanentFault as e:
            if request.filter and "filter" in e.detail.lower():
                logger.warning("search_invalid_filter", index=index_name, filter=request.filter, error=e.detail)
                raise InvalidFilter(index_name, request.filter, e.detail) from e
            logger.error("search_failed", index=index_name, status=e.status_code, error=e.detail)
            raise


def _requested_names(facets: Optional[List[str]]) -> List[str]:
    # "Brand,count:20" requests the Brand facet
    return [facet.split(",", 1)[0].strip() for facet in facets or []]


def _facet_counts(facets: Dict[str, List[FacetBucket]], requested: Optional[List[str]]) -> FacetCounts:
    names = _requested_names(requested)
    return {
        name: {str(bucket.value): bucket.count for bucket in buckets}
        for name, buckets in facets.items()
        if name in names
    }


def _add_facet_counts(total: FacetCounts, page: FacetCounts) -> None:
    for name, counts in page.items():
        merged = total.setdefault(name, {})
        for value, count in counts.items():
            merged[value] = merged.get(value, 0) + count
