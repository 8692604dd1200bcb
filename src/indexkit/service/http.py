from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
import structlog

from indexkit.documents.batch import BatchKind, BatchOperation, BatchResult, Document
from indexkit.errors import (
    DocumentNotFound,
    IndexNotFound,
    PartialBatchFailure,
    PermanentFault,
    RemoteServiceError,
    TransientFault,
    VersionConflict,
)
from indexkit.schema.models import FieldDefinition, IndexSchema, Suggester
from indexkit.schema.types import to_domain_type
from indexkit.search.models import (
    ContinuationToken,
    FacetBucket,
    SearchRequest,
    SearchResponse,
)
from indexkit.service.base import RemoteIndexService

logger = structlog.get_logger()

# Per-item status codes the service documents as safe to resubmit
RETRYABLE_ITEM_STATUSES = {409, 422, 503}


class HttpIndexService(RemoteIndexService):
    """REST implementation of RemoteIndexService using httpx for async."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        api_version: str = "2020-06-30",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._url = base_url.rstrip("/")
        self._api_key = api_key
        self._api_version = api_version
        self._timeout = timeout
        self._transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    async def connect(self) -> None:
        if not self.client:
            self.client = httpx.AsyncClient(
                base_url=self._url,
                headers={"api-key": self._api_key},
                params={"api-version": self._api_version},
                timeout=self._timeout,
                transport=self._transport,
            )

    async def close(self) -> None:
        if self.client:
            await self.client.aclose()
            self.client = None

    async def _ensure_connected(self):
        if not self.client:
            await self.connect()

    async def _request(
        self,
        method: str,
        path: str,
        index: str,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        await self._ensure_connected()
        try:
            resp = await self.client.request(method, path, json=json, headers=headers)
        except httpx.TransportError as e:
            logger.warning("search_service_unreachable", method=method, path=path, error=str(e))
            raise TransientFault(f"Search service unreachable: {e}") from e

        if resp.status_code >= 400:
            raise _fault_from_response(resp, index)
        return resp

    # =========================================================================
    # INDEXES
    # =========================================================================

    async def get_index(self, name: str) -> IndexSchema:
        resp = await self._request("GET", f"/indexes/{quote(name)}", index=name)
        return _schema_from_wire(resp.json())

    async def create_index(self, schema: IndexSchema) -> IndexSchema:
        resp = await self._request("POST", "/indexes", index=schema.name, json=_schema_to_wire(schema))
        logger.info("created_search_index", index=schema.name)
        return _schema_from_wire(resp.json())

    async def create_or_update_index(
        self, schema: IndexSchema, version: Optional[str] = None
    ) -> IndexSchema:
        headers = {"Prefer": "return=representation"}
        if version:
            headers["If-Match"] = version
        resp = await self._request(
            "PUT",
            f"/indexes/{quote(schema.name)}",
            index=schema.name,
            json=_schema_to_wire(schema),
            headers=headers,
        )
        if resp.content:
            return _schema_from_wire(resp.json())
        return schema

    async def delete_index(self, name: str) -> None:
        await self._request("DELETE", f"/indexes/{quote(name)}", index=name)

    async def index_exists(self, name: str) -> bool:
        try:
            await self._request("GET", f"/indexes/{quote(name)}", index=name)
        except IndexNotFound:
            return False
        return True

    # =========================================================================
    # DOCUMENTS
    # =========================================================================

    async def submit_batch(self, index: str, batch: BatchOperation) -> BatchResult:
        resp = await self._request(
            "POST",
            f"/indexes/{quote(index)}/docs/index",
            index=index,
            json={"value": _batch_to_wire(batch)},
        )
        items: List[Dict[str, Any]] = resp.json().get("value", [])

        if resp.status_code == 207:
            failed = [item for item in items if not item.get("status", False)]
            if failed and all(item.get("statusCode") in RETRYABLE_ITEM_STATUSES for item in failed):
                raise PartialBatchFailure(
                    f"{len(failed)} of {len(items)} items were not applied to {index}",
                    item_results=items,
                )
            if failed:
                first = failed[0]
                raise PermanentFault(
                    f"Batch rejected by index {index}",
                    status_code=first.get("statusCode"),
                    detail=first.get("errorMessage") or "",
                )

        logger.debug("submitted_batch", index=index, kind=batch.kind.value, count=len(batch))
        return BatchResult(succeeded=len(items), item_results=items)

    async def get_document(self, index: str, key: str) -> Document:
        try:
            resp = await self._request(
                "GET", f"/indexes/{quote(index)}/docs/{quote(str(key), safe='')}", index=index
            )
        except IndexNotFound as e:
            # The service answers 404 for both; only a missing index names it
            if "no index" in e.detail.lower():
                raise
            raise DocumentNotFound(index, str(key), detail=e.detail) from e
        return _strip_metadata(resp.json())

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def search(self, index: str, request: SearchRequest) -> SearchResponse:
        resp = await self._request(
            "POST",
            f"/indexes/{quote(index)}/docs/search",
            index=index,
            json=_search_to_wire(request),
        )
        return _response_from_wire(resp.json())

    async def continue_search(self, index: str, token: ContinuationToken) -> SearchResponse:
        resp = await self._request(
            "POST",
            f"/indexes/{quote(index)}/docs/search",
            index=index,
            json=token.payload,
        )
        return _response_from_wire(resp.json())

    async def suggest(
        self,
        index: str,
        suggester_name: str,
        prefix: str,
        params: Dict[str, Any],
    ) -> List[Document]:
        payload: Dict[str, Any] = {
            "search": prefix,
            "suggesterName": suggester_name,
            "top": params.get("top", 5),
            "fuzzy": bool(params.get("fuzzy", False)),
        }
        if params.get("filter"):
            payload["filter"] = params["filter"]

        resp = await self._request(
            "POST", f"/indexes/{quote(index)}/docs/suggest", index=index, json=payload
        )
        return [_strip_metadata(item) for item in resp.json().get("value", [])]


# =========================================================================
# WIRE FORMAT
# =========================================================================


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return error.get("message") or resp.text
    return resp.text


def _fault_from_response(resp: httpx.Response, index: str) -> RemoteServiceError:
    status = resp.status_code
    detail = _error_message(resp)
    if status == 404:
        return IndexNotFound(index, detail=detail)
    if status in (409, 412):
        return VersionConflict(index, detail=detail, status_code=status)
    if status == 429 or status >= 500:
        return TransientFault(f"Search service unavailable ({status})", status_code=status, detail=detail)
    return PermanentFault(f"Request rejected ({status})", status_code=status, detail=detail)


def _field_to_wire(fld: FieldDefinition) -> Dict[str, Any]:
    return {
        "name": fld.name,
        "type": fld.wire_type.value,
        "key": fld.key,
        "searchable": fld.searchable,
        "filterable": fld.filterable,
        "sortable": fld.sortable,
        "facetable": fld.facetable,
        "retrievable": fld.retrievable,
    }


def _field_from_wire(data: Dict[str, Any]) -> FieldDefinition:
    return FieldDefinition(
        name=data["name"],
        type=to_domain_type(data["type"]),
        key=data.get("key", False),
        searchable=data.get("searchable", False),
        filterable=data.get("filterable", False),
        sortable=data.get("sortable", False),
        facetable=data.get("facetable", False),
        retrievable=data.get("retrievable", True),
    )


def _schema_to_wire(schema: IndexSchema) -> Dict[str, Any]:
    return {
        "name": schema.name,
        "fields": [_field_to_wire(fld) for fld in schema.fields],
        "suggesters": [
            {"name": s.name, "searchMode": s.search_mode, "sourceFields": list(s.source_fields)}
            for s in schema.suggesters
        ],
    }


def _schema_from_wire(data: Dict[str, Any]) -> IndexSchema:
    return IndexSchema(
        name=data["name"],
        fields=[_field_from_wire(fld) for fld in data.get("fields", [])],
        suggesters=[
            Suggester(
                name=s["name"],
                source_fields=s.get("sourceFields", []),
                search_mode=s.get("searchMode", "analyzingInfixMatching"),
            )
            for s in data.get("suggesters", [])
        ],
        version=data.get("@odata.etag"),
    )


def _batch_to_wire(batch: BatchOperation) -> List[Dict[str, Any]]:
    if batch.kind == BatchKind.DELETE:
        return [{"@search.action": "delete", batch.key_field: key} for key in batch.keys]
    return [{"@search.action": batch.kind.value, **doc} for doc in batch.documents]


def _search_to_wire(request: SearchRequest) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"search": request.query_text}
    if request.filter:
        payload["filter"] = request.filter
    if request.facets:
        payload["facets"] = list(request.facets)
    if request.include_total_count is not None:
        payload["count"] = request.include_total_count
    if request.top is not None:
        payload["top"] = request.top
    if request.skip is not None:
        payload["skip"] = request.skip
    return payload


def _response_from_wire(data: Dict[str, Any]) -> SearchResponse:
    facets = {
        name: [FacetBucket(value=bucket.get("value"), count=bucket.get("count", 0)) for bucket in buckets]
        for name, buckets in (data.get("@search.facets") or {}).items()
    }
    next_page = data.get("@search.nextPageParameters")
    return SearchResponse(
        documents=[_strip_metadata(item) for item in data.get("value", [])],
        facets=facets,
        total_count=data.get("@odata.count"),
        continuation_token=ContinuationToken(payload=next_page) if next_page else None,
    )


def _strip_metadata(document: Dict[str, Any]) -> Document:
    return {key: value for key, value in document.items() if not key.startswith("@")}
