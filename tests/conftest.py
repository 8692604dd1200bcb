"""
Pytest configuration and shared fixtures.
"""

import itertools
import os
import re
import sys
from collections import Counter
from typing import Any, Dict, List, Optional

import pytest

sys.path.append(os.path.join(os.getcwd(), "src"))

from indexkit.documents.batch import BatchKind, BatchOperation, BatchResult, Document  # noqa: E402
from indexkit.engine import SearchEngine  # noqa: E402
from indexkit.errors import DocumentNotFound, IndexNotFound, PermanentFault, VersionConflict  # noqa: E402
from indexkit.schema.models import FieldDefinition, IndexSchema, Suggester  # noqa: E402
from indexkit.schema.types import DomainType  # noqa: E402
from indexkit.search.models import (  # noqa: E402
    ContinuationToken,
    FacetBucket,
    SearchRequest,
    SearchResponse,
)
from indexkit.service.base import RemoteIndexService  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> None:
    """Set up test environment variables."""
    os.environ.setdefault("APP_ENV", "test")
    os.environ.setdefault("LOG_LEVEL", "debug")


_EQ_CLAUSE = re.compile(r"^\s*(?P<field>\w+)\s+eq\s+(?P<value>'[^']*'|\S+)\s*$")

_INTEGER_TYPES = {DomainType.INT32, DomainType.INT64}
_FLOAT_TYPES = {DomainType.FLOAT32, DomainType.FLOAT64, DomainType.DECIMAL}


class InMemoryIndexService(RemoteIndexService):
    """
    In-process stand-in for the remote search service.

    Schemas get a fresh version token on every write. Queries without
    top/skip are split into pages of ``page_size`` documents linked by
    continuation tokens, each page reporting facet counts for its own
    documents only. Filters support ``Field eq value`` clauses joined by
    ``and``.
    """

    def __init__(self, page_size: int = 1000):
        self.page_size = page_size
        self.indexes: Dict[str, IndexSchema] = {}
        self.store: Dict[str, Dict[str, Document]] = {}
        self.connected = False
        self._versions = itertools.count(1)
        self._cursors: Dict[int, List[Document]] = {}
        self._cursor_ids = itertools.count(1)

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    def _stamp(self, schema: IndexSchema) -> IndexSchema:
        stamped = schema.model_copy(update={"version": f'"0x{next(self._versions):04X}"'})
        self.indexes[schema.name] = stamped
        self.store.setdefault(schema.name, {})
        return stamped

    def _schema(self, name: str) -> IndexSchema:
        if name not in self.indexes:
            raise IndexNotFound(name, detail=f"No index with the name '{name}' was found in the service.")
        return self.indexes[name]

    # ------------------------------------------------------------------ indexes

    async def get_index(self, name: str) -> IndexSchema:
        return self._schema(name)

    async def create_index(self, schema: IndexSchema) -> IndexSchema:
        if schema.name in self.indexes:
            raise VersionConflict(schema.name, detail=f"Index '{schema.name}' already exists.", status_code=409)
        return self._stamp(schema)

    async def create_or_update_index(self, schema: IndexSchema, version: Optional[str] = None) -> IndexSchema:
        existing = self.indexes.get(schema.name)
        if version is not None and (existing is None or existing.version != version):
            raise VersionConflict(schema.name, detail="The precondition given in one of the request headers evaluated to false.")
        if existing is not None:
            missing = [fld.name for fld in existing.fields if schema.field(fld.name) is None]
            if missing:
                raise PermanentFault("Request rejected (400)", status_code=400, detail=f"Existing field(s) cannot be removed: {missing}")
        return self._stamp(schema)

    async def delete_index(self, name: str) -> None:
        self._schema(name)
        del self.indexes[name]
        del self.store[name]

    async def index_exists(self, name: str) -> bool:
        return name in self.indexes

    # ---------------------------------------------------------------- documents

    def _check_document(self, schema: IndexSchema, document: Document) -> None:
        for name, value in document.items():
            fld = schema.field(name)
            if fld is None:
                raise PermanentFault(
                    "Request rejected (400)",
                    status_code=400,
                    detail=f"The property '{name}' does not exist on type 'search.documentFields'.",
                )
            if value is None:
                continue
            valid = True
            if fld.type in _INTEGER_TYPES:
                valid = isinstance(value, int) and not isinstance(value, bool)
            elif fld.type in _FLOAT_TYPES:
                valid = isinstance(value, (int, float)) and not isinstance(value, bool)
            elif fld.type == DomainType.BOOLEAN:
                valid = isinstance(value, bool)
            elif fld.type == DomainType.STRING:
                valid = isinstance(value, str)
            if not valid:
                raise PermanentFault(
                    "Request rejected (400)",
                    status_code=400,
                    detail=f"Cannot convert the literal '{value}' to the expected type '{fld.wire_type.value}' for field '{fld.name}'.",
                )

    async def submit_batch(self, index: str, batch: BatchOperation) -> BatchResult:
        schema = self._schema(index)
        records = self.store[index]
        key = schema.key_field.name if schema.key_field else None

        if batch.kind == BatchKind.DELETE:
            for value in batch.keys:
                records.pop(value, None)
            return BatchResult(succeeded=len(batch.keys))

        for document in batch.documents:
            self._check_document(schema, document)
            if key is None or key not in document:
                raise PermanentFault("Request rejected (400)", status_code=400, detail="The key field is missing.")

        for document in batch.documents:
            doc_key = str(document[key])
            if batch.kind == BatchKind.MERGE:
                if doc_key not in records:
                    raise PermanentFault("Request rejected (404)", status_code=404, detail="Document not found.")
                records[doc_key] = {**records[doc_key], **document}
            else:
                records[doc_key] = dict(document)
        return BatchResult(succeeded=len(batch.documents))

    def _project(self, schema: IndexSchema, document: Document) -> Document:
        return {
            name: value
            for name, value in document.items()
            if (schema.field(name) is None or schema.field(name).retrievable)
        }

    async def get_document(self, index: str, key: str) -> Document:
        schema = self._schema(index)
        record = self.store[index].get(str(key))
        if record is None:
            raise DocumentNotFound(index, str(key), detail="Document not found.")
        return self._project(schema, record)

    # ------------------------------------------------------------------ queries

    def _filter(self, schema: IndexSchema, expression: Optional[str]):
        if not expression:
            return lambda doc: True

        clauses = []
        for part in re.split(r"\s+and\s+", expression):
            match = _EQ_CLAUSE.match(part)
            if not match:
                raise PermanentFault("Request rejected (400)", status_code=400, detail="Invalid expression: syntax error. Parameter name: $filter")
            fld = schema.field(match.group("field"))
            if fld is None or not fld.filterable:
                raise PermanentFault(
                    "Request rejected (400)",
                    status_code=400,
                    detail=f"Invalid expression: '{match.group('field')}' is not a filterable field. Parameter name: $filter",
                )
            raw = match.group("value")
            value: Any = raw[1:-1] if raw.startswith("'") else float(raw)
            clauses.append((fld.name, value))

        return lambda doc: all(doc.get(name) == value for name, value in clauses)

    def _matches_text(self, schema: IndexSchema, document: Document, text: str) -> bool:
        if not text or text == "*":
            return True
        terms = text.lower().split()
        haystack = " ".join(
            str(document.get(fld.name, "")) for fld in schema.fields if fld.searchable
        ).lower()
        return any(term in haystack for term in terms)

    def _facets(self, schema: IndexSchema, documents: List[Document], facets: Optional[List[str]]) -> Dict[str, List[FacetBucket]]:
        result: Dict[str, List[FacetBucket]] = {}
        for facet in facets or []:
            name = facet.split(",", 1)[0].strip()
            fld = schema.field(name)
            if fld is None or not fld.facetable:
                raise PermanentFault("Request rejected (400)", status_code=400, detail=f"Field '{name}' is not facetable.")
            counts = Counter(doc[fld.name] for doc in documents if doc.get(fld.name) is not None)
            result[fld.name] = [FacetBucket(value=value, count=count) for value, count in counts.most_common()]
        return result

    def _page(self, schema: IndexSchema, request: SearchRequest, matches: List[Document], offset: int) -> SearchResponse:
        chunk = matches[offset:offset + self.page_size]
        token = None
        if offset + self.page_size < len(matches):
            cursor = next(self._cursor_ids)
            self._cursors[cursor] = matches
            token = ContinuationToken(
                payload={"cursor": cursor, "offset": offset + self.page_size, "request": request.model_dump()}
            )
        return SearchResponse(
            documents=[self._project(schema, doc) for doc in chunk],
            facets=self._facets(schema, chunk, request.facets),
            total_count=len(matches) if request.include_total_count else None,
            continuation_token=token,
        )

    async def search(self, index: str, request: SearchRequest) -> SearchResponse:
        schema = self._schema(index)
        keep = self._filter(schema, request.filter)
        matches = [
            doc
            for _, doc in sorted(self.store[index].items())
            if keep(doc) and self._matches_text(schema, doc, request.query_text)
        ]
        if not request.is_paged:
            return self._page(schema, request, matches, 0)

        skip = request.skip or 0
        top = 50 if request.top is None else request.top
        window = matches[skip:skip + top]
        return SearchResponse(
            documents=[self._project(schema, doc) for doc in window],
            facets=self._facets(schema, matches, request.facets),
            total_count=len(matches) if request.include_total_count else None,
            continuation_token=None,
        )

    async def continue_search(self, index: str, token: ContinuationToken) -> SearchResponse:
        schema = self._schema(index)
        matches = self._cursors[token.payload["cursor"]]
        request = SearchRequest(**token.payload["request"])
        return self._page(schema, request, matches, token.payload["offset"])

    async def suggest(self, index: str, suggester_name: str, prefix: str, params: Dict[str, Any]) -> List[Document]:
        schema = self._schema(index)
        suggester = schema.suggester(suggester_name)
        if suggester is None:
            raise PermanentFault(
                "Request rejected (400)",
                status_code=400,
                detail=f"The specified suggester name '{suggester_name}' does not exist in this index definition.",
            )
        keep = self._filter(schema, params.get("filter"))
        prefix = prefix.lower()
        found = []
        for _, doc in sorted(self.store[index].items()):
            if not keep(doc):
                continue
            values = [str(doc.get(name, "")).lower() for name in suggester.source_fields]
            if any(v.startswith(prefix) for v in values) or (
                params.get("fuzzy") and any(prefix in v for v in values)
            ):
                found.append(self._project(schema, doc))
        return found[: params.get("top", 5)]


@pytest.fixture
def service() -> InMemoryIndexService:
    """In-memory search service with three documents per transport page."""
    return InMemoryIndexService(page_size=3)


@pytest.fixture
def engine(service) -> SearchEngine:
    return SearchEngine(service)


@pytest.fixture
def product_fields() -> List[FieldDefinition]:
    return [
        FieldDefinition(name="RowKey", type=str, key=True, retrievable=True),
        FieldDefinition(name="Brand", type=str, searchable=True, filterable=True, sortable=True, facetable=True),
        FieldDefinition(name="ProductName", type=str, searchable=True, filterable=True, sortable=True),
        FieldDefinition(name="Sku", type=str, searchable=True, filterable=True, sortable=True),
        FieldDefinition(name="Cost", type=DomainType.DECIMAL, filterable=True, sortable=True, facetable=True),
    ]


@pytest.fixture
def product_suggesters() -> List[Suggester]:
    return [Suggester(name="sg", source_fields=["ProductName", "Brand"])]


@pytest.fixture
def products() -> List[Document]:
    """Eight products: brand A x4, B x3, C x1."""
    brands = ["A", "A", "A", "A", "B", "B", "B", "C"]
    return [
        {
            "RowKey": f"p{i}",
            "Brand": brand,
            "ProductName": f"Widget {brand}{i}",
            "Sku": f"SKU-{i:03d}",
            "Cost": 10.0 + i,
        }
        for i, brand in enumerate(brands)
    ]


@pytest.fixture
async def product_index(engine, product_fields, product_suggesters, products) -> str:
    """An index holding the eight products."""
    name = "products"
    await engine.schemas.ensure_index(name, product_fields, product_suggesters)
    await engine.documents.upsert_batch(name, products)
    return name
