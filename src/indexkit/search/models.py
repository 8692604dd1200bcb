"""
Search request/response models.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from indexkit.documents.batch import Document


class SearchRequest(BaseModel):
    """Parameters of one logical query."""

    query_text: str = "*"
    filter: Optional[str] = None
    facets: Optional[List[str]] = None
    include_total_count: Optional[bool] = None
    top: Optional[int] = Field(None, ge=0)
    skip: Optional[int] = Field(None, ge=0)

    @property
    def is_paged(self) -> bool:
        """True when the caller asked for one explicit page."""
        return self.top is not None or self.skip is not None


@dataclass
class ContinuationToken:
    """Opaque cursor for the next transport page of a query."""

    payload: Dict[str, Any]


@dataclass
class FacetBucket:
    value: Any
    count: int


@dataclass
class SearchResponse:
    """One transport page as returned by the remote service."""

    documents: List[Document] = field(default_factory=list)
    facets: Dict[str, List[FacetBucket]] = field(default_factory=dict)
    total_count: Optional[int] = None
    continuation_token: Optional[ContinuationToken] = None


@dataclass
class SearchPage:
    """Caller-visible result of a search."""

    documents: List[Document] = field(default_factory=list)
    # facet field -> stringified facet value -> occurrence count
    facets: Dict[str, Dict[str, int]] = field(default_factory=dict)
    total_count: Optional[int] = None

    def __len__(self) -> int:
        return len(self.documents)
