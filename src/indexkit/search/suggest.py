from typing import List, Optional

import structlog

from indexkit.documents.batch import Document
from indexkit.errors import PermanentFault, UnknownSuggester
from indexkit.service.base import RemoteIndexService

logger = structlog.get_logger()


class SuggestEngine:
    """Typeahead completions. One round trip, no paging, no retry."""

    def __init__(self, service: RemoteIndexService, default_top: int = 5):
        self.service = service
        self.default_top = default_top

    async def suggest(
        self,
        index_name: str,
        suggester_name: str,
        prefix_text: str,
        max_results: Optional[int] = None,
        fuzzy: bool = False,
        filter: Optional[str] = None,
    ) -> List[Document]:
        """
        Return ranked completion candidates for ``prefix_text``.

        Raises:
            UnknownSuggester: ``suggester_name`` is not defined on the index
        """
        params = {
            "top": self.default_top if max_results is None else max_results,
            "fuzzy": fuzzy,
            "filter": filter,
        }
        try:
            return await self.service.suggest(index_name, suggester_name, prefix_text, params)
        except PermanentFault as e:
            if "suggester" in e.detail.lower():
                raise UnknownSuggester(index_name, suggester_name) from e
            logger.error("suggest_failed", index=index_name, suggester=suggester_name, error=e.detail)
            raise
