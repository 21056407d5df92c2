"""Retrieval service.

Query-side access to the vector store: full scans with an optional category
filter, similarity search, compound filtering and a per-category summary.
"""

from collections import defaultdict

from pydantic import BaseModel

from services.retrieval.CompoundFilter import FilterCriteria, apply_filter
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.errors import IndexNotFoundError
from shared.helper.HelperConfig import HelperConfig
from shared.models.record import UNCATEGORIZED, Record, RecordValidationError, ScoredRecord

CATEGORY_FIELD = "category"
DEFAULT_PAGE_SIZE = 1000


class CategorySummary(BaseModel):
    category: str
    count: int
    mean_score: float


class RetrievalService:
    """Reads records back from the vector store."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._embed_client = embed_client
        self._page_size = helper_config.get_positive_int_val("RETRIEVAL_PAGE_SIZE", default=DEFAULT_PAGE_SIZE)

    ##########################################
    ################ FETCH ###################
    ##########################################

    async def fetch(self, category: str | None = None) -> list[Record]:
        """Fetch all records, optionally only those with the given primary category.

        The category filter runs on the store. If the store has no index on
        ``category`` the collection is scanned unfiltered and the filter is
        applied here instead, which yields the same records.

        Args:
            category (str | None): Exact primary category to match.

        Returns:
            list[Record]: The matching records.

        Raises:
            RAGClientError: On any store error other than a missing index.
        """
        if category is None:
            points = await self._scan(None)
            return self._to_records(points)

        try:
            points = await self._scan(self._rag_client.get_equality_filter(CATEGORY_FIELD, category))
        except IndexNotFoundError as e:
            self.logging.warning(
                "Index on %r missing (%s); scanning the full collection and filtering locally.",
                CATEGORY_FIELD, e.backend_message or e,
            )
            points = await self._scan(None)
            return [r for r in self._to_records(points) if r.category == category]
        return self._to_records(points)

    async def fetch_filtered(self, criteria: FilterCriteria) -> list[Record]:
        """Fetch by ``main_category`` (server-side when possible), then apply the compound filter."""
        records = await self.fetch(criteria.main_category)
        filtered = apply_filter(records, criteria)
        self.logging.info("Compound filter kept %d of %d records.", len(filtered), len(records))
        return filtered

    ##########################################
    ################ SEARCH ##################
    ##########################################

    async def search(
        self,
        query: str,
        limit: int = 5,
        score_threshold: float | None = None,
        category: str | None = None,
    ) -> list[ScoredRecord]:
        """Similarity search for a free-text query, best match first.

        Raises:
            ValueError: If the query is blank or limit is not positive.
            RAGClientError: On a store error. A missing category index is not
                            worked around here.
        """
        if not query or not query.strip():
            raise ValueError("query must not be empty")
        if limit < 1:
            raise ValueError("limit must be at least 1")

        vector = await self._embed_client.do_embed_one(query)
        filter = self._rag_client.get_equality_filter(CATEGORY_FIELD, category) if category else None
        hits = await self._rag_client.do_search(
            vector=vector,
            limit=limit,
            filter=filter,
            score_threshold=score_threshold,
        )

        results: list[ScoredRecord] = []
        for hit in hits:
            try:
                results.append(ScoredRecord.from_hit(hit.model_dump(), logger=self.logging))
            except RecordValidationError as e:
                self.logging.warning("Skipping malformed search hit: %s", e)
        self.logging.debug("Search for %r returned %d results.", query, len(results))
        return results

    ##########################################
    ############### SUMMARY ##################
    ##########################################

    async def summarize_categories(self) -> list[CategorySummary]:
        """Count records per primary category, with the mean score of all their category entries.

        Records without an analysis count towards their category with no score contribution.
        """
        counts: dict[str, int] = defaultdict(int)
        scores: dict[str, list[float]] = defaultdict(list)
        for record in await self.fetch():
            name = record.category or UNCATEGORIZED
            counts[name] += 1
            if record.category_analysis is not None:
                scores[name].extend(c.score for c in record.category_analysis.categories)

        summaries = [
            CategorySummary(
                category=name,
                count=count,
                mean_score=round(sum(scores[name]) / len(scores[name]), 4) if scores[name] else 0.0,
            )
            for name, count in counts.items()
        ]
        summaries.sort(key=lambda s: (-s.count, s.category))
        return summaries

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _scan(self, filter: dict | None) -> list[dict]:
        result = await self._rag_client.do_scroll_all(filter=filter, page_size=self._page_size)
        return result.result

    def _to_records(self, points: list[dict]) -> list[Record]:
        records: list[Record] = []
        for point in points:
            try:
                records.append(Record.from_point(point, logger=self.logging))
            except RecordValidationError as e:
                self.logging.warning("Skipping malformed point: %s", e)
        return records
