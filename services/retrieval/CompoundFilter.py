"""Compound post-filter over retrieved records.

Works on any record list, independent of how it was fetched. Active criteria
are combined with AND. As soon as one of ``categories``, ``min_score`` or
``reasoning_keywords`` is set, records without a category analysis are
excluded.
"""

from pydantic import BaseModel, ConfigDict, Field

from shared.models.record import Record


class FilterCriteria(BaseModel):
    """Criteria for apply_filter(). Accepts both snake_case and camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    main_category: str | None = Field(default=None, alias="mainCategory")
    categories: list[str] | None = None
    min_score: float | None = Field(default=None, ge=0.0, le=1.0, alias="minScore")
    reasoning_keywords: list[str] | None = Field(default=None, alias="reasoningKeywords")
    limit: int | None = Field(default=None, gt=0)

    def needs_analysis(self) -> bool:
        return bool(self.categories) or self.min_score is not None or bool(self.reasoning_keywords)


def apply_filter(records: list[Record], criteria: FilterCriteria) -> list[Record]:
    """Filter records by the given criteria, keeping their order.

    Args:
        records (list[Record]): Retrieved records.
        criteria (FilterCriteria): Criteria to apply.

    Returns:
        list[Record]: Matching records, truncated to ``criteria.limit`` if set.
    """
    matched = [record for record in records if _matches(record, criteria)]
    if criteria.limit is not None:
        matched = matched[:criteria.limit]
    return matched


def _matches(record: Record, criteria: FilterCriteria) -> bool:
    if criteria.main_category is not None and record.category != criteria.main_category:
        return False

    if not criteria.needs_analysis():
        return True

    analysis = record.category_analysis
    if analysis is None:
        return False

    if criteria.categories:
        wanted = set(criteria.categories)
        if not any(name in wanted for name in analysis.get_category_names()):
            return False

    if criteria.min_score is not None:
        if not any(c.score >= criteria.min_score for c in analysis.categories):
            return False

    if criteria.reasoning_keywords:
        reasoning = analysis.reasoning.lower()
        if not any(keyword.lower() in reasoning for keyword in criteria.reasoning_keywords):
            return False

    return True
