"""Record model: the canonical shape of one ingested row and its category distribution.

Hierarchy:
  CategoryScore     : one weighted label assigned by the classifier.
  CategoryAnalysis  : the classifier's full answer (labels + reasoning).
  Record            : an ingested row, plus the derived category fields.
  ScoredRecord      : a Record returned by similarity search, with its score.

Untrusted data (CSV rows, classifier output, stored payloads) only becomes a
Record through validate_record() or one of the from_* constructors.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_validator

UNCATEGORIZED = "Uncategorized"

# fields every ingested row must carry, in the column order used for CSV files
RECORD_FIELDS: tuple[str, ...] = (
    "id",
    "project_id",
    "asset_id",
    "content_type",
    "text",
    "created_at",
    "updated_at",
)


class RecordValidationError(ValueError):
    """Raised when a raw row does not match the Record shape."""

    def __init__(self, record_id: Any, errors: list[dict] | str):
        self.record_id = record_id
        self.errors = errors
        super().__init__(f"Invalid record id={record_id!r}: {errors}")


class CategoryScore(BaseModel):
    name: str
    score: float = Field(ge=0.0, le=1.0)


class CategoryAnalysis(BaseModel):
    """Weighted multi-label classification of one record.

    The number of categories is capped only by the classifier prompt; lists
    longer than three are accepted as-is.
    """

    categories: list[CategoryScore]
    reasoning: str

    def get_primary_category(self) -> str:
        """Return the name of the highest-scoring category.

        Ties keep the first entry in list order (stable sort). An empty list
        yields UNCATEGORIZED.
        """
        if not self.categories:
            return UNCATEGORIZED
        return sorted(self.categories, key=lambda c: c.score, reverse=True)[0].name

    def get_category_names(self) -> list[str]:
        return [c.name for c in self.categories]


class DecodeResult(BaseModel):
    """Outcome of decoding a category analysis of unknown shape.

    Exactly one of value / error is set, unless the input was empty
    (both None).
    """

    value: CategoryAnalysis | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def decode_category_analysis(raw: Any) -> DecodeResult:
    """Decode a category analysis stored either as a structured value or as a JSON string.

    Args:
        raw (Any): A dict, a CategoryAnalysis, a JSON-encoded string, or None.

    Returns:
        DecodeResult: The decoded analysis, or the reason decoding failed.
    """
    if raw is None or raw == "":
        return DecodeResult()
    if isinstance(raw, CategoryAnalysis):
        return DecodeResult(value=raw)
    try:
        if isinstance(raw, (str, bytes)):
            raw = json.loads(raw)
        return DecodeResult(value=CategoryAnalysis.model_validate(raw))
    except (json.JSONDecodeError, ValidationError, TypeError) as e:
        return DecodeResult(error=str(e))


class Record(BaseModel):
    """One ingested unit of text plus its identifying and temporal metadata.

    Identity and timestamp fields are opaque and passed through untouched.
    ``category`` and ``category_analysis`` are filled in by the categorization step.
    """

    model_config = ConfigDict(extra="ignore")

    id: StrictStr = Field(min_length=1)
    project_id: StrictStr
    asset_id: StrictStr
    content_type: StrictStr
    text: StrictStr
    created_at: StrictStr
    updated_at: StrictStr

    category: str | None = None
    category_analysis: CategoryAnalysis | None = None

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text must not be empty")
        return v

    ##########################################
    ############## DERIVATION ################
    ##########################################

    def with_analysis(self, analysis: CategoryAnalysis) -> "Record":
        """Return a copy carrying the analysis and its derived primary category."""
        return self.model_copy(update={
            "category_analysis": analysis,
            "category": analysis.get_primary_category(),
        })

    def as_uncategorized(self) -> "Record":
        """Return a copy marked UNCATEGORIZED, without any analysis."""
        return self.model_copy(update={"category": UNCATEGORIZED, "category_analysis": None})

    ##########################################
    ############## CONVERSION ################
    ##########################################

    def to_payload(self) -> dict[str, Any]:
        """Build the vector store payload: every field except ``id``.

        The analysis is stored as a structured value, never as a string.
        """
        payload = self.model_dump(exclude={"id", "category_analysis"})
        payload["category"] = self.category or UNCATEGORIZED
        payload["category_analysis"] = self.category_analysis.model_dump() if self.category_analysis else None
        return payload

    @classmethod
    def _fields_from_payload(cls, point_id: Any, payload: dict, logger=None) -> dict[str, Any]:
        fields = {key: payload.get(key) for key in RECORD_FIELDS if key != "id"}
        # record_id is only stored when the point id had to be derived from the record id
        fields["id"] = str(payload.get("record_id") or point_id)
        fields["category"] = payload.get("category")
        decoded = decode_category_analysis(payload.get("category_analysis"))
        if not decoded.ok and logger is not None:
            logger.warning("Could not decode category_analysis of point id=%s: %s", point_id, decoded.error)
        fields["category_analysis"] = decoded.value
        return fields

    @classmethod
    def from_point(cls, point: dict, logger=None) -> "Record":
        """Rebuild a Record from a stored point ({"id", "payload"}).

        An undecodable category analysis is logged and left out.

        Raises:
            RecordValidationError: If the payload is missing required fields.
        """
        fields = cls._fields_from_payload(point.get("id"), point.get("payload") or {}, logger)
        try:
            return cls.model_validate(fields)
        except ValidationError as e:
            raise RecordValidationError(point.get("id"), e.errors(include_url=False)) from e


class ScoredRecord(Record):
    """A Record returned by similarity search, annotated with its similarity score."""

    score: float

    @classmethod
    def from_hit(cls, hit: dict, logger=None) -> "ScoredRecord":
        """Rebuild a ScoredRecord from a search hit ({"id", "score", "payload"})."""
        fields = cls._fields_from_payload(hit.get("id"), hit.get("payload") or {}, logger)
        fields["score"] = hit.get("score", 0.0)
        try:
            return cls.model_validate(fields)
        except ValidationError as e:
            raise RecordValidationError(hit.get("id"), e.errors(include_url=False)) from e


##########################################
############### VALIDATOR ################
##########################################

def validate_record(raw: dict) -> Record:
    """Validate one untrusted row against the Record shape.

    Args:
        raw (dict): Flat key-value row (extra keys are ignored).

    Returns:
        Record: The validated record.

    Raises:
        RecordValidationError: If a required field is missing or has the wrong type.
    """
    if not isinstance(raw, dict):
        raise RecordValidationError(None, f"expected a mapping, got {type(raw).__name__}")
    try:
        return Record.model_validate(raw)
    except ValidationError as e:
        raise RecordValidationError(raw.get("id"), e.errors(include_url=False)) from e


def validate_records(rows: list[dict]) -> tuple[list[Record], list[RecordValidationError]]:
    """Validate many rows, splitting them into valid records and errors. Order is preserved."""
    valid: list[Record] = []
    errors: list[RecordValidationError] = []
    for row in rows:
        try:
            valid.append(validate_record(row))
        except RecordValidationError as e:
            errors.append(e)
    return valid, errors
