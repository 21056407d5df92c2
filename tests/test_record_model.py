"""Tests for the Record model, category analysis and payload decoding."""

import pytest

from conftest import analysis_json, make_row
from shared.models.record import (
    UNCATEGORIZED,
    CategoryAnalysis,
    Record,
    RecordValidationError,
    ScoredRecord,
    decode_category_analysis,
    validate_record,
    validate_records,
)


class TestPrimaryCategory:
    """Primary category derivation from a category analysis."""

    def test_highest_score_wins(self):
        analysis = CategoryAnalysis.model_validate_json(analysis_json(("NLP", 0.6), ("Deep Learning", 0.9)))
        assert analysis.get_primary_category() == "Deep Learning"

    def test_tie_keeps_first_entry(self):
        analysis = CategoryAnalysis.model_validate_json(analysis_json(("Python", 0.7), ("MLOps", 0.7)))
        assert analysis.get_primary_category() == "Python"

    def test_empty_categories_are_uncategorized(self):
        analysis = CategoryAnalysis(categories=[], reasoning="nothing fits")
        assert analysis.get_primary_category() == UNCATEGORIZED

    def test_more_than_three_categories_accepted(self):
        analysis = CategoryAnalysis.model_validate_json(
            analysis_json(("A", 0.1), ("B", 0.2), ("C", 0.3), ("D", 0.4))
        )
        assert analysis.get_category_names() == ["A", "B", "C", "D"]

    def test_score_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            CategoryAnalysis.model_validate_json(analysis_json(("NLP", 1.5)))


class TestValidation:
    """Validation of untrusted rows."""

    def test_valid_row(self):
        record = validate_record(make_row(extra_column="ignored"))
        assert record.id == "r1"
        assert record.category is None

    def test_missing_field_rejected(self):
        row = make_row()
        del row["asset_id"]
        with pytest.raises(RecordValidationError) as exc_info:
            validate_record(row)
        assert exc_info.value.record_id == "r1"

    def test_wrong_type_rejected(self):
        with pytest.raises(RecordValidationError):
            validate_record(make_row(project_id=42))

    def test_blank_text_rejected(self):
        with pytest.raises(RecordValidationError):
            validate_record(make_row(text="   "))

    def test_non_mapping_rejected(self):
        with pytest.raises(RecordValidationError):
            validate_record(["r1"])

    def test_validate_records_splits_and_keeps_order(self):
        rows = [make_row("a"), make_row("b", text=""), make_row("c")]
        valid, errors = validate_records(rows)
        assert [r.id for r in valid] == ["a", "c"]
        assert [e.record_id for e in errors] == ["b"]


class TestDerivation:
    def test_with_analysis_sets_primary_category(self):
        record = validate_record(make_row())
        analysis = CategoryAnalysis.model_validate_json(analysis_json(("Deep Learning", 0.9), ("NLP", 0.6)))
        categorized = record.with_analysis(analysis)
        assert categorized.category == "Deep Learning"
        assert categorized.category_analysis == analysis
        assert record.category is None

    def test_as_uncategorized_drops_analysis(self):
        record = validate_record(make_row()).with_analysis(
            CategoryAnalysis.model_validate_json(analysis_json(("NLP", 0.5)))
        )
        degraded = record.as_uncategorized()
        assert degraded.category == UNCATEGORIZED
        assert degraded.category_analysis is None
        assert degraded.text == record.text


class TestDecode:
    """Decoding of analyses stored as structured values or as JSON strings."""

    def test_decode_string(self):
        result = decode_category_analysis(analysis_json(("NLP", 0.6)))
        assert result.ok
        assert result.value.get_category_names() == ["NLP"]

    def test_decode_dict(self):
        result = decode_category_analysis({"categories": [{"name": "NLP", "score": 0.6}], "reasoning": "x"})
        assert result.value.categories[0].score == 0.6

    def test_decode_empty(self):
        result = decode_category_analysis("")
        assert result.ok
        assert result.value is None

    def test_decode_garbage(self):
        result = decode_category_analysis("{not json")
        assert not result.ok
        assert result.value is None

    def test_decode_wrong_shape(self):
        result = decode_category_analysis({"labels": ["NLP"]})
        assert not result.ok


class TestPayloadConversion:
    """Conversion between records and stored points."""

    def test_payload_excludes_id_and_keeps_structured_analysis(self):
        record = validate_record(make_row()).with_analysis(
            CategoryAnalysis.model_validate_json(analysis_json(("NLP", 0.6)))
        )
        payload = record.to_payload()
        assert "id" not in payload
        assert payload["category"] == "NLP"
        assert payload["category_analysis"]["categories"] == [{"name": "NLP", "score": 0.6}]

    def test_payload_without_category(self):
        payload = validate_record(make_row()).to_payload()
        assert payload["category"] == UNCATEGORIZED
        assert payload["category_analysis"] is None

    def test_from_point_decodes_string_analysis(self):
        payload = make_row()
        del payload["id"]
        payload.update(category="NLP", category_analysis=analysis_json(("NLP", 0.6)), record_id="r1")
        record = Record.from_point({"id": "0d3b1c3e-6f52-5b64-9d5e-1d8f0f1b2c3a", "payload": payload})
        assert record.id == "r1"
        assert record.category_analysis.get_category_names() == ["NLP"]

    def test_from_point_omits_undecodable_analysis(self):
        payload = make_row()
        del payload["id"]
        payload.update(category="NLP", category_analysis="{broken")
        record = Record.from_point({"id": 7, "payload": payload})
        assert record.id == "7"
        assert record.category == "NLP"
        assert record.category_analysis is None

    def test_from_point_missing_fields(self):
        with pytest.raises(RecordValidationError):
            Record.from_point({"id": 1, "payload": {"text": "only text"}})

    def test_scored_record_from_hit(self):
        payload = make_row()
        del payload["id"]
        hit = ScoredRecord.from_hit({"id": 3, "score": 0.87, "payload": payload})
        assert hit.id == "3"
        assert hit.score == 0.87
