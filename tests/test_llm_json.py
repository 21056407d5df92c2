"""Tests for JSON extraction from free-form classifier replies."""

import pytest

from shared.helper.llm_json import LLMJsonError, extract_json_object


class TestExtractJsonObject:
    def test_plain_object(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_surrounding_prose(self):
        reply = 'Sure! Here is the result:\n{"categories": [], "reasoning": "none"}\nHope that helps.'
        assert extract_json_object(reply) == {"categories": [], "reasoning": "none"}

    def test_code_fence(self):
        reply = '```json\n{"reasoning": "x", "categories": [{"name": "NLP", "score": 0.5}]}\n```'
        assert extract_json_object(reply)["categories"][0]["name"] == "NLP"

    def test_nested_objects_stay_intact(self):
        reply = 'Result: {"outer": {"inner": 1}, "list": [{"x": 2}]}'
        assert extract_json_object(reply) == {"outer": {"inner": 1}, "list": [{"x": 2}]}

    def test_trailing_comma_repaired(self):
        assert extract_json_object('{"a": [1, 2,], "b": 3,}') == {"a": [1, 2], "b": 3}

    @pytest.mark.parametrize("reply", ["", "   ", "no json here", "{broken: json", "[1, 2, 3]"])
    def test_unrecoverable(self, reply):
        with pytest.raises(LLMJsonError):
            extract_json_object(reply)

    def test_error_is_value_error(self):
        assert issubclass(LLMJsonError, ValueError)
