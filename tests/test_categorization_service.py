"""Tests for CategorizationService: ordering, failure isolation and primary category."""

import asyncio

import pytest

from conftest import FakeLLMClient, analysis_json, make_row
from services.categorization.CategorizationService import CategorizationService
from services.categorization.prompts import CATEGORIZE_SYSTEM_PROMPT
from shared.models.record import UNCATEGORIZED, validate_record


def _records(*ids: str):
    return [validate_record(make_row(i, text=f"text of {i}")) for i in ids]


class SlowLLMClient:
    """Replies with a delay that decreases with the record index, so calls finish in reverse order."""

    def __init__(self, delays: dict[str, float]):
        self.delays = delays
        self.in_flight = 0
        self.max_in_flight = 0

    async def do_prompt(self, prompt: str, system: str | None = None) -> str:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        delay = next(d for text, d in self.delays.items() if f'"{text}"' in prompt)
        await asyncio.sleep(delay)
        self.in_flight -= 1
        name = next(text for text in self.delays if f'"{text}"' in prompt)
        return analysis_json((name, 0.8))


@pytest.mark.asyncio
class TestClassify:
    """Batch classification."""

    async def test_end_to_end_example(self, helper_config):
        llm = FakeLLMClient({
            "Deep learning with transformers": analysis_json(("Deep Learning", 0.9), ("NLP", 0.6)),
        })
        service = CategorizationService(helper_config, llm)
        [record] = await service.classify([validate_record(make_row("r1"))])
        assert record.category == "Deep Learning"
        assert record.category_analysis.get_category_names() == ["Deep Learning", "NLP"]

    async def test_same_length_and_order(self, helper_config):
        records = _records("a", "b", "c", "d", "e")
        delays = {f"text of {i}": 0.01 * (5 - n) for n, i in enumerate("abcde")}
        service = CategorizationService(helper_config, SlowLLMClient(delays))
        result = await service.classify(records, batch_size=5)
        assert [r.id for r in result] == ["a", "b", "c", "d", "e"]
        assert [r.category for r in result] == [f"text of {i}" for i in "abcde"]

    async def test_batch_size_bounds_concurrency(self, helper_config):
        records = _records("a", "b", "c", "d", "e")
        llm = SlowLLMClient({f"text of {i}": 0.01 for i in "abcde"})
        service = CategorizationService(helper_config, llm)
        await service.classify(records, batch_size=2)
        assert llm.max_in_flight == 2

    async def test_failure_isolated_to_one_record(self, helper_config):
        llm = FakeLLMClient({
            "text of a": analysis_json(("Python", 0.7)),
            "text of b": RuntimeError("boom"),
            "text of c": "I cannot answer that.",
            "text of d": '{"categories": [{"name": "NLP"}], "reasoning": "missing score"}',
            "text of e": analysis_json(("MLOps", 0.4)),
        })
        service = CategorizationService(helper_config, llm)
        result = await service.classify(_records("a", "b", "c", "d", "e"))

        assert [r.category for r in result] == ["Python", UNCATEGORIZED, UNCATEGORIZED, UNCATEGORIZED, "MLOps"]
        assert all(r.category for r in result)
        assert result[1].category_analysis is None
        assert result[0].category_analysis is not None
        assert CategorizationService.count_uncategorized(result) == 3

    async def test_timeout_is_a_per_record_failure(self, helper_config, monkeypatch):
        monkeypatch.setenv("CATEGORIZE_TIMEOUT", "0.05")
        llm = SlowLLMClient({"text of a": 0.0, "text of b": 1.0})
        service = CategorizationService(helper_config, llm)
        result = await service.classify(_records("a", "b"))
        assert result[0].category == "text of a"
        assert result[1].category == UNCATEGORIZED

    async def test_empty_categories_yield_uncategorized(self, helper_config):
        llm = FakeLLMClient(default='{"categories": [], "reasoning": "nothing fits"}')
        service = CategorizationService(helper_config, llm)
        [record] = await service.classify(_records("a"))
        assert record.category == UNCATEGORIZED
        assert record.category_analysis is not None
        assert CategorizationService.count_uncategorized([record]) == 0

    async def test_empty_input(self, helper_config):
        service = CategorizationService(helper_config, FakeLLMClient())
        assert await service.classify([]) == []

    async def test_prompt_contains_text(self, helper_config):
        llm = FakeLLMClient(default=analysis_json(("NLP", 0.5)))
        service = CategorizationService(helper_config, llm)
        await service.classify(_records("a"))
        assert '"text of a"' in llm.prompts[0]
        assert llm.system_prompts == [CATEGORIZE_SYSTEM_PROMPT]


class TestParseAnalysis:
    def test_parses_reply_with_prose(self):
        analysis = CategorizationService.parse_analysis(
            "Here you go:\n" + analysis_json(("NLP", 0.6), reasoning="language") + "\nBye"
        )
        assert analysis.reasoning == "language"

    def test_invalid_batch_size_setting(self, helper_config, monkeypatch):
        monkeypatch.setenv("CATEGORIZE_BATCH_SIZE", "0")
        with pytest.raises(ValueError):
            CategorizationService(helper_config, FakeLLMClient())
