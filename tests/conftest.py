"""Shared fixtures: configuration, logger and in-memory fakes for the external backends."""

import json
import logging
import math

import pytest

from shared.clients.rag.errors import AlreadyExistsError, IndexNotFoundError
from shared.clients.rag.models.Scroll import ScrollResult, SearchHit
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger


@pytest.fixture
def helper_config(monkeypatch) -> HelperConfig:
    """HelperConfig with the pipeline settings unset, so every default applies."""
    for key in (
        "CATEGORIZE_BATCH_SIZE",
        "CATEGORIZE_TIMEOUT",
        "UPSERT_BATCH_SIZE",
        "UPSERT_EMBED_TIMEOUT",
        "RETRIEVAL_PAGE_SIZE",
        "INGEST_INPUT_FILE",
        "INGEST_CLEANED_FILE",
        "INGEST_CATEGORIZED_FILE",
        "INGEST_CSV_DELIMITER",
    ):
        monkeypatch.delenv(key, raising=False)
    return HelperConfig(logger=ColorLogger(logging.getLogger("category_vector_bridge.tests")))


def make_row(record_id: str = "r1", text: str = "Deep learning with transformers", **overrides) -> dict:
    row = {
        "id": record_id,
        "project_id": "p1",
        "asset_id": "a1",
        "content_type": "chunk",
        "text": text,
        "created_at": "2024-01-01T00:00:00",
        "updated_at": "2024-01-02T00:00:00",
    }
    row.update(overrides)
    return row


def analysis_json(*categories: tuple[str, float], reasoning: str = "mentions transformers") -> str:
    return json.dumps({
        "categories": [{"name": name, "score": score} for name, score in categories],
        "reasoning": reasoning,
    })


class FakeLLMClient:
    """Answers each prompt from a text -> reply map; a reply that is an exception is raised."""

    def __init__(self, replies: dict[str, object] | None = None, default: object = None):
        self.replies = replies or {}
        self.default = default
        self.prompts: list[str] = []
        self.system_prompts: list[str | None] = []

    async def do_prompt(self, prompt: str, system: str | None = None) -> str:
        self.prompts.append(prompt)
        self.system_prompts.append(system)
        for text, reply in self.replies.items():
            if f'"{text}"' in prompt:
                return self._answer(reply)
        return self._answer(self.default)

    @staticmethod
    def _answer(reply: object) -> str:
        if isinstance(reply, BaseException):
            raise reply
        if reply is None:
            raise ConnectionError("classifier unavailable")
        return reply


class FakeEmbedClient:
    """Deterministic embeddings; texts listed in ``failing`` raise."""

    def __init__(self, vector_size: int = 4, failing: set[str] | None = None):
        self.vector_size = vector_size
        self.failing = failing or set()
        self.calls: list[str] = []

    def get_vector_size(self) -> int:
        return self.vector_size

    async def do_embed_one(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.failing:
            raise ConnectionError(f"cannot embed {text!r}")
        seed = sum(ord(c) for c in text)
        return [float((seed * (i + 1)) % 97 + 1) for i in range(self.vector_size)]


class FakeRAGClient:
    """In-memory vector store with Qdrant-like behaviour.

    Points are kept in insertion order keyed by id, so an upsert with an
    existing id overwrites the point in place.
    """

    def __init__(self, collection: str = "record_embeddings", has_index: bool = True):
        self.collection = collection
        self.collections: set[str] = set()
        self.indexes: set[str] = set()
        self.points: dict[str | int, dict] = {}
        self.has_index = has_index
        self.upsert_calls: list[list[dict]] = []
        self.scroll_filters: list[dict | None] = []
        self.create_collection_calls = 0
        self.race_on_create = False

    def get_collection_name(self) -> str:
        return self.collection

    def get_equality_filter(self, field: str, value) -> dict:
        return {"must": [{"key": field, "match": {"value": value}}]}

    async def do_list_collections(self) -> list[str]:
        return sorted(self.collections)

    async def do_create_collection(self, vector_size: int, distance: str = "Cosine", collection: str | None = None) -> None:
        self.create_collection_calls += 1
        name = collection or self.collection
        if self.race_on_create or name in self.collections:
            self.collections.add(name)
            raise AlreadyExistsError(f"Collection `{name}` already exists!", status_code=409)
        self.collections.add(name)

    async def do_create_payload_index(self, field_name: str, field_schema: str = "keyword", collection: str | None = None) -> None:
        if field_name in self.indexes:
            raise AlreadyExistsError(f"Index on {field_name} already exists", status_code=409)
        self.indexes.add(field_name)
        self.has_index = True

    async def do_upsert_points(self, points: list[dict], collection: str | None = None) -> None:
        self.upsert_calls.append(points)
        for point in points:
            self.points[point["id"]] = {"id": point["id"], "vector": point["vector"], "payload": point["payload"]}

    async def do_count(self, filter: dict | None = None, collection: str | None = None) -> int:
        return sum(1 for p in self.points.values() if filter is None or self._matches(p["payload"], filter))

    async def do_scroll_all(self, filter: dict | None, page_size: int = 1000, collection: str | None = None) -> ScrollResult:
        self.scroll_filters.append(filter)
        if filter is not None and not self.has_index:
            raise IndexNotFoundError(
                "Bad request: Index required but not found for \"category\"",
                status_code=400,
                backend_message="Bad request: Index required but not found for \"category\"",
            )
        result = [
            {"id": p["id"], "payload": p["payload"]}
            for p in self.points.values()
            if filter is None or self._matches(p["payload"], filter)
        ]
        return ScrollResult(result=result)

    async def do_search(self, vector: list[float], limit: int, filter: dict | None = None,
                        score_threshold: float | None = None, collection: str | None = None) -> list[SearchHit]:
        hits = []
        for point in self.points.values():
            if filter is not None and not self._matches(point["payload"], filter):
                continue
            score = _cosine(vector, point["vector"])
            if score_threshold is not None and score < score_threshold:
                continue
            hits.append(SearchHit(id=point["id"], score=score, payload=point["payload"]))
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:limit]

    @staticmethod
    def _matches(payload: dict, filter: dict) -> bool:
        return all(payload.get(cond["key"]) == cond["match"]["value"] for cond in filter["must"])


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


@pytest.fixture
def rag_client() -> FakeRAGClient:
    return FakeRAGClient()


@pytest.fixture
def embed_client() -> FakeEmbedClient:
    return FakeEmbedClient()


RAW_HEADER = "id;project_id;asset_id;content_type;original_chunk;embedding;model;created_at;updated_at"


def write_raw_export(path, *lines: str) -> None:
    """Write a raw ';'-delimited export with the given data lines."""
    path.write_text("\n".join([RAW_HEADER, *lines]) + "\n", encoding="utf-8")
