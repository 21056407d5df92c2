"""Tests for the ingestion orchestration."""

import pytest

from conftest import FakeEmbedClient, FakeLLMClient, analysis_json, make_row, write_raw_export
from services.categorization.CategorizationService import CategorizationService
from services.ingestion.IndexProvisioner import IndexProvisioner
from services.ingestion.IngestionService import IngestionService
from services.ingestion.UpsertService import UpsertService


def _service(helper_config, rag_client, embed_client, llm_client) -> IngestionService:
    return IngestionService(
        helper_config=helper_config,
        rag_client=rag_client,
        embed_client=embed_client,
        categorization_service=CategorizationService(helper_config, llm_client),
        index_provisioner=IndexProvisioner(helper_config, rag_client),
        upsert_service=UpsertService(helper_config, rag_client, embed_client),
    )


@pytest.mark.asyncio
class TestIngestFile:
    async def test_full_pipeline(self, helper_config, rag_client, embed_client, tmp_path):
        raw = tmp_path / "export.csv"
        write_raw_export(
            raw,
            "r1;p1;a1;chunk;Deep learning with transformers;[0.1];ada;2024-01-01;2024-01-02",
            "r2;p1;a2;chunk;Unclassifiable text;[0.2];ada;2024-01-01;2024-01-02",
            "r3;p1;a3;chunk;;[0.3];ada;2024-01-01;2024-01-02",
        )
        llm = FakeLLMClient({
            "Deep learning with transformers": analysis_json(("Deep Learning", 0.9), ("NLP", 0.6)),
            "Unclassifiable text": "sorry",
        })
        report = await _service(helper_config, rag_client, embed_client, llm).ingest_file(raw)

        assert report.total == 3
        assert report.invalid == 1
        assert report.categorized == 1
        assert report.uncategorized == 1
        assert report.upserted == 2
        assert report.dropped == 0
        assert report.success

        assert (tmp_path / "export-cleaned.csv").exists()
        assert (tmp_path / "export-categorized.csv").exists()
        assert rag_client.collections == {"record_embeddings"}
        assert rag_client.indexes == {"category"}
        categories = sorted(p["payload"]["category"] for p in rag_client.points.values())
        assert categories == ["Deep Learning", "Uncategorized"]

    async def test_configured_output_paths(self, helper_config, rag_client, embed_client, tmp_path, monkeypatch):
        raw = tmp_path / "export.csv"
        write_raw_export(raw, "r1;p1;a1;chunk;Some text;[0.1];ada;2024-01-01;2024-01-02")
        monkeypatch.setenv("INGEST_CATEGORIZED_FILE", str(tmp_path / "out" / "cat.csv"))
        llm = FakeLLMClient(default=analysis_json(("Python", 0.5)))
        await _service(helper_config, rag_client, embed_client, llm).ingest_file(raw)
        assert (tmp_path / "out" / "cat.csv").exists()

    async def test_no_valid_records(self, helper_config, rag_client, embed_client, tmp_path):
        raw = tmp_path / "export.csv"
        write_raw_export(raw, "r1;p1;a1;chunk;;[0.1];ada;2024-01-01;2024-01-02")
        with pytest.raises(ValueError, match="No valid records"):
            await _service(helper_config, rag_client, embed_client, FakeLLMClient()).ingest_file(raw)
        assert rag_client.upsert_calls == []

    async def test_dropped_embeddings_reported(self, helper_config, rag_client, tmp_path):
        raw = tmp_path / "export.csv"
        write_raw_export(
            raw,
            "r1;p1;a1;chunk;good text;[0.1];ada;2024-01-01;2024-01-02",
            "r2;p1;a2;chunk;bad text;[0.2];ada;2024-01-01;2024-01-02",
        )
        embed_client = FakeEmbedClient(failing={"bad text"})
        llm = FakeLLMClient(default=analysis_json(("Python", 0.5)))
        report = await _service(helper_config, rag_client, embed_client, llm).ingest_file(raw)
        assert report.upserted == 1
        assert report.dropped == 1
        assert not report.success


@pytest.mark.asyncio
class TestIngestRecords:
    async def test_in_memory_rows(self, helper_config, rag_client, embed_client):
        llm = FakeLLMClient(default=analysis_json(("NLP", 0.7)))
        report = await _service(helper_config, rag_client, embed_client, llm).ingest_records(
            [make_row("a"), make_row("b", text=""), {"id": "c"}]
        )
        assert report.total == 3
        assert report.invalid == 2
        assert report.upserted == 1

    async def test_rerun_is_idempotent(self, helper_config, rag_client, embed_client):
        llm = FakeLLMClient(default=analysis_json(("NLP", 0.7)))
        service = _service(helper_config, rag_client, embed_client, llm)
        first = await service.ingest_records([make_row("a"), make_row("b")])
        second = await service.ingest_records([make_row("a"), make_row("b")])
        assert len(rag_client.points) == 2
        assert first.stored == 2
        assert second.upserted == 2
        assert second.stored == 2
        assert rag_client.create_collection_calls == 1


class TestCleanFile:
    def test_clean_only_needs_no_clients(self, helper_config, tmp_path):
        raw = tmp_path / "export.csv"
        write_raw_export(raw, "r1;p1;a1;chunk;Some text;[0.1];ada;2024-01-01;2024-01-02")
        service = IngestionService(helper_config=helper_config)
        cleaned = service.derive_path(raw, "INGEST_CLEANED_FILE", "cleaned")
        records, report = service.clean_file(raw, cleaned)
        assert [r.id for r in records] == ["r1"]
        assert report.total == 1
        assert cleaned.endswith("export-cleaned.csv")
