"""Embedding and upsert pipeline.

Embeds categorized records batch by batch and writes one upsert per batch.
A record whose embedding fails is dropped on its own; store errors abort the
run. Upserts are keyed by record id, so re-running after a crash is safe.
"""

import asyncio

from pydantic import BaseModel

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.helper.HelperConfig import HelperConfig
from shared.models.record import Record

DEFAULT_BATCH_SIZE = 10
DEFAULT_TIMEOUT = 60.0


class UpsertReport(BaseModel):
    upserted: int = 0
    dropped: int = 0
    batches: int = 0
    dropped_ids: list[str] = []


class UpsertService:
    """Turns records into vector points and upserts them in bounded batches."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._embed_client = embed_client
        self._batch_size = helper_config.get_positive_int_val("UPSERT_BATCH_SIZE", default=DEFAULT_BATCH_SIZE)
        self._timeout = float(helper_config.get_number_val("UPSERT_EMBED_TIMEOUT", default=DEFAULT_TIMEOUT))

    ##########################################
    ################ CORE ####################
    ##########################################

    async def upsert_all(self, records: list[Record], batch_size: int | None = None, collection: str | None = None) -> UpsertReport:
        """Embed and upsert all records.

        Args:
            records (list[Record]): Categorized, validated records.
            batch_size (int | None): Records per batch. Defaults to UPSERT_BATCH_SIZE.
            collection (str | None): Target collection. Defaults to the RAG client's collection.

        Returns:
            UpsertReport: Counts of upserted and dropped records.

        Raises:
            RAGClientError: If an upsert call fails. Batches before it stay written.
        """
        batch_size = batch_size or self._batch_size
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        report = UpsertReport()
        total_batches = (len(records) + batch_size - 1) // batch_size
        for batch_index, start in enumerate(range(0, len(records), batch_size), start=1):
            batch = records[start:start + batch_size]
            self.logging.info("Embedding batch %d/%d (%d records)...", batch_index, total_batches, len(batch))

            results = await asyncio.gather(*[self._build_point(record) for record in batch])
            points = [point for point in results if point is not None]
            report.batches += 1
            report.dropped_ids.extend(record.id for record, point in zip(batch, results) if point is None)

            if not points:
                self.logging.warning("Batch %d/%d produced no points; skipping upsert.", batch_index, total_batches)
                continue

            await self._rag_client.do_upsert_points(
                [point.model_dump() for point in points],
                collection=collection,
            )
            report.upserted += len(points)
            self.logging.info("Upserted %d points (batch %d/%d).", len(points), batch_index, total_batches)

        report.dropped = len(report.dropped_ids)
        self.logging.info(
            "Upsert complete: %d upserted, %d dropped.", report.upserted, report.dropped,
            color="green" if not report.dropped else "yellow",
        )
        return report

    async def _build_point(self, record: Record) -> VectorPoint | None:
        """Embed one record. Returns None (and logs) if embedding fails."""
        try:
            vector = await asyncio.wait_for(self._embed_client.do_embed_one(record.text), timeout=self._timeout)
        except asyncio.TimeoutError:
            self.logging.error("Embedding timed out after %.0fs for record id=%s; dropping it.", self._timeout, record.id)
            return None
        except Exception as e:
            self.logging.error("Embedding failed for record id=%s; dropping it: %s", record.id, e)
            return None
        return VectorPoint.from_record(record, vector)
