"""Ingestion service.

Runs the full pipeline for one source file or an in-memory row set:

    read -> clean -> validate -> categorize -> (write categorized file,
    read it back) -> validate again -> provision collection + index -> upsert

Invalid rows are dropped with a warning at both validation boundaries; per
record classifier and embedding failures are contained by the categorization
and upsert services. Configuration and store errors propagate.
"""

from pathlib import Path

from pydantic import BaseModel

from services.categorization.CategorizationService import CategorizationService
from services.ingestion import record_source
from services.ingestion.IndexProvisioner import IndexProvisioner
from services.ingestion.UpsertService import UpsertService
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.record import Record, RecordValidationError, validate_records


class IngestionReport(BaseModel):
    """Aggregate outcome of one ingestion run."""

    total: int = 0
    invalid: int = 0
    categorized: int = 0
    uncategorized: int = 0
    upserted: int = 0
    dropped: int = 0
    # points in the collection once the run finished
    stored: int = 0

    @property
    def success(self) -> bool:
        return self.upserted > 0 and self.dropped == 0


class IngestionService:
    """Orchestrates categorization, provisioning and upsert for a record set."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface | None = None,
        embed_client: EmbedClientInterface | None = None,
        categorization_service: CategorizationService | None = None,
        index_provisioner: IndexProvisioner | None = None,
        upsert_service: UpsertService | None = None,
    ) -> None:
        # clean_file() needs none of the collaborators; every other operation needs all of them
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._rag_client = rag_client
        self._embed_client = embed_client
        self._categorization = categorization_service
        self._provisioner = index_provisioner
        self._upserter = upsert_service
        self._delimiter = helper_config.get_string_val("INGEST_CSV_DELIMITER", default=record_source.DEFAULT_DELIMITER)

    ##########################################
    ################ PATHS ###################
    ##########################################

    def get_default_input_path(self) -> str:
        return self._helper_config.get_string_val("INGEST_INPUT_FILE", default="data/embeddings.csv")

    def derive_path(self, input_path: str | Path, env_key: str, suffix: str) -> str:
        """Return the configured path for env_key, or "<input>-<suffix><ext>" next to the input."""
        configured = self._helper_config.get_string_val(env_key, default="")
        if configured:
            return configured
        path = Path(input_path)
        return str(path.with_name(f"{path.stem}-{suffix}{path.suffix}"))

    ##########################################
    ################ CORE ####################
    ##########################################

    async def ingest_file(
        self,
        input_path: str | Path | None = None,
        cleaned_path: str | Path | None = None,
        categorized_path: str | Path | None = None,
    ) -> IngestionReport:
        """Ingest a raw ';'-delimited export file.

        Args:
            input_path: Raw export. Defaults to INGEST_INPUT_FILE.
            cleaned_path: Where to write the cleaned file. Defaults to INGEST_CLEANED_FILE
                          or "<input>-cleaned.csv".
            categorized_path: Where to write the categorized file. Defaults to
                          INGEST_CATEGORIZED_FILE or "<input>-categorized.csv".

        Returns:
            IngestionReport: Counts of processed and dropped records.

        Raises:
            FileNotFoundError: If the input file does not exist.
            ValueError: If the file contains no valid record.
            RAGClientError: If provisioning or an upsert fails.
        """
        input_path = input_path or self.get_default_input_path()
        cleaned_path = cleaned_path or self.derive_path(input_path, "INGEST_CLEANED_FILE", "cleaned")
        categorized_path = categorized_path or self.derive_path(input_path, "INGEST_CATEGORIZED_FILE", "categorized")

        self.logging.info("Reading raw records from %s", input_path)
        records, report = self.clean_file(input_path, cleaned_path)

        categorized = await self._categorization.classify(records)
        record_source.write_categorized(categorized, categorized_path, self._delimiter)
        self.logging.info("Categorized file written: %s", categorized_path)

        # second validation boundary: rows read back from the categorized file
        rows = record_source.read_categorized(categorized_path, self.logging, self._delimiter)
        reloaded = self._validate(rows, stage="categorized")
        report.invalid += len(rows) - len(reloaded)
        return await self._finish(reloaded, report)

    def clean_file(self, input_path: str | Path, cleaned_path: str | Path) -> tuple[list[Record], IngestionReport]:
        """Read and validate a raw export, writing the cleaned file. No external calls.

        Raises:
            ValueError: If the file contains no valid record.
        """
        raw_rows = record_source.read_rows(input_path, self._delimiter)
        records = self._validate(record_source.clean_rows(raw_rows), stage="raw")
        report = IngestionReport(total=len(raw_rows), invalid=len(raw_rows) - len(records))
        if not records:
            raise ValueError(f"No valid records found in {input_path}.")
        record_source.write_cleaned(records, cleaned_path, self._delimiter)
        self.logging.info("Cleaned %d records (%d invalid) into %s", len(records), report.invalid, cleaned_path)
        return records, report

    async def ingest_records(self, rows: list[dict]) -> IngestionReport:
        """Ingest in-memory rows that already use the canonical column names.

        Raises:
            ValueError: If no row is a valid record.
            RAGClientError: If provisioning or an upsert fails.
        """
        records = self._validate(rows, stage="input")
        report = IngestionReport(total=len(rows), invalid=len(rows) - len(records))
        if not records:
            raise ValueError("No valid records to ingest.")
        categorized = await self._categorization.classify(records)
        return await self._finish(categorized, report)

    async def provision(self) -> None:
        """Ensure the configured collection and its category index exist."""
        await self._provisioner.ensure_all(
            self._rag_client.get_collection_name(),
            self._embed_client.get_vector_size(),
        )

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _finish(self, records: list[Record], report: IngestionReport) -> IngestionReport:
        report.uncategorized = CategorizationService.count_uncategorized(records)
        report.categorized = len(records) - report.uncategorized

        await self.provision()
        upsert_report = await self._upserter.upsert_all(records)
        report.upserted = upsert_report.upserted
        report.dropped = upsert_report.dropped
        report.stored = await self._rag_client.do_count()

        self.logging.info(
            "Ingestion finished: %d rows, %d invalid, %d categorized, %d uncategorized, %d upserted, %d dropped, %d stored.",
            report.total, report.invalid, report.categorized, report.uncategorized, report.upserted, report.dropped, report.stored,
            color="green" if report.success else "yellow",
        )
        return report

    def _validate(self, rows: list[dict], stage: str) -> list[Record]:
        valid, errors = validate_records(rows)
        for error in errors:
            self._log_invalid(error, stage)
        return valid

    def _log_invalid(self, error: RecordValidationError, stage: str) -> None:
        self.logging.warning("Dropping invalid %s record id=%r: %s", stage, error.record_id, error.errors)
