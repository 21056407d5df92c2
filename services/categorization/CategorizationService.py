"""Categorization service.

Sends every record's text to the LLM classifier, turns the free-form reply
into a validated CategoryAnalysis and derives the primary category. Records
are processed in sequential batches; within a batch all classifier calls run
concurrently.
"""

import asyncio

from pydantic import ValidationError

from services.categorization.prompts import CATEGORIZE_SYSTEM_PROMPT, build_categorize_prompt
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.helper.llm_json import LLMJsonError, extract_json_object
from shared.models.record import UNCATEGORIZED, CategoryAnalysis, Record

DEFAULT_BATCH_SIZE = 10
DEFAULT_TIMEOUT = 60.0


class CategorizationService:
    """Assigns a category distribution to records via the LLM classifier."""

    def __init__(self, helper_config: HelperConfig, llm_client: LLMClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._llm_client = llm_client
        self._batch_size = helper_config.get_positive_int_val("CATEGORIZE_BATCH_SIZE", default=DEFAULT_BATCH_SIZE)
        self._timeout = float(helper_config.get_number_val("CATEGORIZE_TIMEOUT", default=DEFAULT_TIMEOUT))

    ##########################################
    ################ CORE ####################
    ##########################################

    async def classify(self, records: list[Record], batch_size: int | None = None) -> list[Record]:
        """Categorize all records.

        Never drops a record: the result has the same length and order as the
        input, and a record whose classification fails in any way comes back
        marked UNCATEGORIZED.

        Args:
            records (list[Record]): Validated records.
            batch_size (int | None): Max concurrent classifier calls. Defaults to CATEGORIZE_BATCH_SIZE.

        Returns:
            list[Record]: The categorized records, in input order.
        """
        batch_size = batch_size or self._batch_size
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        total_batches = (len(records) + batch_size - 1) // batch_size
        categorized: list[Record] = []
        for batch_index, start in enumerate(range(0, len(records), batch_size), start=1):
            batch = records[start:start + batch_size]
            self.logging.info("Categorizing batch %d/%d (%d records)...", batch_index, total_batches, len(batch))
            # gather keeps input order regardless of completion order
            results = await asyncio.gather(*[self.classify_one(record) for record in batch])
            categorized.extend(results)

        uncategorized = sum(1 for r in categorized if r.category_analysis is None)
        self.logging.info(
            "Categorization complete: %d categorized, %d uncategorized.",
            len(categorized) - uncategorized, uncategorized,
            color="green" if not uncategorized else "yellow",
        )
        return categorized

    async def classify_one(self, record: Record) -> Record:
        """Categorize a single record, degrading to UNCATEGORIZED on any failure.

        Args:
            record (Record): The record to categorize.

        Returns:
            Record: A copy with category and category_analysis set, or with
                    category=UNCATEGORIZED and no analysis.
        """
        raw_response: str | None = None
        try:
            raw_response = await asyncio.wait_for(
                self._llm_client.do_prompt(build_categorize_prompt(record.text), system=CATEGORIZE_SYSTEM_PROMPT),
                timeout=self._timeout,
            )
            analysis = self.parse_analysis(raw_response)
        except (LLMJsonError, ValidationError) as e:
            self.logging.error("Could not parse classifier response for record id=%s: %s", record.id, e)
            self.logging.debug("Raw classifier response for record id=%s: %r", record.id, raw_response)
            return record.as_uncategorized()
        except asyncio.TimeoutError:
            self.logging.error("Classifier timed out after %.0fs for record id=%s.", self._timeout, record.id)
            return record.as_uncategorized()
        except Exception as e:
            self.logging.error("Categorization failed for record id=%s: %s", record.id, e)
            return record.as_uncategorized()

        categorized = record.with_analysis(analysis)
        self.logging.debug("Record id=%s categorized as %r.", record.id, categorized.category)
        return categorized

    ##########################################
    ############### HELPERS ##################
    ##########################################

    @staticmethod
    def parse_analysis(raw_response: str) -> CategoryAnalysis:
        """Extract and strictly validate a CategoryAnalysis from a classifier reply.

        Raises:
            LLMJsonError: If the reply holds no JSON object.
            ValidationError: If the object does not match the CategoryAnalysis shape.
        """
        return CategoryAnalysis.model_validate(extract_json_object(raw_response))

    @staticmethod
    def count_uncategorized(records: list[Record]) -> int:
        return sum(1 for r in records if r.category == UNCATEGORIZED and r.category_analysis is None)
