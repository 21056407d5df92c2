"""Ingestion runner entry point.

Categorizes the records of a ';'-delimited export with the LLM classifier,
embeds them and upserts them into the vector store.

Usage:
    python -m ingest.ingest_runner [--input PATH] [--add-index] [--clean-only]

    --input       Raw export to ingest (default: INGEST_INPUT_FILE).
    --add-index   Only ensure the collection and its category index exist.
    --clean-only  Only write the cleaned file; makes no external calls.
"""

import argparse
import asyncio
import sys

from services.categorization.CategorizationService import CategorizationService
from services.ingestion.IndexProvisioner import IndexProvisioner
from services.ingestion.IngestionService import IngestionService
from services.ingestion.UpsertService import UpsertService
from shared.clients.ClientInterface import ClientInterface
from shared.clients.ClientManager import ClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Categorize, embed and upsert records into the vector store.")
    parser.add_argument("--input", dest="input_path", default=None, help="Raw ';'-delimited export to ingest.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--add-index", action="store_true", help="Only ensure the collection and category index exist.")
    mode.add_argument("--clean-only", action="store_true", help="Only write the cleaned file.")
    return parser.parse_args(argv)


async def check_connections(clients: list[ClientInterface]) -> None:
    """Health-check every client.

    Raises:
        Exception: If one of the clients is not reachable.
    """
    for client in clients:
        result = await client.do_healthcheck()
        if not result.is_success:
            raise Exception(
                f"{client.get_client_type().upper()} client '{client.__class__.__name__}' is not reachable "
                f"(status {result.status_code})."
            )


async def main(argv: list[str] | None = None) -> int:
    """Run the ingestion pipeline. Returns the process exit code."""
    args = parse_args(argv)
    logger = setup_logging()
    config = HelperConfig(logger=logger)

    if args.clean_only:
        # no clients needed, so only the file-level settings are read
        service = IngestionService(helper_config=config)
        input_path = args.input_path or service.get_default_input_path()
        cleaned_path = service.derive_path(input_path, "INGEST_CLEANED_FILE", "cleaned")
        records, _ = service.clean_file(input_path, cleaned_path)
        logger.info("Wrote %d cleaned records to %s", len(records), cleaned_path, color="green")
        return 0

    rag_client = ClientManager(helper_config=config, client_type="rag").get_client()
    embed_client = ClientManager(helper_config=config, client_type="embed").get_client()
    clients: list[ClientInterface] = [rag_client, embed_client]
    llm_client = None
    if not args.add_index:
        llm_client = ClientManager(helper_config=config, client_type="llm").get_client()
        clients.append(llm_client)

    provisioner = IndexProvisioner(helper_config=config, rag_client=rag_client)
    service = IngestionService(
        helper_config=config,
        rag_client=rag_client,
        embed_client=embed_client,
        categorization_service=CategorizationService(helper_config=config, llm_client=llm_client) if llm_client else None,
        index_provisioner=provisioner,
        upsert_service=UpsertService(helper_config=config, rag_client=rag_client, embed_client=embed_client),
    )

    try:
        for client in clients:
            await client.boot()
        await check_connections(clients)

        if args.add_index:
            await service.provision()
            logger.info("Collection and category index are in place.", color="green")
            return 0

        report = await service.ingest_file(input_path=args.input_path)
        return 0 if report.success else 1
    finally:
        for client in clients:
            await client.close()


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
