"""FastAPI application entry point for the category vector bridge."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientManager import ClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from services.categorization.CategorizationService import CategorizationService
from services.ingestion.IndexProvisioner import IndexProvisioner
from services.ingestion.IngestionService import IngestionService
from services.ingestion.UpsertService import UpsertService
from services.retrieval.RetrievalService import RetrievalService
from server.routers.HealthRouter import router as health_router
from server.routers.IngestionRouter import router as ingestion_router
from server.routers.DocumentsRouter import router as documents_router
from server.routers.SearchRouter import router as search_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)
    helper_config = app.state.helper_config

    rag_client = ClientManager(helper_config=helper_config, client_type="rag").get_client()
    embed_client = ClientManager(helper_config=helper_config, client_type="embed").get_client()
    llm_client = ClientManager(helper_config=helper_config, client_type="llm").get_client()
    clients = [rag_client, embed_client, llm_client]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    app.state.rag_client = rag_client
    app.state.embed_client = embed_client
    app.state.llm_client = llm_client

    app.state.retrieval_service = RetrievalService(
        helper_config=helper_config,
        rag_client=rag_client,
        embed_client=embed_client,
    )
    app.state.ingestion_service = IngestionService(
        helper_config=helper_config,
        rag_client=rag_client,
        embed_client=embed_client,
        categorization_service=CategorizationService(helper_config=helper_config, llm_client=llm_client),
        index_provisioner=IndexProvisioner(helper_config=helper_config, rag_client=rag_client),
        upsert_service=UpsertService(helper_config=helper_config, rag_client=rag_client, embed_client=embed_client),
    )

    await check_connections(rag_client, embed_client, llm_client)

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    for client in clients:
        await client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="category_vector_bridge",
    description=(
        "Categorizes tabular records with an LLM classifier, stores them with their "
        "embeddings in a vector database and serves them by category, by similarity "
        "search or by compound filters over the category distribution."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(ingestion_router)
app.include_router(documents_router)
app.include_router(search_router)


async def check_connections(
    rag_client: RAGClientInterface,
    embed_client: EmbedClientInterface,
    llm_client: LLMClientInterface,
) -> None:
    """Check connectivity to all configured backends on startup.

    LLM failures are non-fatal (ingestion will degrade to Uncategorized, but
    queries still work). RAG and embedding failures are fatal.

    Raises:
        Exception: If the RAG or embedding backend is not reachable.
    """
    for client in (rag_client, embed_client):
        result: httpx.Response = await client.do_healthcheck()
        if not result.is_success:
            raise Exception(
                f"{client.get_client_type().upper()} client '{client.__class__.__name__}' is not reachable "
                f"(status {result.status_code}). Cannot serve queries."
            )

    try:
        result = await llm_client.do_healthcheck()
    except httpx.HTTPError as e:
        logging.warning(
            "LLM client '%s' is not reachable (%s). Ingested records will be Uncategorized.",
            llm_client.__class__.__name__,
            e,
        )
        return
    if not result.is_success:
        logging.warning(
            "LLM client '%s' is not reachable (status %d). Ingested records will be Uncategorized.",
            llm_client.__class__.__name__,
            result.status_code,
        )


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting category_vector_bridge API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
