from fastapi.responses import JSONResponse
from pydantic import BaseModel

from services.ingestion.IngestionService import IngestionReport
from services.retrieval.RetrievalService import CategorySummary
from shared.models.record import Record, ScoredRecord


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str


class IngestResponse(BaseModel):
    success: bool
    report: IngestionReport


class DocumentsResponse(BaseModel):
    success: bool = True
    count: int
    documents: list[Record]


class CategoriesResponse(BaseModel):
    success: bool = True
    count: int
    categories: list[CategorySummary]


class SearchResponse(BaseModel):
    success: bool = True
    query: str
    count: int
    results: list[ScoredRecord]


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: str


def error_response(message: str, error: Exception, status_code: int = 500) -> JSONResponse:
    """Build the JSON error envelope returned by every route."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error=str(error)).model_dump(),
    )
