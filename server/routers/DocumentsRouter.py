from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.responses import CategoriesResponse, DocumentsResponse, error_response
from services.retrieval.CompoundFilter import FilterCriteria

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("", response_model=DocumentsResponse)
async def list_documents(
    request: Request,
    category: str | None = None,
    _: None = Depends(verify_api_key),
):
    """Return all documents, or only those whose primary category equals `category`."""
    retrieval_service = request.app.state.retrieval_service
    try:
        records = await retrieval_service.fetch(category)
    except Exception as e:
        request.app.state.logging.error("Fetching documents failed: %s", e)
        return error_response("Fetching documents failed", e)
    return DocumentsResponse(count=len(records), documents=records)


@router.get("/categories", response_model=CategoriesResponse)
async def list_categories(request: Request, _: None = Depends(verify_api_key)):
    """Return the number of documents per primary category."""
    retrieval_service = request.app.state.retrieval_service
    try:
        summaries = await retrieval_service.summarize_categories()
    except Exception as e:
        request.app.state.logging.error("Summarizing categories failed: %s", e)
        return error_response("Summarizing categories failed", e)
    return CategoriesResponse(count=len(summaries), categories=summaries)


@router.post("/filter", response_model=DocumentsResponse)
async def filter_documents(
    request: Request,
    body: FilterCriteria,
    _: None = Depends(verify_api_key),
):
    """Fetch documents and apply the compound filter.

    Args:
        request (Request): FastAPI request (provides app.state.retrieval_service).
        body (FilterCriteria): mainCategory, categories, minScore, reasoningKeywords, limit.
        _ (None): Auth dependency result (unused).
    """
    retrieval_service = request.app.state.retrieval_service
    try:
        records = await retrieval_service.fetch_filtered(body)
    except Exception as e:
        request.app.state.logging.error("Filtering documents failed: %s", e)
        return error_response("Filtering documents failed", e)
    return DocumentsResponse(count=len(records), documents=records)
