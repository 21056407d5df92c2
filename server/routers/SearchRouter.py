from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import SearchRequest
from server.models.responses import SearchResponse, error_response

router = APIRouter(prefix="/search", tags=["search"])


@router.post("", response_model=SearchResponse)
async def search_documents(
    request: Request,
    body: SearchRequest,
    _: None = Depends(verify_api_key),
):
    """Similarity search over the stored documents.

    Args:
        request (Request): FastAPI request (provides app.state.retrieval_service).
        body (SearchRequest): Query text, limit, optional score threshold and category.
        _ (None): Auth dependency result (unused).

    Returns:
        SearchResponse: Matching documents with their similarity score, best first.
    """
    retrieval_service = request.app.state.retrieval_service
    try:
        results = await retrieval_service.search(
            query=body.query,
            limit=body.limit,
            score_threshold=body.score_threshold,
            category=body.category,
        )
    except ValueError as e:
        return error_response("Invalid search request", e, status_code=400)
    except Exception as e:
        request.app.state.logging.error("Search failed: %s", e)
        return error_response("Search failed", e)

    if not body.include_reasoning:
        results = [r.model_copy(update={"category_analysis": None}) for r in results]
    return SearchResponse(query=body.query, count=len(results), results=results)
