from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import IngestRequest
from server.models.responses import IngestResponse, error_response

router = APIRouter(prefix="/ingest", tags=["ingestion"])


@router.post("", response_model=IngestResponse)
async def ingest(
    request: Request,
    body: IngestRequest | None = None,
    _: None = Depends(verify_api_key),
):
    """Run the ingestion pipeline on a raw export file.

    Args:
        request (Request): FastAPI request (provides app.state.ingestion_service).
        body (IngestRequest | None): Optional input path; defaults to INGEST_INPUT_FILE.
        _ (None): Auth dependency result (unused).

    Returns:
        IngestResponse: The ingestion report. Unreadable or empty input yields 400,
                        any other failure 500.
    """
    ingestion_service = request.app.state.ingestion_service
    input_path = body.input_path if body else None
    try:
        report = await ingestion_service.ingest_file(input_path=input_path)
    except (FileNotFoundError, ValueError) as e:
        return error_response("Ingestion input rejected", e, status_code=400)
    except Exception as e:
        request.app.state.logging.error("Ingestion failed: %s", e)
        return error_response("Ingestion failed", e)
    return IngestResponse(success=report.success, report=report)
