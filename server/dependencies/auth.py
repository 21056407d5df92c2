import secrets

from fastapi import Header, HTTPException, Request


async def verify_api_key(request: Request, x_api_key: str = Header(...)) -> None:
    """Reject requests whose X-Api-Key header does not match API_SERVER_API_KEY.

    Raises:
        HTTPException: 401 on a mismatch. A missing header is rejected by FastAPI with 422.
        ValueError: If API_SERVER_API_KEY is not configured.
    """
    expected_key = request.app.state.helper_config.get_string_val("API_SERVER_API_KEY")
    if not secrets.compare_digest(x_api_key.encode(), expected_key.encode()):
        request.app.state.logging.warning("Rejected request to %s: invalid API key.", request.url.path)
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
