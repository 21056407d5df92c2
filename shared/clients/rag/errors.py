"""Exception hierarchy for vector store clients."""


class RAGClientError(Exception):
    """Raised when the vector store answers with an error status.

    Attributes:
        status_code: HTTP status returned by the backend.
        backend_message: Error text extracted from the backend response body.
    """

    def __init__(self, message: str, status_code: int | None = None, backend_message: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.backend_message = backend_message or ""


class IndexNotFoundError(RAGClientError):
    """A filtered request needs a payload index that does not exist."""

    pass


class AlreadyExistsError(RAGClientError):
    """A collection or payload index that was about to be created already exists."""

    pass
