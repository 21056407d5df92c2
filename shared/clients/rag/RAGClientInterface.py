from abc import abstractmethod
from typing import Any
import json

import httpx

from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.errors import RAGClientError
from shared.clients.rag.models.Scroll import ScrollResult, SearchHit
from shared.helper.HelperConfig import HelperConfig


class RAGClientInterface(ClientInterface):
    """Vector store client: collection management, upsert, scroll and similarity search.

    Every request takes an optional ``collection``; None targets the collection
    configured for the engine.
    """

    def __init__(self, helper_config: HelperConfig, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(helper_config=helper_config, transport=transport)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "rag"

    @abstractmethod
    def get_collection_name(self) -> str:
        """
        Returns the collection configured for this client.
        """
        pass

    def _resolve_collection(self, collection: str | None) -> str:
        return collection or self.get_collection_name()

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_collections(self) -> str:
        """
        Returns the endpoint path for listing collections (e.g. "/collections").
        """
        pass

    @abstractmethod
    def _get_endpoint_collection(self, collection: str) -> str:
        """
        Returns the endpoint path for creating a collection.
        """
        pass

    @abstractmethod
    def _get_endpoint_payload_index(self, collection: str) -> str:
        """
        Returns the endpoint path for creating a payload (secondary) index.
        """
        pass

    @abstractmethod
    def _get_endpoint_points(self, collection: str) -> str:
        """
        Returns the endpoint path for points upsert requests.
        """
        pass

    @abstractmethod
    def _get_endpoint_scroll(self, collection: str) -> str:
        """
        Returns the endpoint path for scroll requests.
        """
        pass

    @abstractmethod
    def _get_endpoint_search(self, collection: str) -> str:
        """
        Returns the endpoint path for similarity search requests.
        """
        pass

    @abstractmethod
    def _get_endpoint_count(self, collection: str) -> str:
        """
        Returns the endpoint path for counting points matching a filter.
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        pass

    @abstractmethod
    def get_payload_index_payload(self, field_name: str, field_schema: str) -> dict:
        pass

    @abstractmethod
    def get_equality_filter(self, field: str, value: Any) -> dict:
        """
        Returns a backend filter matching points whose payload ``field`` equals ``value``.
        """
        pass

    @abstractmethod
    def get_scroll_payload(self, filter: dict | None, limit: int, offset: str | int | None = None) -> dict:
        """
        Returns the body of a scroll request.

        Args:
            filter (dict | None): Backend filter, or None to scan everything.
            limit (int): Page size.
            offset (str | int | None): Cursor returned by the previous page. None starts from the beginning.
        """
        pass

    @abstractmethod
    def get_search_payload(self, vector: list[float], limit: int, filter: dict | None = None, score_threshold: float | None = None) -> dict:
        pass

    @abstractmethod
    def get_count_payload(self, filter: dict | None) -> dict:
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_collection_names(self, raw_response: dict) -> list[str]:
        pass

    @abstractmethod
    def extract_scroll_content(self, raw_response: dict) -> dict:
        """
        Extracts the relevant content from a raw scroll response.

        Returns:
            dict: A dict with keys "result", "status", "time".
        """
        pass

    @abstractmethod
    def extract_next_page_offset(self, raw_response: dict) -> str | int | None:
        """
        Extracts the cursor for the next scroll page. None means this was the last page.
        """
        pass

    @abstractmethod
    def extract_search_hits(self, raw_response: dict) -> list[SearchHit]:
        pass

    @abstractmethod
    def classify_error(self, status_code: int, backend_message: str) -> type[RAGClientError]:
        """
        Maps an error response onto the matching RAGClientError subclass
        (IndexNotFoundError, AlreadyExistsError, or RAGClientError itself).
        """
        pass

    @abstractmethod
    def extract_error_message(self, response: httpx.Response) -> str:
        pass

    ##########################################
    ############### ERRORS ###################
    ##########################################

    def _raise_for_error(self, response: httpx.Response, url: str) -> None:
        backend_message = self.extract_error_message(response)
        error_class = self.classify_error(response.status_code, backend_message)
        raise error_class(
            f"Request to {url} failed with status {response.status_code}: {backend_message}",
            status_code=response.status_code,
            backend_message=backend_message,
        )

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_list_collections(self) -> list[str]:
        """Return the names of all collections in the vector store."""
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_collections(), raise_on_error=True)
        return self.extract_collection_names(resp.json())

    async def do_create_collection(self, vector_size: int, distance: str = "Cosine", collection: str | None = None) -> None:
        """Create a collection.

        Raises:
            AlreadyExistsError: If the collection already exists.
            RAGClientError: On any other backend error.
        """
        await self.do_request(
            method="PUT",
            json=self.get_create_collection_payload(vector_size, distance),
            endpoint=self._get_endpoint_collection(self._resolve_collection(collection)),
            raise_on_error=True,
        )

    async def do_create_payload_index(self, field_name: str, field_schema: str = "keyword", collection: str | None = None) -> None:
        """Create a secondary index on a payload field.

        Raises:
            AlreadyExistsError: If the backend reports the index already exists.
            RAGClientError: On any other backend error.
        """
        await self.do_request(
            method="PUT",
            json=self.get_payload_index_payload(field_name, field_schema),
            endpoint=self._get_endpoint_payload_index(self._resolve_collection(collection)),
            raise_on_error=True,
        )

    async def do_upsert_points(self, points: list[dict[str, Any]], collection: str | None = None) -> httpx.Response:
        """Upsert points into the collection.
        Inserts new points or replaces existing ones if a point with the same ID already exists.

        Args:
            points (list[dict[str, Any]]): Points as {"id", "vector", "payload"} dicts.
        """
        return await self.do_request(
            method="PUT",
            content=json.dumps({"points": points}),
            params={"wait": "true"},
            endpoint=self._get_endpoint_points(self._resolve_collection(collection)),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )

    async def do_scroll(self, filter: dict | None, limit: int, offset: str | int | None = None, collection: str | None = None) -> ScrollResult:
        """Scroll a single page from a collection.

        To retrieve every matching point use do_scroll_all() instead.

        Args:
            filter (dict | None): Backend filter, or None for an unfiltered scan.
            limit (int): Page size.
            offset (str | int | None): Cursor from the previous page's next_page_offset.

        Raises:
            IndexNotFoundError: If the filter needs a payload index that does not exist.
            RAGClientError: On any other backend error.
        """
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_scroll_payload(filter, limit, offset)),
            endpoint=self._get_endpoint_scroll(self._resolve_collection(collection)),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        raw_response = resp.json()
        scroll_content = self.extract_scroll_content(raw_response=raw_response)
        return ScrollResult(
            result=scroll_content.get("result", []),
            status=scroll_content.get("status", "ok"),
            time=scroll_content.get("time", 0),
            next_page_offset=self.extract_next_page_offset(raw_response),
        )

    async def do_scroll_all(self, filter: dict | None, page_size: int = 1000, collection: str | None = None) -> ScrollResult:
        """Scroll through ALL points matching the filter, paginating automatically.

        Stops on a short page (fewer points than page_size) or when the backend
        reports no next cursor.

        Returns:
            ScrollResult: All matching points collected across all pages.
        """
        all_points: list[dict] = []
        offset: str | int | None = None
        page = 1
        while True:
            page_result = await self.do_scroll(filter=filter, limit=page_size, offset=offset, collection=collection)
            all_points.extend(page_result.result)
            self.logging.debug(
                "Fetched page %d from %s, total points so far: %d",
                page, self.get_engine_name(), len(all_points),
            )
            offset = page_result.next_page_offset
            if len(page_result.result) < page_size or offset is None:
                break
            page += 1
        return ScrollResult(result=all_points, status="ok", time=0)

    async def do_search(
        self,
        vector: list[float],
        limit: int,
        filter: dict | None = None,
        score_threshold: float | None = None,
        collection: str | None = None,
    ) -> list[SearchHit]:
        """Similarity search, best match first.

        Raises:
            IndexNotFoundError: If the filter needs a payload index that does not exist.
            RAGClientError: On any other backend error.
        """
        resp = await self.do_request(
            method="POST",
            json=self.get_search_payload(vector, limit, filter, score_threshold),
            endpoint=self._get_endpoint_search(self._resolve_collection(collection)),
            raise_on_error=True,
        )
        return self.extract_search_hits(resp.json())

    async def do_count(self, filter: dict | None = None, collection: str | None = None) -> int:
        """Count the points matching the filter."""
        resp = await self.do_request(
            method="POST",
            json=self.get_count_payload(filter),
            endpoint=self._get_endpoint_count(self._resolve_collection(collection)),
            raise_on_error=True,
        )
        return resp.json().get("result", {}).get("count", 0)
