from typing import Any

import httpx

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.errors import AlreadyExistsError, IndexNotFoundError, RAGClientError
from shared.clients.rag.models.Scroll import SearchHit
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

# substrings of Qdrant's status.error text
_INDEX_REQUIRED_MARKER = "index required but not found"
_ALREADY_EXISTS_MARKER = "already exists"


class RAGClientQdrant(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(helper_config=helper_config, transport=transport)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="record_embeddings", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    def get_collection_name(self) -> str:
        return self._collection_name

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="record_embeddings"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_collections(self) -> str:
        return "/collections"

    def _get_endpoint_collection(self, collection: str) -> str:
        return f"/collections/{collection}"

    def _get_endpoint_payload_index(self, collection: str) -> str:
        return f"/collections/{collection}/index"

    def _get_endpoint_points(self, collection: str) -> str:
        return f"/collections/{collection}/points"

    def _get_endpoint_scroll(self, collection: str) -> str:
        return f"/collections/{collection}/points/scroll"

    def _get_endpoint_search(self, collection: str) -> str:
        return f"/collections/{collection}/points/search"

    def _get_endpoint_count(self, collection: str) -> str:
        return f"/collections/{collection}/points/count"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        return {"vectors": {"size": vector_size, "distance": distance}}

    def get_payload_index_payload(self, field_name: str, field_schema: str) -> dict:
        return {"field_name": field_name, "field_schema": field_schema}

    def get_equality_filter(self, field: str, value: Any) -> dict:
        return {"must": [{"key": field, "match": {"value": value}}]}

    def get_scroll_payload(self, filter: dict | None, limit: int, offset: str | int | None = None) -> dict:
        payload: dict = {
            "limit": limit,
            "with_payload": True,
            "with_vector": False,
        }
        if filter is not None:
            payload["filter"] = filter
        if offset is not None:
            payload["offset"] = offset
        return payload

    def get_search_payload(self, vector: list[float], limit: int, filter: dict | None = None, score_threshold: float | None = None) -> dict:
        payload: dict = {
            "vector": vector,
            "limit": limit,
            "with_payload": True,
        }
        if filter is not None:
            payload["filter"] = filter
        if score_threshold is not None:
            payload["score_threshold"] = score_threshold
        return payload

    def get_count_payload(self, filter: dict | None) -> dict:
        payload: dict = {"exact": True}
        if filter is not None:
            payload["filter"] = filter
        return payload

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_collection_names(self, raw_response: dict) -> list[str]:
        collections = raw_response.get("result", {}).get("collections", [])
        return [c.get("name") for c in collections if c.get("name")]

    def extract_scroll_content(self, raw_response: dict) -> dict:
        result = raw_response.get("result", {})
        return {
            "result": result.get("points", []),
            "status": raw_response.get("status", "ok"),
            "time": raw_response.get("time", 0),
        }

    def extract_next_page_offset(self, raw_response: dict) -> str | int | None:
        return raw_response.get("result", {}).get("next_page_offset")

    def extract_search_hits(self, raw_response: dict) -> list[SearchHit]:
        return [SearchHit.model_validate(hit) for hit in raw_response.get("result", [])]

    def extract_error_message(self, response: httpx.Response) -> str:
        # Qdrant errors look like {"status": {"error": "..."}, "time": 0.0}
        try:
            body = response.json()
        except ValueError:
            return response.text
        status = body.get("status") if isinstance(body, dict) else None
        if isinstance(status, dict) and status.get("error"):
            return str(status["error"])
        return response.text

    def classify_error(self, status_code: int, backend_message: str) -> type[RAGClientError]:
        message = backend_message.lower()
        if _INDEX_REQUIRED_MARKER in message:
            return IndexNotFoundError
        if _ALREADY_EXISTS_MARKER in message or status_code == 409:
            return AlreadyExistsError
        return RAGClientError
