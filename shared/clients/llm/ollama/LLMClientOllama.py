import httpx

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOllama(LLMClientInterface):
    """Classifier backed by Ollama's /api/chat.

    With LLM_OLLAMA_JSON_MODE (default on) Ollama constrains the reply to a
    JSON document, which spares most classifier replies the repair step.
    """

    def __init__(self, helper_config: HelperConfig, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(helper_config=helper_config, transport=transport)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._json_mode = self.get_config_val("JSON_MODE", default=True, val_type="bool")
        self._keep_alive = self.get_config_val("KEEP_ALIVE", default="5m", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Ollama"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="JSON_MODE", val_type="bool", default=True),
            EnvConfig(env_key="KEEP_ALIVE", val_type="string", default="5m"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        # plain Ollama has no auth; a reverse proxy in front of it may want a bearer token
        return {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/api/version"

    def _get_endpoint_chat(self) -> str:
        return "/api/chat"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[dict]) -> dict:
        payload = {
            "model": self.chat_model,
            "messages": messages,
            "stream": False,
            "keep_alive": self._keep_alive,
            "options": {"temperature": self.temperature},
        }
        if self._json_mode:
            payload["format"] = "json"
        return payload

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_chat_response(self, response_data: dict) -> str:
        content = (response_data.get("message") or {}).get("content")
        if not isinstance(content, str):
            raise ValueError(f"Ollama reply for model '{self.chat_model}' has no message content: {list(response_data)}")
        if response_data.get("done_reason") == "length":
            self.logging.warning("Ollama reply for model '%s' was cut off at the token limit.", self.chat_model)
        return content
