import httpx

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOpenai(LLMClientInterface):
    """OpenAI-compatible /v1/chat/completions backend."""

    def __init__(self, helper_config: HelperConfig, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(helper_config=helper_config, transport=transport)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._json_mode = self.get_config_val("JSON_MODE", default=True, val_type="bool")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="JSON_MODE", val_type="bool", default=True),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/v1/models"

    def _get_endpoint_chat(self) -> str:
        return "/v1/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[dict]) -> dict:
        payload = {"model": self.chat_model, "messages": messages, "temperature": self.temperature}
        if self._json_mode:
            # json_object mode needs the word "JSON" somewhere in the messages; the categorize prompt has it
            payload["response_format"] = {"type": "json_object"}
        return payload

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_chat_response(self, response_data: dict) -> str:
        choices = response_data.get("choices") or []
        if not choices:
            raise ValueError(
                "OpenAI chat response does not contain any choices. "
                "Response keys: %s" % list(response_data.keys())
            )
        content = (choices[0].get("message") or {}).get("content")
        if content is None:
            raise ValueError("OpenAI chat response does not contain message content.")
        return content
