import importlib

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig

# client type -> class name prefix
_CLASS_PREFIX: dict[str, str] = {
    "rag": "RAGClient",
    "embed": "EmbedClient",
    "llm": "LLMClient",
}


class ClientManager:
    """
    Instantiates the client configured for one client type ("rag", "embed" or "llm").

    The engine is read from "{TYPE}_ENGINE" (e.g. RAG_ENGINE=qdrant) and resolved to
    shared.clients.{type}.{engine}.{Prefix}{Engine}, e.g. RAGClientQdrant.
    """

    def __init__(self, helper_config: HelperConfig, client_type: str):
        client_type = client_type.strip().lower()
        if client_type not in _CLASS_PREFIX:
            raise ValueError(f"Unknown client type '{client_type}'. Supported: {sorted(_CLASS_PREFIX)}")
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client_type = client_type
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the engine for this client type from ENV configuration.

        Returns:
            str: Capitalised engine name (e.g. "Qdrant").

        Raises:
            ValueError: If "{TYPE}_ENGINE" is not set.
        """
        engine = self.helper_config.get_string_val(f"{self.client_type.upper()}_ENGINE")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> ClientInterface:
        """
        Imports and instantiates the client class for the configured engine.

        Raises:
            ValueError: If the engine is unsupported or its module cannot be imported.
        """
        engine = self._get_engine_from_env()
        class_name = f"{_CLASS_PREFIX[self.client_type]}{engine}"
        module_path = f"shared.clients.{self.client_type}.{engine.lower()}.{class_name}"
        try:
            module = importlib.import_module(module_path)
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported {self.client_type.upper()} engine specified: '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated %s client for engine: %s", self.client_type.upper(), engine)
        return client

    def get_client(self) -> ClientInterface:
        """
        Returns the instantiated client.
        """
        return self.client
