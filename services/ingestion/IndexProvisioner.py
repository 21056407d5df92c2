"""Idempotent provisioning of the target collection and its category index.

Safe to run before every ingestion, also from several processes at once:
"already exists" answers from the store count as success.
"""

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.errors import AlreadyExistsError
from shared.helper.HelperConfig import HelperConfig

CATEGORY_FIELD = "category"
CATEGORY_FIELD_SCHEMA = "keyword"
DISTANCE = "Cosine"


class IndexProvisioner:
    """Ensures a collection and its keyword index on ``category`` exist."""

    def __init__(self, helper_config: HelperConfig, rag_client: RAGClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client

    async def ensure_collection(self, name: str, dimension: int) -> bool:
        """Create the collection with Cosine distance unless it already exists.

        Args:
            name (str): Collection name.
            dimension (int): Vector dimension of the collection.

        Returns:
            bool: True if the collection was created by this call, False if it already existed.

        Raises:
            RAGClientError: On any store error other than "already exists".
        """
        existing = await self._rag_client.do_list_collections()
        if name in existing:
            self.logging.info("Collection %r already exists.", name)
            return False

        self.logging.info("Creating collection %r (dimension=%d, distance=%s)...", name, dimension, DISTANCE)
        try:
            await self._rag_client.do_create_collection(vector_size=dimension, distance=DISTANCE, collection=name)
        except AlreadyExistsError:
            # another process created it between the listing and our create call
            self.logging.info("Collection %r was created concurrently; continuing.", name)
            return False
        self.logging.info("Collection %r created.", name, color="green")
        return True

    async def ensure_category_index(self, name: str) -> bool:
        """Create the keyword index on the ``category`` payload field.

        Args:
            name (str): Collection name.

        Returns:
            bool: True if the index was created by this call, False if it already existed.

        Raises:
            RAGClientError: On any store error other than "already exists".
        """
        try:
            await self._rag_client.do_create_payload_index(
                field_name=CATEGORY_FIELD,
                field_schema=CATEGORY_FIELD_SCHEMA,
                collection=name,
            )
        except AlreadyExistsError:
            self.logging.info("Index on %r already exists in collection %r.", CATEGORY_FIELD, name)
            return False
        self.logging.info("Index on %r ensured in collection %r.", CATEGORY_FIELD, name)
        return True

    async def ensure_all(self, name: str, dimension: int) -> None:
        """Ensure both the collection and the category index exist."""
        await self.ensure_collection(name, dimension)
        await self.ensure_category_index(name)
