"""MongoDB document store wrapper with async context manager support."""

from typing import Any, Optional
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import AsyncMongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from src.utils.config import AppConfig
from src.utils.errors import StoreError, ValidationError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

PROPERTIES_COLLECTION = "properties"
ACCOUNTS_COLLECTION = "accounts"


def to_object_id(value: Any) -> ObjectId:
    """Convert a client supplied id, rejecting malformed ones."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid id: {value}")


class MongoStore:
    """Document store handed to the services at startup."""

    def __init__(self, client: AsyncMongoClient, database_name: str):
        self.client = client
        self.db = client[database_name]

    @classmethod
    def from_config(cls, uri: Optional[str] = None, database_name: Optional[str] = None) -> "MongoStore":
        """Create the store from environment configuration (no I/O)."""
        client = AsyncMongoClient(uri or AppConfig.MONGODB_URI, tz_aware=True)
        store = cls(client, database_name or AppConfig.MONGODB_DATABASE)
        logger.info("Mongo store initialized", database=store.db.name)
        return store

    async def __aenter__(self) -> "MongoStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            logger.error(
                "Mongo operation error",
                error=str(exc_val),
                error_type=exc_type.__name__
            )
        await self.close()
        return False

    async def close(self) -> None:
        await self.client.close()
        logger.info("Mongo store closed")

    async def ping(self) -> None:
        try:
            await self.db.command("ping")
        except PyMongoError as e:
            raise StoreError(f"Document store unreachable: {e}")

    async def aggregate(self, collection: str, pipeline: list[dict]) -> list[dict]:
        """Run an aggregation pipeline and return every document."""
        try:
            cursor = await self.db[collection].aggregate(pipeline)
            return await cursor.to_list()
        except PyMongoError as e:
            raise StoreError(f"Failed to aggregate {collection}: {e}")

    async def find(
        self,
        collection: str,
        query: dict,
        sort: Optional[list[tuple[str, int]]] = None,
    ) -> list[dict]:
        try:
            cursor = self.db[collection].find(query)
            if sort:
                cursor = cursor.sort(sort)
            return await cursor.to_list()
        except PyMongoError as e:
            raise StoreError(f"Failed to query {collection}: {e}")

    async def find_one(self, collection: str, query: dict) -> Optional[dict]:
        try:
            return await self.db[collection].find_one(query)
        except PyMongoError as e:
            raise StoreError(f"Failed to fetch from {collection}: {e}")

    async def insert_one(self, collection: str, document: dict) -> ObjectId:
        try:
            result = await self.db[collection].insert_one(document)
            return result.inserted_id
        except PyMongoError as e:
            raise StoreError(f"Failed to insert into {collection}: {e}")

    async def update_one(self, collection: str, query: dict, update: dict) -> Optional[dict]:
        """Apply an update and return the updated document (None when nothing matched)."""
        try:
            return await self.db[collection].find_one_and_update(
                query,
                update,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise StoreError(f"Failed to update {collection}: {e}")

    async def delete_one(self, collection: str, query: dict) -> int:
        try:
            result = await self.db[collection].delete_one(query)
            return result.deleted_count
        except PyMongoError as e:
            raise StoreError(f"Failed to delete from {collection}: {e}")
