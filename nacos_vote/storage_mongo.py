# storage_mongo.py
import logging
from typing import Any, Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from nacos_vote import config
from nacos_vote.errors import StorageError
from nacos_vote.storage import BrowserStore

logger = logging.getLogger(__name__)


class MongoBrowserStore(BrowserStore):
    """One document per browser: {"_id": browser_id, "items": {key: value}}"""

    def __init__(self, collection=None):
        if collection is not None:
            self.client = None
            self.collection = collection
            return
        try:
            self.client = MongoClient(config.MONGO_URI)
            self.collection = self.client[config.MONGO_DB][config.BROWSER_COLLECTION_NAME]
            # Test connection
            self.client.server_info()
            logger.info("Connected to MongoDB at %s, database: %s", config.MONGO_URI, config.MONGO_DB)
        except Exception as e:
            logger.error("Failed to connect to MongoDB: %s", e)
            raise

    def get(self, browser_id: str, key: str) -> Optional[Any]:
        doc = self.collection.find_one({"_id": browser_id}, {f"items.{key}": 1})
        if not doc:
            return None
        return doc.get("items", {}).get(key)

    def set(self, browser_id: str, key: str, value: Any) -> None:
        try:
            result = self.collection.update_one(
                {"_id": browser_id},
                {"$set": {f"items.{key}": value}},
                upsert=True,
            )
        except PyMongoError as e:
            logger.error("Error saving %s for browser %s: %s", key, browser_id, e)
            raise StorageError()
        if not result.acknowledged:
            raise StorageError()

    def delete(self, browser_id: str, key: str) -> None:
        try:
            self.collection.update_one({"_id": browser_id}, {"$unset": {f"items.{key}": ""}})
        except PyMongoError as e:
            logger.error("Error removing %s for browser %s: %s", key, browser_id, e)
            raise StorageError()

    def clear(self, browser_id: str) -> None:
        try:
            self.collection.delete_one({"_id": browser_id})
        except PyMongoError as e:
            logger.error("Error clearing browser %s: %s", browser_id, e)
            raise StorageError()

    def close(self):
        """Close MongoDB connection"""
        if self.client is not None:
            self.client.close()
            logger.info("MongoDB connection closed")
