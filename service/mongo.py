from datetime import datetime, timedelta
from typing import Optional
import logging

from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from utils import config
from utils.mongo_client import MongoDB

logger = logging.getLogger("mongo")

seen_posts_collection = "seen_posts"

def seen_record_id(user_id: str, item_id: str) -> str:
    return f"{user_id}:{item_id}"

class MongoSeenStore:
    """
    Remote store of seen records, one document per (user, item).

    `_id` is derived from the identity, so a second create for the same pair
    fails with DuplicateKeyError. `seen_at` is assigned by the server on
    insert and records are never updated after creation.
    """

    def __init__(self, db: Optional[Database] = None, collection: str = seen_posts_collection):
        self._db = db
        self.collection_name = collection

    @property
    def collection(self):
        db = self._db if self._db is not None else MongoDB.get_db()
        return db[self.collection_name]

    def ensure_seen_indexes(self):
        """Index backing the bulk warm-up query."""
        self.collection.create_index(
            [("user_id", 1), ("scope_id", 1), ("seen_at", DESCENDING)],
            name="user_scope_seen_at",
        )
        logger.info("Ensured indexes on %s", self.collection_name)

    def get_seen_record(self, user_id: str, item_id: str):
        """Read-one: the record for (user, item), or None."""
        return self.collection.find_one({"_id": seen_record_id(user_id, item_id)})

    def _upsert_new_record(self, user_id: str, item_id: str, scope_id: str):
        """
        Insert the record with a server-assigned `seen_at`.

        The filter only matches a record that has no `seen_at`, which never
        exists, so an existing record is left untouched and the upsert's
        insert collides on `_id` with DuplicateKeyError.
        """
        return self.collection.update_one(
            {"_id": seen_record_id(user_id, item_id), "seen_at": {"$exists": False}},
            {
                "$setOnInsert": {"user_id": user_id, "item_id": item_id, "scope_id": scope_id},
                "$currentDate": {"seen_at": True},
            },
            upsert=True,
        )

    def create_seen_record(self, user_id: str, item_id: str, scope_id: str):
        """
        Create-one. Raises DuplicateKeyError if the record already exists.
        """
        result = self._upsert_new_record(user_id, item_id, scope_id)
        logger.info("Created seen record for user %s item %s", user_id, item_id)
        return result.upserted_id

    def create_seen_record_if_absent(self, user_id: str, item_id: str, scope_id: str) -> bool:
        """
        Atomic create-if-absent. Returns True only when this call created the record.
        """
        try:
            result = self._upsert_new_record(user_id, item_id, scope_id)
        except DuplicateKeyError:
            return False
        created = result.upserted_id is not None
        if created:
            logger.info("Created seen record for user %s item %s", user_id, item_id)
        return created

    def query_seen_records(self, user_id: str, scope_id: Optional[str] = None,
                           since: Optional[datetime] = None, limit: Optional[int] = None):
        """
        Item ids seen by `user_id` since `since`, most recent first.
        """
        if since is None:
            since = datetime.utcnow() - timedelta(days=config.SEEN_WINDOW_DAYS)
        if limit is None:
            limit = config.SEEN_BULK_LIMIT

        query = {"user_id": user_id, "seen_at": {"$gte": since}}
        if scope_id:
            query["scope_id"] = scope_id

        cursor = self.collection.find(query, {"item_id": 1, "seen_at": 1}).sort("seen_at", DESCENDING).limit(limit)
        item_ids = [doc["item_id"] for doc in cursor]
        logger.info("Fetched %d seen records for user_id: %s", len(item_ids), user_id)
        return item_ids

