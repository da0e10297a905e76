from pymongo import MongoClient
from pymongo.database import Database
from typing import Optional

from utils import config

class MongoDB:
    _client: Optional[MongoClient] = None
    _db: Optional[Database] = None

    @classmethod
    def initialize(cls):
        """Initialize the MongoDB client and database."""
        if cls._client is None:
            cls._client = MongoClient(config.MONGODB_URI)
            cls._db = cls._client[config.MONGODB_DB]
        return cls._db

    @classmethod
    def get_client(cls):
        """Get the MongoDB client."""
        if cls._client is None:
            cls.initialize()
        return cls._client

    @classmethod
    def get_db(cls)->Database:
        """Get the MongoDB database."""
        if cls._db is None:
            cls.initialize()

        assert cls._db is not None, "MongoDB database not initialized"

        return cls._db

    @classmethod
    def close(cls):
        """Close the client and forget the database handle."""
        if cls._client is not None:
            cls._client.close()
        cls._client = None
        cls._db = None
