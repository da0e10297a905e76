import logging
import redis

from utils import config

logger = logging.getLogger("redis")

class RedisClient:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._connect()
        return cls._instance

    def _connect(self):
        """
        Initialize Redis connection for the durable seen cache.
        Reads configuration from environment variables for security.
        """
        self.host = config.REDIS_HOST
        self.port = config.REDIS_PORT

        self.client = redis.Redis(
            host=self.host,
            port=self.port,
            db=config.REDIS_DB,
            password=config.REDIS_PASSWORD,
            decode_responses=config.REDIS_DECODE_RESPONSES
        )

        # Test connection; a dead Redis only degrades the cache
        try:
            if self.client.ping():
                logger.info("Connected to Redis at %s:%s", self.host, self.port)
        except redis.ConnectionError as e:
            logger.warning("Redis connection failed: %s", e)

    def get_client(self):
        return self.client

    @classmethod
    def reset(cls):
        """Drop the shared instance (used on shutdown and in tests)."""
        cls._instance = None
