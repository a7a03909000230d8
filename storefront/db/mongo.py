"""
storefront/db/mongo.py

Purpose: MongoDB connection setup and store selection

- Initializes Motor client with connection pooling
- Collections: users, categories, products, cart_lines, orders, counters, shop_settings
- Health checks and retry logic
- Builds the active entity store at startup (MongoDB or memory)
"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from typing import Optional
import asyncio
from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.db.repositories import Store, get_store, set_store

logger = get_logger(__name__)

# Global MongoDB client
_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None

USERS = "users"
CATEGORIES = "categories"
PRODUCTS = "products"
CART_LINES = "cart_lines"
ORDERS = "orders"
COUNTERS = "counters"
SHOP_SETTINGS = "shop_settings"


async def connect_to_mongo():
    """
    Establishes connection to MongoDB with retry logic.
    Called during application startup.
    """
    global _client, _database

    if _client is not None:
        logger.warning("MongoDB client already initialized")
        return

    max_retries = 3
    retry_delay = 2

    for attempt in range(1, max_retries + 1):
        try:
            logger.info(
                f"Attempting to connect to MongoDB (attempt {attempt}/{max_retries})"
            )

            # Fix URL encoding for special characters
            mongodb_url = settings.MONGODB_URL.replace("%%", "%25")

            _client = AsyncIOMotorClient(
                mongodb_url,
                maxPoolSize=50,
                minPoolSize=5,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                retryWrites=True,
                retryReads=True,
                tz_aware=True,
            )

            _database = _client[settings.MONGODB_DB_NAME]

            # Verify connection
            await _client.admin.command("ping")

            logger.info(
                f"✅ Successfully connected to MongoDB: {settings.MONGODB_DB_NAME}"
            )
            return

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(
                f"Failed to connect to MongoDB (attempt {attempt}/{max_retries}): {e}"
            )
            _client = None
            _database = None

            if attempt < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2  # Exponential backoff
            else:
                logger.critical("Failed to connect to MongoDB after all retries")
                raise ConnectionError("Could not establish MongoDB connection") from e


async def close_mongo_connection():
    """
    Closes the MongoDB connection.
    Called during application shutdown.
    """
    global _client, _database

    if _client:
        logger.info("Closing MongoDB connection")
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


async def check_database_health() -> bool:
    """
    Checks if the configured store is reachable.

    Returns:
        True if connection is healthy, False otherwise
    """
    if settings.STORAGE_BACKEND == "memory":
        try:
            get_store()
            return True
        except RuntimeError:
            return False

    try:
        if _client is None:
            logger.error("MongoDB client not initialized")
            return False

        # Ping the database
        await _client.admin.command("ping")
        return True

    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False


def get_database() -> AsyncIOMotorDatabase:
    """
    Returns the MongoDB database instance.

    Returns:
        AsyncIOMotorDatabase instance

    Raises:
        RuntimeError: If database is not initialized
    """
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )
    return _database


def get_collection(name: str):
    return get_database()[name]


async def init_store() -> Store:
    """
    Connects the configured backend and installs it as the active store.
    Called during application startup.
    """
    if settings.STORAGE_BACKEND == "memory":
        from storefront.db.memory import build_memory_store

        logger.warning("⚠️ Using in-memory store; data is lost on restart")
        store = build_memory_store()
    else:
        from storefront.db.indexes import create_indexes
        from storefront.db.mongo_repositories import build_mongo_store

        await connect_to_mongo()
        await create_indexes()
        store = build_mongo_store(get_database())

    set_store(store)
    return store


async def close_store():
    set_store(None)
    await close_mongo_connection()
