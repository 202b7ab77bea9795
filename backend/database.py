import logging
from typing import Dict, Any
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING

from core.config import Settings

logger = logging.getLogger(__name__)

REGISTRATIONS_COLLECTION = "registrations"
AUDIT_COLLECTION = "audit"


# ============================================
# ASYNC CLIENT INITIALIZATION
# ============================================

def create_async_client(settings: Settings) -> AsyncIOMotorClient:
    """Create the async MongoDB client (no I/O until first use)"""
    try:
        client = AsyncIOMotorClient(
            settings.MONGODB_URI,
            maxPoolSize=settings.DB_MAX_POOL_SIZE,
            minPoolSize=settings.DB_MIN_POOL_SIZE,
            connectTimeoutMS=settings.DB_CONNECT_TIMEOUT_MS,
            serverSelectionTimeoutMS=settings.DB_SERVER_SELECTION_TIMEOUT_MS,
            retryWrites=True,
            retryReads=True,
            appName="event_registration_api"
        )
        logger.info("✅ Async MongoDB client initialized")
        return client
    except Exception as e:
        logger.error(f"❌ Failed to initialize async MongoDB client: {e}")
        raise


# ============================================
# INDEXES
# ============================================

async def ensure_registration_indexes(collection: AsyncIOMotorCollection):
    """Create registration indexes; the compound unique index guards duplicates"""
    logger.info("🔧 Creating registration indexes...")
    await collection.create_index(
        [("email", ASCENDING), ("registrationType", ASCENDING)],
        unique=True,
        name="email_type_unique"
    )
    await collection.create_index([("registrationType", ASCENDING)])
    await collection.create_index([("status", ASCENDING)])
    await collection.create_index([("submissionDate", DESCENDING)])
    logger.info("✅ Registration indexes created successfully")


async def ensure_audit_indexes(collection: AsyncIOMotorCollection):
    await collection.create_index([("timestamp", DESCENDING)])
    await collection.create_index([("entity_id", ASCENDING)])


# ============================================
# HEALTH CHECK FUNCTIONS
# ============================================

async def ping_database(client: AsyncIOMotorClient) -> Dict[str, Any]:
    """Test async database connectivity"""
    try:
        await client.admin.command('ping')
        return {"connection_status": "healthy"}
    except Exception as e:
        logger.error(f"❌ Async database connection failed: {e}")
        return {
            "connection_status": "failed",
            "error": str(e),
            "error_type": type(e).__name__
        }


# ============================================
# GRACEFUL SHUTDOWN
# ============================================

def close_async_client(client: AsyncIOMotorClient):
    """Close async client connections"""
    if client:
        client.close()
        logger.info("✅ Async MongoDB client closed")
