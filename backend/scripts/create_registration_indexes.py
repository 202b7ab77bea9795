# backend/scripts/create_registration_indexes.py
"""
Create database indexes for the registrations collection ahead of deployment
Run once: python scripts/create_registration_indexes.py
"""
import asyncio
import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import settings
from core.registration_store import RegistrationStore
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def create_indexes():
    """Create all necessary indexes for registrations and the audit trail"""
    store = RegistrationStore.from_settings(settings)
    try:
        # open() pings first and refuses to continue without a server
        await store.open()
        logger.info("✨ All registration indexes created successfully!")
        return 0
    except ConnectionError as e:
        logger.error(f"❌ {e}")
        return 1
    finally:
        await store.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(create_indexes()))
