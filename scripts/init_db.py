"""
Database initialization script - storefront collections and indexes

Run once (safe to re-run) to create indexes:
    python scripts/init_db.py
"""

import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables before settings are read
load_dotenv()

import logging

from storefront.db import mongo
from storefront.db.indexes import create_indexes

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)

COLLECTIONS = [mongo.USERS, mongo.CATEGORIES, mongo.PRODUCTS, mongo.CART_LINES, mongo.ORDERS]


async def main():
    """Main initialization"""
    logger.info("=" * 60)
    logger.info("  Storefront Database Setup")
    logger.info("=" * 60 + "\n")

    await mongo.connect_to_mongo()
    try:
        await create_indexes()

        logger.info("\n🔍 Verifying indexes...")
        db = mongo.get_database()
        for name in COLLECTIONS:
            indexes = await db[name].index_information()
            logger.info(f"\n  {name}:")
            for idx_name in indexes.keys():
                if idx_name != "_id_":
                    logger.info(f"    ✅ {idx_name}")

        logger.info("\n📊 Current documents:")
        for name in COLLECTIONS:
            logger.info(f"  {name}: {await db[name].count_documents({})}")

        logger.info("\n✅ Database initialization complete!")

    except Exception as e:
        logger.error(f"\n❌ Error: {e}")
        raise

    finally:
        await mongo.close_mongo_connection()

    logger.info("\n" + "=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
