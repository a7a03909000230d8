"""
Grant a role to a chat that has already talked to the bot

Usage:
    python scripts/set_role.py <chat_id> <USER|MANAGER|ADMIN>
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

from storefront.core.exceptions import ResourceNotFoundError
from storefront.db.mongo import close_store, init_store
from storefront.models.user import Role
from storefront.services.user_service import set_role

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


async def main(chat_id: int, role: Role) -> int:
    await init_store()
    try:
        user = await set_role(chat_id, role)
        logger.info(f"✅ {user.display_name} ({chat_id}) is now {user.role.value}")
        return 0
    except ResourceNotFoundError as e:
        logger.error(f"❌ {e.message}. The user must send /start to the bot first.")
        return 1
    finally:
        await close_store()


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(2)

    try:
        target_role = Role(sys.argv[2].upper())
        target_chat = int(sys.argv[1])
    except ValueError:
        print(__doc__)
        sys.exit(2)

    sys.exit(asyncio.run(main(target_chat, target_role)))
