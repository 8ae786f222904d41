"""
Seed script creating a demo workspace hierarchy and printing bearer tokens.

Run this script after configuring DATABASE_URL and JWT_SECRET to get:
- One workspace, space, board and task
- Users with owner/admin/member/viewer roles and task participants
- A signed token per user for trying the guarded routes

Usage:
    python -m scripts.seed_demo
"""
import asyncio

from taskhub.core.database.engine import get_db, init_db
from taskhub.features.users.auth import create_access_token
from taskhub.features.workspaces.seed import seed_demo_hierarchy
from taskhub.utils import get_logger


log = get_logger(__name__)


async def main():
    """Create tables, seed the hierarchy, and print tokens."""
    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            demo = await seed_demo_hierarchy(db)
        except Exception as e:
            log.error(f"Error seeding demo hierarchy: {e}", exc_info=True)
            await db.rollback()
            raise

        log.info(f"Workspace {demo.workspace_id} / space {demo.space_id} / board {demo.board_id} / task {demo.task_id}")
        for name, user_id in demo.users.items():
            log.info(f"  - {name}: {create_access_token(user_id)}")

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
