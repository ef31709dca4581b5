import asyncio
import sys
import os

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from db.session import engine
from models.base import Base
import models.user  # noqa: F401
import models.quiz  # noqa: F401
import models.session  # noqa: F401
from core.logger import setup_logging, logger

async def init_db():
    """Create every table that does not exist yet. Use alembic for real deployments."""
    setup_logging()
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema created", tables=sorted(Base.metadata.tables))
    except Exception as e:
        logger.error("Could not create database schema", error=str(e))
        raise
    finally:
        await engine.dispose()

if __name__ == "__main__":
    if os.name == 'nt':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(init_db())
