"""
Create the database tables (development setup without migrations)
"""
import asyncio
import logging

from landverify.database import engine, Base
import landverify.models  # noqa: F401  registers the tables on Base.metadata

logger = logging.getLogger("init_db")


async def init_database(drop: bool = False):
    async with engine.begin() as conn:
        if drop:
            logger.info("Dropping existing tables...")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables created: %s", ", ".join(sorted(Base.metadata.tables)))


async def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    await init_database()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
