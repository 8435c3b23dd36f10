import asyncio
import logging

from taskboard.database import engine, init_models
from taskboard.logging_setup import setup_logging

logger = logging.getLogger("taskboard.scripts.init_db")


async def main():
    await init_models()
    logger.info("Tables created on %s", engine.url.render_as_string(hide_password=True))
    await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(main())
