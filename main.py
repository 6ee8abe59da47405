import asyncio
import argparse
import logging
import uvicorn
from core.config import settings
from core.db import init_engine, create_tables, dispose_engine
from core.logging import configure_logging
from executor_manager import build_executor_manager
from api.rest import create_app

logger = logging.getLogger(__name__)


async def main():
    parser = argparse.ArgumentParser(description="Chain Launchpad")
    parser.add_argument("--host", default="0.0.0.0", help="REST API bind address")
    parser.add_argument("--port", type=int, default=8000, help="REST API port")
    parser.add_argument("--init-db", action="store_true", help="Create database tables and exit")
    args = parser.parse_args()

    configure_logging(settings.log_level)
    init_engine(settings.database_url)

    if args.init_db:
        await create_tables()
        await dispose_engine()
        logger.info("Database tables created")
        return

    executor_manager = build_executor_manager(settings)
    rest_app = create_app(settings=settings, executor_manager=executor_manager)

    config = uvicorn.Config(rest_app, host=args.host, port=args.port, log_level=settings.log_level.lower())
    server = uvicorn.Server(config)
    logger.info(f"REST API starting on {args.host}:{args.port} ({settings.environment})")
    try:
        await server.serve()
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
