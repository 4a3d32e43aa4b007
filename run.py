import argparse
import asyncio
import logging
import signal

from prizedesk.logger import setup_logging
from prizedesk.webapp import init_db
from prizedesk.webapp import models  # noqa: F401  (tables must be registered before init_db)
from prizedesk.webapp.database import dispose_engines
from prizedesk.webapp.deps import get_dispatcher
from prizedesk.webapp.main import run_app

setup_logging()
logger = logging.getLogger("main")


async def main(args: argparse.Namespace):
    if args.init_db or args.recreate_db:
        await init_db(recreate=args.recreate_db)

    tasks = [asyncio.create_task(run_app(args.host, args.port))]

    async def shutdown():
        logger.warning("Shutting down gracefully...")
        for task in tasks:
            if not task.done(): task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await get_dispatcher().shutdown()
        await dispose_engines()
        logger.info("All background tasks stopped cleanly.")

    loop = asyncio.get_running_loop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: asyncio.create_task(shutdown()))

    try: await asyncio.gather(*tasks)
    except asyncio.CancelledError: logger.info("Tasks cancelled, exiting.")
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        await shutdown()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="PrizeDesk API server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--init-db", action="store_true", help="create missing tables before serving")
    parser.add_argument("--recreate-db", action="store_true", help="drop and recreate every table (destructive)")
    return parser.parse_args()


if __name__ == "__main__":
    try: asyncio.run(main(parse_args()))
    except KeyboardInterrupt: logger.warning("Interrupted manually (Ctrl+C). Exiting.")
