"""Main module."""
import asyncio
import logging
from typing import NoReturn

from initer import Initer

logger = logging.getLogger(__name__)


async def main() -> NoReturn:
    """Init components and work."""
    async with Initer() as controller:
        await controller.run_forever()


def run() -> None:
    """Run until interrupted."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt as e:
        logger.warning(f"Shutting down: {repr(e)}")


if __name__ == "__main__":
    run()
