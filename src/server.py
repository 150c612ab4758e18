"""Protean Engine runner for the bakery domain.

Processes events asynchronously when the domain is configured for async
event processing: the Engine reads the event streams and invokes the event
handlers that keep orders, deliveries and loyalty accounts in step.

Usage:
    python src/server.py
    python src/server.py --test-mode   # drain pending messages, then exit
"""

import argparse
import asyncio

from protean.server.engine import Engine

from bakery.domain import bakery, logger


async def run(test_mode: bool = False):
    bakery.init()
    logger.info("Starting engine", domain=bakery.name, test_mode=test_mode)
    engine = Engine(bakery, test_mode=test_mode)
    await engine.run()


def main():
    parser = argparse.ArgumentParser(description="Bakery Engine runner")
    parser.add_argument(
        "--test-mode",
        action="store_true",
        help="Process pending messages once and exit",
    )
    args = parser.parse_args()

    asyncio.run(run(test_mode=args.test_mode))


if __name__ == "__main__":
    main()
