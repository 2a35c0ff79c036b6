"""Protean Engine runner for the ordering domain.

In production, events are written to the outbox inside the committing unit of
work and delivered by the Engine, so order-confirmation notifications, emails
and realtime pushes survive a process restart without sitting on the request
path.

Usage:
    python src/server.py
"""

import asyncio

from protean.server.engine import Engine

from ordering.domain import ordering
from ordering.utils.logging import configure_logging


async def run():
    configure_logging()
    ordering.init()

    engine = Engine(ordering)
    await engine.run()


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
