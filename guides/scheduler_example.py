"""Example: run the scheduler that resumes delayed executions."""

import asyncio
import logging

from breezeflow import ExecutionEngine, ExecutionScheduler
from breezeflow.collaborators import get_action_dispatcher, get_ai_caller


async def main():
    logging.basicConfig(level=logging.INFO)
    engine = ExecutionEngine(ai=get_ai_caller(), actions=get_action_dispatcher())
    scheduler = ExecutionScheduler(engine)

    # Start scheduler
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()


if __name__ == "__main__":
    asyncio.run(main())
