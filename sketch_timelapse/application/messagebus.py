import asyncio
import inspect
from typing import Dict, List, Callable, Set, Type

from sketch_timelapse.domain.timelapse.events import Event
from sketch_timelapse.common.logger import setup_logger

logger = setup_logger("MessageBus")


class MessageBus:
    def __init__(self):
        self._handlers: Dict[Type[Event], List[Callable]] = {}
        self._tasks: Set[asyncio.Task] = set()

    def handle(self, event: Event):
        event_type = type(event)
        handlers = self._handlers.get(event_type, [])

        logger.debug(
            f"Handling {event_type.__name__} with {len(handlers)} handlers"
        )

        for handler in handlers:
            try:
                if inspect.iscoroutinefunction(handler):
                    task = asyncio.create_task(handler(event))
                    self._tasks.add(task)
                    task.add_done_callback(self._task_done)
                else:
                    handler(event)
            except Exception as e:
                logger.error(
                    f"Error in handler {handler.__name__} for "
                    f"{event_type.__name__}: {e}"
                )

    def subscribe(self, event_type: Type[Event], handler: Callable):
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed {handler.__name__} to {event_type.__name__}")

    async def drain(self) -> None:
        """Wait for async handlers that are still running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Async handler failed: {exc}")
