import asyncio
import logging
from typing import Any, Callable, List

from waypoint.exceptions import global_error_handler

logger = logging.getLogger("waypoint.core")

_global_error_handler = global_error_handler


def set_global_error_handler(handler: Callable[..., None]):
    """Sets a global error handler for errors raised by subscribers and scheduled tasks."""
    global _global_error_handler
    _global_error_handler = handler


def get_global_error_handler() -> Callable:
    return _global_error_handler


def report_error(error: Exception, description: str = None):
    """Hands an error to the current global handler; never raises."""
    try:
        _global_error_handler(error, description)
    except Exception:
        logger.exception("Global error handler failed while reporting: %s", error)


# Scheduler for work that must run after the current tick (render flush)
class Scheduler:
    def __init__(self):
        self.queue = []
        self.scheduled = False

    def enqueue(self, task: Callable[[], Any]):
        self.queue.append(task)
        if not self.scheduled:
            self.scheduled = True
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # No loop: the host drives flushing itself
                self.scheduled = False
                return
            loop.create_task(self.flush())

    async def flush(self):
        # Let the host finish its own pass for this tick first
        await asyncio.sleep(0)
        self.flush_now()

    def flush_now(self):
        while self.queue:
            # Snapshot to avoid looping forever when tasks re-enqueue
            tasks = list(self.queue)
            self.queue.clear()

            for task in tasks:
                try:
                    res = task()
                    if asyncio.iscoroutine(res):
                        asyncio.get_running_loop().create_task(res)
                except Exception as e:
                    report_error(e, "Error executing scheduled task")

        self.scheduled = False


_scheduler = Scheduler()


def get_scheduler() -> Scheduler:
    return _scheduler


def next_tick(fn: Callable[[], Any]) -> None:
    """Run ``fn`` once the pending render work of this tick has flushed."""
    _scheduler.enqueue(fn)


class Signal:
    """A single mutable cell with explicit subscriptions.

    Reading is ``signal()``; writing is ``signal.set(value)``. Subscribers are
    plain callables receiving ``(new_value, old_value)`` and are called
    synchronously after each change, in subscription order.
    """

    __slots__ = ('_subscribers', '_value', '__weakref__')

    def __init__(self, initial_value: Any):
        self._subscribers: List[Callable[[Any, Any], None]] = []
        self._value = initial_value

    def __call__(self) -> Any:
        return self._value

    get = __call__

    def peek(self):
        return self._value

    def subscribe(self, callback: Callable[[Any, Any], None]) -> Callable[[], None]:
        """Subscribe to changes; returns a function that removes the subscription."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def set(self, new_value: Any) -> None:
        if self._value is new_value:
            return

        old_value = self._value
        self._value = new_value

        for subscriber in list(self._subscribers):
            try:
                subscriber(new_value, old_value)
            except Exception as e:
                report_error(e, f"Error notifying subscriber: {subscriber}")


def create_signal(initial_value: Any):
    signal = Signal(initial_value)
    return signal, signal.set
