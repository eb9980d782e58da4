from typing import Any, Callable, Optional, Sequence


class Continuation:
    """A callback that runs at most once; later calls are ignored."""

    __slots__ = ("_fn", "called")

    def __init__(self, fn: Callable[..., Any]):
        self._fn = fn
        self.called = False

    def consume(self) -> None:
        """Spend the continuation without running it."""
        self.called = True

    def __call__(self, *args, **kwargs):
        if self.called:
            return None
        self.called = True
        return self._fn(*args, **kwargs)


def run_queue(queue: Sequence[Optional[Any]],
              iterator: Callable[[Any, Continuation], None],
              on_complete: Callable[[], None]) -> None:
    """Run ``queue`` strictly one step at a time.

    ``iterator(step, proceed)`` is called for each non-None step; the next
    step only starts once ``proceed`` is called. ``proceed(stop=True)`` halts
    the queue without calling ``on_complete``. A step that never calls
    ``proceed`` stalls the queue.
    """
    def step(index: int) -> None:
        while index < len(queue) and queue[index] is None:
            index += 1
        if index >= len(queue):
            on_complete()
            return

        def advance(*_, stop: bool = False):
            if stop:
                return
            step(index + 1)

        iterator(queue[index], Continuation(advance))

    step(0)
