from typing import Callable, List

from waypoint.history.base import History
from waypoint.location import RawLocation
from waypoint.route import START, Route


class MemoryHistory(History):
    """History backend keeping its entries in a plain in-memory stack.

    Used where no URL bar exists (tests, server-side rendering, embedded
    views). ``stack[index]`` is the externally visible location.
    """

    def __init__(self, router, base: str = None):
        super().__init__(router, base)
        self.stack: List[Route] = []
        self.index = -1

    def push(self, location: RawLocation, on_complete: Callable = None, on_abort: Callable = None) -> None:
        def complete(route: Route):
            self.stack = self.stack[:self.index + 1] + [route]
            self.index += 1
            if on_complete:
                on_complete(route)

        self.transition_to(location, complete, on_abort)

    def replace(self, location: RawLocation, on_complete: Callable = None, on_abort: Callable = None) -> None:
        def complete(route: Route):
            self.index = max(self.index, 0)
            self.stack = self.stack[:self.index] + [route]
            if on_complete:
                on_complete(route)

        self.transition_to(location, complete, on_abort)

    def go(self, n: int) -> None:
        target_index = self.index + n
        if target_index < 0 or target_index >= len(self.stack):
            return
        route = self.stack[target_index]

        def complete(route: Route):
            self.index = target_index
            self.update_route(route)

        self.confirm_transition(route, complete)

    def ensure_url(self, push: bool = False) -> None:
        if self.current is START:
            return
        if self.stack and self.stack[self.index].full_path == self.current.full_path:
            return
        if push or not self.stack:
            self.stack = self.stack[:self.index + 1] + [self.current]
            self.index += 1
        else:
            self.stack[self.index] = self.current

    def get_current_location(self) -> str:
        if self.stack:
            return self.stack[self.index].full_path
        return "/"
