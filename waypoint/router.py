import asyncio
import logging
from typing import Any, Callable, List, Optional, Tuple, Type

from waypoint.core import Scheduler, create_signal, get_scheduler
from waypoint.exceptions import NavigationAborted, NavigationDuplicated
from waypoint.history import History, MemoryHistory
from waypoint.location import Location, RawLocation, normalize_location
from waypoint.route import START, Route

logger = logging.getLogger("waypoint.router")


def _register_hook(hooks: List[Callable], fn: Callable) -> Callable[[], None]:
    if not callable(fn):
        raise TypeError(f"navigation hook must be callable, got {type(fn).__name__}")
    hooks.append(fn)

    def unregister():
        if fn in hooks:
            hooks.remove(fn)

    return unregister


class Router:
    """Navigation facade owning the guard registries and the active route cell.

    ``matcher`` is any object with ``match(location, current_route) -> Route``;
    it receives already normalised ``Location`` values.
    """

    def __init__(self, matcher, history: Type[History] = MemoryHistory, base: str = "",
                 link_active_class: Optional[str] = None,
                 link_exact_active_class: Optional[str] = None,
                 scheduler: Optional[Scheduler] = None):
        if not hasattr(matcher, "match"):
            raise TypeError("matcher must provide match(location, current_route)")

        self.matcher = matcher
        self.before_hooks: List[Callable] = []
        self.resolve_hooks: List[Callable] = []
        self.after_hooks: List[Callable] = []
        self.link_active_class = link_active_class
        self.link_exact_active_class = link_exact_active_class
        self.scheduler = scheduler or get_scheduler()

        # current_route is the reactive cell the view layer reads
        self.current_route, self.set_current_route = create_signal(START)

        self.history: History = history(self, base)
        self._initialized = False

    @property
    def current(self) -> Route:
        return self.history.current

    def match(self, raw: RawLocation, current: Optional[Route] = None) -> Route:
        location = normalize_location(raw, current)
        return self.matcher.match(location, current)

    def init(self, initial_location: Optional[RawLocation] = None) -> None:
        """Connect the history to the route cell and run the first navigation."""
        if self._initialized:
            return
        self._initialized = True

        self.history.listen(self.set_current_route)
        location = initial_location if initial_location is not None else self.history.get_current_location()
        logger.debug("initial navigation to %s", location)
        self.history.transition_to(location)

    def before_each(self, fn: Callable) -> Callable[[], None]:
        """Add a guard ``fn(to, from_route, proceed)`` run before per-record guards."""
        return _register_hook(self.before_hooks, fn)

    def before_resolve(self, fn: Callable) -> Callable[[], None]:
        """Add a guard run after every enter guard and async component has resolved."""
        return _register_hook(self.resolve_hooks, fn)

    def after_each(self, fn: Callable) -> Callable[[], None]:
        """Add an observer ``fn(to, from_route)`` called after each commit."""
        return _register_hook(self.after_hooks, fn)

    def on_ready(self, cb: Callable, error_cb: Optional[Callable] = None) -> None:
        self.history.on_ready(cb, error_cb)

    def on_error(self, error_cb: Callable[[Exception], None]) -> None:
        self.history.on_error(error_cb)

    def push(self, location: RawLocation, on_complete: Callable = None, on_abort: Callable = None) -> None:
        self.history.push(location, on_complete, on_abort)

    def replace(self, location: RawLocation, on_complete: Callable = None, on_abort: Callable = None) -> None:
        self.history.replace(location, on_complete, on_abort)

    def go(self, n: int) -> None:
        self.history.go(n)

    def back(self) -> None:
        self.go(-1)

    def forward(self) -> None:
        self.go(1)

    async def navigate(self, location: RawLocation, replace: bool = False,
                       raise_on_failure: bool = False) -> bool:
        """Navigate and wait for the outcome: True once committed, False otherwise.

        With ``raise_on_failure`` the reason is raised instead of returning
        False; staying on the same route raises ``NavigationDuplicated``.
        """
        outcome = asyncio.get_running_loop().create_future()

        def on_complete(route):
            if not outcome.done():
                outcome.set_result(True)

        def on_abort(*args):
            if outcome.done():
                return
            if not raise_on_failure:
                outcome.set_result(False)
            elif not args:
                outcome.set_exception(NavigationDuplicated(
                    f"Avoided redundant navigation to current location: {self.current.full_path}",
                    from_route=self.current,
                ))
            elif isinstance(args[0], BaseException):
                outcome.set_exception(args[0])
            else:
                outcome.set_exception(NavigationAborted(f"Navigation aborted: {args[0]!r}"))

        if replace:
            self.replace(location, on_complete, on_abort)
        else:
            self.push(location, on_complete, on_abort)
        return await outcome

    def get_matched_components(self, to: Optional[RawLocation] = None) -> List[Any]:
        route = self.current if to is None else self.match(to, self.current)
        return [
            component
            for record in route.matched
            for component in record.components.values()
        ]

    def resolve(self, to: RawLocation, current: Optional[Route] = None,
                append: bool = False) -> Tuple[Location, Route, str]:
        """Resolve ``to`` without navigating: (location, route, href)."""
        current = current or self.current
        location = normalize_location(to, current, append)
        route = self.match(location, current)
        full_path = route.redirected_from or route.full_path
        href = self.history.create_href(full_path)
        return location, route, href
