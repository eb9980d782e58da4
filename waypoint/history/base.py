import asyncio
import logging
from collections.abc import Mapping
from inspect import isawaitable
from typing import Any, Callable, List, NamedTuple, Optional, Sequence

from waypoint.core import report_error
from waypoint.exceptions import (
    GuardThrew,
    NavigationAborted,
    NavigationCancelled,
    NavigationRedirected,
    is_navigation_error,
)
from waypoint.guards import (
    extract_enter_guards,
    extract_leave_guards,
    extract_update_guards,
    resolve_async_components,
)
from waypoint.location import RawLocation, Location, clean_path, is_location_like
from waypoint.queue import Continuation, run_queue
from waypoint.route import START, Route, RouteRecord, is_same_route

logger = logging.getLogger("waypoint.history")


class RouteDiff(NamedTuple):
    updated: List[RouteRecord]
    activated: List[RouteRecord]
    deactivated: List[RouteRecord]


def resolve_queue(current: Sequence[RouteRecord], next_records: Sequence[RouteRecord]) -> RouteDiff:
    """Split two matched chains at the first record they do not share."""
    index = 0
    limit = min(len(current), len(next_records))
    while index < limit and current[index] is next_records[index]:
        index += 1
    return RouteDiff(
        updated=list(next_records[:index]),
        activated=list(next_records[index:]),
        deactivated=list(current[index:]),
    )


def normalize_base(base: Optional[str]) -> str:
    if not base:
        return ""
    # make sure there's the starting slash
    if not base.startswith("/"):
        base = "/" + base
    # remove trailing slash
    return base.rstrip("/")


def _wants_replace(target: Any) -> bool:
    if isinstance(target, Location):
        return target.replace
    if isinstance(target, Mapping):
        return bool(target.get("replace"))
    return False


class History:
    """Transition orchestrator shared by every history backend.

    Owns the authoritative ``current`` route and the one ``pending`` route
    under negotiation. Subclasses persist the externally visible address by
    implementing ``push``, ``replace``, ``go``, ``ensure_url`` and
    ``get_current_location``.
    """

    def __init__(self, router, base: Optional[str] = None):
        self.router = router
        self.base = normalize_base(base)
        # start with a route object that stands for "nowhere"
        self.current: Route = START
        self.pending: Optional[Route] = None
        self.cb: Optional[Callable[[Route], None]] = None
        self.ready = False
        self.ready_cbs: List[Callable] = []
        self.ready_error_cbs: List[Callable] = []
        self.error_cbs: List[Callable] = []

        # Generation tokens: each confirm_transition gets a fresh one
        self._generation = 0
        self._pending_token: Optional[int] = None
        self._current_token = 0

    # implemented by subclasses
    def push(self, location: RawLocation, on_complete: Callable = None, on_abort: Callable = None) -> None:
        raise NotImplementedError

    def replace(self, location: RawLocation, on_complete: Callable = None, on_abort: Callable = None) -> None:
        raise NotImplementedError

    def go(self, n: int) -> None:
        raise NotImplementedError

    def ensure_url(self, push: bool = False) -> None:
        raise NotImplementedError

    def get_current_location(self) -> str:
        raise NotImplementedError

    def create_href(self, full_path: str) -> str:
        return clean_path(f"{self.base}/{full_path}") if self.base else full_path

    def listen(self, cb: Callable[[Route], None]) -> None:
        self.cb = cb

    def on_ready(self, cb: Callable, error_cb: Optional[Callable] = None) -> None:
        if self.ready:
            cb(self.current)
        else:
            self.ready_cbs.append(cb)
            if error_cb:
                self.ready_error_cbs.append(error_cb)

    def on_error(self, error_cb: Callable[[Exception], None]) -> None:
        self.error_cbs.append(error_cb)

    def is_pending(self, token: int) -> bool:
        return self._pending_token == token

    def is_current(self, token: int) -> bool:
        return self._current_token == token

    def transition_to(self, location: RawLocation, on_complete: Callable = None,
                      on_abort: Callable = None) -> None:
        route = self.router.match(location, self.current)

        def complete(route: Route):
            self.update_route(route)
            if on_complete:
                on_complete(route)
            self.ensure_url()

            # fire ready cbs once
            if not self.ready:
                self.ready = True
                for cb in list(self.ready_cbs):
                    cb(route)

        def abort(*args):
            if on_abort:
                on_abort(*args)
            if args and is_navigation_error(args[0]) and not self.ready:
                self.ready = True
                for cb in list(self.ready_error_cbs):
                    cb(args[0])

        self.confirm_transition(route, complete, abort)

    def confirm_transition(self, route: Route, on_complete: Callable[[Route], None],
                           on_abort: Callable = None) -> None:
        current = self.current

        def notify_abort(*args):
            err = args[0] if args else None
            if is_navigation_error(err):
                if self.error_cbs:
                    for cb in list(self.error_cbs):
                        cb(err)
                else:
                    report_error(err, "uncaught error during route navigation")
            if on_abort:
                on_abort(*args)

        if is_same_route(route, current) and len(route.matched) == len(current.matched):
            # Nothing to do; the caller gets a bare on_abort()
            self.ensure_url()
            notify_abort()
            return

        diff = resolve_queue(current.matched, route.matched)
        logger.debug(
            "navigating %s -> %s (updated=%d activated=%d deactivated=%d)",
            current.full_path, route.full_path,
            len(diff.updated), len(diff.activated), len(diff.deactivated),
        )

        queue = [
            # in-component leave guards
            *extract_leave_guards(diff.deactivated),
            # global before hooks
            *self.router.before_hooks,
            # in-component update hooks
            *extract_update_guards(diff.updated),
            # in-config enter guards
            *(record.before_enter for record in diff.activated),
            # async components
            resolve_async_components(diff.activated),
        ]

        self._generation += 1
        token = self._generation
        self.pending = route
        self._pending_token = token

        def abort(*args):
            if self._pending_token == token:
                self.pending = None
                self._pending_token = None
            notify_abort(*args)

        abort = Continuation(abort)

        def cancelled():
            abort(NavigationCancelled(
                f"Navigation cancelled from {current.full_path} to {route.full_path} with a new navigation.",
                to=route, from_route=current,
            ))

        def iterator(hook, advance: Continuation):
            if abort.called:
                return
            if not self.is_pending(token):
                cancelled()
                return

            # set while the rest of the pipeline runs inside proceed(); an
            # error escaping from there belongs to the caller, not this guard
            downstream = False

            def resolve(to: Any = None):
                nonlocal downstream
                downstream = True
                dispatch(to)
                downstream = False

            def dispatch(to: Any):
                if abort.called:
                    return
                if not self.is_pending(token):
                    cancelled()
                elif to is False:
                    # proceed(False) -> abort navigation, ensure current URL
                    self.ensure_url(push=True)
                    abort(NavigationAborted(
                        f"Navigation aborted from {current.full_path} to {route.full_path} via a navigation guard.",
                        to=route, from_route=current,
                    ))
                elif isinstance(to, Exception):
                    self.ensure_url(push=True)
                    abort(to)
                elif is_location_like(to):
                    # proceed('/') or proceed({'path': '/'}) -> redirect
                    abort(NavigationRedirected(
                        f"Redirected from {route.full_path} via a navigation guard.",
                        to=route, from_route=current, target=to,
                    ))
                    if _wants_replace(to):
                        self.replace(to)
                    else:
                        self.push(to)
                else:
                    # confirm this step and pass on the value
                    advance(to)

            proceed = Continuation(resolve)
            try:
                result = hook(route, current, proceed)
            except Exception as e:
                if downstream:
                    raise
                guard_failed(e, hook, proceed)
                return

            if isawaitable(result):
                watch_async_guard(result, hook, proceed, lambda: downstream)
            elif result is not None and not proceed.called:
                proceed(result)

        def guard_failed(error: Exception, hook, proceed: Continuation):
            name = getattr(hook, "__name__", hook)
            if proceed.called or abort.called:
                # The pipeline already moved past this guard
                report_error(error, f"navigation guard {name!s} raised after proceeding")
                return
            proceed.consume()
            if not self.is_pending(token):
                cancelled()
                return
            failure = GuardThrew(
                f"Navigation guard {name!s} raised {error.__class__.__name__}: {error}",
                to=route, from_route=current, guard=hook,
            )
            failure.__cause__ = error
            self.ensure_url(push=True)
            abort(failure)

        def watch_async_guard(awaitable, hook, proceed: Continuation,
                              failed_downstream: Callable[[], bool]) -> asyncio.Future:
            future = asyncio.ensure_future(awaitable)

            def done(task: asyncio.Future):
                if task.cancelled():
                    if not proceed.called:
                        proceed.consume()
                        cancelled()
                    return
                error = task.exception()
                if error is not None:
                    if failed_downstream():
                        report_error(error, "uncaught error after route navigation committed")
                    else:
                        guard_failed(error, hook, proceed)
                    return
                result = task.result()
                if result is not None and not proceed.called:
                    # A coroutine guard that returns instead of calling proceed
                    proceed(result)

            future.add_done_callback(done)
            return future

        def finish_pipeline():
            if not self.is_pending(token):
                cancelled()
                return
            abort.consume()
            self.pending = None
            self._pending_token = None
            self._current_token = token
            on_complete(route)
            # run once the host has rendered the freshly committed route
            for cb in post_enter_cbs:
                self.router.scheduler.enqueue(cb)

        post_enter_cbs: List[Callable[[], Any]] = []

        def resolve_enter_guards():
            # wait until async components are resolved before
            # extracting in-component enter guards
            enter_queue = [
                *extract_enter_guards(diff.activated, post_enter_cbs, lambda: self.is_current(token)),
                *self.router.resolve_hooks,
            ]
            run_queue(enter_queue, iterator, finish_pipeline)

        run_queue(queue, iterator, resolve_enter_guards)

    def update_route(self, route: Route) -> None:
        prev = self.current
        self.current = route
        # instance waiters of the previous route re-check their validity
        for record in prev.matched:
            record.instances.wake()
        if self.cb:
            self.cb(route)
        for hook in list(self.router.after_hooks):
            if hook:
                hook(route, prev)
