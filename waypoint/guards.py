"""
Extraction and binding of per-record navigation guards.

In-component guards are looked up by name on every component definition of
a record (all named slots):

* ``before_route_leave(instance, to, from_route, proceed)`` and
  ``before_route_update(instance, to, from_route, proceed)`` run against the
  live instance and are skipped when the slot has none;
* ``before_route_enter(to, from_route, proceed)`` runs before the component
  exists. Calling ``proceed`` with a callable confirms the navigation and
  schedules that callable to receive the instance once it is registered.
"""
import asyncio
import logging
from typing import Any, Callable, List, Optional, Sequence

from waypoint.components import (
    BEFORE_ROUTE_ENTER,
    BEFORE_ROUTE_LEAVE,
    BEFORE_ROUTE_UPDATE,
    LazyComponent,
)
from waypoint.exceptions import ComponentResolutionFailed
from waypoint.route import InstanceRegistry, RouteRecord

logger = logging.getLogger("waypoint.guards")

Guard = Callable[..., Any]
Binder = Callable[[Guard, Any, RouteRecord, str], Optional[Guard]]


def flat_map_components(records: Sequence[RouteRecord], fn: Callable) -> List[Any]:
    """``fn(hook_source, instance, record, slot)`` for every slot of every record."""
    return [
        fn(record.hook_sources[slot], record.instances.get(slot), record, slot)
        for record in records
        for slot in record.components
    ]


def flatten(nested: Sequence[Any]) -> List[Any]:
    result = []
    for item in nested:
        if isinstance(item, list):
            result.extend(item)
        elif item is not None:
            result.append(item)
    return result


def extract_guards(records: Sequence[RouteRecord], name: str, bind: Binder,
                   reverse: bool = False) -> List[Guard]:
    def bind_all(source, instance, record, slot):
        bound = [bind(guard, instance, record, slot) for guard in source.get_hooks(name)]
        return [guard for guard in bound if guard is not None]

    guards = flat_map_components(records, bind_all)
    if reverse:
        guards.reverse()
    return flatten(guards)


def bind_guard(guard: Guard, instance: Any, record: RouteRecord = None, slot: str = None) -> Optional[Guard]:
    if instance is None:
        return None

    def bound_route_guard(to, from_route, proceed):
        return guard(instance, to, from_route, proceed)

    bound_route_guard.__wrapped__ = guard
    return bound_route_guard


def extract_leave_guards(deactivated: Sequence[RouteRecord]) -> List[Guard]:
    # innermost records leave first
    return extract_guards(deactivated, BEFORE_ROUTE_LEAVE, bind_guard, reverse=True)


def extract_update_guards(updated: Sequence[RouteRecord]) -> List[Guard]:
    return extract_guards(updated, BEFORE_ROUTE_UPDATE, bind_guard)


def extract_enter_guards(activated: Sequence[RouteRecord], post_enter_cbs: List[Callable[[], None]],
                         is_valid: Callable[[], bool]) -> List[Guard]:
    def bind(guard, _instance, record, slot):
        return bind_enter_guard(guard, record, slot, post_enter_cbs, is_valid)

    return extract_guards(activated, BEFORE_ROUTE_ENTER, bind)


def bind_enter_guard(guard: Guard, record: RouteRecord, slot: str,
                     post_enter_cbs: List[Callable[[], None]],
                     is_valid: Callable[[], bool]) -> Guard:
    def route_enter_guard(to, from_route, proceed):
        def enter_proceed(cb=None):
            if callable(cb):
                post_enter_cbs.append(lambda: deliver_instance(cb, record.instances, slot, is_valid))
            proceed(cb)

        return guard(to, from_route, enter_proceed)

    route_enter_guard.__wrapped__ = guard
    return route_enter_guard


def deliver_instance(cb: Callable[[Any], Any], instances: InstanceRegistry, slot: str,
                     is_valid: Callable[[], bool]) -> Optional[asyncio.Task]:
    """Call ``cb`` with the instance of ``slot`` now, or once it is registered.

    Returns the waiting task when the instance is not there yet.
    """
    instance = instances.live(slot)
    if instance is not None:
        cb(instance)
        return None
    if not is_valid():
        return None
    return asyncio.get_running_loop().create_task(wait_for_instance(cb, instances, slot, is_valid))


async def wait_for_instance(cb: Callable[[Any], Any], instances: InstanceRegistry, slot: str,
                            is_valid: Callable[[], bool]) -> bool:
    """Wait until ``slot`` holds a live instance and hand it to ``cb``.

    Gives up silently, returning False, once ``is_valid`` turns false: the
    registry is woken on every commit so a superseded wait never lingers.
    """
    while is_valid():
        instance = instances.live(slot)
        if instance is not None:
            cb(instance)
            return True
        await instances.changed(slot)
    logger.debug("dropping instance callback for slot %r: its navigation is no longer current", slot)
    return False


def resolve_async_components(records: Sequence[RouteRecord]) -> Guard:
    """A pipeline step loading every lazy component referenced by ``records``."""

    def resolve_step(to, from_route, proceed):
        pending = [
            (record, slot, definition)
            for record in records if record.has_lazy_components()
            for slot, definition in record.components.items()
            if isinstance(definition, LazyComponent)
        ]
        if not pending:
            proceed()
            return None

        async def load_all():
            results = await asyncio.gather(
                *(definition.load() for _, _, definition in pending),
                return_exceptions=True,
            )
            for (record, slot, _), result in zip(pending, results):
                if isinstance(result, BaseException):
                    failure = ComponentResolutionFailed(
                        f"Failed to resolve async component {slot} of {record.path}: {result}",
                        to=to, from_route=from_route, record=record, slot=slot,
                    )
                    failure.__cause__ = result
                    proceed(failure)
                    return
            for (record, slot, _), result in zip(pending, results):
                record.set_component(slot, result)
            proceed()

        return asyncio.get_running_loop().create_task(load_all())

    return resolve_step
