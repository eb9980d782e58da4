"""
Adapters between arbitrary component definitions and the router.

A route record may point at a Metafor-style function component (hooks and
``__props__`` stored as attributes), at a class, at a plain mapping
descriptor, or at a ``LazyComponent`` that only becomes one of those once
loaded. The router never branches on those shapes during navigation: every
definition is wrapped once in a ``HookSource`` and the guards are looked up
through it.
"""
import asyncio
from collections.abc import Mapping
from inspect import isawaitable
from typing import Any, Callable, Dict, List, Optional

BEFORE_ROUTE_ENTER = "before_route_enter"
BEFORE_ROUTE_UPDATE = "before_route_update"
BEFORE_ROUTE_LEAVE = "before_route_leave"


class LazyComponent:
    """A component definition loaded on first navigation to its record.

    ``loader`` is called without arguments and may return the definition
    directly or an awaitable resolving to it.
    """

    def __init__(self, loader: Callable[[], Any]):
        if not callable(loader):
            raise TypeError(f"lazy: expected callable loader, got {type(loader).__name__}")
        self.loader = loader
        self.resolved = None
        self._loading: Optional[asyncio.Future] = None

    async def load(self) -> Any:
        if self.resolved is not None:
            return self.resolved

        # Records sharing a definition wait on the same load
        if self._loading is None:
            self._loading = asyncio.ensure_future(self._run_loader())
        try:
            self.resolved = await asyncio.shield(self._loading)
        except Exception:
            self._loading = None
            raise
        return self.resolved

    async def _run_loader(self):
        result = self.loader()
        if isawaitable(result):
            result = await result
        if result is None:
            raise ValueError("lazy component loader returned None")
        return result

    def __call__(self, **props):
        if self.resolved is None:
            raise RuntimeError("lazy component rendered before it was resolved")
        return self.resolved(**props)

    def __repr__(self):
        state = "resolved" if self.resolved is not None else "pending"
        return f"<LazyComponent {getattr(self.loader, '__name__', 'loader')} {state}>"


def lazy(loader: Callable[[], Any]) -> LazyComponent:
    """Mark a component definition as deferred."""
    return LazyComponent(loader)


class HookSource:
    """Uniform lookup of named lifecycle hooks on one component definition."""

    __slots__ = ("definition", "_lookup")

    def __init__(self, definition: Any):
        self.definition = definition
        if isinstance(definition, LazyComponent):
            self._lookup = _no_hooks
        elif isinstance(definition, Mapping):
            self._lookup = definition.get
        else:
            self._lookup = lambda name: getattr(definition, name, None)

    def get_hooks(self, name: str) -> List[Callable]:
        hook = self._lookup(name)
        if hook is None:
            return []
        if isinstance(hook, (list, tuple)):
            return [h for h in hook if h is not None]
        return [hook]


def _no_hooks(name):
    return None


def as_hook_source(definition: Any) -> HookSource:
    if isinstance(definition, HookSource):
        return definition
    return HookSource(definition)


def declared_props(component: Any) -> Optional[Dict[str, Any]]:
    """The prop contract of a component, or None when it declares none."""
    if isinstance(component, LazyComponent):
        component = component.resolved
    if component is None:
        return None
    if isinstance(component, Mapping):
        props = component.get("props")
    else:
        props = getattr(component, "__props__", None)
    if isinstance(props, (list, tuple, set, frozenset)):
        return {name: None for name in props}
    return props or None
