import asyncio
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from waypoint.components import HookSource, LazyComponent, as_hook_source
from waypoint.location import Location, clean_path, stringify_query

_TRAILING_SLASH_RE = re.compile(r'/?$')


class InstanceRegistry(dict):
    """Slot name -> live component instance currently rendering a record.

    A registry, not an owner: instances are written by the view layer while
    they render the record and cleared when they are destroyed or replaced.
    Waiters are woken on every change to their slot and by ``wake``.
    """

    def __init__(self):
        super().__init__()
        self._waiters: Dict[str, List[asyncio.Future]] = {}

    def register(self, slot: str, instance: Any) -> None:
        if instance is None:
            self.pop(slot, None)
        else:
            self[slot] = instance
        self._notify(slot)

    def unregister(self, slot: str, instance: Any = None) -> None:
        """Clear ``slot``; with ``instance`` given, only if it is still the one registered."""
        if instance is not None and self.get(slot) is not instance:
            return
        self.pop(slot, None)
        self._notify(slot)

    def live(self, slot: str) -> Any:
        """The registered instance unless it is already being torn down."""
        instance = self.get(slot)
        if instance is None or getattr(instance, "is_being_destroyed", False):
            return None
        return instance

    def changed(self, slot: str) -> asyncio.Future:
        """A future resolved the next time ``slot`` changes or ``wake`` is called."""
        future = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(slot, []).append(future)
        return future

    def wake(self) -> None:
        for slot in list(self._waiters):
            self._notify(slot)

    def _notify(self, slot: str) -> None:
        for future in self._waiters.pop(slot, []):
            if not future.done():
                future.set_result(None)


class RouteRecord:
    """One node of the static route table.

    Everything but ``instances`` is fixed once the table is built; records
    are compared by identity only, never by path.
    """

    def __init__(self, path: str, component: Any = None, components: Optional[Dict[str, Any]] = None,
                 name: str = None, meta: Optional[Dict[str, Any]] = None,
                 children: Optional[List['RouteRecord']] = None, props: Any = None,
                 before_enter: Optional[Callable] = None, propagate: bool = False):
        if component is None and not components:
            raise ValueError(f"Route record '{path}' needs a component or named components")

        self.components: Dict[str, Any] = dict(components) if components else {"default": component}
        for slot, definition in self.components.items():
            if not (callable(definition) or isinstance(definition, Mapping)):
                raise TypeError(f"Component for slot '{slot}' of '{path}' is not callable")

        self.raw_path = path
        self.path = clean_path(path) if path.startswith("/") else path
        self.name = name
        self.meta = dict(meta or {})
        self.parent: Optional[RouteRecord] = None
        self.before_enter = before_enter
        self.instances = InstanceRegistry()
        self.props = self._normalize_props(props, components)
        self.hook_sources: Dict[str, HookSource] = {
            slot: as_hook_source(definition) for slot, definition in self.components.items()
        }
        self._propagate = propagate
        self.children: List[RouteRecord] = []
        for child in children or []:
            self._attach_child(child)

    @staticmethod
    def _normalize_props(props, components) -> Dict[str, Any]:
        if props is None:
            return {}
        if components:
            return dict(props)
        return {"default": props}

    def _attach_child(self, child: 'RouteRecord') -> None:
        child.parent = self
        child._rebase()
        # Merge parent meta into child meta only if propagate is True
        if self._propagate:
            child._update_meta_recursive(self.meta)
        self.children.append(child)

    def _rebase(self) -> None:
        """Recompute this record's absolute path (and its children's) from the parent."""
        if self.parent is not None and not self.raw_path.startswith("/"):
            self.path = clean_path(f"{self.parent.path}/{self.raw_path}")
            if len(self.path) > 1:
                self.path = self.path.rstrip("/")
        for child in self.children:
            child._rebase()

    def _update_meta_recursive(self, parent_meta: Dict[str, Any]):
        """Recursively update meta for this record and its children."""
        self.meta = {**parent_meta, **self.meta}
        for child in self.children:
            child._update_meta_recursive(self.meta)

    def set_component(self, slot: str, definition: Any) -> None:
        """Replace the definition of ``slot``, e.g. once a lazy component has loaded."""
        self.components[slot] = definition
        self.hook_sources[slot] = as_hook_source(definition)

    def has_lazy_components(self) -> bool:
        return any(isinstance(d, LazyComponent) and d.resolved is None for d in self.components.values())

    def chain(self) -> Tuple['RouteRecord', ...]:
        """Ancestors and self, root first."""
        records = []
        record = self
        while record is not None:
            records.insert(0, record)
            record = record.parent
        return tuple(records)

    def __repr__(self):
        return f"<RouteRecord {self.name or self.path!s}>"


@dataclass(frozen=True, eq=False)
class Route:
    """A resolved, immutable navigation target."""

    path: str = "/"
    query: Dict[str, Any] = field(default_factory=dict)
    hash: str = ""
    params: Dict[str, Any] = field(default_factory=dict)
    matched: Tuple[RouteRecord, ...] = ()
    name: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)
    redirected_from: Optional[str] = None
    full_path: str = "/"

    def __repr__(self):
        return f"<Route {self.full_path}>"


def get_full_path(path: str, query: Optional[Dict[str, Any]] = None, hash_value: str = "") -> str:
    return f"{path or '/'}{stringify_query(query)}{hash_value or ''}"


def _clone(value):
    if isinstance(value, Mapping):
        return {k: _clone(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_clone(v) for v in value]
    return value


def create_route(record: Optional[RouteRecord], location: Location,
                 redirected_from: Optional[Location] = None) -> Route:
    """Build the Route for ``location`` matched at ``record`` (None for no match)."""
    query = _clone(location.query or {})
    path = location.path or "/"
    return Route(
        name=location.name or (record.name if record else None),
        meta=dict(record.meta) if record else {},
        path=path,
        hash=location.hash or "",
        query=query,
        params=_clone(location.params or {}),
        full_path=get_full_path(path, query, location.hash),
        matched=record.chain() if record else (),
        redirected_from=(
            get_full_path(redirected_from.path, redirected_from.query, redirected_from.hash)
            if redirected_from is not None else None
        ),
    )


# the starting route that represents "nowhere"
START = create_route(None, Location(path="/"))


def _strip_trailing_slash(path: str) -> str:
    return path[:-1] if path.endswith("/") else path


def _is_object_equal(a, b) -> bool:
    a = a or {}
    b = b or {}
    if set(a.keys()) != set(b.keys()):
        return False
    for key, a_value in a.items():
        b_value = b[key]
        if isinstance(a_value, Mapping) and isinstance(b_value, Mapping):
            if not _is_object_equal(a_value, b_value):
                return False
        elif isinstance(a_value, (list, tuple)) and isinstance(b_value, (list, tuple)):
            if len(a_value) != len(b_value) or any(str(x) != str(y) for x, y in zip(a_value, b_value)):
                return False
        elif str(a_value) != str(b_value):
            return False
    return True


def is_same_route(a: Route, b: Optional[Route]) -> bool:
    """Value identity of two routes: name or path, params, query and hash."""
    if b is START:
        return a is b
    if b is None:
        return False
    if a.path and b.path:
        return (
            _strip_trailing_slash(a.path) == _strip_trailing_slash(b.path)
            and a.hash == b.hash
            and _is_object_equal(a.query, b.query)
        )
    if a.name and b.name:
        return (
            a.name == b.name
            and a.hash == b.hash
            and _is_object_equal(a.query, b.query)
            and _is_object_equal(a.params, b.params)
        )
    return False


def _query_includes(current: Dict[str, Any], target: Dict[str, Any]) -> bool:
    for key, value in (target or {}).items():
        if key not in current or str(current[key]) != str(value):
            return False
    return True


def is_included_route(current: Route, target: Route) -> bool:
    """True when ``target`` is ``current`` or one of its ancestors (non-exact match)."""
    current_path = _TRAILING_SLASH_RE.sub("/", current.path, count=1)
    target_path = _TRAILING_SLASH_RE.sub("/", target.path, count=1)

    prefix_match = current_path.startswith(target_path)
    if not prefix_match and target.name:
        prefix_match = any(record.name == target.name for record in current.matched)

    return (
        prefix_match
        and (not target.hash or current.hash == target.hash)
        and _query_includes(current.query, target.query)
        and _query_includes(current.params, target.params)
    )
