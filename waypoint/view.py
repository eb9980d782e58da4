"""
Router views: which matched record a position in the view tree renders.

The host keeps a ``ViewNode`` per component in its tree. A ``RouterView``
sits under a node, looks up how many router-rendered ancestors it has
(its depth), and renders ``route.matched[depth]``'s component for its slot.
The node the host creates for that rendered component must be flagged
``router_view=True`` so nested views count it.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from waypoint.components import declared_props
from waypoint.route import Route, RouteRecord

logger = logging.getLogger("waypoint.view")


class ViewNode:
    def __init__(self, parent: Optional['ViewNode'] = None, router_root: bool = False,
                 router_view: bool = False, keep_alive: bool = False, instance: Any = None):
        self.parent = parent
        self.is_router_root = router_root
        self.is_router_view = router_view
        self.keep_alive = keep_alive
        self.inactive = False
        self.instance = instance
        self.router_view_cache: Dict[str, Any] = {}

    def child(self, **kwargs) -> 'ViewNode':
        return ViewNode(parent=self, **kwargs)


def resolve_props(route: Route, config: Any) -> Optional[Dict[str, Any]]:
    """Turn a record's ``props`` entry for one slot into component props."""
    if config is None:
        return None
    if isinstance(config, bool):
        return dict(route.params) if config else None
    if isinstance(config, dict):
        return config
    if callable(config):
        return config(route)
    logger.warning(
        'props in "%s" is a %s, expecting a dict, function or boolean.',
        route.path, type(config).__name__,
    )
    return None


@dataclass
class RenderedView:
    """What a ``RouterView`` decided to render for the current route."""

    component: Any
    depth: int
    name: str
    record: Optional[RouteRecord] = None
    props: Dict[str, Any] = field(default_factory=dict)
    attrs: Dict[str, Any] = field(default_factory=dict)
    cached: bool = False

    def register_route_instance(self, instance: Any, value: Any = None) -> None:
        """Set (``value`` given) or clear (``value`` None) the record's instance for this slot."""
        if self.record is None:
            return
        current = self.record.instances.get(self.name)
        if value is not None and current is not instance:
            self.record.instances.register(self.name, value)
        elif value is None and current is instance:
            self.record.instances.unregister(self.name, instance)

    def prepatch(self, instance: Any) -> None:
        """The same instance is being reused for a different route."""
        if self.record is not None:
            self.record.instances.register(self.name, instance)

    def init(self, instance: Any, keep_alive: bool = False) -> None:
        """A kept-alive instance is being re-activated."""
        if (self.record is not None and keep_alive and instance is not None
                and instance is not self.record.instances.get(self.name)):
            self.record.instances.register(self.name, instance)


class RouterView:
    def __init__(self, parent: ViewNode, route: Callable[[], Route], name: str = "default"):
        """``route`` reads the active route, normally ``router.current_route``."""
        self.parent = parent
        self.route = route
        self.name = name

    def depth(self):
        """Nesting depth and whether a kept-alive ancestor is inactive."""
        depth = 0
        inactive = False
        node = self.parent
        while node is not None and not node.is_router_root:
            if node.is_router_view:
                depth += 1
            if node.keep_alive and node.inactive:
                inactive = True
            node = node.parent
        return depth, inactive

    def render(self) -> Optional[RenderedView]:
        route = self.route()
        cache = self.parent.router_view_cache
        depth, inactive = self.depth()

        # render previous view if the tree is inactive and kept-alive
        if inactive:
            return RenderedView(component=cache.get(self.name), depth=depth, name=self.name, cached=True)

        matched = route.matched[depth] if depth < len(route.matched) else None
        # render nothing if no matched record
        if matched is None:
            cache[self.name] = None
            return None

        component = cache[self.name] = matched.components.get(self.name)
        if component is None:
            return None

        props = resolve_props(route, matched.props.get(self.name))
        attrs = {}
        if props:
            # clone to prevent mutation, pass non-declared props as attrs
            props = dict(props)
            declared = declared_props(component)
            for key in list(props):
                if not declared or key not in declared:
                    attrs[key] = props.pop(key)

        return RenderedView(
            component=component,
            depth=depth,
            name=self.name,
            record=matched,
            props=props or {},
            attrs=attrs,
        )
