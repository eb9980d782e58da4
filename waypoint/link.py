import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from waypoint.location import Location, RawLocation
from waypoint.route import Route, create_route, is_included_route, is_same_route

DEFAULT_ACTIVE_CLASS = "router-link-active"
DEFAULT_EXACT_ACTIVE_CLASS = "router-link-exact-active"

_BLANK_TARGET_RE = re.compile(r'\b_blank\b', re.IGNORECASE)


def guard_event(event: Any) -> bool:
    """Whether a click should be turned into a navigation.

    Reads the browser event attributes (``metaKey``, ``button``...) so that
    Pyodide event proxies can be passed as is.
    """
    # don't redirect with control keys
    if any(getattr(event, key, False) for key in ("metaKey", "altKey", "ctrlKey", "shiftKey")):
        return False
    # don't redirect when preventDefault called
    if getattr(event, "defaultPrevented", False):
        return False
    # don't redirect on right click
    button = getattr(event, "button", None)
    if button is not None and button != 0:
        return False
    # don't redirect if target="_blank"
    current_target = getattr(event, "currentTarget", None)
    if current_target is not None and hasattr(current_target, "getAttribute"):
        target = current_target.getAttribute("target")
        if isinstance(target, str) and _BLANK_TARGET_RE.search(target):
            return False
    if hasattr(event, "preventDefault"):
        event.preventDefault()
    return True


@dataclass
class LinkState:
    href: str
    location: Location
    route: Route
    classes: Dict[str, bool] = field(default_factory=dict)
    replace: bool = False
    events: Tuple[str, ...] = ("click",)
    router: Any = None

    @property
    def class_name(self) -> str:
        return " ".join(name for name, active in self.classes.items() if active)

    def navigate(self, event: Any = None) -> bool:
        """Event handler: navigate unless ``guard_event`` rejects the event."""
        if event is not None and not guard_event(event):
            return False
        if self.replace:
            self.router.replace(self.location)
        else:
            self.router.push(self.location)
        return True


def resolve_link(router, to: RawLocation, current: Optional[Route] = None, exact: bool = False,
                 append: bool = False, replace: bool = False, active_class: Optional[str] = None,
                 exact_active_class: Optional[str] = None,
                 event: Union[str, Tuple[str, ...]] = "click") -> LinkState:
    """Compute href and active classes of a navigation link to ``to``."""
    current = current or router.current
    location, route, href = router.resolve(to, current, append)

    if active_class is None:
        active_class = router.link_active_class if router.link_active_class is not None else DEFAULT_ACTIVE_CLASS
    if exact_active_class is None:
        exact_active_class = (
            router.link_exact_active_class
            if router.link_exact_active_class is not None
            else DEFAULT_EXACT_ACTIVE_CLASS
        )

    compare_target = create_route(None, location) if location.path else route

    classes = {}
    classes[exact_active_class] = is_same_route(current, compare_target)
    classes[active_class] = (
        classes[exact_active_class] if exact else is_included_route(current, compare_target)
    )

    events = (event,) if isinstance(event, str) else tuple(event)
    return LinkState(
        href=href,
        location=location,
        route=route,
        classes=classes,
        replace=replace,
        events=events,
        router=router,
    )
