from .components import lazy, LazyComponent
from .core import Signal, create_signal, next_tick, set_global_error_handler
from .exceptions import (
    ComponentResolutionFailed,
    GuardThrew,
    NavigationAborted,
    NavigationCancelled,
    NavigationDuplicated,
    NavigationFailure,
    NavigationRedirected,
)
from .history import History, MemoryHistory, resolve_queue
from .link import guard_event, resolve_link
from .location import Location, normalize_location
from .queue import run_queue
from .route import START, Route, RouteRecord, create_route, is_included_route, is_same_route
from .router import Router
from .view import RouterView, ViewNode, resolve_props

__version__ = "0.1.0"

get_version = lambda: __version__
