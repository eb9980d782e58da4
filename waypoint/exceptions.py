import logging

logger = logging.getLogger("waypoint")


def global_error_handler(error: Exception, description: str = None):
    """Default sink for navigation errors nobody observes: log, never raise."""
    message = description or "uncaught error during route navigation"
    logger.error(
        "%s: %s: %s", message, error.__class__.__name__, error,
        exc_info=(type(error), error, error.__traceback__),
    )


class NavigationFailure(Exception):
    """Base class for every reason a transition did not commit.

    ``is_error`` separates genuine errors, which are broadcast to the
    router's error observers, from expected outcomes such as a guard
    vetoing or redirecting.
    """

    is_error = False

    def __init__(self, message: str = None, to=None, from_route=None):
        super().__init__(message or self.__class__.__name__)
        self.to = to
        self.from_route = from_route


class NavigationDuplicated(NavigationFailure):
    """The target is the route that is already current."""


class NavigationAborted(NavigationFailure):
    """A guard called its continuation with ``False``."""


class NavigationRedirected(NavigationFailure):
    def __init__(self, message: str = None, to=None, from_route=None, target=None):
        super().__init__(message, to=to, from_route=from_route)
        self.target = target


class NavigationCancelled(NavigationFailure):
    """A newer transition started before this one finished."""


class ComponentResolutionFailed(NavigationFailure):
    is_error = True

    def __init__(self, message: str = None, to=None, from_route=None, record=None, slot=None):
        super().__init__(message, to=to, from_route=from_route)
        self.record = record
        self.slot = slot


class GuardThrew(NavigationFailure):
    is_error = True

    def __init__(self, message: str = None, to=None, from_route=None, guard=None):
        super().__init__(message, to=to, from_route=from_route)
        self.guard = guard


def is_navigation_error(value) -> bool:
    """True for values that must reach the error observers."""
    if isinstance(value, NavigationFailure):
        return value.is_error
    return isinstance(value, Exception)
