from .base import History, RouteDiff, resolve_queue
from .memory import MemoryHistory

__all__ = ["History", "MemoryHistory", "RouteDiff", "resolve_queue"]
