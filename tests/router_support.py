"""Shared fixtures: a table matcher standing in for the external path matcher."""
import asyncio
import re
from dataclasses import replace
from typing import Dict, List

from waypoint import Route, RouteRecord, create_route
from waypoint.history import MemoryHistory
from waypoint.location import Location, fill_params


def _pattern(path: str):
    regex = re.sub(r':(\w+)', r'(?P<\1>[^/]+)', path)
    return re.compile(f"^{regex}$")


class TableMatcher:
    """Matches exact record paths, ``:param`` segments and record names."""

    def __init__(self, records: List[RouteRecord]):
        self.records: List[RouteRecord] = []
        self.by_name: Dict[str, RouteRecord] = {}
        for record in records:
            self._add(record)
        self.calls = []

    def _add(self, record: RouteRecord):
        self.records.append(record)
        if record.name:
            self.by_name[record.name] = record
        for child in record.children:
            self._add(child)

    def match(self, location: Location, current: Route = None) -> Route:
        self.calls.append(location)
        if location.name:
            record = self.by_name.get(location.name)
            if record is None:
                return create_route(None, location)
            return create_route(record, replace(location, path=fill_params(record.path, location.params)))

        # deepest record wins so that children shadow their parents
        for record in reversed(self.records):
            found = _pattern(record.path).match(location.path or "/")
            if found:
                params = {**location.params, **found.groupdict()}
                return create_route(record, replace(location, params=params))
        return create_route(None, location)


class RecordingHistory(MemoryHistory):
    """Memory history that remembers every ensure_url call."""

    def __init__(self, router, base=None):
        super().__init__(router, base)
        self.ensure_calls = []

    def ensure_url(self, push=False):
        self.ensure_calls.append(push)
        super().ensure_url(push)


def component(name, **hooks):
    """A Metafor-style function component carrying route hooks as attributes."""
    def render(**props):
        return name

    render.__name__ = name
    for hook_name, hook in hooks.items():
        setattr(render, hook_name, hook)
    return render


class Instance:
    def __init__(self, name):
        self.name = name
        self.is_being_destroyed = False

    def __repr__(self):
        return f"<Instance {self.name}>"


async def flush(times: int = 5):
    for _ in range(times):
        await asyncio.sleep(0)
