"""
Location descriptors and their normalisation against the current route.

The matcher only ever sees a normalised ``Location``: an absolute path
with parsed query and a ``#``-prefixed hash, or a named target carrying
its params.
"""
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple, Union
from urllib.parse import quote, unquote

logger = logging.getLogger("waypoint.location")

_PARAM_RE = re.compile(r':(\w+)(\?)?')


@dataclass(frozen=True)
class Location:
    path: Optional[str] = None
    name: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    hash: str = ""
    append: bool = False
    replace: bool = False
    normalized: bool = False


RawLocation = Union[str, Location, Mapping]


def to_location(raw: RawLocation) -> Location:
    """Coerce a raw path string or descriptor mapping into a ``Location``."""
    if isinstance(raw, Location):
        return raw
    if isinstance(raw, str):
        return Location(path=raw)
    if isinstance(raw, Mapping):
        return Location(
            path=raw.get("path"),
            name=raw.get("name"),
            params=dict(raw.get("params") or {}),
            query=dict(raw.get("query") or {}),
            hash=raw.get("hash") or "",
            append=bool(raw.get("append", False)),
            replace=bool(raw.get("replace", False)),
            normalized=bool(raw.get("_normalized", raw.get("normalized", False))),
        )
    raise TypeError(f"Cannot navigate to {type(raw).__name__}: expected str, mapping or Location")


def is_location_like(value: Any) -> bool:
    """True for redirect targets: a path string or a descriptor with a path or name."""
    if isinstance(value, str):
        return True
    if isinstance(value, Location):
        return isinstance(value.path, str) or isinstance(value.name, str)
    if isinstance(value, Mapping):
        return isinstance(value.get("path"), str) or isinstance(value.get("name"), str)
    return False


def normalize_location(raw: RawLocation, current=None, append: bool = False) -> Location:
    """Resolve ``raw`` against ``current`` into an absolute ``Location``."""
    next_location = to_location(raw)

    if next_location.normalized:
        return next_location
    if next_location.name:
        return replace(next_location, params=dict(next_location.params), query=dict(next_location.query))

    # Relative params: keep the current target, swap some params
    if not next_location.path and next_location.params and current is not None:
        params = {**current.params, **next_location.params}
        if current.name:
            return replace(next_location, name=current.name, params=params, normalized=True)
        if current.matched:
            raw_path = current.matched[-1].path
            return replace(
                next_location,
                path=fill_params(raw_path, params, f"path {current.path}"),
                params=params,
                normalized=True,
            )
        logger.warning("relative params navigation requires a current route.")
        return replace(next_location, normalized=True)

    parsed_path, query_string, parsed_hash = parse_path(next_location.path or "")
    base_path = (current.path if current is not None else None) or "/"
    if parsed_path:
        path = resolve_path(parsed_path, base_path, append or next_location.append)
    else:
        path = base_path

    query = resolve_query(query_string, next_location.query)

    hash_value = next_location.hash or parsed_hash
    if hash_value and not hash_value.startswith("#"):
        hash_value = f"#{hash_value}"

    return Location(
        path=path,
        query=query,
        hash=hash_value,
        replace=next_location.replace,
        normalized=True,
    )


def parse_path(path: str) -> Tuple[str, str, str]:
    """Split ``path`` into (path, query string, hash)."""
    hash_value = ""
    query = ""

    hash_index = path.find("#")
    if hash_index >= 0:
        hash_value = path[hash_index:]
        path = path[:hash_index]

    query_index = path.find("?")
    if query_index >= 0:
        query = path[query_index + 1:]
        path = path[:query_index]

    return path, query, hash_value


def resolve_path(relative: str, base: str, append: bool = False) -> str:
    first_char = relative[:1]
    if first_char == "/":
        return relative
    if first_char in ("?", "#"):
        return base + relative

    stack = base.split("/")
    # Drop the last segment unless appending, or if it is empty (trailing slash)
    if not append or not stack[-1]:
        stack.pop()

    segments = relative.lstrip("/").split("/")
    for segment in segments:
        if segment == "..":
            if stack:
                stack.pop()
        elif segment != ".":
            stack.append(segment)

    # Keep the leading slash
    if not stack or stack[0] != "":
        stack.insert(0, "")

    return "/".join(stack)


def clean_path(path: str) -> str:
    return re.sub(r'//+', '/', path)


def parse_query(query_string: str) -> Dict[str, Any]:
    """Parse a query string into a dictionary; repeated keys become lists."""
    params: Dict[str, Any] = {}
    query_string = query_string.strip().lstrip("?#&")
    if not query_string:
        return params

    for pair in query_string.split("&"):
        if not pair:
            continue
        if "=" in pair:
            key, value = pair.split("=", 1)
            value = unquote(value.replace("+", " "))
        else:
            key, value = pair, None
        key = unquote(key)

        if key not in params:
            params[key] = value
        elif isinstance(params[key], list):
            params[key].append(value)
        else:
            params[key] = [params[key], value]
    return params


def resolve_query(query_string: str, extra_query: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    parsed = parse_query(query_string or "")
    for key, value in (extra_query or {}).items():
        if isinstance(value, (list, tuple)):
            parsed[key] = [None if v is None else str(v) for v in value]
        else:
            parsed[key] = None if value is None else str(value)
    return parsed


def stringify_query(query: Optional[Dict[str, Any]]) -> str:
    if not query:
        return ""

    parts = []
    for key, value in query.items():
        encoded_key = quote(str(key), safe="")
        if isinstance(value, (list, tuple)):
            for item in value:
                if item is None:
                    parts.append(encoded_key)
                else:
                    parts.append(f"{encoded_key}={quote(str(item), safe='')}")
        elif value is None:
            parts.append(encoded_key)
        else:
            parts.append(f"{encoded_key}={quote(str(value), safe='')}")

    return f"?{'&'.join(parts)}" if parts else ""


def fill_params(path: str, params: Dict[str, Any], route_msg: str = "") -> str:
    """Substitute ``:name`` segments of a path pattern with ``params``."""
    missing = []

    def substitute(match):
        name, optional = match.group(1), match.group(2)
        value = params.get(name)
        if value is None or value == "":
            if not optional:
                missing.append(name)
            return ""
        return quote(str(value), safe="")

    filled = _PARAM_RE.sub(substitute, path)
    if missing:
        logger.warning("missing param for %s: expected %r to be defined", route_msg or path, missing[0])
        return ""
    return clean_path(filled).rstrip("/") or "/"
