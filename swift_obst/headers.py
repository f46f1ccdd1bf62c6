"""
Header codec - converts option dataclasses to wire headers and response
headers back to typed dataclasses.

Option and header classes declare the wire name of each field through
:func:`header` or :func:`query`. A field is sent only when its value differs
from the field's default; fields whose "absent" and "empty" states must be
told apart default to :data:`UNSET`.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar, Union

import httpx

from .exceptions import DecodingError

T = TypeVar("T")

HeaderSource = Union[httpx.Headers, Mapping[str, str], Iterable[Tuple[str, str]]]

_TRUE_VALUES = {"1", "t", "true"}
_FALSE_VALUES = {"0", "f", "false"}


class _Unset:
    """Marker for an option the caller did not touch."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


def header(name: str, fmt: Optional[str] = None, default: Any = UNSET):
    """Declare a dataclass field carried in the ``name`` header."""
    return dataclasses.field(default=default, metadata={"header": name, "fmt": fmt})


def query(name: str, fmt: Optional[str] = None, default: Any = UNSET):
    """Declare a dataclass field carried in the ``name`` query parameter."""
    return dataclasses.field(default=default, metadata={"query": name, "fmt": fmt})


# ----------------------------------------------------------------------
# Value rendering
# ----------------------------------------------------------------------


def to_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_unix(value: datetime) -> int:
    return int(to_utc(value).timestamp())


def format_http_date(value: datetime) -> str:
    return format_datetime(to_utc(value), usegmt=True)


def parse_http_date(raw: str) -> datetime:
    try:
        parsed = parsedate_to_datetime(raw)
    except (TypeError, IndexError) as exc:
        raise ValueError(f"invalid HTTP date: {raw!r}") from exc
    if parsed is None:
        raise ValueError(f"invalid HTTP date: {raw!r}")
    return to_utc(parsed)


def parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean: {raw!r}")


def render_value(value: Any, fmt: Optional[str] = None) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        if fmt == "unix":
            return str(to_unix(value))
        return format_http_date(value)
    return str(value)


def parse_value(raw: str, fmt: Optional[str] = None) -> Any:
    if fmt == "int":
        return int(raw)
    if fmt == "float":
        return float(raw)
    if fmt == "bool":
        return parse_bool(raw)
    if fmt == "http-date":
        return parse_http_date(raw)
    if fmt == "unix":
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    return raw


# ----------------------------------------------------------------------
# Encoding
# ----------------------------------------------------------------------


def _encode(opts: Any, kind: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for f in dataclasses.fields(opts):
        name = f.metadata.get(kind)
        if not name:
            continue
        value = getattr(opts, f.name)
        if value is UNSET or value is None:
            continue
        if f.default is not dataclasses.MISSING and f.default is not UNSET and value == f.default:
            continue
        out[name] = render_value(value, f.metadata.get("fmt"))
    return out


def encode_headers(opts: Any) -> Dict[str, str]:
    """Render every header-bound field of ``opts`` that the caller set."""
    return _encode(opts, "header")


def encode_query(opts: Any) -> Dict[str, str]:
    """Render every query-bound field of ``opts`` that the caller set."""
    return _encode(opts, "query")


def encode_metadata(prefix: str, metadata: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Emit one ``<prefix><key>`` header per metadata entry."""
    return {prefix + key: value for key, value in (metadata or {}).items()}


def encode_removals(
    prefix: str,
    keys: Optional[Iterable[str]],
    keep: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Emit ``X-Remove-<...>-Meta-<key>`` headers.

    Keys that are also being set in ``keep`` are skipped. The comparison is on
    the exact key, so ``"Color"`` and ``"color"`` are different keys.
    """
    remove_prefix = "X-Remove-" + prefix[len("X-"):]
    keep = keep or {}
    return {remove_prefix + key: "remove" for key in (keys or ()) if key not in keep}


# ----------------------------------------------------------------------
# Decoding
# ----------------------------------------------------------------------


def header_items(headers: HeaderSource) -> List[Tuple[str, str]]:
    """Return header pairs keeping the wire casing of each name."""
    if isinstance(headers, httpx.Headers):
        return [
            (key.decode("latin-1"), value.decode("latin-1"))
            for key, value in headers.raw
        ]
    if isinstance(headers, Mapping):
        return list(headers.items())
    return list(headers)


def decode_metadata(prefix: str, headers: HeaderSource) -> Dict[str, str]:
    """Collect ``<prefix>*`` headers into a mapping keyed without the prefix."""
    lowered = prefix.lower()
    return {
        key[len(prefix):]: value
        for key, value in header_items(headers)
        if key.lower().startswith(lowered)
    }


def decode_headers(cls: Type[T], headers: HeaderSource) -> T:
    """
    Build a header dataclass from response headers.

    Headers the response does not carry keep the field default.

    Raises:
        DecodingError: If a header is present but cannot be parsed.
    """
    lookup = {key.lower(): value for key, value in header_items(headers)}
    kwargs = {}
    for f in dataclasses.fields(cls):
        name = f.metadata.get("header")
        if not name:
            continue
        raw = lookup.get(name.lower())
        if raw is None or raw == "":
            continue
        try:
            kwargs[f.name] = parse_value(raw, f.metadata.get("fmt"))
        except (ValueError, OverflowError, OSError) as exc:
            raise DecodingError(
                f"Cannot parse header {name}: {raw!r}", original=exc
            ) from exc
    return cls(**kwargs)
