"""
Identity v3 project limits (overrides of registered limits).

The client passed to these functions must point at the identity endpoint,
e.g. ``https://keystone.example.com/v3/``.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import httpx

from .client import ServiceClient
from .exceptions import DecodingError
from .headers import UNSET, encode_query, query
from .pagination import LinkedPage, Pager

ROOT_PATH = "limits"


def _root_url(client: ServiceClient) -> str:
    return client.service_url(ROOT_PATH)


def _resource_url(client: ServiceClient, limit_id: str) -> str:
    return client.service_url(ROOT_PATH, quote(limit_id, safe=""))


@dataclass(frozen=True)
class Limit:
    """A limit overriding a registered limit for one project or domain."""

    id: str = ""
    region_id: str = ""
    project_id: str = ""
    domain_id: str = ""
    service_id: str = ""
    description: str = ""
    resource_name: str = ""
    resource_limit: int = 0
    links: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "Limit":
        if not isinstance(data, dict):
            raise DecodingError(f"Expected a limit object, got {data!r}")
        try:
            return cls(
                id=data.get("id") or "",
                region_id=data.get("region_id") or "",
                project_id=data.get("project_id") or "",
                domain_id=data.get("domain_id") or "",
                service_id=data.get("service_id") or "",
                description=data.get("description") or "",
                resource_name=data.get("resource_name") or "",
                resource_limit=int(data.get("resource_limit") or 0),
                links=dict(data.get("links") or {}),
            )
        except (TypeError, ValueError) as exc:
            raise DecodingError(f"Malformed limit: {data!r}", original=exc) from exc


def _decode(response: httpx.Response, key: str) -> Any:
    try:
        data = response.json()
    except ValueError as exc:
        raise DecodingError("Identity response is not valid JSON", original=exc) from exc
    if not isinstance(data, dict) or key not in data:
        raise DecodingError(f"Identity response has no {key!r} key")
    return data[key]


# ----------------------------------------------------------------------
# List
# ----------------------------------------------------------------------


@dataclass
class ListOpts:
    service_id: str = query("service_id", default="")
    region_id: str = query("region_id", default="")
    resource_name: str = query("resource_name", default="")
    project_id: str = query("project_id", default="")
    domain_id: str = query("domain_id", default="")


class LimitPage(LinkedPage):
    def is_empty(self) -> bool:
        return not extract_limits(self)


def extract_limits(page: LimitPage) -> List[Limit]:
    data = page.json_object()
    return [Limit.from_dict(item) for item in data.get("limits") or []]


def list_limits(client: ServiceClient, opts: Optional[ListOpts] = None) -> Pager[LimitPage]:
    """Page through limits, following ``links.next``."""
    url = httpx.URL(_root_url(client), params=encode_query(opts or ListOpts()))
    return Pager(client, str(url), LimitPage, ok_codes=(200,))


# ----------------------------------------------------------------------
# Create / get / update / delete
# ----------------------------------------------------------------------


@dataclass
class CreateOpts:
    service_id: str
    resource_name: str
    resource_limit: int
    region_id: str = ""
    project_id: str = ""
    domain_id: str = ""
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in dataclasses.asdict(self).items() if value != ""}


def create_limits(client: ServiceClient, opts: Sequence[CreateOpts]) -> List[Limit]:
    """Create one or more limits in a single request."""
    response = client.request(
        "POST",
        _root_url(client),
        ok_codes=(201,),
        json={"limits": [item.to_dict() for item in opts]},
    )
    return [Limit.from_dict(item) for item in _decode(response, "limits") or []]


def get_limit(client: ServiceClient, limit_id: str) -> Limit:
    response = client.request("GET", _resource_url(client, limit_id), ok_codes=(200,))
    return Limit.from_dict(_decode(response, "limit"))


@dataclass
class UpdateOpts:
    """Fields left as ``UNSET`` are not changed."""

    description: Optional[str] = UNSET
    resource_limit: Optional[int] = UNSET

    def to_dict(self) -> Dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if getattr(self, f.name) is not UNSET
        }


def update_limit(client: ServiceClient, limit_id: str, opts: UpdateOpts) -> Limit:
    response = client.request(
        "PATCH",
        _resource_url(client, limit_id),
        ok_codes=(200,),
        json={"limit": opts.to_dict()},
    )
    return Limit.from_dict(_decode(response, "limit"))


def delete_limit(client: ServiceClient, limit_id: str) -> None:
    client.request("DELETE", _resource_url(client, limit_id), ok_codes=(204,))


class LimitsClient(ServiceClient):
    """Identity client exposing the limit operations as methods."""

    def list(self, opts: Optional[ListOpts] = None) -> Pager[LimitPage]:
        return list_limits(self, opts)

    def list_all(self, opts: Optional[ListOpts] = None) -> List[Limit]:
        return [limit for page in list_limits(self, opts) for limit in extract_limits(page)]

    def get(self, limit_id: str) -> Limit:
        return get_limit(self, limit_id)

    def create(self, opts: Sequence[CreateOpts]) -> List[Limit]:
        return create_limits(self, opts)

    def update(self, limit_id: str, opts: UpdateOpts) -> Limit:
        return update_limit(self, limit_id, opts)

    def delete(self, limit_id: str) -> None:
        delete_limit(self, limit_id)

    def __repr__(self) -> str:
        return f"LimitsClient(endpoint={self.endpoint!r})"
