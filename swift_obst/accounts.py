"""
Read-only access to account and container metadata.

Only the lookups other operations depend on live here; most notably the
temp URL key used by :func:`swift_obst.objects.create_temp_url`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional
from urllib.parse import quote

from .client import ServiceClient
from .headers import decode_headers, decode_metadata, header

ACCOUNT_META_PREFIX = "X-Account-Meta-"
CONTAINER_META_PREFIX = "X-Container-Meta-"


@dataclass(frozen=True)
class AccountHeader:
    bytes_used: int = header("X-Account-Bytes-Used", "int", 0)
    container_count: int = header("X-Account-Container-Count", "int", 0)
    object_count: int = header("X-Account-Object-Count", "int", 0)
    quota_bytes: int = header("X-Account-Meta-Quota-Bytes", "int", 0)
    content_type: str = header("Content-Type", default="")
    date: Optional[datetime] = header("Date", "http-date", None)
    temp_url_key: str = header("X-Account-Meta-Temp-Url-Key", default="")
    temp_url_key_2: str = header("X-Account-Meta-Temp-Url-Key-2", default="")
    trans_id: str = header("X-Trans-Id", default="")


@dataclass(frozen=True)
class ContainerHeader:
    bytes_used: int = header("X-Container-Bytes-Used", "int", 0)
    object_count: int = header("X-Container-Object-Count", "int", 0)
    read: str = header("X-Container-Read", default="")
    write: str = header("X-Container-Write", default="")
    storage_policy: str = header("X-Storage-Policy", default="")
    versions_location: str = header("X-Versions-Location", default="")
    content_type: str = header("Content-Type", default="")
    date: Optional[datetime] = header("Date", "http-date", None)
    temp_url_key: str = header("X-Container-Meta-Temp-Url-Key", default="")
    temp_url_key_2: str = header("X-Container-Meta-Temp-Url-Key-2", default="")
    trans_id: str = header("X-Trans-Id", default="")


@dataclass(frozen=True)
class AccountResult:
    header: AccountHeader
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ContainerResult:
    header: ContainerHeader
    metadata: Dict[str, str] = field(default_factory=dict)


def get_account(client: ServiceClient) -> AccountResult:
    """HEAD the account and return its headers and custom metadata."""
    response = client.request("HEAD", client.endpoint, ok_codes=(200, 204))
    return AccountResult(
        header=decode_headers(AccountHeader, response.headers),
        metadata=decode_metadata(ACCOUNT_META_PREFIX, response.headers),
    )


def get_container(client: ServiceClient, container: str) -> ContainerResult:
    """HEAD ``container`` and return its headers and custom metadata."""
    url = client.service_url(quote(container, safe=""))
    response = client.request("HEAD", url, ok_codes=(200, 204))
    return ContainerResult(
        header=decode_headers(ContainerHeader, response.headers),
        metadata=decode_metadata(CONTAINER_META_PREFIX, response.headers),
    )
