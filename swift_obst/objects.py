"""
Object operations: list, download, create, copy, delete, get, update,
bulk delete and temp URLs.

Each function performs exactly one request (plus, for temp URLs, the metadata
lookups needed to find the signing key) and returns typed results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import IO, Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union
from urllib.parse import quote

import httpx

from . import accounts
from .client import ServiceClient
from .exceptions import ConditionalRequestFailed, DecodingError, PrerequisiteMissing
from .headers import (
    decode_headers,
    decode_metadata,
    encode_headers,
    encode_metadata,
    encode_query,
    encode_removals,
    header,
    query,
    to_utc,
)
from .pagination import MarkerPage, Pager
from .tempurl import TempURLOpts, build_temp_url
from .transfer import encode_content, iter_chunks

logger = logging.getLogger(__name__)

OBJECT_META_PREFIX = "X-Object-Meta-"


def _object_url(client: ServiceClient, container: str, name: str) -> str:
    return client.service_url(quote(container, safe=""), quote(name, safe="/"))


def _container_url(client: ServiceClient, container: str) -> str:
    return client.service_url(quote(container, safe=""))


# ----------------------------------------------------------------------
# Listing
# ----------------------------------------------------------------------


@dataclass
class ListOpts:
    """
    Query options for :func:`list_objects`.

    ``full`` asks for JSON details (:func:`extract_info`); otherwise the
    listing is the plain list of names.
    """

    full: bool = False
    limit: int = query("limit", default=0)
    marker: str = query("marker", default="")
    end_marker: str = query("end_marker", default="")
    prefix: str = query("prefix", default="")
    delimiter: str = query("delimiter", default="")
    path: str = query("path", default="")

    def to_query(self) -> Dict[str, str]:
        params = encode_query(self)
        if self.full:
            params["format"] = "json"
        return params


@dataclass(frozen=True)
class ObjectInfo:
    """A single entry of a detailed container listing."""

    name: str = ""
    bytes: int = 0
    content_type: str = ""
    hash: str = ""
    last_modified: Optional[datetime] = None
    subdir: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ObjectInfo":
        if not isinstance(data, dict):
            raise DecodingError(f"Expected an object entry, got {data!r}")
        last_modified = data.get("last_modified")
        try:
            return cls(
                name=data.get("name", ""),
                bytes=int(data.get("bytes", 0)),
                content_type=data.get("content_type", ""),
                hash=data.get("hash", ""),
                last_modified=(
                    to_utc(datetime.fromisoformat(last_modified)) if last_modified else None
                ),
                subdir=data.get("subdir", ""),
            )
        except (TypeError, ValueError) as exc:
            raise DecodingError(f"Malformed object entry: {data!r}", original=exc) from exc


class ObjectPage(MarkerPage):
    """One page of a container listing, JSON or plain text."""

    @property
    def is_json(self) -> bool:
        return self.headers.get("Content-Type", "").startswith("application/json")

    def _entries(self) -> List[Any]:
        if self.status_code == 204 or not self.body:
            return []
        if self.is_json:
            data = self.json()
            if not isinstance(data, list):
                raise DecodingError(f"Listing at {self.url} is not a JSON array")
            if not all(isinstance(entry, dict) for entry in data):
                raise DecodingError(f"Listing at {self.url} holds non-object entries")
            return data
        try:
            text = self.body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodingError(f"Listing at {self.url} is not valid UTF-8", original=exc) from exc
        return [line for line in text.split("\n") if line]

    def is_empty(self) -> bool:
        return not self._entries()

    def last_marker(self) -> str:
        names = extract_names(self)
        return names[-1] if names else ""


def extract_info(page: ObjectPage) -> List[ObjectInfo]:
    """
    Raises:
        DecodingError: If the page was not requested with ``full=True``.
    """
    if page.status_code != 204 and page.body and not page.is_json:
        raise DecodingError("Object details require a listing made with full=True")
    return [ObjectInfo.from_dict(entry) for entry in page._entries()]


def extract_names(page: ObjectPage) -> List[str]:
    if page.is_json:
        return [entry.get("name") or entry.get("subdir", "") for entry in page._entries()]
    return page._entries()


def list_objects(
    client: ServiceClient,
    container: str,
    opts: Optional[ListOpts] = None,
) -> Pager[ObjectPage]:
    """
    List the objects of ``container``.

    Nothing is fetched until the returned :class:`Pager` is iterated.
    """
    opts = opts or ListOpts()
    url = httpx.URL(_container_url(client, container), params=opts.to_query())
    return Pager(client, str(url), ObjectPage, ok_codes=(200, 204))


# ----------------------------------------------------------------------
# Download
# ----------------------------------------------------------------------


@dataclass
class DownloadOpts:
    """
    Conditions and query parameters for :func:`download`.

    Set only one of ``if_modified_since`` / ``if_unmodified_since``.
    """

    if_match: str = header("If-Match", default="")
    if_modified_since: Optional[datetime] = header("If-Modified-Since", "http-date", None)
    if_none_match: str = header("If-None-Match", default="")
    if_unmodified_since: Optional[datetime] = header("If-Unmodified-Since", "http-date", None)
    newest: bool = header("X-Newest", default=False)
    range: str = header("Range", default="")
    expires: str = query("expires", default="")
    multipart_manifest: str = query("multipart-manifest", default="")
    signature: str = query("signature", default="")


@dataclass(frozen=True)
class DownloadHeader:
    accept_ranges: str = header("Accept-Ranges", default="")
    content_disposition: str = header("Content-Disposition", default="")
    content_encoding: str = header("Content-Encoding", default="")
    content_length: int = header("Content-Length", "int", 0)
    content_type: str = header("Content-Type", default="")
    date: Optional[datetime] = header("Date", "http-date", None)
    delete_at: Optional[datetime] = header("X-Delete-At", "unix", None)
    etag: str = header("Etag", default="")
    last_modified: Optional[datetime] = header("Last-Modified", "http-date", None)
    object_manifest: str = header("X-Object-Manifest", default="")
    static_large_object: bool = header("X-Static-Large-Object", "bool", False)
    trans_id: str = header("X-Trans-Id", default="")
    object_version_id: str = header("X-Object-Version-Id", default="")


class DownloadResult:
    """
    Headers of a download plus its still-open body.

    The caller owns the body: use the result as a context manager, call
    :meth:`extract_content`, or call :meth:`close` on every path.
    """

    def __init__(
        self,
        header: DownloadHeader,
        response: Optional[httpx.Response] = None,
        content: Optional[bytes] = None,
    ) -> None:
        self.header = header
        self._response = response
        self._content = content

    def extract(self) -> DownloadHeader:
        return self.header

    def iter_bytes(self, chunk_size: Optional[int] = None) -> Iterator[bytes]:
        if self._response is None:
            if self._content:
                yield self._content
            return
        yield from self._response.iter_bytes(chunk_size)

    def read(self) -> bytes:
        if self._response is None:
            return self._content or b""
        return self._response.read()

    def extract_content(self) -> bytes:
        """Read the whole body and release the connection."""
        try:
            return self.read()
        finally:
            self.close()

    def close(self) -> None:
        if self._response is not None:
            self._response.close()

    def __enter__(self) -> "DownloadResult":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"DownloadResult(header={self.header!r})"


def _not_modified(opts: DownloadOpts, status_code: int, head: DownloadHeader) -> bool:
    """
    Apply the conditional headers to a successful response.

    Returns True when the body must be discarded.

    Raises:
        ConditionalRequestFailed: If ``if_unmodified_since`` is violated.
    """
    if status_code == 412:
        raise ConditionalRequestFailed("Precondition failed", code="412")

    if opts.if_unmodified_since is not None and head.last_modified is not None:
        bound = to_utc(opts.if_unmodified_since).replace(microsecond=0)
        if head.last_modified >= bound:
            raise ConditionalRequestFailed(
                f"Object modified at {head.last_modified.isoformat()}, "
                f"not before {bound.isoformat()}",
                code="412",
            )

    if status_code == 304:
        return True

    if opts.if_modified_since is not None and head.last_modified is not None:
        bound = to_utc(opts.if_modified_since).replace(microsecond=0)
        if head.last_modified <= bound:
            return True
    return False


def download(
    client: ServiceClient,
    container: str,
    name: str,
    opts: Optional[DownloadOpts] = None,
) -> DownloadResult:
    """
    Download an object.

    A violated ``if_unmodified_since`` raises; an unsatisfied
    ``if_modified_since`` returns a result with empty content.

    Raises:
        ConditionalRequestFailed: If ``if_unmodified_since`` is violated.
        TransportError: If the request fails.
        DecodingError: If the response headers are malformed.
    """
    opts = opts or DownloadOpts()
    response = client.request(
        "GET",
        _object_url(client, container, name),
        ok_codes=(200, 206, 304, 412),
        headers=encode_headers(opts),
        params=encode_query(opts),
        stream=True,
    )
    try:
        head = decode_headers(DownloadHeader, response.headers)
        not_modified = _not_modified(opts, response.status_code, head)
    except Exception:
        response.close()
        raise

    if not_modified:
        logger.debug("%s/%s not modified, discarding body", container, name)
        response.close()
        return DownloadResult(head, content=b"")
    return DownloadResult(head, response)


# ----------------------------------------------------------------------
# Create
# ----------------------------------------------------------------------


@dataclass
class CreateOpts:
    """
    Options for :func:`create`.

    The ``ETag`` header is the MD5 of ``content`` unless ``etag`` is given
    (sent as-is) or ``no_etag`` is set (no header).
    """

    content: Any = None
    metadata: Dict[str, str] = field(default_factory=dict)
    etag: str = ""
    no_etag: bool = False
    cache_control: str = header("Cache-Control", default="")
    content_disposition: str = header("Content-Disposition", default="")
    content_encoding: str = header("Content-Encoding", default="")
    content_type: str = header("Content-Type", default="")
    copy_from: str = header("X-Copy-From", default="")
    delete_after: int = header("X-Delete-After", "int", 0)
    delete_at: Union[int, datetime, None] = header("X-Delete-At", "unix", None)
    detect_content_type: bool = header("X-Detect-Content-Type", default=False)
    object_manifest: str = header("X-Object-Manifest", default="")
    expires: str = query("expires", default="")
    multipart_manifest: str = query("multipart-manifest", default="")
    signature: str = query("signature", default="")

    def to_create_params(self) -> Tuple[IO[bytes], Dict[str, str], Dict[str, str]]:
        """Return ``(body, headers, query)`` for the PUT request."""
        headers = encode_headers(self)
        headers.update(encode_metadata(OBJECT_META_PREFIX, self.metadata))
        encoded = encode_content(self.content, etag=self.etag, no_etag=self.no_etag)
        headers.update(encoded.headers)
        return encoded.body, headers, encode_query(self)


@dataclass(frozen=True)
class CreateHeader:
    content_length: int = header("Content-Length", "int", 0)
    content_type: str = header("Content-Type", default="")
    date: Optional[datetime] = header("Date", "http-date", None)
    etag: str = header("Etag", default="")
    last_modified: Optional[datetime] = header("Last-Modified", "http-date", None)
    trans_id: str = header("X-Trans-Id", default="")
    object_version_id: str = header("X-Object-Version-Id", default="")


def create(
    client: ServiceClient,
    container: str,
    name: str,
    opts: Optional[CreateOpts] = None,
) -> CreateHeader:
    """
    Upload an object, replacing any existing one.

    The returned ETag is not compared with the local checksum.
    """
    body, headers, params = (opts or CreateOpts()).to_create_params()
    response = client.request(
        "PUT",
        _object_url(client, container, name),
        ok_codes=(201,),
        headers=headers,
        params=params,
        content=iter_chunks(body),
    )
    return decode_headers(CreateHeader, response.headers)


# ----------------------------------------------------------------------
# Copy
# ----------------------------------------------------------------------


@dataclass
class CopyOpts:
    """``destination`` is ``/<container>/<object>`` and is required."""

    destination: str = header("Destination", default="")
    metadata: Dict[str, str] = field(default_factory=dict)
    content_disposition: str = header("Content-Disposition", default="")
    content_encoding: str = header("Content-Encoding", default="")
    content_type: str = header("Content-Type", default="")
    object_version_id: str = query("version-id", default="")


@dataclass(frozen=True)
class CopyHeader:
    content_length: int = header("Content-Length", "int", 0)
    content_type: str = header("Content-Type", default="")
    copied_from: str = header("X-Copied-From", default="")
    copied_from_last_modified: Optional[datetime] = header(
        "X-Copied-From-Last-Modified", "http-date", None
    )
    date: Optional[datetime] = header("Date", "http-date", None)
    etag: str = header("Etag", default="")
    last_modified: Optional[datetime] = header("Last-Modified", "http-date", None)
    trans_id: str = header("X-Trans-Id", default="")
    object_version_id: str = header("X-Object-Version-Id", default="")


def copy(
    client: ServiceClient,
    container: str,
    name: str,
    opts: CopyOpts,
) -> CopyHeader:
    """
    Server-side copy of an object to ``opts.destination``.

    Raises:
        ValueError: If no destination is given.
    """
    if not opts.destination:
        raise ValueError("CopyOpts.destination is required")

    headers = encode_headers(opts)
    headers.update(encode_metadata(OBJECT_META_PREFIX, opts.metadata))
    response = client.request(
        "COPY",
        _object_url(client, container, name),
        ok_codes=(201,),
        headers=headers,
        params=encode_query(opts),
    )
    return decode_headers(CopyHeader, response.headers)


# ----------------------------------------------------------------------
# Delete
# ----------------------------------------------------------------------


@dataclass
class DeleteOpts:
    multipart_manifest: str = query("multipart-manifest", default="")


@dataclass(frozen=True)
class DeleteHeader:
    content_length: int = header("Content-Length", "int", 0)
    content_type: str = header("Content-Type", default="")
    date: Optional[datetime] = header("Date", "http-date", None)
    trans_id: str = header("X-Trans-Id", default="")


def delete(
    client: ServiceClient,
    container: str,
    name: str,
    opts: Optional[DeleteOpts] = None,
) -> DeleteHeader:
    response = client.request(
        "DELETE",
        _object_url(client, container, name),
        ok_codes=(202, 204),
        params=encode_query(opts or DeleteOpts()),
    )
    return decode_headers(DeleteHeader, response.headers)


@dataclass(frozen=True)
class BulkDeleteResponse:
    number_deleted: int = 0
    number_not_found: int = 0
    response_status: str = ""
    response_body: str = ""
    errors: List[List[str]] = field(default_factory=list)


def bulk_delete(client: ServiceClient, container: str, names: Sequence[str]) -> BulkDeleteResponse:
    """
    Delete many objects of ``container`` in one request.

    Per-object failures are reported in ``errors``, not raised.

    Raises:
        DecodingError: If the response is not the expected JSON document.
    """
    lines = [quote(f"{container}/{name}") for name in names]
    response = client.request(
        "POST",
        client.endpoint,
        ok_codes=(200,),
        headers={"Accept": "application/json", "Content-Type": "text/plain"},
        params={"bulk-delete": "true"},
        content="\n".join(lines).encode("utf-8"),
    )
    try:
        data = response.json()
        return BulkDeleteResponse(
            number_deleted=int(data.get("Number Deleted", 0)),
            number_not_found=int(data.get("Number Not Found", 0)),
            response_status=data.get("Response Status", ""),
            response_body=data.get("Response Body", ""),
            errors=[list(entry) for entry in data.get("Errors") or []],
        )
    except (ValueError, TypeError, AttributeError) as exc:
        raise DecodingError("Unexpected bulk delete response", original=exc) from exc


# ----------------------------------------------------------------------
# Get / update metadata
# ----------------------------------------------------------------------


@dataclass
class GetOpts:
    newest: bool = header("X-Newest", default=False)
    expires: str = query("expires", default="")
    signature: str = query("signature", default="")


@dataclass(frozen=True)
class GetHeader:
    content_disposition: str = header("Content-Disposition", default="")
    content_encoding: str = header("Content-Encoding", default="")
    content_length: int = header("Content-Length", "int", 0)
    content_type: str = header("Content-Type", default="")
    date: Optional[datetime] = header("Date", "http-date", None)
    delete_at: Optional[datetime] = header("X-Delete-At", "unix", None)
    etag: str = header("Etag", default="")
    last_modified: Optional[datetime] = header("Last-Modified", "http-date", None)
    object_manifest: str = header("X-Object-Manifest", default="")
    static_large_object: bool = header("X-Static-Large-Object", "bool", False)
    timestamp: float = header("X-Timestamp", "float", 0.0)
    trans_id: str = header("X-Trans-Id", default="")
    object_version_id: str = header("X-Object-Version-Id", default="")


@dataclass(frozen=True)
class GetResult:
    header: GetHeader
    metadata: Dict[str, str] = field(default_factory=dict)


def get(
    client: ServiceClient,
    container: str,
    name: str,
    opts: Optional[GetOpts] = None,
) -> GetResult:
    """HEAD an object and return its headers and custom metadata."""
    opts = opts or GetOpts()
    response = client.request(
        "HEAD",
        _object_url(client, container, name),
        ok_codes=(200, 204),
        headers=encode_headers(opts),
        params=encode_query(opts),
    )
    return GetResult(
        header=decode_headers(GetHeader, response.headers),
        metadata=decode_metadata(OBJECT_META_PREFIX, response.headers),
    )


@dataclass
class UpdateOpts:
    """
    Options for :func:`update`.

    Fields left as ``UNSET`` are not sent. Setting one to ``""`` (or ``0`` /
    ``False``) sends it, which clears the value on the server.
    """

    metadata: Dict[str, str] = field(default_factory=dict)
    remove_metadata: List[str] = field(default_factory=list)
    content_disposition: Optional[str] = header("Content-Disposition")
    content_encoding: Optional[str] = header("Content-Encoding")
    content_type: Optional[str] = header("Content-Type")
    delete_after: Optional[int] = header("X-Delete-After")
    delete_at: Union[int, datetime, None] = header("X-Delete-At", "unix")
    detect_content_type: Optional[bool] = header("X-Detect-Content-Type")

    def to_headers(self) -> Dict[str, str]:
        headers = encode_headers(self)
        headers.update(encode_metadata(OBJECT_META_PREFIX, self.metadata))
        headers.update(encode_removals(OBJECT_META_PREFIX, self.remove_metadata, self.metadata))
        return headers


@dataclass(frozen=True)
class UpdateHeader:
    content_length: int = header("Content-Length", "int", 0)
    content_type: str = header("Content-Type", default="")
    date: Optional[datetime] = header("Date", "http-date", None)
    trans_id: str = header("X-Trans-Id", default="")


def update(
    client: ServiceClient,
    container: str,
    name: str,
    opts: Optional[UpdateOpts] = None,
) -> UpdateHeader:
    """Replace an object's metadata (POST)."""
    response = client.request(
        "POST",
        _object_url(client, container, name),
        ok_codes=(202,),
        headers=(opts or UpdateOpts()).to_headers(),
    )
    return decode_headers(UpdateHeader, response.headers)


# ----------------------------------------------------------------------
# Temp URLs
# ----------------------------------------------------------------------


def _fetch_temp_url_key(client: ServiceClient, container: str) -> str:
    key = accounts.get_container(client, container).header.temp_url_key
    if key:
        return key
    key = accounts.get_account(client).header.temp_url_key
    if key:
        return key
    raise PrerequisiteMissing(
        "Unable to obtain the temp URL key: set X-Account-Meta-Temp-URL-Key first",
        code="TempURLKeyMissing",
    )


def create_temp_url(
    client: ServiceClient,
    container: str,
    name: str,
    opts: Optional[TempURLOpts] = None,
) -> str:
    """
    Build a signed URL giving time-limited access to one object.

    Without ``opts.temp_url_key`` the key is read from the container's, then
    the account's, metadata on every call.

    Raises:
        PrerequisiteMissing: If no temp URL key is configured.
        ValueError: If the endpoint does not contain ``opts.split``.
    """
    opts = opts or TempURLOpts()
    key = opts.temp_url_key or _fetch_temp_url_key(client, container)
    return build_temp_url(_object_url(client, container, name), opts, key)


# ----------------------------------------------------------------------
# Client
# ----------------------------------------------------------------------


class ObjectsClient(ServiceClient):
    """
    Object storage client exposing the operations above as methods.

    Example usage::

        from swift_obst import ObjectsClient, ServiceConfig, objects

        config = ServiceConfig(endpoint="https://swift.example.com/v1/AUTH_demo/", token="TOKEN")
        with ObjectsClient(config) as client:
            client.upload("photos", "cat.jpg", objects.CreateOpts(content=open("cat.jpg", "rb")))
            for name in client.list_names("photos"):
                print(name)
    """

    def upload(self, container: str, name: str, opts: Optional[CreateOpts] = None) -> CreateHeader:
        return create(self, container, name, opts)

    def download(self, container: str, name: str, opts: Optional[DownloadOpts] = None) -> DownloadResult:
        return download(self, container, name, opts)

    def list(self, container: str, opts: Optional[ListOpts] = None) -> Pager[ObjectPage]:
        return list_objects(self, container, opts)

    def list_names(self, container: str, opts: Optional[ListOpts] = None) -> List[str]:
        """Convenience method that walks every page and returns only names."""
        return [name for page in list_objects(self, container, opts) for name in extract_names(page)]

    def copy(self, container: str, name: str, opts: CopyOpts) -> CopyHeader:
        return copy(self, container, name, opts)

    def delete(self, container: str, name: str, opts: Optional[DeleteOpts] = None) -> DeleteHeader:
        return delete(self, container, name, opts)

    def bulk_delete(self, container: str, names: Sequence[str]) -> BulkDeleteResponse:
        return bulk_delete(self, container, names)

    def get(self, container: str, name: str, opts: Optional[GetOpts] = None) -> GetResult:
        return get(self, container, name, opts)

    def update(self, container: str, name: str, opts: Optional[UpdateOpts] = None) -> UpdateHeader:
        return update(self, container, name, opts)

    def get_temp_url(self, container: str, name: str, opts: Optional[TempURLOpts] = None) -> str:
        return create_temp_url(self, container, name, opts)

    def __repr__(self) -> str:
        return f"ObjectsClient(endpoint={self.endpoint!r})"
