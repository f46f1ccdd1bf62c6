"""
Content transfer encoding for uploads.

Turns a caller's readable source into a request body plus the ``ETag`` and
``Content-Length`` headers. Sources that can be rewound are hashed and
rewound in place; anything else is buffered in memory while it is hashed.
"""

from __future__ import annotations

import functools
import hashlib
import io
import logging
from dataclasses import dataclass, field
from typing import IO, Dict, Iterator, Optional, Union

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

Content = Union[bytes, bytearray, str, IO[bytes]]


@dataclass
class EncodedContent:
    """Body ready for transport plus the headers describing it."""

    body: IO[bytes]
    headers: Dict[str, str] = field(default_factory=dict)
    content_length: Optional[int] = None


def iter_chunks(source: IO[bytes], chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield ``source`` in chunks; only ``read()`` is required of it."""
    return iter(functools.partial(source.read, chunk_size), b"")


def is_seekable(source) -> bool:
    """True when ``source`` reports that it can be rewound."""
    check = getattr(source, "seekable", None)
    if not callable(check):
        return False
    try:
        return bool(check())
    except (OSError, ValueError):
        return False


class ReplayInPlace:
    """Hash from the current position, then seek back and send the source."""

    def encode(self, source: IO[bytes]) -> EncodedContent:
        start = source.tell()
        digest = hashlib.md5()
        size = 0
        while True:
            chunk = source.read(CHUNK_SIZE)
            if not chunk:
                break
            digest.update(chunk)
            size += len(chunk)
        source.seek(start)

        headers = {"Content-Length": str(size), "ETag": digest.hexdigest()}
        return EncodedContent(body=source, headers=headers, content_length=size)


class BufferThenSend:
    """Read the whole source into memory while hashing it."""

    def encode(self, source: IO[bytes]) -> EncodedContent:
        digest = hashlib.md5()
        buffer = io.BytesIO()
        while True:
            chunk = source.read(CHUNK_SIZE)
            if not chunk:
                break
            digest.update(chunk)
            buffer.write(chunk)
        size = buffer.tell()
        buffer.seek(0)
        logger.debug("Buffered %d bytes from a non-seekable source", size)

        headers = {"Content-Length": str(size), "ETag": digest.hexdigest()}
        return EncodedContent(body=buffer, headers=headers, content_length=size)


def select_strategy(source) -> Union[ReplayInPlace, BufferThenSend]:
    return ReplayInPlace() if is_seekable(source) else BufferThenSend()


def _as_stream(content: Content) -> IO[bytes]:
    if isinstance(content, str):
        return io.BytesIO(content.encode("utf-8"))
    if isinstance(content, (bytes, bytearray)):
        return io.BytesIO(bytes(content))
    return content


def encode_content(
    content: Optional[Content],
    etag: str = "",
    no_etag: bool = False,
) -> EncodedContent:
    """
    Prepare ``content`` for upload.

    Args:
        content: Bytes, text (sent as UTF-8) or a readable binary stream. The
                 stream stays owned by the caller.
        etag: Precomputed MD5 checksum. Sent verbatim, never checked.
        no_etag: Send no ``ETag`` header at all.

    Returns:
        :class:`EncodedContent` whose ``body`` yields exactly the bytes the
        checksum was computed over.
    """
    source = _as_stream(content if content is not None else b"")

    if no_etag or etag:
        encoded = EncodedContent(body=source)
        if etag and not no_etag:
            encoded.headers["ETag"] = etag
        if is_seekable(source):
            start = source.tell()
            end = source.seek(0, io.SEEK_END)
            source.seek(start)
            encoded.content_length = end - start
            encoded.headers["Content-Length"] = str(encoded.content_length)
        return encoded

    return select_strategy(source).encode(source)
