"""
Temporary URL signing.

A temp URL grants access to one object until an expiry time without any other
authentication. The signature is an HMAC-SHA1 over::

    <METHOD>\\n<expires>\\n<path>

keyed with the account (or container) ``Temp-Url-Key``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import unquote

from .headers import to_unix

logger = logging.getLogger(__name__)

DEFAULT_SPLIT = "/v1/"


@dataclass
class TempURLOpts:
    """Options for :func:`swift_obst.objects.create_temp_url`."""

    method: str = "GET"
    ttl: int = 0  # seconds added to ``timestamp``
    timestamp: Optional[datetime] = None  # defaults to now, UTC
    split: str = DEFAULT_SPLIT  # marks where the signed path starts
    temp_url_key: str = ""  # skips the metadata lookup when set

    def expires(self) -> int:
        start = self.timestamp or datetime.now(timezone.utc)
        return to_unix(start) + self.ttl


def sign(method: str, expires: int, path: str, key: str) -> str:
    """Return the lowercase hex HMAC-SHA1 signature for one temp URL."""
    body = f"{method.upper()}\n{expires}\n{path}"
    return hmac.new(key.encode("utf-8"), body.encode("utf-8"), hashlib.sha1).hexdigest()


def build_temp_url(object_url: str, opts: TempURLOpts, key: str) -> str:
    """
    Sign ``object_url`` and append the temp URL query parameters.

    ``object_url`` must contain ``opts.split``; everything from the split on
    (URL-decoded) is the signed path.

    Raises:
        ValueError: If ``opts.split`` does not occur in ``object_url``.
    """
    base_url, sep, object_path = object_url.partition(opts.split)
    if not sep:
        raise ValueError(f"{opts.split!r} not found in {object_url!r}")

    expires = opts.expires()
    signed_path = unquote(opts.split + object_path)
    signature = sign(opts.method, expires, signed_path, key)
    logger.debug("Created temp URL for %s %s expiring at %d", opts.method, signed_path, expires)

    return (
        f"{base_url}{opts.split}{object_path}"
        f"?temp_url_sig={signature}&temp_url_expires={expires}"
    )
