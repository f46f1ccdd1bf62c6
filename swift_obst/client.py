"""
swift-obst client - Authenticated HTTP service client shared by every operation.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

import httpx

from .exceptions import TransportError

logger = logging.getLogger(__name__)

AUTH_HEADER = "X-Auth-Token"


@dataclass
class ServiceConfig:
    """Configuration for a :class:`ServiceClient`."""

    endpoint: str
    token: str = ""
    timeout: Optional[float] = None  # None leaves the call unbounded
    verify: bool = True
    extra_headers: dict = field(default_factory=dict)

    @classmethod
    def from_env(cls, prefix: str = "OS_") -> "ServiceConfig":
        """
        Build a config from environment variables.

        Reads ``<prefix>STORAGE_URL`` (falling back to ``<prefix>ENDPOINT``),
        ``<prefix>AUTH_TOKEN`` and ``<prefix>TIMEOUT``.

        Raises:
            ValueError: If no endpoint variable is set.
        """
        endpoint = os.getenv(f"{prefix}STORAGE_URL") or os.getenv(f"{prefix}ENDPOINT")
        if not endpoint:
            raise ValueError(f"Neither {prefix}STORAGE_URL nor {prefix}ENDPOINT is set")

        raw_timeout = os.getenv(f"{prefix}TIMEOUT", "").strip()
        return cls(
            endpoint=endpoint,
            token=os.getenv(f"{prefix}AUTH_TOKEN", ""),
            timeout=float(raw_timeout) if raw_timeout else None,
        )


class ServiceClient:
    """
    Thin authenticated wrapper around :class:`httpx.Client` for one service
    endpoint (object storage or identity).

    The client holds no per-call state and may be shared between threads.

    Example usage::

        from swift_obst import ServiceClient, ServiceConfig, objects

        config = ServiceConfig(
            endpoint="https://swift.example.com/v1/AUTH_demo/",
            token="YOUR_TOKEN",
        )
        with ServiceClient(config) as client:
            objects.create(client, "photos", "cat.jpg",
                           objects.CreateOpts(content=open("cat.jpg", "rb")))
            url = objects.create_temp_url(client, "photos", "cat.jpg",
                                          objects.TempURLOpts(ttl=3600))
    """

    def __init__(
        self,
        config: ServiceConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.config = config
        self._http = self._build_client(transport)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_client(self, transport: Optional[httpx.BaseTransport]) -> httpx.Client:
        headers = dict(self.config.extra_headers)
        if self.config.token:
            headers[AUTH_HEADER] = self.config.token
        return httpx.Client(
            headers=headers,
            timeout=self.config.timeout,
            verify=self.config.verify,
            transport=transport,
        )

    @staticmethod
    def _check_status(response: httpx.Response, ok_codes: Iterable[int]) -> None:
        if response.status_code in ok_codes:
            return
        if not response.is_closed:
            response.read()
            response.close()
        logger.warning(
            "Unexpected status %s for %s %s",
            response.status_code,
            response.request.method,
            response.request.url,
        )
        raise TransportError(
            f"Expected HTTP response code {sorted(ok_codes)} when accessing "
            f"[{response.request.method} {response.request.url}], "
            f"but got {response.status_code} instead",
            status_code=response.status_code,
            body=response.text,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def endpoint(self) -> str:
        """Base endpoint, always ending with a slash."""
        endpoint = self.config.endpoint
        return endpoint if endpoint.endswith("/") else endpoint + "/"

    def service_url(self, *parts: str) -> str:
        """Join already-escaped path ``parts`` onto the endpoint."""
        return self.endpoint + "/".join(parts)

    def request(
        self,
        method: str,
        url: str,
        ok_codes: Iterable[int] = (200,),
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        content: Any = None,
        json: Any = None,
        stream: bool = False,
    ) -> httpx.Response:
        """
        Perform one HTTP call.

        Args:
            method: HTTP verb.
            url: Absolute URL, usually built with :meth:`service_url`.
            ok_codes: Status codes accepted as success.
            headers: Extra request headers.
            params: Query parameters merged into ``url``.
            content: Request body (bytes or a readable stream).
            json: JSON-serialisable request body.
            stream: Leave the response body unread. The caller then owns the
                    response and must close it.

        Returns:
            The :class:`httpx.Response`.

        Raises:
            TransportError: On network failure or an unexpected status.
        """
        ok_codes = tuple(ok_codes)
        request = self._http.build_request(
            method,
            url,
            headers=headers,
            params=params or None,
            content=content,
            json=json,
        )
        logger.debug("%s %s", method, request.url)

        try:
            response = self._http.send(request, stream=stream)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, request.url, exc)
            raise TransportError(
                f"{method} {request.url} failed: {exc}", original=exc
            ) from exc

        self._check_status(response, ok_codes)
        return response

    def close(self) -> None:
        self._http.close()

    # ------------------------------------------------------------------
    # Context manager support
    # ------------------------------------------------------------------

    def __enter__(self) -> "ServiceClient":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ServiceClient(endpoint={self.endpoint!r})"
