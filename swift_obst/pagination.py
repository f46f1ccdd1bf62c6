"""
Lazy page iteration for list endpoints.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, Type, TypeVar

import httpx

from .client import ServiceClient
from .exceptions import DecodingError

logger = logging.getLogger(__name__)

P = TypeVar("P", bound="Page")


class Page(ABC):
    """One fetched page of a listing."""

    def __init__(self, url: str, response: httpx.Response) -> None:
        self.url = url
        self.status_code = response.status_code
        self.headers = response.headers
        self.body = response.content

    def json(self) -> Any:
        """
        Decode the body as JSON.

        Raises:
            DecodingError: If the body is not valid JSON.
        """
        try:
            return json.loads(self.body)
        except ValueError as exc:
            raise DecodingError(f"Page at {self.url} is not valid JSON", original=exc) from exc

    def json_object(self) -> Dict[str, Any]:
        data = self.json()
        if not isinstance(data, dict):
            raise DecodingError(f"Page at {self.url} is not a JSON object")
        return data

    @abstractmethod
    def is_empty(self) -> bool:
        ...

    @abstractmethod
    def next_page_url(self) -> str:
        """URL of the following page, or ``""`` when this is the last one."""


class LinkedPage(Page):
    """Page whose JSON body carries ``{"links": {"next": ...}}``."""

    def next_page_url(self) -> str:
        links = self.json_object().get("links") or {}
        if not isinstance(links, dict):
            raise DecodingError(f"Page at {self.url} has malformed links")
        return links.get("next") or ""


class MarkerPage(Page):
    """Page continued by passing the last item's name as ``marker``."""

    @abstractmethod
    def last_marker(self) -> str:
        ...

    def next_page_url(self) -> str:
        marker = self.last_marker()
        if not marker:
            return ""
        return str(httpx.URL(self.url).copy_set_param("marker", marker))


class Pager(Generic[P]):
    """
    Lazy sequence of non-empty pages.

    Pages are fetched one request at a time while iterating. Iteration stops
    at the first empty page or when a page has no next URL. Iterating again
    starts over from the first page.
    """

    def __init__(
        self,
        client: ServiceClient,
        initial_url: str,
        page_cls: Type[P],
        headers: Optional[Dict[str, str]] = None,
        ok_codes=(200, 204),
    ) -> None:
        self.client = client
        self.initial_url = initial_url
        self.page_cls = page_cls
        self.headers = headers or {}
        self.ok_codes = ok_codes

    def _fetch(self, url: str) -> P:
        response = self.client.request("GET", url, ok_codes=self.ok_codes, headers=self.headers)
        return self.page_cls(url, response)

    def __iter__(self) -> Iterator[P]:
        url = self.initial_url
        while url:
            page = self._fetch(url)
            if page.is_empty():
                return
            yield page
            url = page.next_page_url()

    def each_page(self, handler: Callable[[P], bool]) -> None:
        """Call ``handler`` per page until it returns a falsy value."""
        for page in self:
            if not handler(page):
                logger.debug("Page handler stopped iteration at %s", page.url)
                return

    def all_pages(self) -> List[P]:
        return list(self)
