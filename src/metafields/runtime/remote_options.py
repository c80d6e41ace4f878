"""
Remote option source for search-backed choice fields.

Fetches options from an HTTP endpoint (search by term, hydrate labels for
stored keys). Transport and decoding failures never propagate: the caller
gets the last known options plus a notice to show next to the widget.

SearchSession guards against out-of-order responses: only the response to
the most recently started search is applied.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from metafields.core.errors import ErrorContext, RemoteOptionError
from metafields.core.ir import Option, OptionProvider

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


@dataclass
class OptionResult:
    """Outcome of a search or hydration call."""

    options: list[Option]
    notice: str = ""

    @property
    def ok(self) -> bool:
        return not self.notice


class RemoteOptionSource(OptionProvider):
    """
    Options served by a remote search endpoint.

    The endpoint is queried with ``?{query_param}=term`` for searches and
    ``?{include_param}=a,b`` for hydration. It answers with either a list of
    items or an object holding the list under ``items_key``.
    """

    def __init__(
        self,
        url: str,
        *,
        query_param: str = "q",
        include_param: str = "include",
        items_key: str = "items",
        value_key: str = "id",
        label_key: str = "name",
        min_chars: int = 0,
        headers: Mapping[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.Client | None = None,
    ):
        self.url = url
        self.query_param = query_param
        self.include_param = include_param
        self.items_key = items_key
        self.value_key = value_key
        self.label_key = label_key
        self.min_chars = min_chars
        self.headers = dict(headers or {})
        self.timeout = timeout
        self._client = client
        self._known: dict[str, Option] = {}

    def __repr__(self) -> str:
        return f"RemoteOptionSource({self.url!r})"

    def resolve(self) -> list[Option]:
        """Options seen so far through searches and hydration."""
        return list(self._known.values())

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _fetch(self, params: dict[str, str]) -> list[Option]:
        try:
            if self._client is not None:
                response = self._client.get(self.url, params=params, headers=self.headers)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.get(self.url, params=params, headers=self.headers)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RemoteOptionError(str(e), ErrorContext(field_path=self.url)) from e

        if isinstance(data, dict):
            items = data.get(self.items_key, [])
        elif isinstance(data, list):
            items = data
        else:
            items = []

        options: list[Option] = []
        for item in items:
            if not isinstance(item, Mapping) or self.value_key not in item:
                continue
            value = item[self.value_key]
            options.append(Option(value, str(item.get(self.label_key, value))))
        return options

    def _remember(self, options: Iterable[Option]) -> None:
        for option in options:
            self._known[str(option.value)] = option

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def search(self, term: str) -> OptionResult:
        """Search the endpoint; short terms return nothing without a request."""
        term = term.strip()
        if len(term) < self.min_chars:
            return OptionResult([], notice=f"Type at least {self.min_chars} characters to search")
        try:
            options = self._fetch({self.query_param: term})
        except RemoteOptionError as e:
            logger.warning("Remote option search failed for %r: %s", term, e)
            return OptionResult(self.resolve(), notice="Search failed, please try again")
        self._remember(options)
        return OptionResult(options)

    def hydrate(self, keys: Iterable[Any]) -> OptionResult:
        """
        Fetch labels for stored keys.

        On failure the previously known labels are returned, with the raw key
        standing in for any label never seen.
        """
        wanted = [str(key) for key in keys if key not in (None, "")]
        if not wanted:
            return OptionResult([])
        try:
            self._remember(self._fetch({self.include_param: ",".join(wanted)}))
        except RemoteOptionError as e:
            logger.warning("Remote option hydration failed for %s: %s", wanted, e)
            fallback = [self._known.get(key, Option(key, key)) for key in wanted]
            return OptionResult(fallback, notice="Could not load labels for the selected items")
        return OptionResult([self._known.get(key, Option(key, key)) for key in wanted])


@dataclass
class SearchSession:
    """
    Generation-token guard for one search widget.

    Each search takes a token from ``begin``; ``complete`` applies a result
    only when its token is still the latest, so a slow response to an older
    term can never overwrite the results of a newer one.
    """

    generation: int = 0
    term: str = ""
    result: OptionResult = field(default_factory=lambda: OptionResult([]))

    def begin(self, term: str) -> int:
        self.generation += 1
        self.term = term
        return self.generation

    def complete(self, token: int, result: OptionResult) -> bool:
        """Apply a result; returns False when it was superseded."""
        if token != self.generation:
            logger.debug("Discarding superseded search response (token %d < %d)", token, self.generation)
            return False
        self.result = result
        return True

    def run(self, source: RemoteOptionSource, term: str) -> bool:
        token = self.begin(term)
        return self.complete(token, source.search(term))
