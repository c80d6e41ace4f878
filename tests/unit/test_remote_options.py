"""
Tests for the remote option source and search sessions.

HTTP is served by httpx.MockTransport; no network access is needed.
"""

import logging

import httpx
import pytest

from metafields.core.ir import Option
from metafields.core.normalizer import normalize
from metafields.runtime.remote_options import OptionResult, RemoteOptionSource, SearchSession

ITEMS = [{"id": 1, "name": "Apple"}, {"id": 2, "name": "Apricot"}, {"id": 3, "name": "Banana"}]


def catalog_handler(request: httpx.Request) -> httpx.Response:
    term = request.url.params.get("q")
    include = request.url.params.get("include")
    if term is not None:
        items = [item for item in ITEMS if item["name"].lower().startswith(term.lower())]
        return httpx.Response(200, json={"items": items})
    if include is not None:
        wanted = set(include.split(","))
        return httpx.Response(200, json=[item for item in ITEMS if str(item["id"]) in wanted])
    return httpx.Response(400)


def failing_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503, text="unavailable")


def make_source(handler, **kwargs) -> RemoteOptionSource:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return RemoteOptionSource("https://catalog.test/options", client=client, **kwargs)


# =============================================================================
# Search
# =============================================================================


class TestSearch:
    """Tests for RemoteOptionSource.search."""

    def test_search_returns_matching_options(self) -> None:
        result = make_source(catalog_handler).search("ap")
        assert result.ok
        assert result.options == [Option(1, "Apple"), Option(2, "Apricot")]

    def test_results_become_known_options(self) -> None:
        source = make_source(catalog_handler)
        source.search("ban")
        assert source.resolve() == [Option(3, "Banana")]
        assert source.match("3") == (True, 3)

    def test_short_term_skips_request(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return catalog_handler(request)

        result = make_source(handler, min_chars=3).search("ap")
        assert result.options == []
        assert result.notice == "Type at least 3 characters to search"
        assert calls == []

    def test_failure_keeps_known_options_and_sets_notice(self, caplog: pytest.LogCaptureFixture) -> None:
        source = make_source(failing_handler)
        source._remember([Option(9, "Cached")])
        with caplog.at_level(logging.WARNING, logger="metafields.runtime.remote_options"):
            result = source.search("any")
        assert result.ok is False
        assert result.notice == "Search failed, please try again"
        assert result.options == [Option(9, "Cached")]
        assert any("search failed" in record.getMessage() for record in caplog.records)

    def test_invalid_json_is_a_failure(self) -> None:
        source = make_source(lambda request: httpx.Response(200, text="<html>"))
        assert source.search("x").notice == "Search failed, please try again"

    def test_malformed_items_skipped(self) -> None:
        source = make_source(
            lambda request: httpx.Response(200, json={"items": [{"name": "no id"}, "junk", {"id": "k"}]})
        )
        assert source.search("x").options == [Option("k", "k")]

    def test_custom_keys(self) -> None:
        source = make_source(
            lambda request: httpx.Response(200, json={"results": [{"slug": "red", "title": "Red"}]}),
            items_key="results",
            value_key="slug",
            label_key="title",
        )
        assert source.search("r").options == [Option("red", "Red")]


# =============================================================================
# Hydration
# =============================================================================


class TestHydrate:
    """Tests for RemoteOptionSource.hydrate."""

    def test_hydrates_labels_in_requested_order(self) -> None:
        result = make_source(catalog_handler).hydrate([3, 1])
        assert result.options == [Option(3, "Banana"), Option(1, "Apple")]

    def test_unknown_key_uses_raw_key(self) -> None:
        result = make_source(catalog_handler).hydrate(["42"])
        assert result.options == [Option("42", "42")]

    def test_empty_keys_skip_request(self) -> None:
        assert make_source(failing_handler).hydrate([None, ""]) == OptionResult([])

    def test_failure_falls_back_to_known_labels(self) -> None:
        source = make_source(failing_handler)
        source._remember([Option(1, "Apple")])
        result = source.hydrate([1, 7])
        assert result.notice == "Could not load labels for the selected items"
        assert result.options == [Option(1, "Apple"), Option("7", "7")]


# =============================================================================
# Search Sessions
# =============================================================================


class TestSearchSession:
    """Out-of-order responses are discarded."""

    def test_latest_response_wins(self) -> None:
        session = SearchSession()
        first = session.begin("ap")
        second = session.begin("apr")

        assert session.complete(second, OptionResult([Option(2, "Apricot")])) is True
        assert session.complete(first, OptionResult([Option(1, "Apple")])) is False
        assert session.result.options == [Option(2, "Apricot")]
        assert session.term == "apr"

    def test_run(self) -> None:
        session = SearchSession()
        assert session.run(make_source(catalog_handler), "b") is True
        assert session.result.options == [Option(3, "Banana")]


def test_source_attaches_to_field_options() -> None:
    source = make_source(catalog_handler)
    (node,) = normalize({"fruit": {"type": "ajax", "options": source}})
    assert node.options is source
    source.search("a")
    assert [option.label for option in node.resolve_options()] == ["Apple", "Apricot"]
