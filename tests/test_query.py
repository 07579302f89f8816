"""
Tests for query sanitization and result shaping.
"""

from datetime import datetime, timezone

import pytest

from pagesearch.search.query import (
    EmptyQueryError,
    QueryEngine,
    QueryError,
    host_of,
    sanitize_query,
)

T0 = datetime(2026, 2, 1, tzinfo=timezone.utc)


class TestSanitizeQuery:

    def test_quotes_are_escaped_and_words_quoted(self):
        assert sanitize_query('He said "hi"') == '"He" "said" """hi"""'

    def test_operators_become_literal_terms(self):
        assert sanitize_query("cats OR dogs NOT birds") == '"cats" "OR" "dogs" "NOT" "birds"'

    def test_whitespace_is_collapsed(self):
        assert sanitize_query("  one\t two\nthree ") == '"one" "two" "three"'

    @pytest.mark.parametrize("query", ["", "   ", "\n\t"])
    def test_empty_query_rejected(self, query):
        with pytest.raises(EmptyQueryError):
            sanitize_query(query)

    def test_empty_query_is_a_query_error(self):
        assert issubclass(EmptyQueryError, QueryError)
        assert issubclass(QueryError, ValueError)


class TestHostOf:

    @pytest.mark.parametrize("url, expected", [
        ("https://a.example/page", "a.example"),
        ("http://user:pw@b.example:8080/x", "b.example:8080"),
        ("not a url", ""),
        ("http://[::1/broken", ""),
    ])
    def test_host(self, url, expected):
        assert host_of(url) == expected


class TestQueryEngine:

    @pytest.mark.asyncio
    async def test_results_carry_host_and_no_body(self, store):
        await store.upsert_page("https://a.example/garden", "Garden", "tomatoes and beans", T0)
        results = await QueryEngine(store).search("tomatoes")

        assert len(results) == 1
        result = results[0]
        assert result.url == "https://a.example/garden"
        assert result.title == "Garden"
        assert result.host == "a.example"
        assert result.crawled_at == T0
        assert not hasattr(result, "body")

    @pytest.mark.asyncio
    async def test_terms_are_conjunctive(self, store):
        await store.upsert_page("https://a.example/1", "t", "red apples", T0)
        await store.upsert_page("https://a.example/2", "t", "red cars", T0)
        results = await QueryEngine(store).search("red apples")
        assert [r.url for r in results] == ["https://a.example/1"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", [
        'He said "hi"',
        'foo AND ( "bar',
        "NEAR(a b)",
        "title:secret*",
        '"',
        "-x ^y",
    ])
    async def test_punctuation_never_breaks_store_syntax(self, store, query):
        await store.upsert_page("https://a.example/", "t", "He said hi", T0)
        results = await QueryEngine(store).search(query)
        assert isinstance(results, list)

    @pytest.mark.asyncio
    async def test_empty_query_not_executed(self, store):
        with pytest.raises(EmptyQueryError):
            await QueryEngine(store).search("   ")
