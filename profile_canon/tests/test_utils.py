"""Tests for profile_canon.utils: vector parsing and retry_openai."""

from __future__ import annotations

from unittest.mock import MagicMock

import openai
import pytest

from profile_canon.utils import coerce_embedding, parse_vector_string, retry_openai


def _make_rate_limit_error() -> openai.RateLimitError:
    """Build an openai.RateLimitError with the required response mock."""
    mock_response = MagicMock()
    mock_response.request = MagicMock()
    return openai.RateLimitError("Rate limited", response=mock_response, body=None)  # type: ignore[arg-type]


# ── parse_vector_string ───────────────────────────────────────────────────────

class TestParseVectorString:
    def test_postgres_array_literal(self):
        assert parse_vector_string("{0.1,0.2,0.3}") == [0.1, 0.2, 0.3]

    def test_pgvector_text_format(self):
        assert parse_vector_string("[0.5, -1, 2e-3]") == [0.5, -1.0, 0.002]

    def test_drops_non_numeric_tokens(self):
        assert parse_vector_string("{0.1,abc,,0.3}") == [0.1, 0.3]

    def test_drops_nan(self):
        assert parse_vector_string("[NaN, 1]") == [1.0]

    def test_fully_malformed_is_empty(self):
        assert parse_vector_string("{not,a,vector}") == []

    def test_empty_and_none(self):
        assert parse_vector_string("") == []
        assert parse_vector_string(None) == []


# ── coerce_embedding ──────────────────────────────────────────────────────────

class TestCoerceEmbedding:
    def test_none(self):
        assert coerce_embedding(None) is None

    def test_list_passthrough(self):
        assert coerce_embedding([1, 2]) == [1.0, 2.0]

    def test_tuple_of_floats(self):
        assert coerce_embedding((0.25, 0.75)) == [0.25, 0.75]

    def test_string_is_parsed(self):
        assert coerce_embedding("{0.1,0.2}") == [0.1, 0.2]

    def test_empty_vector_is_missing(self):
        assert coerce_embedding([]) is None

    def test_unparsable_string_is_missing(self):
        assert coerce_embedding("{}") is None
        assert coerce_embedding("garbage") is None

    def test_non_numeric_items_are_dropped(self):
        assert coerce_embedding([0.1, None, "x", 0.2]) == [0.1, 0.2]
        assert coerce_embedding(["0.5", float("nan")]) == [0.5]

    def test_all_non_numeric_is_missing(self):
        assert coerce_embedding([None, "abc"]) is None


# ── retry_openai ──────────────────────────────────────────────────────────────

class TestRetryOpenAI:
    """Test the retry decorator for transient OpenAI errors."""

    @pytest.mark.asyncio
    async def test_success_on_first_try(self):
        @retry_openai(max_retries=3)
        async def fn():
            return "result"

        assert await fn() == "result"

    @pytest.mark.asyncio
    async def test_retries_on_rate_limit(self):
        call_count = 0

        @retry_openai(max_retries=3, backoff=0.001)
        async def fn():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise _make_rate_limit_error()
            return "ok"

        assert await fn() == "ok"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_retries_on_timeout(self):
        call_count = 0

        @retry_openai(max_retries=3, backoff=0.001)
        async def fn():
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise openai.APITimeoutError(request=None)  # type: ignore[arg-type]
            return "ok"

        assert await fn() == "ok"
        assert call_count == 2

    @pytest.mark.asyncio
    async def test_raises_after_max_retries(self):
        @retry_openai(max_retries=2, backoff=0.001)
        async def fn():
            raise _make_rate_limit_error()

        with pytest.raises(openai.RateLimitError):
            await fn()

    @pytest.mark.asyncio
    async def test_does_not_retry_unexpected_errors(self):
        call_count = 0

        @retry_openai(max_retries=3, backoff=0.001)
        async def fn():
            nonlocal call_count
            call_count += 1
            raise ValueError("Unexpected error")

        with pytest.raises(ValueError):
            await fn()
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_preserves_function_name(self):
        @retry_openai()
        async def embed_batch():
            return []

        assert embed_batch.__name__ == "embed_batch"
