"""Tests for the error taxonomy and exception normalisation."""

import pytest

from cryptosentinel.exceptions import (
    CollectionAbortedError,
    MissingConfigurationError,
    RateLimitPersistsError,
    SentinelError,
    StructuralUpstreamError,
    UpstreamError,
    handle_exception,
)


class TestErrorTypes:
    def test_missing_configuration_message(self):
        error = MissingConfigurationError("HELIUS_API_KEY")

        assert error.message == "HELIUS_API_KEY is required for this operation"
        assert error.context["missing_key"] == "HELIUS_API_KEY"

    def test_rate_limit_persists(self):
        cause = UpstreamError("HTTP 429", status_code=429)
        error = RateLimitPersistsError("GET dexscreener/pairs", attempts=4, last_error=cause)

        assert error.status_code == 429
        assert error.attempts == 4
        assert "after 4 attempts" in error.message

    def test_collection_aborted_keeps_partial_result(self):
        error = CollectionAbortedError(2, partial_result={"owners": 10}, cause=RuntimeError("500"))

        assert error.page_number == 2
        assert error.partial_result == {"owners": 10}

    def test_to_dict(self):
        error = UpstreamError("boom", source="jupiter", status_code=503, cause=OSError("reset"))

        assert error.to_dict() == {
            "error_type": "UpstreamError",
            "error_code": "UpstreamError",
            "message": "boom",
            "context": {"source": "jupiter", "status_code": 503},
            "cause": "reset",
        }


class TestHandleException:
    """Generic exceptions map onto the taxonomy."""

    @pytest.mark.parametrize("raw,expected", [
        (ConnectionError("refused"), UpstreamError),
        (TimeoutError("slow"), UpstreamError),
        (KeyError("pairs"), StructuralUpstreamError),
        (ValueError("bad decimals"), StructuralUpstreamError),
        (RuntimeError("surprise"), SentinelError),
    ])
    def test_mapping(self, raw, expected):
        error = handle_exception(raw, source="dexscreener")

        assert type(error) is expected
        assert error.cause is raw

    def test_sentinel_error_passes_through(self):
        original = StructuralUpstreamError("missing field", source="helius")

        error = handle_exception(original, source="token_holders", context={"page": 3})

        assert error is original
        assert error.context["page"] == 3
        assert error.context["source"] == "token_holders"

    def test_empty_message_uses_class_name(self):
        assert handle_exception(RuntimeError()).message == "RuntimeError"
