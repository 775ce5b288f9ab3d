"""
Unit tests for EmbeddingClient: truncation, retry policy and breaker wiring.
"""
import pytest
from unittest.mock import MagicMock

from core.config_loader import ResilienceConfig
from core.exceptions import CircuitOpenError, ProviderError, TransientProviderError, ValidationError
from core.llm.circuit_breaker import CircuitState
from core.llm.embedding_client import EmbeddingClient
from core.llm.retry import backoff_with_jitter
from tests.mocks.llm_mocks import MockLLMProvider


@pytest.fixture
def provider():
    return MockLLMProvider(embedding_dim=8)


@pytest.fixture
def sleep():
    return MagicMock()


def make_client(provider, sleep, **kwargs):
    resilience = kwargs.pop('resilience', ResilienceConfig(
        max_attempts=3, base_delay_seconds=1.0, max_delay_seconds=30.0, jitter_ratio=0.0,
        failure_threshold=2, reset_timeout_seconds=60, half_open_successes=1,
    ))
    return EmbeddingClient(provider, resilience=resilience, sleep=sleep, **kwargs)


class TestEmbeddingClient:

    def test_embed_returns_vector_and_model(self, provider, sleep):
        client = make_client(provider, sleep)
        result = client.embed("  Senior Python developer  ")

        assert len(result.vector) == 8
        assert result.dimensions == 8
        assert result.model == "mock-embedding"
        assert provider.embedding_calls == ["Senior Python developer"]

    def test_empty_text_rejected(self, provider, sleep):
        client = make_client(provider, sleep)
        with pytest.raises(ValidationError):
            client.embed("   ")
        assert provider.embedding_calls == []

    def test_truncates_on_whitespace_boundary(self, provider, sleep):
        client = make_client(provider, sleep, max_input_tokens=5, chars_per_token=4)
        text = "word " * 10

        truncated = client.truncate(text)

        assert len(truncated) <= 20
        assert truncated == "word word word word"

    def test_short_text_not_truncated(self, provider, sleep):
        client = make_client(provider, sleep, max_input_tokens=100, chars_per_token=4)
        assert client.truncate("short") == "short"

    def test_retries_transient_errors_with_backoff(self, provider, sleep):
        provider.embedding_errors = [
            TransientProviderError("rate limit", status_code=429),
            TransientProviderError("timeout"),
        ]
        client = make_client(provider, sleep)

        result = client.embed("text")

        assert len(result.vector) == 8
        assert len(provider.embedding_calls) == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    def test_non_transient_error_not_retried(self, provider, sleep):
        provider.embedding_errors = [ProviderError("invalid api key")]
        client = make_client(provider, sleep)

        with pytest.raises(ProviderError):
            client.embed("text")
        assert len(provider.embedding_calls) == 1
        sleep.assert_not_called()

    def test_exhausted_retries_raise_and_count_once_on_breaker(self, provider, sleep):
        provider.embedding_errors = [TransientProviderError("503")] * 3
        client = make_client(provider, sleep)

        with pytest.raises(TransientProviderError):
            client.embed("text")

        assert len(provider.embedding_calls) == 3
        assert client.get_circuit_state()['failure_count'] == 1
        assert client.breaker.state == CircuitState.CLOSED

    def test_breaker_opens_and_short_circuits(self, provider, sleep):
        provider.embedding_errors = [ProviderError("bad request")] * 2
        client = make_client(provider, sleep)

        for _ in range(2):
            with pytest.raises(ProviderError):
                client.embed("text")
        assert client.breaker.state == CircuitState.OPEN

        with pytest.raises(CircuitOpenError):
            client.embed("text")
        assert len(provider.embedding_calls) == 2

    def test_dimension_mismatch_is_provider_error(self, sleep):
        provider = MockLLMProvider(embedding_dim=8)
        provider.fixed_vectors["text"] = [0.1, 0.2]
        client = make_client(provider, sleep)

        with pytest.raises(ProviderError):
            client.embed("text")

    def test_embed_many_preserves_order(self, provider, sleep):
        client = make_client(provider, sleep)
        results = client.embed_many(["a", "b"])
        assert [r.vector for r in results] == [provider.generate_embedding("a"), provider.generate_embedding("b")]


def test_backoff_is_capped_and_jittered():
    state = MagicMock()
    wait = backoff_with_jitter(1.0, 5.0, 0.1, rng=lambda low, high: high)

    state.attempt_number = 1
    assert wait(state) == pytest.approx(1.1)
    state.attempt_number = 4
    assert wait(state) == pytest.approx(5.5)
