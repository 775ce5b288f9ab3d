"""
Embedding Client - Resilient text-to-vector conversion.

Wraps an LLMProvider with input truncation, a tenacity retry loop for
transient provider errors, and an outer circuit breaker. The breaker sees
one outcome per ``embed`` call (after retries), not one per attempt.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from core.config_loader import ResilienceConfig
from core.exceptions import ProviderError, ValidationError
from core.llm.circuit_breaker import CircuitBreaker
from core.llm.interfaces import LLMProvider
from core.llm.retry import provider_retry

logger = logging.getLogger(__name__)

TRUNCATION_BOUNDARY_RATIO = 0.8


@dataclass
class EmbeddingResult:
    vector: List[float]
    model: str
    dimensions: int


class EmbeddingClient:
    """Turn text into fixed-dimension vectors via an external provider."""

    def __init__(
        self,
        provider: LLMProvider,
        resilience: Optional[ResilienceConfig] = None,
        max_input_tokens: int = 8000,
        chars_per_token: int = 4,
        breaker: Optional[CircuitBreaker] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            provider: Embedding provider
            resilience: Retry and breaker policy
            max_input_tokens: Token budget per request
            chars_per_token: Characters per token used to estimate the budget
            breaker: Shared breaker instance (one is created if omitted)
            sleep: Sleep function used between retries
        """
        self.provider = provider
        self.resilience = resilience or ResilienceConfig()
        self.max_chars = max_input_tokens * chars_per_token
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=self.resilience.failure_threshold,
            reset_timeout=self.resilience.reset_timeout_seconds,
            half_open_successes=self.resilience.half_open_successes,
            name="embedding",
        )
        self._embed_with_retry = provider_retry(self.resilience, sleep=sleep)(self._call_provider)

    @property
    def model(self) -> str:
        return self.provider.embedding_model

    @property
    def dimensions(self) -> int:
        return self.provider.embedding_dimensions

    def truncate(self, text: str) -> str:
        """Cut text to the character budget, preferring a trailing whitespace boundary."""
        if len(text) <= self.max_chars:
            return text
        truncated = text[:self.max_chars]
        last_space = max(truncated.rfind(' '), truncated.rfind('\n'))
        if last_space > self.max_chars * TRUNCATION_BOUNDARY_RATIO:
            truncated = truncated[:last_space]
        logger.warning(f"Text truncated from {len(text)} to {len(truncated)} characters for embedding")
        return truncated

    def embed(self, text: str) -> EmbeddingResult:
        """
        Generate an embedding for text.

        Raises:
            ValidationError: Empty text
            CircuitOpenError: Breaker is open
            TransientProviderError: Retries exhausted
            ProviderError: Non-retryable provider failure or bad vector size
        """
        if not text or not text.strip():
            raise ValidationError("Cannot embed empty text")

        prepared = self.truncate(text.strip())
        start = time.time()
        vector = self.breaker.call(self._embed_with_retry, prepared)

        logger.debug(f"Generated embedding ({len(vector)} dims) in {int((time.time() - start) * 1000)}ms")
        return EmbeddingResult(vector=vector, model=self.model, dimensions=len(vector))

    def embed_many(self, texts: List[str]) -> List[EmbeddingResult]:
        """Embed several texts in order. Stops at the first failure."""
        return [self.embed(text) for text in texts]

    def get_circuit_state(self) -> dict:
        return self.breaker.snapshot()

    def _call_provider(self, text: str) -> List[float]:
        vector = self.provider.generate_embedding(text)
        if len(vector) != self.dimensions:
            raise ProviderError(
                f"Embedding dimension mismatch: expected {self.dimensions}, got {len(vector)}"
            )
        return vector
