"""
OpenAI Service - LLM implementation using OpenAI API.

Provides embedding generation and chat completions. SDK errors are translated
into TransientProviderError / ProviderError so that retry and circuit breaker
policy never depends on the SDK's exception types.
"""
from typing import Dict, Any, List, Optional
import logging
import re

import openai
from openai import OpenAI

from core.exceptions import ProviderError, TransientProviderError
from core.llm.interfaces import LLMProvider

logger = logging.getLogger(__name__)

TRANSIENT_MESSAGE_PATTERN = re.compile(
    r'rate limit|quota exceeded|service unavailable|timeout|timed out|'
    r'econnreset|enotfound|econnrefused|connection reset|connection refused',
    re.IGNORECASE,
)


def is_transient_error(exc: BaseException) -> bool:
    """Return True for transient errors that are worth retrying."""
    if isinstance(exc, (
        openai.RateLimitError,
        openai.APITimeoutError,
        openai.APIConnectionError,
        openai.InternalServerError,
        ConnectionError,
        TimeoutError,
    )):
        return True
    status_code = getattr(exc, 'status_code', None)
    if isinstance(status_code, int) and (status_code == 429 or status_code >= 500):
        return True
    return bool(TRANSIENT_MESSAGE_PATTERN.search(str(exc)))


def translate_provider_error(exc: BaseException) -> ProviderError:
    """Map an SDK/network exception onto the pipeline's provider error types."""
    status_code = getattr(exc, 'status_code', None)
    if is_transient_error(exc):
        return TransientProviderError(f"{type(exc).__name__}: {exc}", status_code=status_code)
    return ProviderError(f"{type(exc).__name__}: {exc}")


class OpenAIService(LLMProvider):
    """OpenAI (or OpenAI-compatible) embeddings and chat completions."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model_config: Optional[Dict[str, Any]] = None,
        timeout: float = 60.0,
    ):
        """
        Args:
            base_url: Optional OpenAI-compatible endpoint
            api_key: API key (falls back to OPENAI_API_KEY inside the SDK)
            model_config: Model names and generation parameters
            timeout: Per-request timeout in seconds
        """
        self.model_config = {
            'embedding_model': 'text-embedding-004',
            'embedding_dimensions': 768,
            'summary_model': 'gpt-4o-mini',
            'summary_temperature': 0.3,
            'summary_max_tokens': 1500,
        }
        if model_config:
            self.model_config.update({k: v for k, v in model_config.items() if v is not None})

        # SDK-level retries disabled; retry policy lives in core.llm.retry
        self.client = OpenAI(
            base_url=base_url,
            api_key=api_key or "not-set",
            timeout=timeout,
            max_retries=0,
        )

    @property
    def embedding_model(self) -> str:
        return self.model_config['embedding_model']

    @property
    def embedding_dimensions(self) -> int:
        return self.model_config['embedding_dimensions']

    def generate_embedding(self, text: str) -> List[float]:
        try:
            response = self.client.embeddings.create(
                input=text,
                model=self.embedding_model,
                dimensions=self.embedding_dimensions,
            )
        except (openai.OpenAIError, ConnectionError, TimeoutError) as e:
            raise translate_provider_error(e) from e

        if not response.data:
            raise ProviderError("Empty embedding response")
        return list(response.data[0].embedding)

    def generate_completion(self, system_prompt: str, user_prompt: str, json_mode: bool = False) -> str:
        kwargs: Dict[str, Any] = {
            'model': self.model_config['summary_model'],
            'messages': [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            'temperature': self.model_config['summary_temperature'],
            'max_tokens': self.model_config['summary_max_tokens'],
        }
        if json_mode:
            kwargs['response_format'] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(**kwargs)
        except (openai.OpenAIError, ConnectionError, TimeoutError) as e:
            raise translate_provider_error(e) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ProviderError("Empty completion response")
        return content
