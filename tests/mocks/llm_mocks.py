#!/usr/bin/env python3
"""
Test Mock Implementations - Mock services for testing.

These mocks provide deterministic behavior for unit tests: no network,
no database.
"""
import contextlib
import hashlib
import math
import random
from typing import List, Optional
from unittest.mock import MagicMock

from core.llm.interfaces import LLMProvider


class MockLLMProvider(LLMProvider):
    """
    Mock AI service for testing.

    Returns deterministic embeddings derived from the text, canned completion
    responses, and raises queued errors before answering.
    """

    def __init__(self, embedding_dim: int = 8, completion: str = '{}', model: str = 'mock-embedding'):
        self.embedding_dim = embedding_dim
        self.completion = completion
        self.model = model
        self.embedding_errors: List[Exception] = []
        self.completion_errors: List[Exception] = []
        self.embedding_calls: List[str] = []
        self.completion_calls: List[tuple] = []
        self.fixed_vectors = {}

    @property
    def embedding_model(self) -> str:
        return self.model

    @property
    def embedding_dimensions(self) -> int:
        return self.embedding_dim

    def generate_embedding(self, text: str) -> List[float]:
        """
        Generate deterministic mock embedding based on text content.

        Identical texts always get identical unit vectors.
        """
        self.embedding_calls.append(text)
        if self.embedding_errors:
            raise self.embedding_errors.pop(0)
        if text in self.fixed_vectors:
            return list(self.fixed_vectors[text])

        seed = int(hashlib.md5(text.encode('utf-8')).hexdigest()[:8], 16)
        rng = random.Random(seed)
        embedding = [rng.gauss(0, 1) for _ in range(self.embedding_dim)]
        norm = math.sqrt(sum(x ** 2 for x in embedding))
        if norm > 0:
            embedding = [x / norm for x in embedding]
        return embedding

    def generate_completion(self, system_prompt: str, user_prompt: str, json_mode: bool = False) -> str:
        self.completion_calls.append((system_prompt, user_prompt, json_mode))
        if self.completion_errors:
            raise self.completion_errors.pop(0)
        return self.completion


def mock_uow_factory(repo: Optional[MagicMock] = None):
    """
    Return (factory, repo): a screening_uow replacement yielding one shared
    MagicMock repository.
    """
    repo = repo or MagicMock()

    @contextlib.contextmanager
    def factory():
        yield repo

    return factory, repo
