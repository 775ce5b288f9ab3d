"""
LLM Provider Interface - Abstract base for AI service providers.

This module defines the interface for embedding and text-generation
providers used by the screening pipeline (OpenAI or any OpenAI-compatible
endpoint).
"""
from abc import ABC, abstractmethod
from typing import List


class LLMProvider(ABC):
    """
    Abstract Interface for AI Service Providers.

    Implementations must raise core.exceptions.TransientProviderError for
    retryable failures and core.exceptions.ProviderError for everything else.
    """

    @property
    @abstractmethod
    def embedding_model(self) -> str:
        pass

    @property
    @abstractmethod
    def embedding_dimensions(self) -> int:
        pass

    @abstractmethod
    def generate_embedding(self, text: str) -> List[float]:
        """
        Generate a vector embedding for the given text.
        """
        pass

    @abstractmethod
    def generate_completion(self, system_prompt: str, user_prompt: str, json_mode: bool = False) -> str:
        """
        Generate a chat completion and return the raw message content.

        Args:
            system_prompt: Instructions for the model
            user_prompt: The request content
            json_mode: Ask the provider for a JSON object response
        """
        pass
