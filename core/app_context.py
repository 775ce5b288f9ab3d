from dataclasses import dataclass

from core.config_loader import AppConfig, LlmConfig
from core.llm.circuit_breaker import CircuitBreaker
from core.llm.embedding_client import EmbeddingClient
from core.llm.openai_service import OpenAIService
from core.llm.summary_generator import SummaryGenerator
from core.matcher.skill_taxonomy import SkillTaxonomyMatcher
from core.scorer.service import ScreeningScorer
from etl.resume.nlp import CvNlpProcessor
from etl.resume.text_extractor import TextExtractor


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    This eliminates duplicate wiring code and provides a single source
    of truth for service instantiation. DB access should be obtained
    via screening_uow() inside each unit of work.
    """
    config: AppConfig
    ai_service: OpenAIService
    embedding_client: EmbeddingClient
    taxonomy: SkillTaxonomyMatcher
    text_extractor: TextExtractor
    nlp_processor: CvNlpProcessor
    scorer: ScreeningScorer
    summary_generator: SummaryGenerator

    @classmethod
    def build(cls, config: AppConfig) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration

        Returns:
            Fully wired AppContext instance (no DB session attached)
        """
        ai_service = cls._build_ai_service(config.llm)
        embedding_client = cls._build_embedding_client(config, ai_service)

        taxonomy = SkillTaxonomyMatcher(
            embedding_client=embedding_client if config.taxonomy.enable_semantic else None,
            semantic_threshold=config.taxonomy.semantic_threshold,
        )

        return cls(
            config=config,
            ai_service=ai_service,
            embedding_client=embedding_client,
            taxonomy=taxonomy,
            text_extractor=TextExtractor(),
            nlp_processor=CvNlpProcessor(),
            scorer=ScreeningScorer(config.scoring.weights),
            summary_generator=SummaryGenerator(ai_service, resilience=config.resilience),
        )

    @staticmethod
    def _build_ai_service(llm_config: LlmConfig) -> OpenAIService:
        """Build OpenAI service from LLM configuration."""
        model_config = {
            'embedding_model': llm_config.embedding_model,
            'embedding_dimensions': llm_config.embedding_dimensions,
            'summary_model': llm_config.summary_model,
            'summary_temperature': llm_config.summary_temperature,
            'summary_max_tokens': llm_config.summary_max_tokens,
        }

        return OpenAIService(
            base_url=llm_config.base_url,
            api_key=llm_config.api_key,
            model_config=model_config,
        )

    @staticmethod
    def _build_embedding_client(config: AppConfig, ai_service: OpenAIService) -> EmbeddingClient:
        """Embedding client with its own circuit breaker (shared by all callers in-process)."""
        resilience = config.resilience
        breaker = CircuitBreaker(
            failure_threshold=resilience.failure_threshold,
            reset_timeout=resilience.reset_timeout_seconds,
            half_open_successes=resilience.half_open_successes,
            name="embedding",
        )
        return EmbeddingClient(
            ai_service,
            resilience=resilience,
            max_input_tokens=config.llm.max_input_tokens,
            chars_per_token=config.llm.chars_per_token,
            breaker=breaker,
        )
