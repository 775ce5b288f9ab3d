import yaml
import os
from typing import Dict, Optional
from pydantic import BaseModel, Field


class DatabaseConfig(BaseModel):
    url: str


class RedisConfig(BaseModel):
    url: str = "redis://localhost:6379/0"
    use_async_queue: bool = True  # False forces inline (sync) execution


class LlmConfig(BaseModel):
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    embedding_model: str = "text-embedding-004"
    embedding_dimensions: int = 768
    max_input_tokens: int = 8000
    chars_per_token: int = 4  # rough token estimate used for truncation
    summary_model: str = "gpt-4o-mini"
    summary_temperature: float = 0.3
    summary_max_tokens: int = 1500


class ResilienceConfig(BaseModel):
    """Retry and circuit breaker policy for provider calls."""
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    jitter_ratio: float = 0.1

    failure_threshold: int = 5
    reset_timeout_seconds: float = 60.0
    half_open_successes: int = 3


class ChunkingConfig(BaseModel):
    max_chunk_size: int = 1200
    overlap_size: int = 100
    min_chunk_size: int = 200


class ScoringWeights(BaseModel):
    """Weights for the overall score. Should sum to 1.0."""
    vector_similarity: float = 0.4
    skills_match: float = 0.3
    experience_match: float = 0.2
    education_match: float = 0.1


class ScoringThresholds(BaseModel):
    strong_fit: float = 80.0
    good_fit: float = 65.0
    moderate_fit: float = 50.0


class ScoringConfig(BaseModel):
    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    thresholds: ScoringThresholds = Field(default_factory=ScoringThresholds)
    chunk_top_k: int = 3


class TaxonomyConfig(BaseModel):
    semantic_threshold: float = 0.8
    enable_semantic: bool = True


class QueueSettings(BaseModel):
    concurrency: int = 1


def _default_queues() -> Dict[str, QueueSettings]:
    return {
        'cv-processing': QueueSettings(concurrency=2),
        'similarity-calculation': QueueSettings(concurrency=3),
        'summary-generation': QueueSettings(concurrency=1),
    }


class QueueConfig(BaseModel):
    """
    Job-level retry policy, applied per queue.

    This is independent of ResilienceConfig: a job retry re-runs a whole stage,
    a client retry re-issues a single provider call.
    """
    queues: Dict[str, QueueSettings] = Field(default_factory=_default_queues)
    attempts: int = 3
    backoff_seconds: int = 2
    job_timeout: str = "5m"
    keep_completed: int = 100
    keep_failed: int = 50
    result_ttl: int = 86400
    failure_ttl: int = 604800


class StorageConfig(BaseModel):
    uploads_dir: str = "./uploads"


class AppConfig(BaseModel):
    database: DatabaseConfig
    redis: RedisConfig = Field(default_factory=RedisConfig)
    llm: LlmConfig = Field(default_factory=LlmConfig)
    resilience: ResilienceConfig = Field(default_factory=ResilienceConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    taxonomy: TaxonomyConfig = Field(default_factory=TaxonomyConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def load_config(config_path: str = "config.yaml") -> AppConfig:
    # If not found at relative path (e.g. running from root), try absolute or adjusted path
    if not os.path.exists(config_path):
        base_dir = os.path.dirname(os.path.abspath(__file__))
        config_path = os.path.join(base_dir, "..", "config.yaml")

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    # Allow env var override for DB URL
    env_db_url = os.environ.get("DATABASE_URL")
    if env_db_url:
        data.setdefault('database', {})
        data['database']['url'] = env_db_url

    # Allow env var override for Redis URL
    env_redis_url = os.environ.get("REDIS_URL")
    if env_redis_url:
        if not data.get('redis'):
            data['redis'] = {}
        data['redis']['url'] = env_redis_url

    # Allow env var override for LLM credentials
    env_api_key = os.environ.get("OPENAI_API_KEY")
    env_base_url = os.environ.get("LLM_BASE_URL")
    if env_api_key or env_base_url:
        if not data.get('llm'):
            data['llm'] = {}
        if env_api_key:
            data['llm']['api_key'] = env_api_key
        if env_base_url:
            data['llm']['base_url'] = env_base_url

    return AppConfig(**data)
