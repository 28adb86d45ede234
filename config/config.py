"""
Base schema definitions for configuration models.

These are the core schema models used throughout the application to
ensure type safety and validation of configuration values.
"""

import os
from pathlib import Path
from typing import Optional, Dict, List, Mapping

from pydantic import BaseModel, Field

DEFAULT_PROMPTS_DIR = Path(__file__).parent / "prompts"


class ApiConfig(BaseModel):
    """Model gateway configuration settings."""

    # Model configuration
    model: str = Field(default="claude-haiku-4-5", description="Small/fast model tier used for extraction calls")
    api_key_env: str = Field(default="ANTHROPIC_API_KEY", description="Environment variable holding the Anthropic API key")

    # OpenAI-compatible transport (used instead of Anthropic when endpoint_url is set)
    endpoint_url: Optional[str] = Field(default=None, description="OpenAI-compatible chat completions endpoint; None uses the Anthropic SDK")
    endpoint_api_key_env: str = Field(default="OPENAI_API_KEY", description="Environment variable holding the API key for endpoint_url")

    # Generation settings
    max_tokens: int = Field(default=1024, description="Maximum number of tokens to generate per extraction call")

    # Request settings
    timeout: int = Field(default=30, description="Request timeout in seconds; bounds how long a turn can wait on the model")


class LessonExtractionConfig(BaseModel):
    """
    Lesson extractor configuration.

    Controls when management lessons are extracted and which ones are kept.
    """
    enabled: bool = Field(default=True, description="Whether the lesson extractor runs")
    memory_type: str = Field(default="task_lesson", description="Metadata type tag for persisted lessons")
    temperature: float = Field(default=0.3, description="Sampling temperature for lesson extraction")
    context_messages: int = Field(default=6, description="Number of recent messages rendered into the prompt")
    min_confidence: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Minimum confidence for a lesson to be stored"
    )
    prompt_file: str = Field(default="lesson_extraction.txt", description="Prompt template file name")


class FactExtractionConfig(BaseModel):
    """
    Fact extractor configuration.

    Controls extraction of reusable personal and project facts from agent responses.
    """
    enabled: bool = Field(default=True, description="Whether the fact extractor runs")
    memory_type: str = Field(default="fact", description="Metadata type tag for persisted facts")
    temperature: float = Field(default=0.1, description="Sampling temperature for fact extraction")
    context_messages: int = Field(default=4, description="Number of recent messages rendered into the prompt")
    min_response_length: int = Field(default=30, description="Agent responses shorter than this are skipped")
    min_fact_length: int = Field(default=5, description="Facts shorter than this are rejected")
    allowed_sources: List[str] = Field(
        default_factory=lambda: ["telegram"],
        description="Message sources the extractor listens to (empty list = any source)"
    )
    dedup_similarity_threshold: float = Field(
        default=0.92,
        ge=0.0,
        le=1.0,
        description="Fuzzy similarity above which a fact counts as already known"
    )
    prompt_file: str = Field(default="fact_extraction.txt", description="Prompt template file name")


class PersonalityExtractionConfig(BaseModel):
    """
    Personality extractor configuration.

    Controls how often communication traits are sampled from user messages.
    """
    enabled: bool = Field(default=True, description="Whether the personality extractor runs")
    memory_type: str = Field(default="personality_trait", description="Metadata type tag for persisted traits")
    temperature: float = Field(default=0.3, description="Sampling temperature for trait extraction")
    interval: int = Field(default=10, description="Run once every N eligible turns")
    min_message_length: int = Field(default=10, description="Turns shorter than this are not counted")
    min_user_messages: int = Field(default=3, description="Minimum user messages needed for pattern detection")
    user_message_window: int = Field(default=10, description="Recent user messages considered")
    prompt_messages: int = Field(default=8, description="User messages rendered into the prompt")
    min_trait_length: int = Field(default=10, description="Traits shorter than this are rejected")
    min_confidence: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Minimum confidence for a trait to be stored"
    )
    dedup_similarity_threshold: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Fuzzy similarity above which a trait counts as already known"
    )
    prompt_file: str = Field(default="personality_extraction.txt", description="Prompt template file name")


class StorageConfig(BaseModel):
    """Persistence configuration settings."""

    backend: str = Field(default="memory", description="Memory store backend: 'memory' or 'postgres'")
    database_url_env: str = Field(default="DATABASE_URL", description="Environment variable holding the Postgres DSN")
    table: str = Field(default="extracted_memories", description="Table receiving persisted memory entries")
    pool_max_connections: int = Field(default=5, description="Maximum connections in the Postgres pool")
    dedup_lookup_limit: int = Field(default=50, description="Recent entries compared during duplicate detection")


class SystemConfig(BaseModel):
    """System-level configuration settings."""

    log_level: str = Field(default="WARNING", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
    prompts_dir: str = Field(default=str(DEFAULT_PROMPTS_DIR), description="Directory containing prompt templates")
    json_indent: int = Field(default=2, description="Indentation level for JSON output")


class AppConfig(BaseModel):
    """
    Complete evaluator configuration.

    Aggregates all module-specific configs into single source of truth.
    """
    api: ApiConfig = Field(default_factory=ApiConfig)
    lessons: LessonExtractionConfig = Field(default_factory=LessonExtractionConfig)
    facts: FactExtractionConfig = Field(default_factory=FactExtractionConfig)
    personality: PersonalityExtractionConfig = Field(default_factory=PersonalityExtractionConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)

    def get_secret(self, env_name: str, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
        """
        Read a secret from the environment by variable name.

        Secrets are never stored on the config object itself.
        """
        environ = os.environ if environ is None else environ
        value = environ.get(env_name)
        return value or None


# Environment overrides: variable name -> (section, field)
ENV_OVERRIDES: Dict[str, tuple] = {
    "EVALUATORS_MODEL": ("api", "model"),
    "EVALUATORS_ENDPOINT_URL": ("api", "endpoint_url"),
    "EVALUATORS_STORAGE_BACKEND": ("storage", "backend"),
    "EVALUATORS_LOG_LEVEL": ("system", "log_level"),
}


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Build the application config from defaults plus environment overrides.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated AppConfig

    Raises:
        ValueError: If an override produces an invalid configuration
    """
    environ = os.environ if environ is None else environ

    sections: Dict[str, Dict[str, str]] = {}
    for env_name, (section, field_name) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            sections.setdefault(section, {})[field_name] = value

    app_config = AppConfig.model_validate(sections)

    if app_config.storage.backend not in ("memory", "postgres"):
        raise ValueError(
            f"Unknown storage backend '{app_config.storage.backend}' (expected 'memory' or 'postgres')"
        )

    return app_config
