"""Healing engine configuration with environment variable loading."""

import os
from typing import Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class HealingConfig(BaseModel):
    """Configuration for the test healing engine."""

    # Worker pool
    max_workers: int = Field(
        default_factory=lambda: int(os.getenv("HEALING_MAX_WORKERS", "4")),
        ge=1,
        description="Maximum concurrent heal pipelines",
    )
    execution_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("HEALING_EXECUTION_TIMEOUT", "300")),
        gt=0,
        description="Timeout for awaiting a test execution",
    )

    # Generation
    generation_max_tokens: int = Field(
        default_factory=lambda: int(os.getenv("HEALING_GENERATION_MAX_TOKENS", "1000")),
        description="Token budget for a regenerated test",
    )
    openai_api_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("OPENAI_API_KEY"),
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default_factory=lambda: os.getenv("OPENAI_DEFAULT_MODEL", "gpt-4o-mini"),
        description="Model used to regenerate tests",
    )
    generation_temperature: float = Field(
        default_factory=lambda: float(os.getenv("HEALING_GENERATION_TEMPERATURE", "0.3")),
        description="Sampling temperature for regeneration",
    )

    # Storage
    storage_dir: str = Field(
        default_factory=lambda: os.getenv("HEALING_STORAGE_DIR", "output/testcases"),
        description="Directory for JSON test case storage",
    )
    redis_url: Optional[str] = Field(
        default_factory=lambda: os.getenv("HEALING_REDIS_URL"),
        description="Redis URL for execution history (in-memory when unset)",
    )

    # Diagnosis
    source_inspector: str = Field(
        default_factory=lambda: os.getenv("HEALING_SOURCE_INSPECTOR", "noop"),
        description="Source inspector: noop or python",
    )

    # Execution
    pytest_command: str = Field(
        default_factory=lambda: os.getenv("HEALING_PYTEST_COMMAND", "python -m pytest"),
        description="Command used by the subprocess executor",
    )
