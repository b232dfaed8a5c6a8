"""
Beacon Triage - Configuration

Settings are loaded from environment variables (and `.env`) once, then turned
into an immutable HarnessConfig per domain which is passed explicitly to the
scheduling harness. Nothing below the harness reads `settings` directly.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, List

from pydantic import Field
from pydantic_settings import BaseSettings

from beacon.constants import Domain


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Paths
    BASE_DIR: Path = Path(__file__).parent
    DATA_DIR: Path = Field(default_factory=lambda: Path.cwd() / "data")
    DATABASE_PATH: Path = Field(default_factory=lambda: Path.cwd() / "data" / "beacon.db")
    LOG_DIR: Path = Field(default_factory=lambda: Path.cwd() / "data" / "logs")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")

    # LLM
    LLM_PROVIDER: str = Field(default="openrouter", description="openrouter | ollama")
    LLM_MODEL: str = Field(default="openai/gpt-5.2-nano")
    LLM_STRUCTURED_OUTPUT: bool = Field(default=True, description="Model supports json_schema output")
    LLM_VERIFY_SSL: bool = Field(default=True)
    LLM_REQUEST_TIMEOUT: float = Field(default=120.0)
    LLM_RESOURCE_TIMEOUT: float = Field(default=300.0)
    LLM_TEMPERATURE: float = Field(default=0.3)
    LLM_MAX_TOKENS: int = Field(default=2048)
    OPENROUTER_API_KEY: str = Field(default="", description="OpenRouter API key")
    OPENROUTER_BASE_URL: str = Field(default="https://openrouter.ai/api/v1")
    OLLAMA_HOST: str = Field(default="http://localhost:11434")

    # Shared pipeline knobs
    BATCH_SIZE: int = Field(default=10, ge=1, le=10)
    ESTIMATED_TOKENS_PER_ITEM: int = Field(
        default=500,
        description="Fallback token cost per item when the provider reports no usage",
    )
    RETRY_MAX_ATTEMPTS: int = Field(default=3)
    RETRY_BASE_DELAY: float = Field(default=1.0)
    RETRY_MAX_DELAY: float = Field(default=30.0)

    # Priority domain
    PRIORITY_ENABLED: bool = Field(default=True)
    PRIORITY_DAILY_TOKEN_LIMIT: int = Field(default=100_000)
    PRIORITY_INTERVAL_MINUTES: int = Field(default=30)
    PRIORITY_VIP_EMAILS: List[str] = Field(default_factory=list)

    # Progress domain
    PROGRESS_ENABLED: bool = Field(default=True)
    PROGRESS_DAILY_TOKEN_LIMIT: int = Field(default=50_000)
    PROGRESS_INTERVAL_MINUTES: int = Field(default=45)
    PROGRESS_STALENESS_DAYS: int = Field(default=3)
    PROGRESS_USE_HYBRID: bool = Field(default=True)
    HYBRID_CONFIDENCE_THRESHOLD: float = Field(
        default=0.8,
        description="Heuristic confidence at or above which the LLM round-trip is skipped",
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def harness_config(self, domain: Domain) -> "HarnessConfig":
        """Build the explicit per-domain configuration for a harness."""
        domain = Domain(domain)
        if domain == Domain.PRIORITY:
            return HarnessConfig(
                domain=domain,
                enabled=self.PRIORITY_ENABLED,
                daily_token_limit=self.PRIORITY_DAILY_TOKEN_LIMIT,
                interval_minutes=self.PRIORITY_INTERVAL_MINUTES,
                batch_size=self.BATCH_SIZE,
                model=self.LLM_MODEL,
                structured_output=self.LLM_STRUCTURED_OUTPUT,
                temperature=self.LLM_TEMPERATURE,
                max_tokens=self.LLM_MAX_TOKENS,
                estimated_tokens_per_item=self.ESTIMATED_TOKENS_PER_ITEM,
                retry=RetryConfig(
                    max_attempts=self.RETRY_MAX_ATTEMPTS,
                    base_delay=self.RETRY_BASE_DELAY,
                    max_delay=self.RETRY_MAX_DELAY,
                ),
                vip_emails=frozenset(e.strip().lower() for e in self.PRIORITY_VIP_EMAILS if e.strip()),
            )
        return HarnessConfig(
            domain=domain,
            enabled=self.PROGRESS_ENABLED,
            daily_token_limit=self.PROGRESS_DAILY_TOKEN_LIMIT,
            interval_minutes=self.PROGRESS_INTERVAL_MINUTES,
            batch_size=self.BATCH_SIZE,
            model=self.LLM_MODEL,
            structured_output=self.LLM_STRUCTURED_OUTPUT,
            temperature=self.LLM_TEMPERATURE,
            max_tokens=self.LLM_MAX_TOKENS,
            estimated_tokens_per_item=self.ESTIMATED_TOKENS_PER_ITEM,
            retry=RetryConfig(
                max_attempts=self.RETRY_MAX_ATTEMPTS,
                base_delay=self.RETRY_BASE_DELAY,
                max_delay=self.RETRY_MAX_DELAY,
            ),
            staleness_days=self.PROGRESS_STALENESS_DAYS,
            use_hybrid=self.PROGRESS_USE_HYBRID,
            hybrid_confidence_threshold=self.HYBRID_CONFIDENCE_THRESHOLD,
        )


@dataclass(frozen=True)
class RetryConfig:
    """Bounded exponential backoff for inference calls."""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0


@dataclass(frozen=True)
class HarnessConfig:
    """
    Per-domain configuration handed to a SchedulingHarness.

    Defaults mirror the production values: 30 minute priority cycle with a
    100k daily token budget, 45 minute progress cycle with 50k.
    """
    domain: Domain
    enabled: bool = True
    daily_token_limit: int = 100_000
    interval_minutes: int = 30
    batch_size: int = 10
    model: str = "openai/gpt-5.2-nano"
    structured_output: bool = True
    temperature: float = 0.3
    max_tokens: int = 2048
    estimated_tokens_per_item: int = 500
    retry: RetryConfig = field(default_factory=RetryConfig)

    # Priority only
    vip_emails: FrozenSet[str] = frozenset()

    # Progress only
    staleness_days: int = 3
    use_hybrid: bool = True
    hybrid_confidence_threshold: float = 0.8

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60.0

    @property
    def staleness_threshold_seconds(self) -> float:
        return self.staleness_days * 24 * 60 * 60.0


# Global settings instance
settings = Settings()


def ensure_directories():
    """Ensure all required directories exist."""
    dirs = [
        settings.DATA_DIR,
        settings.LOG_DIR,
    ]
    for dir_path in dirs:
        dir_path.mkdir(parents=True, exist_ok=True)
