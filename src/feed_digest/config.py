"""Configuration for the feed digest pipeline."""

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables (prefix FEED_DIGEST_)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FEED_DIGEST_",
        extra="ignore",
        populate_by_name=True,
    )

    openai_api_key: str | None = Field(None, alias="OPENAI_API_KEY")
    model: str = Field("gpt-5-mini", description="Model used for extraction and reduction.")
    max_input_tokens: int = Field(
        12000, description="Context budget for one request, prompt and response included."
    )
    max_output_tokens: int = Field(
        3000,
        description="Response budget per request; raise if batches come back truncated.",
    )
    system_overhead_tokens: int = Field(
        800, description="Allowance for the instruction text of each extraction request."
    )
    per_article_overhead_tokens: int = Field(
        50, description="Allowance for url and metadata lines around each article."
    )
    min_batch_tokens: int = Field(
        3000, description="Lower bound for the per-batch article budget."
    )
    request_concurrency: int = Field(10, description="Extraction requests in flight.")
    reduce_chunk_size: int = Field(80, description="Facts per chunk brief.")
    retry_attempts: int = Field(5, description="Total attempts per model call.")
    backoff_base_seconds: float = Field(1.5, description="Delay before the first retry.")
    backoff_factor: float = Field(1.8, description="Delay multiplier between retries.")
    backoff_max_seconds: float = Field(15.0, description="Upper bound for a retry delay.")
    reasoning_effort: str | None = Field("low", description="Reasoning effort hint.")
    text_verbosity: str | None = Field("low", description="Output verbosity hint.")
    time_window_placeholder: str = Field(
        "the last week",
        description="Used in the report prompt when no fact carries a usable date.",
    )

    @field_validator(
        "max_input_tokens",
        "max_output_tokens",
        "min_batch_tokens",
        "request_concurrency",
        "reduce_chunk_size",
        "retry_attempts",
    )
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @field_validator("system_overhead_tokens", "per_article_overhead_tokens")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must be >= 0")
        return value

    @field_validator("backoff_factor")
    @classmethod
    def _factor_at_least_one(cls, value: float) -> float:
        if value < 1:
            raise ValueError("backoff_factor must be >= 1")
        return value

    @model_validator(mode="after")
    def _base_within_cap(self) -> "Settings":
        if self.backoff_base_seconds > self.backoff_max_seconds:
            raise ValueError("backoff_base_seconds must not exceed backoff_max_seconds")
        return self


def get_settings(**overrides) -> Settings:
    """Return settings from the environment, with explicit overrides applied."""
    return Settings(**overrides)
