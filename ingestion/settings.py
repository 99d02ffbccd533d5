"""Configuration models for the ingestion service."""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, List, Optional, Set

from pydantic import (
    BaseModel,
    Field,
    PositiveInt,
    SecretStr,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from ingestion.models.domain import SourceConfig, SourceKind

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

DEFAULT_SOURCES: List[SourceConfig] = [
    SourceConfig(name="Punch", url="https://punchng.com/topics/metro-plus/", kind=SourceKind.GENERAL, category="general"),
    SourceConfig(name="TheCable", url="https://www.thecable.ng/category/city", kind=SourceKind.GENERAL, category="general"),
    SourceConfig(name="Premium Times", url="https://www.premiumtimesng.com/regional/ssouth-west", kind=SourceKind.GENERAL, category="general"),
    SourceConfig(name="BellaNaija", url="https://www.bellanaija.com/category/events/", kind=SourceKind.ENTERTAINMENT, category="events"),
    SourceConfig(name="NotJustOk", url="https://notjustok.com/news/", kind=SourceKind.ENTERTAINMENT, category="entertainment"),
    SourceConfig(name="Pulse Nigeria", url="https://www.pulse.ng/entertainment", kind=SourceKind.ENTERTAINMENT, category="nightlife"),
]

DEFAULT_NEWS_API_DOMAINS = "punchng.com,thecable.ng,premiumtimesng.com,guardian.ng,vanguardngr.com,dailypost.ng"


class IngestionSchedule(BaseModel):
    """Represents a periodic ingestion job configuration."""

    category: str = Field("general", description="Category hint passed to the fetcher.")
    limit: PositiveInt = Field(10, description="Max articles returned per run.")
    interval_minutes: PositiveInt = Field(..., description="Run interval in minutes.")
    enabled: bool = Field(True, description="Whether the schedule is active.")

    @field_validator("category")
    @classmethod
    def _normalize_category(cls, value: str) -> str:
        category = value.strip().lower()
        if not category:
            raise ValueError("category must not be blank.")
        return category


def _parse_json_list(value: Any, env_name: str) -> List[Any]:
    if value in (None, "", []):
        return []
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{env_name} must be a JSON array.") from exc
        if not isinstance(parsed, list):
            raise ValueError(f"{env_name} must be a JSON array.")
        return parsed
    if isinstance(value, list):
        return value
    raise ValueError(f"{env_name} must be a list.")


class Settings(BaseSettings):
    """Environment settings for ingestion."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    redis_url: str = Field(..., alias="INGESTION_REDIS_URL", description="Celery broker/backend Redis DSN.")
    postgres_dsn: str = Field(..., alias="POSTGRES_DSN", description="Content store connection string.")

    news_api_key: Optional[SecretStr] = Field(None, alias="NEWS_API_KEY", description="NewsAPI key; connector disabled when unset.")
    news_api_endpoint: str = Field(
        "https://newsapi.org/v2/everything",
        alias="NEWS_API_ENDPOINT",
        description="NewsAPI endpoint.",
    )
    news_api_domains: str = Field(DEFAULT_NEWS_API_DOMAINS, alias="NEWS_API_DOMAINS", description="Comma separated domain allowlist.")

    http_timeout_seconds: float = Field(12.0, alias="HTTP_TIMEOUT_SECONDS", gt=0, description="Per-request timeout (seconds).")
    http_max_attempts: PositiveInt = Field(2, alias="HTTP_MAX_ATTEMPTS", description="Attempts for listing fetches.")
    http_user_agent: str = Field(DEFAULT_USER_AGENT, alias="HTTP_USER_AGENT", description="Browser-like User-Agent header.")
    source_delay_seconds: float = Field(2.0, alias="SOURCE_DELAY_SECONDS", ge=0, description="Pause between sources.")

    max_candidates: PositiveInt = Field(15, alias="MAX_CANDIDATES", description="Total candidate cap per run.")
    max_candidates_per_source: PositiveInt = Field(3, alias="MAX_CANDIDATES_PER_SOURCE", description="Per-source candidate cap.")
    target_city: str = Field("Lagos", alias="TARGET_CITY", description="City name required in general-news titles.")
    entertainment_min_title_length: PositiveInt = Field(
        20,
        alias="ENTERTAINMENT_MIN_TITLE_LENGTH",
        description="Minimum title length for entertainment sources.",
    )

    freshness_window_days: PositiveInt = Field(60, alias="FRESHNESS_WINDOW_DAYS", description="Only newer articles are kept.")
    max_article_age_days: PositiveInt = Field(365, alias="MAX_ARTICLE_AGE_DAYS", description="Older dates are treated as bad parses.")
    summary_max_length: PositiveInt = Field(150, alias="SUMMARY_MAX_LENGTH", description="Summary truncation length.")
    title_similarity_threshold: float = Field(0.7, alias="TITLE_SIMILARITY_THRESHOLD", description="Fuzzy title match threshold.")

    news_sources: List[SourceConfig] = Field(
        default_factory=lambda: list(DEFAULT_SOURCES),
        alias="NEWS_SOURCES",
        description="JSON list of {name, url, kind, category}.",
    )
    ingestion_schedules: List[IngestionSchedule] = Field(
        default_factory=list,
        alias="INGESTION_SCHEDULES",
        description="JSON list of {category, limit, interval_minutes, enabled}.",
    )

    structlog_level: str = Field("INFO", alias="STRUCTLOG_LEVEL", description="Log level.")
    log_json: bool = Field(False, alias="LOG_JSON", description="Emit JSON log lines.")
    celery_worker_concurrency: PositiveInt = Field(1, alias="CELERY_WORKER_CONCURRENCY", description="Celery worker concurrency.")
    celery_task_soft_time_limit: PositiveInt = Field(
        900,
        alias="CELERY_TASK_SOFT_TIME_LIMIT",
        description="Celery soft time limit (seconds).",
    )

    @field_validator("news_sources", mode="before")
    @classmethod
    def _parse_news_sources(cls, value: Any) -> List[Any]:
        parsed = _parse_json_list(value, "NEWS_SOURCES")
        if not parsed:
            return list(DEFAULT_SOURCES)
        return parsed

    @field_validator("news_sources")
    @classmethod
    def _validate_unique_sources(cls, value: List[SourceConfig]) -> List[SourceConfig]:
        seen: Set[str] = set()
        for source in value:
            key = source.name.lower()
            if key in seen:
                raise ValueError(f"duplicate source name: {source.name}")
            seen.add(key)
        return value

    @field_validator("ingestion_schedules", mode="before")
    @classmethod
    def _parse_schedules(cls, value: Any) -> List[Any]:
        return _parse_json_list(value, "INGESTION_SCHEDULES")

    @field_validator("ingestion_schedules")
    @classmethod
    def _validate_unique_schedule(cls, value: List[IngestionSchedule]) -> List[IngestionSchedule]:
        seen: Set[str] = set()
        for schedule in value:
            if schedule.category in seen:
                raise ValueError(f"duplicate schedule for category: {schedule.category}")
            seen.add(schedule.category)
        return value

    @field_validator("postgres_dsn")
    @classmethod
    def _validate_postgres_dsn(cls, value: str) -> str:
        if "://" not in value:
            raise ValueError("POSTGRES_DSN must be a valid DSN string.")
        return value

    @field_validator("title_similarity_threshold")
    @classmethod
    def _validate_threshold(cls, v: float) -> float:
        if not 0 < v <= 1:
            raise ValueError("TITLE_SIMILARITY_THRESHOLD must be in (0, 1].")
        return v

    @field_validator("target_city")
    @classmethod
    def _validate_city(cls, value: str) -> str:
        city = value.strip()
        if not city:
            raise ValueError("TARGET_CITY must not be blank.")
        return city

    @property
    def news_api_domain_list(self) -> List[str]:
        return [d.strip() for d in self.news_api_domains.split(",") if d.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Return a Settings instance built from the environment."""
    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"Environment validation failed: {exc}") from exc


def reset_settings_cache() -> None:
    """Clear the Settings LRU cache (for tests)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
