"""Declarative configuration schema for the Newsdesk crawler.

One pydantic model per ``config.toml`` table. ``Config`` is the only thing
``newsdesk.config_manager`` validates; components read the flattened dicts
exported by ``config.settings``.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, List, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveFloat,
    PositiveInt,
    PrivateAttr,
    field_validator,
    model_validator,
)


class StrictModel(BaseModel):
    """Unknown keys are errors; strings are stripped; assignments re-validate."""

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        str_strip_whitespace=True,
        validate_assignment=True,
    )


def _absolute(path: Path) -> Path:
    return path if path.is_absolute() else path.resolve()


class AppSettings(StrictModel):
    """Deployment identity and the clock used by date filters."""

    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        description="Deployment stage; 'production' disables debug output.",
    )
    debug: bool = Field(
        default=False,
        description="Colourised DEBUG console logging with tracebacks.",
    )
    timezone: str = Field(
        default="UTC",
        description="Timezone used to decide what counts as 'today' for news filters.",
        examples=["Asia/Shanghai"],
    )

    @field_validator("environment", mode="before")
    @classmethod
    def _lower_environment(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone {value!r}") from exc
        return value


class PathsConfig(StrictModel):
    """Where runtime state lives."""

    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding the SQLite store, progress file and logs.",
        examples=["/var/lib/newsdesk"],
    )

    @field_validator("data_dir")
    @classmethod
    def _resolve_data_dir(cls, value: Path) -> Path:
        return _absolute(value)


class DatabaseConfig(StrictModel):
    """Article store backend."""

    driver: Literal["sqlite", "postgresql"] = Field(
        default="sqlite",
        description="SQLAlchemy backend for the article store.",
        examples=["postgresql"],
    )
    path: Optional[Path] = Field(
        default=Path("data/newsdesk.db"),
        description="SQLite file; ':memory:' keeps the store in process.",
    )
    host: Optional[str] = Field(
        default=None,
        description="PostgreSQL host.",
        examples=["db.internal"],
    )
    port: Optional[int] = Field(
        default=None,
        description="PostgreSQL port.",
        examples=[5432],
    )
    name: str = Field(default="newsdesk", description="PostgreSQL database name.")
    user: Optional[str] = Field(default=None, description="PostgreSQL role.")
    password: Optional[str] = Field(
        default=None,
        description="PostgreSQL password; masked by --explain.",
    )
    pool_size: PositiveInt = Field(
        default=5, description="Pooled PostgreSQL connections."
    )
    max_overflow: PositiveInt = Field(
        default=10,
        description="Connections allowed beyond pool_size under load.",
    )

    @field_validator("driver", mode="before")
    @classmethod
    def _lower_driver(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("host", "port", "user", "password", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        # saved configs write unset optionals as ""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _check_backend_fields(self) -> "DatabaseConfig":
        if self.driver == "sqlite" and self.path is None:
            raise ValueError("sqlite driver needs database.path")
        if self.driver == "postgresql":
            missing = [name for name in ("host", "port", "user") if getattr(self, name) is None]
            if missing:
                raise ValueError("postgresql driver needs database." + ", database.".join(missing))
        return self


class CollectionConfig(StrictModel):
    """Remote fetch behaviour."""

    request_timeout_seconds: PositiveFloat = Field(
        default=10.0,
        description="Timeout applied to every feed, page or API request.",
    )
    article_timeout_seconds: PositiveFloat = Field(
        default=5.0,
        description="Timeout for individual article pages followed by the scraper.",
    )
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0 Safari/537.36 NewsdeskCrawler/1.0"
        ),
        description="HTTP User-Agent header sent to providers.",
    )
    accept: str = Field(
        default=(
            "application/rss+xml, application/atom+xml, application/xml, "
            "text/xml, text/html;q=0.9, */*;q=0.8"
        ),
        description="Accept header sent with feed and page requests.",
    )
    accept_language: str = Field(
        default="zh-CN,zh;q=0.9,en;q=0.8",
        description="Accept-Language header sent with requests.",
    )
    max_response_bytes: PositiveInt = Field(
        default=10 * 1024 * 1024,
        description="Responses larger than this are rejected as malformed.",
    )
    scraping_max_articles: PositiveInt = Field(
        default=10,
        description="Maximum article links followed per scraped listing page.",
    )
    scraping_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Pause between article page requests while scraping.",
    )
    default_max_articles_per_crawl: PositiveInt = Field(
        default=50,
        description="Accepted-item cap for a source that declares none.",
    )


class RateLimitingConfig(StrictModel):
    """Retry and backoff configuration."""

    max_retries: int = Field(
        default=2, ge=0, description="Retry attempts for transient failures."
    )
    backoff_base: PositiveFloat = Field(
        default=0.5, description="Base factor for exponential backoff."
    )
    backoff_max: PositiveFloat = Field(
        default=10.0,
        description="Maximum jitter-free delay enforced by backoff.",
    )
    jitter_max: float = Field(
        default=0.3, ge=0.0, description="Maximum random jitter added to delays."
    )
    retry_statuses: List[int] = Field(
        default_factory=lambda: [429, 500, 502, 503, 504],
        description="HTTP status codes treated as transient.",
    )


class QualityConfig(StrictModel):
    """Weighting tables for the content quality assessor."""

    base_score: int = Field(default=40, ge=0, le=100)
    high_quality_threshold: int = Field(
        default=70,
        ge=0,
        le=100,
        description="Score at or above which content is classified as high quality.",
    )
    default_min_quality_score: int = Field(
        default=25,
        ge=0,
        le=100,
        description="Acceptance gate used when a source declares no minQualityScore.",
    )
    domain_keywords: List[str] = Field(
        default_factory=lambda: [
            "fashion", "textile", "apparel", "clothing", "fabric", "design",
            "style", "trend", "garment", "manufacturing", "sourcing",
            "supply chain", "retail", "wholesale", "cotton", "polyester", "silk",
            "wool", "denim", "knit", "woven", "fiber", "underwear", "lingerie",
            "intimate", "bra", "panty", "shapewear",
        ],
        description="Title keywords worth 3 points each (capped at 10).",
    )
    title_spam_phrases: List[str] = Field(
        default_factory=lambda: [
            "click here", "free", "urgent", "limited time", "!!!", "buy now",
        ],
        description="Any of these in the title costs 25 points.",
    )
    business_keywords: List[str] = Field(
        default_factory=lambda: [
            "manufacturing", "production", "export", "import", "trade", "market",
            "industry", "business", "company", "factory", "supplier", "buyer",
        ],
        description="Body keywords worth 2 points each (capped at 10).",
    )
    body_spam_phrases: List[str] = Field(
        default_factory=lambda: [
            "click here", "buy now", "limited time", "free shipping", "call now",
            "点击查看", "更多详情", "广告", "推广", "联系我们",
        ],
        description="Each phrase found in the body costs 8 points.",
    )
    technical_terms: List[str] = Field(
        default_factory=lambda: [
            "sustainability", "eco-friendly", "organic", "recycled",
            "biodegradable", "automation", "digitalization", "quality control",
            "certification",
        ],
        description="Terminology worth 2 points each, at most 5 matches.",
    )


class DedupConfig(StrictModel):
    """Duplicate detector behaviour."""

    title_similarity_threshold: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="Titles with Jaccard similarity above this are duplicates.",
    )
    hydration_limit: PositiveInt = Field(
        default=5_000,
        description="Maximum stored articles loaded when hydrating the detector.",
    )


class ProgressConfig(StrictModel):
    """Progress store location."""

    file_path: Path = Field(
        default=Path("data/crawl-progress.json"),
        description="JSON file holding the durable session progress record.",
    )

    @field_validator("file_path")
    @classmethod
    def _resolve_file_path(cls, value: Path) -> Path:
        return _absolute(value)


class SessionConfig(StrictModel):
    """Defaults for crawl sessions started without explicit parameters."""

    target_languages: List[str] = Field(
        default_factory=lambda: ["zh", "en"],
        description="Languages crawled when the trigger names none.",
    )
    articles_per_language: PositiveInt = Field(
        default=50,
        le=500,
        description="Per-region quota of accepted articles.",
    )
    only_today_news: bool = Field(
        default=True,
        description="Reject candidates published before the current day.",
    )
    enable_polishing: bool = Field(
        default=True,
        description="Run the enrichment capability before persisting articles.",
    )
    stale_after_minutes: PositiveInt = Field(
        default=30,
        description="Non-terminal sessions idle this long are treated as abandoned.",
    )

    @field_validator("target_languages")
    @classmethod
    def _normalize_languages(cls, value: List[str]) -> List[str]:
        normalized = [item.strip().lower() for item in value if item.strip()]
        if not normalized:
            raise ValueError("target_languages must contain at least one language")
        return normalized


class EnrichmentConfig(StrictModel):
    """Polishing / translation capability settings."""

    provider: str = Field(
        default="passthrough",
        description="Enrichment backend (passthrough|chat_completions).",
        examples=["chat_completions"],
    )
    api_url: str = Field(
        default="https://api.deepseek.com/v1/chat/completions",
        description="OpenAI-compatible chat completions endpoint.",
    )
    api_key: Optional[str] = Field(
        default=None,
        description="Bearer token for the chat completions endpoint; secret.",
    )
    model: str = Field(default="deepseek-chat", description="Model identifier.")
    max_tokens: PositiveInt = Field(default=2_000)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    request_timeout_seconds: PositiveFloat = Field(default=60.0)
    source_language: str = Field(
        default="zh",
        description="Language assumed for collected content when translating.",
    )

    @field_validator("provider")
    @classmethod
    def _check_provider(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"passthrough", "chat_completions"}:
            raise ValueError("provider must be 'passthrough' or 'chat_completions'")
        return normalized


class SchedulerConfig(StrictModel):
    """Periodic session triggers."""

    enabled: bool = Field(default=False)
    cron_expression: str = Field(
        default="0 8 * * *",
        description="Crontab expression for the default scheduled crawl.",
    )
    misfire_grace_seconds: PositiveInt = Field(default=300)


class LoggingConfig(StrictModel):
    """Loguru sinks."""

    level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum level for the console and file sinks.",
        examples=["DEBUG"],
    )
    file_path: Optional[Path] = Field(
        default=Path("data/logs/newsdesk.log"),
        description="Rotating log file; empty disables the file sink.",
    )
    max_file_size_mb: PositiveInt = Field(
        default=10,
        description="Rotate the log file once it reaches this size (MiB).",
    )
    retention_days: PositiveInt = Field(
        default=14,
        description="Rotated files older than this are deleted.",
    )

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("file_path", mode="before")
    @classmethod
    def _blank_disables_file(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("file_path")
    @classmethod
    def _resolve_file_path(cls, value: Optional[Path]) -> Optional[Path]:
        return _absolute(value) if value is not None else None


class Config(StrictModel):
    """Complete Newsdesk configuration model."""

    app: AppSettings = Field(default_factory=AppSettings)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    collection: CollectionConfig = Field(default_factory=CollectionConfig)
    rate_limiting: RateLimitingConfig = Field(default_factory=RateLimitingConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    dedup: DedupConfig = Field(default_factory=DedupConfig)
    progress: ProgressConfig = Field(default_factory=ProgressConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    _metadata: object = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _check_enrichment_credentials(self) -> "Config":
        if self.enrichment.provider == "chat_completions" and not self.enrichment.api_key:
            raise ValueError("enrichment.api_key is required for chat_completions")
        return self


DEFAULT_CONFIG = Config()

_BOUND_SYMBOLS = (
    ("gt", ">"),
    ("ge", ">="),
    ("lt", "<"),
    ("le", "<="),
    ("min_length", "len>="),
    ("max_length", "len<="),
)


def _constraint_text(field: Any) -> str:
    bounds = []
    for marker in field.metadata or ():
        for attr, symbol in _BOUND_SYMBOLS:
            limit = getattr(marker, attr, None)
            if limit is not None:
                bounds.append(f"{symbol} {limit}")
    return ", ".join(bounds)


def _type_name(annotation: Any) -> str:
    return getattr(annotation, "__name__", None) or str(annotation).replace("typing.", "")


def iter_field_docs(
    model: BaseModel | type[BaseModel],
    prefix: str = "",
    *,
    include_defaults: bool = True,
) -> Iterable[dict[str, object]]:
    """
    Walk ``model`` depth-first and describe every field under its dotted name.

    Tables are yielded too (``is_nested`` true, no default) so the schema
    table shows section headers next to their keys.
    """

    instance = DEFAULT_CONFIG if model is Config else model
    if isinstance(instance, type):
        instance = instance()
    for name, field in type(instance).model_fields.items():
        dotted = f"{prefix}.{name}" if prefix else name
        value = getattr(instance, name)
        nested = isinstance(value, BaseModel)
        yield {
            "name": dotted,
            "type": _type_name(field.annotation),
            "description": field.description or "",
            "default": value if include_defaults and not nested else None,
            "examples": list(field.examples or []),
            "constraints": _constraint_text(field),
            "is_nested": nested,
        }
        if nested:
            yield from iter_field_docs(value, dotted, include_defaults=include_defaults)


__all__ = [
    "Config",
    "DEFAULT_CONFIG",
    "StrictModel",
    "iter_field_docs",
]
