"""Declarative configuration schema for the NewsHarvest crawler."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeFloat,
    PositiveFloat,
    PositiveInt,
    PrivateAttr,
    field_validator,
    model_validator,
)

DEFAULT_BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class StrictModel(BaseModel):
    """Base model enforcing strict validation rules."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
    )


class AppSettings(StrictModel):
    """Top-level runtime metadata."""

    environment: str = Field(
        default="development",
        description="Normalized deployment environment name.",
        examples=["production"],
    )
    debug: bool = Field(
        default=False,
        description="When true, enables verbose logging and relaxed guards.",
    )

    @field_validator("environment")
    @classmethod
    def _normalize_environment(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"development", "production", "staging", "test"}:
            raise ValueError(
                "environment must be one of: development, staging, production, test"
            )
        return normalized


class PathsConfig(StrictModel):
    """Filesystem layout settings."""

    data_dir: Path = Field(
        default=Path("data"),
        description="Root directory for persistent runtime artefacts.",
        examples=["/var/lib/newsharvest"],
    )
    logs_dir: Path = Field(
        default=Path("logs"),
        description="Directory where operational logs are written.",
        examples=["/var/log/newsharvest"],
    )

    @model_validator(mode="after")
    def _ensure_child_paths(self) -> "PathsConfig":
        base = self.data_dir if self.data_dir.is_absolute() else self.data_dir.resolve()
        object.__setattr__(self, "data_dir", base)
        if not self.logs_dir.is_absolute():
            object.__setattr__(self, "logs_dir", (base / self.logs_dir).resolve())
        return self


class HttpConfig(StrictModel):
    """Static HTTP fetch behaviour."""

    request_timeout_seconds: PositiveFloat = Field(
        default=30.0,
        description="Timeout applied to every static HTTP fetch.",
    )
    user_agent: str = Field(
        default=DEFAULT_BROWSER_USER_AGENT,
        description="Browser-like User-Agent header sent to sources.",
    )
    accept_language: str = Field(
        default="en-US,en;q=0.9,zh-CN;q=0.8,zh;q=0.7",
        description="Accept-Language header sent with page and feed requests.",
    )
    max_redirects: PositiveInt = Field(
        default=5, description="Redirect hops followed before giving up."
    )
    max_response_bytes: PositiveInt = Field(
        default=10 * 1024 * 1024,
        description="Payloads larger than this are logged as oversized.",
    )
    verify_tls: bool = Field(
        default=True, description="Verify TLS certificates of fetched sources."
    )


class RateLimitingConfig(StrictModel):
    """Request throttling and retry configuration."""

    feed_delay_seconds: PositiveFloat = Field(
        default=1.0,
        description="Minimum delay between consecutive feed fetches.",
    )
    article_delay_min_seconds: PositiveFloat = Field(
        default=2.0,
        description="Lower bound of the delay between article fetches of one listing.",
    )
    article_delay_max_seconds: PositiveFloat = Field(
        default=3.0,
        description="Upper bound of the delay between article fetches of one listing.",
    )
    domain_default_delay_seconds: PositiveFloat = Field(
        default=1.0,
        description="Spacing enforced between requests to the same domain.",
    )
    domain_overrides: Dict[str, PositiveFloat] = Field(
        default_factory=dict,
        description="Per-domain throttle overrides in seconds.",
    )
    backoff_base: PositiveFloat = Field(
        default=1.0, description="Base delay in seconds for exponential backoff."
    )
    backoff_max: PositiveFloat = Field(
        default=30.0,
        description="Maximum jitter-free delay enforced by backoff.",
    )
    jitter_max: NonNegativeFloat = Field(
        default=0.3, description="Maximum random jitter added to delays."
    )

    @model_validator(mode="after")
    def _check_article_window(self) -> "RateLimitingConfig":
        if self.article_delay_max_seconds < self.article_delay_min_seconds:
            raise ValueError(
                "article_delay_max_seconds must be >= article_delay_min_seconds"
            )
        return self


class RenderConfig(StrictModel):
    """Headless browser rendering parameters."""

    enabled: bool = Field(
        default=True, description="Allow escalation to the headless browser."
    )
    navigation_timeout_ms: PositiveInt = Field(
        default=30_000, description="Navigation timeout in milliseconds."
    )
    selector_timeout_ms: PositiveInt = Field(
        default=10_000, description="Timeout when waiting for a caller selector."
    )
    settle_delay_ms: PositiveInt = Field(
        default=1_000, description="Fixed delay after navigation settles."
    )
    wait_until: str = Field(
        default="networkidle",
        description="Playwright load state awaited after navigation.",
        examples=["domcontentloaded"],
    )
    block_resources: bool = Field(
        default=True,
        description="Abort requests whose resource type is not allowed.",
    )
    allowed_resource_types: List[str] = Field(
        default_factory=lambda: ["document", "stylesheet", "script", "font"],
        description="Resource types allowed through when blocking is enabled.",
    )
    viewport_width: PositiveInt = Field(default=1920, description="Viewport width.")
    viewport_height: PositiveInt = Field(default=1080, description="Viewport height.")
    max_open_pages: PositiveInt = Field(
        default=4, description="Concurrent pages allowed on the shared browser."
    )
    launch_args: List[str] = Field(
        default_factory=lambda: [
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-dev-shm-usage",
            "--disable-accelerated-2d-canvas",
            "--disable-gpu",
        ],
        description="Extra command-line flags passed to chromium.",
    )

    @field_validator("wait_until")
    @classmethod
    def _check_wait_until(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"load", "domcontentloaded", "networkidle", "commit"}:
            raise ValueError(
                "wait_until must be one of: load, domcontentloaded, networkidle, commit"
            )
        return normalized


class FeedConfig(StrictModel):
    """Syndication feed handling."""

    max_retries: PositiveInt = Field(
        default=3, description="Outer retry attempts for one feed."
    )
    retention_months: PositiveInt = Field(
        default=6, description="Entries older than this many months are skipped."
    )
    backfill_threshold_chars: PositiveInt = Field(
        default=500,
        description="Entries with shorter content are re-fetched from their page.",
    )
    content_max_chars: PositiveInt = Field(
        default=50_000, description="Cap applied to entry content."
    )
    summary_min_chars: PositiveInt = Field(
        default=50, description="Minimum length for a summary candidate to win."
    )
    summary_max_chars: PositiveInt = Field(
        default=300, description="Summary truncation length."
    )


class ExtractionConfig(StrictModel):
    """Static HTML extraction thresholds."""

    body_fallback_threshold_chars: PositiveInt = Field(
        default=500,
        description="Text length under which the wider body pass is attempted.",
    )
    render_min_html_chars: PositiveInt = Field(
        default=100, description="HTML shorter than this needs rendering."
    )
    render_min_text_chars: PositiveInt = Field(
        default=200,
        description="Extracted text shorter than this needs rendering.",
    )
    blog_max_links: PositiveInt = Field(
        default=20, description="Default cap for blog listing links."
    )
    news_max_links: PositiveInt = Field(
        default=30, description="Default cap for news listing links."
    )


class SocialConfig(StrictModel):
    """Proxy-instance settings for social accounts."""

    instances: List[str] = Field(
        default_factory=list,
        description="Static fallback proxy instances used when the registry is empty.",
        examples=[["https://nitter.example.org"]],
    )
    default_instances: List[str] = Field(
        default_factory=lambda: [
            "https://nitter.net",
            "https://nitter.it",
            "https://nitter.pussthecat.org",
        ],
        description="Last-resort proxy instances.",
    )

    @field_validator("instances", mode="before")
    @classmethod
    def _split_instances(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


class CrawlerConfig(StrictModel):
    """Crawl worker pool settings."""

    workers: PositiveInt = Field(
        default=3, description="Number of concurrent crawl workers."
    )
    sources_file: Path | None = Field(
        default=None,
        description="Optional JSON file with source descriptors.",
    )

    @field_validator("sources_file", mode="before")
    @classmethod
    def _blank_is_none(cls, value: Any) -> Any:
        if value == "":
            return None
        return value


class LoggingConfig(StrictModel):
    """Logging subsystem configuration."""

    level: str = Field(
        default="INFO",
        description="Minimum log level captured by the crawler logger.",
        examples=["DEBUG"],
    )
    file_path: Path = Field(
        default=Path("data/logs/crawler.log"),
        description="Absolute path of the rotating log file.",
    )
    max_file_size_mb: PositiveInt = Field(
        default=10,
        description="Maximum size per log file before rotation (MiB).",
    )
    retention_days: PositiveInt = Field(
        default=30,
        description="Number of days to keep rotated log files.",
    )

    @field_validator("level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _resolve_path(self) -> "LoggingConfig":
        if not self.file_path.is_absolute():
            object.__setattr__(self, "file_path", self.file_path.resolve())
        return self


class Config(StrictModel):
    """Complete crawler configuration model."""

    app: AppSettings = Field(default_factory=AppSettings)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    rate_limiting: RateLimitingConfig = Field(default_factory=RateLimitingConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    social: SocialConfig = Field(default_factory=SocialConfig)
    crawler: CrawlerConfig = Field(default_factory=CrawlerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    _metadata: object = PrivateAttr(default=None)


DEFAULT_CONFIG = Config()


def iter_field_docs(
    model: BaseModel | type[BaseModel],
    prefix: str = "",
    *,
    include_defaults: bool = True,
) -> Iterable[dict[str, object]]:
    """Yield flattened schema documentation entries."""

    instance = DEFAULT_CONFIG if isinstance(model, type) else model
    target_model = type(instance) if not isinstance(model, type) else model

    for name, field in target_model.model_fields.items():
        value = getattr(instance, name, field.default)
        key = f"{prefix}{name}" if not prefix else f"{prefix}.{name}"
        is_nested = isinstance(value, BaseModel)
        entry: dict[str, object] = {
            "name": key,
            "type": getattr(field.annotation, "__name__", str(field.annotation)),
            "description": field.description or "",
            "default": None if (is_nested or not include_defaults) else value,
            "examples": field.examples or [],
            "is_nested": is_nested,
        }
        yield entry
        if is_nested:
            yield from iter_field_docs(value, key)


__all__ = [
    "Config",
    "DEFAULT_BROWSER_USER_AGENT",
    "DEFAULT_CONFIG",
    "iter_field_docs",
]
