"""
Configuration management for bicifinder using Pydantic.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, ClassVar, List, Optional, cast

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Setup Logging ---
log = logging.getLogger(__name__)

KNOWN_STRATEGIES = ("api", "rendered_dom", "html")

CARD_SELECTORS = [
    ".bicicleta-card",
    ".bicycle-card",
    ".bike-item",
    ".bicicleta-item",
    "article.bicicleta",
    ".card.bicicleta",
    "[data-bicicleta]",
    "[data-bicycle]",
    ".resultado-bicicleta",
    ".resultado",
    ".listado-bicicletas > div",
    '.grid > div[class*="col"]',
    ".bicycles-list > div",
    ".bike-list > div",
]

# --- Nested Configuration Models ---


class UpstreamConfig(BaseModel):
    """Where the third-party registry lives and how to address it."""

    origin: str = Field(default="https://www.biciregistro.es", description="Origin used to absolutize root paths.")
    listing_url: str = Field(
        default="https://biciregistro.es/bicicletas/localizadas",
        description="Server-rendered listing of recovered bicycles.",
    )
    render_url: str = Field(
        default="https://www.biciregistro.es/bicicletas/localizadas",
        description="Client-rendered search view loaded in the headless browser.",
    )
    api_base_url: str = Field(default="https://www.biciregistro.es/biciregistro/rest")
    api_endpoints: List[str] = Field(
        default=[
            "/v1/bicicletas/pagedLocalizadas",
            "/v1/bicicletas/getLocalizadas",
            "/v1/bicicletas/localizadas",
        ],
        description="Candidate REST endpoints, probed in order.",
    )
    api_methods: List[str] = Field(default=["POST", "GET"], description="Candidate methods per endpoint.")
    brands_path: str = Field(default="/v1/config/getMarcas")
    colors_path: str = Field(default="/v1/config/getColors")
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
        ),
    )
    accept_language: str = Field(default="es-ES,es;q=0.9,en-US;q=0.8,en;q=0.7")

    @field_validator("api_methods")
    @classmethod
    def normalize_methods(cls, v: List[str]) -> List[str]:
        methods = [m.upper() for m in v]
        for method in methods:
            if method not in ("GET", "POST"):
                raise ValueError(f"Unsupported API method: {method}")
        return methods

    @field_validator("origin")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class FetcherConfig(BaseModel):
    """Timeouts and retry budget for every upstream request."""

    timeout: float = Field(default=15.0, gt=0, description="HTML page request timeout in seconds.")
    api_timeout: float = Field(default=10.0, gt=0, description="REST request timeout in seconds.")
    max_attempts: int = Field(default=3, ge=1, description="Attempts per request, first one included.")
    base_delay: float = Field(default=1.0, ge=0, description="Backoff delay before the second attempt.")
    max_delay: float = Field(default=5.0, ge=0, description="Upper bound for a single backoff wait.")


class PaginationConfig(BaseModel):
    """Stop conditions for paginated strategies."""

    max_pages: int = Field(default=100, ge=1, description="Hard page ceiling for listing pagination.")
    max_consecutive_empty: int = Field(default=2, ge=1)
    api_max_pages: int = Field(default=10, ge=1)
    api_page_size: int = Field(default=100, ge=1)
    api_stop_on_unknown: bool = Field(
        default=True,
        description="Treat a REST page without pagination metadata as the last page.",
    )


class RenderConfig(BaseModel):
    """Headless browser settings for the rendered-DOM strategy."""

    enabled: bool = True
    headless: bool = True
    navigation_timeout: float = Field(default=30.0, gt=0)
    marker_timeout: float = Field(default=10.0, gt=0, description="How long to wait for a content marker.")
    marker_selectors: List[str] = Field(default_factory=lambda: list(CARD_SELECTORS))
    max_pages: int = Field(default=10, ge=1)


class AcquisitionSettings(BaseModel):
    """Order in which acquisition strategies are tried."""

    strategy_order: List[str] = Field(
        default=list(KNOWN_STRATEGIES), description="Strategies to try, highest priority first."
    )

    @field_validator("strategy_order")
    @classmethod
    def validate_strategy_order(cls, v: List[str]) -> List[str]:
        """Ensure the order is not empty and only names known strategies."""
        if not v:
            raise ValueError("strategy_order must contain at least one strategy")
        for name in v:
            if name not in KNOWN_STRATEGIES:
                raise ValueError(
                    f"Invalid strategy '{name}' in strategy_order. Available strategies: {KNOWN_STRATEGIES}"
                )
        return v


class RecordsConfig(BaseModel):
    placeholder_image: str = "/static/placeholder.svg"
    recovered_status: str = "localizada"


class VocabularyConfig(BaseModel):
    ttl_seconds: float = Field(default=3600.0, gt=0, description="How long brand/color lists are cached.")


class RelayConfig(BaseModel):
    """Image relay allow-list and caching."""

    allowed_hosts: List[str] = Field(default=["biciregistro.es", "www.biciregistro.es"])
    cache_max_age: int = Field(default=86400, ge=0)
    timeout: float = Field(default=15.0, gt=0)

    @field_validator("allowed_hosts")
    @classmethod
    def lowercase_hosts(cls, v: List[str]) -> List[str]:
        return [host.lower() for host in v]


class WebConfig(BaseModel):
    """Configuration for the HTTP API."""

    host: str = Field(default="127.0.0.1", description="Host for the web server.")
    port: int = Field(default=8000, description="Port for the web server.")
    cors_origins: List[str] = Field(default=["http://localhost:3000"])


class MonitoringConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(default=None, description="Path to log file. If None, logs to console.")
    json_logs: bool = Field(default=False, description="Render console logs as JSON.")

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "bicifinder"
    version: str = "0.1.0"
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    acquisition: AcquisitionSettings = Field(default_factory=AcquisitionSettings)
    records: RecordsConfig = Field(default_factory=RecordsConfig)
    vocabulary: VocabularyConfig = Field(default_factory=VocabularyConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="BICIFINDER_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)


def find_config_file() -> Path | None:
    current_dir = Path.cwd()
    for path in (current_dir / "config.yaml", current_dir / "config.yml"):
        if path.exists():
            return path
    return None


def load_config(path: Optional[Path] = None) -> Config:
    """Load configuration from an explicit file, a discovered file, or defaults."""
    if path is not None:
        return Config.from_yaml(path)
    discovered = find_config_file()
    if discovered:
        return Config.from_yaml(discovered)
    return Config()


# --- Lazy Configuration Loader ---


class LazyConfig:
    """
    A proxy for the Config object that delays its loading and validation
    until an attribute is first accessed. This prevents configuration errors
    from crashing the application on import.
    """

    _config: ClassVar[Config | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def resolve(self) -> Config:
        """Return the underlying Config, loading it on first use."""
        if self.__class__._config is None:
            with self.__class__._lock:
                if self.__class__._config is None:
                    self.__class__._config = self._load_config_with_fallback()
        return self.__class__._config

    def __getattr__(self, name: str) -> Any:
        return getattr(self.resolve(), name)

    def _load_config_with_fallback(self) -> Config:
        """Load configuration from file or fall back to defaults."""
        config_path = find_config_file()
        if config_path:
            try:
                log.info("Lazy loading configuration from: %s", config_path)
                return Config.from_yaml(config_path)
            except (ValidationError, OSError, yaml.YAMLError) as e:
                log.error(
                    "Failed to load or validate configuration from '%s': %s. "
                    "Falling back to default settings. Please check your config file.",
                    config_path,
                    e,
                    exc_info=log.getEffectiveLevel() <= logging.DEBUG,
                )
        else:
            log.info("No config file found. Using default settings for lazy load.")

        try:
            return Config()
        except ValidationError as e:
            log.critical("FATAL: Default configuration is invalid: %s", e, exc_info=True)
            raise RuntimeError(f"Default configuration is invalid, cannot start: {e}") from e


# --- Global Settings Instance ---
_lazy_settings = LazyConfig()
settings: "Config" = cast("Config", _lazy_settings)


def get_settings() -> Config:
    """The process-wide configuration as a concrete Config instance."""
    return _lazy_settings.resolve()
