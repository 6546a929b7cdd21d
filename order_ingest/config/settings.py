"""
Importer settings.

Platform endpoints and pipeline tuning come from a YAML file
(``config/platforms.yaml`` by default, or ``INGEST_CONFIG``), overridable
per platform through environment variables loaded from ``.env``.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from order_ingest.core.errors import ConfigurationError
from order_ingest.observability.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path("config/platforms.yaml")

PLATFORM_PAGE_SIZES = {
    "facebook": 3000,
    "tiktok": 5000,
    "shopee": 1000,
}


class PlatformConfig(BaseModel):
    """
    Everything the generic platform client needs to talk to one API.

    Attributes:
        name: Platform name (facebook, tiktok, shopee)
        enabled: Whether the orchestrator runs this platform
        base_url: Orders endpoint
        auth_header_name: Header carrying the API credential
        auth_header_value: Credential value
        page_size: Orders requested per page
        max_retries: Attempts per page before the platform fails
        base_delay_seconds: Linear backoff unit (delay = base * attempt)
        connect_timeout_seconds: TCP connect timeout per call
        timeout_seconds: Read timeout per call
        filter_date: Value of the ``filter-date`` query parameter
        source: Value of the ``source`` query parameter (defaults to name)
        max_pages: Safety cap on pages per run
    """

    name: str = Field(..., min_length=1)
    enabled: bool = True
    base_url: str = ""
    auth_header_name: str = "Authorization"
    auth_header_value: str = ""
    page_size: int = Field(1000, gt=0)
    max_retries: int = Field(5, ge=1)
    base_delay_seconds: float = Field(2.0, ge=0)
    connect_timeout_seconds: float = Field(10.0, gt=0)
    timeout_seconds: float = Field(60.0, gt=0)
    filter_date: str = "update"
    source: str | None = None
    max_pages: int = Field(10_000, gt=0)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def source_param(self) -> str:
        return self.source or self.name

    def auth_headers(self) -> dict[str, str]:
        if not self.auth_header_value:
            return {}
        return {self.auth_header_name: self.auth_header_value}


class IngestSettings(BaseModel):
    """
    Pipeline-wide settings.

    Attributes:
        platforms: Platform configs keyed by platform name
        buffer_capacity: Orders accumulated before a flush
        timezone: Zone used to pick the collection date
        cutoff_hour: Hour before which yesterday is still collected
        max_workers: Concurrent platform pipelines
        validation_rules_path: Optional YAML file overriding the built-in record rules
    """

    platforms: dict[str, PlatformConfig] = Field(default_factory=dict)
    buffer_capacity: int = Field(500, gt=0)
    timezone: str = "Asia/Ho_Chi_Minh"
    cutoff_hour: int = Field(2, ge=0, le=23)
    max_workers: int = Field(3, ge=1)
    validation_rules_path: str | None = None

    def enabled_platforms(self) -> list[PlatformConfig]:
        return [config for config in self.platforms.values() if config.enabled]


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _platform_env_overrides(name: str) -> dict[str, Any]:
    prefix = name.upper()
    overrides: dict[str, Any] = {}

    if url := os.getenv(f"{prefix}_API_URL"):
        overrides["base_url"] = url
    if key := os.getenv(f"{prefix}_API_KEY"):
        overrides["auth_header_value"] = key
    if header := os.getenv(f"{prefix}_AUTH_HEADER"):
        overrides["auth_header_name"] = header
    if enabled := os.getenv(f"{prefix}_ENABLED"):
        overrides["enabled"] = _env_bool(enabled)
    if page_size := os.getenv(f"{prefix}_PAGE_SIZE"):
        overrides["page_size"] = int(page_size)
    if retries := os.getenv(f"{prefix}_MAX_RETRIES"):
        overrides["max_retries"] = int(retries)
    return overrides


def build_settings(raw: dict[str, Any] | None) -> IngestSettings:
    """
    Validate a settings mapping (as parsed from YAML) and apply env overrides.

    Every known platform gets a config even when the file omits it, using
    the platform's default page size.

    Raises:
        ConfigurationError: If the mapping does not validate
    """
    raw = dict(raw or {})
    platforms_raw = raw.pop("platforms", None) or {}
    if not isinstance(platforms_raw, dict):
        raise ConfigurationError("'platforms' must be a mapping of platform name to settings")

    names = list(PLATFORM_PAGE_SIZES) + [name for name in platforms_raw if name not in PLATFORM_PAGE_SIZES]
    platforms: dict[str, PlatformConfig] = {}
    try:
        for name in names:
            values = {"page_size": PLATFORM_PAGE_SIZES.get(name, 1000)}
            values.update(platforms_raw.get(name) or {})
            values.update(_platform_env_overrides(name))
            values["name"] = name
            platforms[name] = PlatformConfig(**values)

        if capacity := os.getenv("BUFFER_CAPACITY"):
            raw["buffer_capacity"] = int(capacity)
        if cutoff := os.getenv("CUTOFF_HOUR"):
            raw["cutoff_hour"] = int(cutoff)
        if tz := os.getenv("INGEST_TIMEZONE"):
            raw["timezone"] = tz

        return IngestSettings(platforms=platforms, **raw)
    except (ValidationError, ValueError, TypeError) as e:
        raise ConfigurationError(f"Invalid importer settings: {e}") from e


def load_settings(config_path: str | Path | None = None, env_file: str | None = None) -> IngestSettings:
    """
    Load settings from ``.env`` + YAML.

    Args:
        config_path: YAML file (defaults to INGEST_CONFIG, then config/platforms.yaml)
        env_file: dotenv file to load first (defaults to .env lookup)

    Returns:
        Validated IngestSettings
    """
    load_dotenv(env_file)

    path = Path(config_path or os.getenv("INGEST_CONFIG", DEFAULT_CONFIG_PATH))
    raw: dict[str, Any] = {}
    if path.exists():
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Settings file {path} must contain a mapping")
    else:
        logger.warning(f"Settings file not found, using defaults: {path}")

    settings = build_settings(raw)
    logger.info(
        "Settings loaded",
        extra={
            "config_path": str(path),
            "enabled_platforms": [config.name for config in settings.enabled_platforms()],
            "buffer_capacity": settings.buffer_capacity,
        },
    )
    return settings
