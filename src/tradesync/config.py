"""Configuration system using pydantic-settings with environment variable loading."""

from dataclasses import dataclass, fields
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from tradesync.exceptions import InvalidInputError


class AveSettings(BaseSettings):
    """AVE trade API connection settings."""

    model_config = SettingsConfigDict(env_prefix="AVE_")

    api_key: SecretStr = SecretStr("")
    base_url: str = "https://prod.ave-api.com"
    chain: str = "solana"
    timeout_seconds: float = 20.0


class SyncSettings(BaseSettings):
    """Trade history synchronization parameters.

    Paging limits and pacing delays here are only defaults: a RuntimeConfig
    overlay can change them while the process is running.
    All fields configurable via SYNC_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="SYNC_")

    data_dir: str = "tokenlist"
    page_size: int = Field(default=100, gt=0)
    max_fetch: int = Field(default=10000, gt=0)  # max fresh records per pair per run
    max_pages_after: int = Field(default=50, gt=0)  # page cap once a pair has a watermark
    page_delay_ms: int = Field(default=250, ge=0)
    pair_delay_ms: int = Field(default=800, ge=0)
    display_utc_offset_hours: int = 8  # human readable times in progress events


class ServerSettings(BaseSettings):
    """HTTP/WebSocket server configuration."""

    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = "0.0.0.0"
    port: int = 3000
    api_key: SecretStr = SecretStr("")  # empty disables X-API-KEY auth


# .env keys (nested form read by AppSettings) for persisted runtime overrides
RUNTIME_ENV_KEYS = {
    "page_size": "SYNC__PAGE_SIZE",
    "max_fetch": "SYNC__MAX_FETCH",
    "max_pages_after": "SYNC__MAX_PAGES_AFTER",
    "page_delay_ms": "SYNC__PAGE_DELAY_MS",
    "pair_delay_ms": "SYNC__PAIR_DELAY_MS",
}


@dataclass
class RuntimeConfig:
    """Mutable runtime config overlay. Non-None fields override SyncSettings values.

    Used by the admin endpoint to retune paging without restarting.
    Changes are applied at the start of each pair run.
    """

    page_size: int | None = None
    max_fetch: int | None = None
    max_pages_after: int | None = None
    page_delay_ms: int | None = None
    pair_delay_ms: int | None = None

    def validate(self) -> None:
        """Raise InvalidInputError for non-positive limits or negative delays."""
        for name in ("page_size", "max_fetch", "max_pages_after"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise InvalidInputError(f"{name} must be a positive integer")
        for name in ("page_delay_ms", "pair_delay_ms"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise InvalidInputError(f"{name} must be >= 0")

    def merged_with(self, other: "RuntimeConfig") -> "RuntimeConfig":
        """Return a new overlay where non-None fields of ``other`` win."""
        merged = RuntimeConfig()
        for f in fields(self):
            value = getattr(other, f.name)
            setattr(merged, f.name, value if value is not None else getattr(self, f.name))
        return merged

    def set_fields(self) -> dict[str, int]:
        """Return only the fields that carry an override."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass(frozen=True)
class SyncLimits:
    """Effective paging limits for one pair run."""

    page_size: int
    max_fetch: int
    max_pages_after: int
    page_delay_ms: int
    pair_delay_ms: int

    @property
    def max_pages(self) -> int:
        """Pages needed to reach max_fetch at full page size."""
        return self.max_fetch // self.page_size

    def page_limit(self, is_first_run: bool) -> int:
        """Page budget: full backfill on first run, capped afterwards."""
        if is_first_run:
            return self.max_pages
        return min(self.max_pages_after, self.max_pages)


def resolve_limits(
    settings: SyncSettings, runtime: RuntimeConfig | None = None
) -> SyncLimits:
    """Combine settings with the runtime overlay and validate the result."""
    overrides = runtime.set_fields() if runtime is not None else {}
    values = {
        name: overrides.get(name, getattr(settings, name))
        for name in RUNTIME_ENV_KEYS
    }
    RuntimeConfig(**values).validate()
    return SyncLimits(**values)


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    ave: AveSettings = AveSettings()
    sync: SyncSettings = SyncSettings()
    server: ServerSettings = ServerSettings()
