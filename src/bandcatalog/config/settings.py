"""Application settings loaded from environment variables.

All values can be overridden with ``BANDCATALOG_`` prefixed env vars. Nested sections use
``__`` as delimiter, e.g. ``BANDCATALOG_DATABASE__URL`` or ``BANDCATALOG_BULK_IMPORT__MAX_ROWS``.
"""

from functools import lru_cache

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    """Database connection settings."""

    url: str = Field(
        default="sqlite+aiosqlite:///./bandcatalog.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    pool_timeout: int = Field(default=30, ge=1)
    pool_recycle: int = Field(default=3600, ge=-1)
    pool_pre_ping: bool = Field(default=True)
    auto_create_tables: bool = Field(
        default=True,
        description="Create missing tables on startup (turn off when Alembic owns the schema)",
    )
    # Hey future me - flip this off to simulate a backend where the single-transaction
    # reposition primitive isn't deployed yet. ReorderEngine then uses the row-by-row fallback.
    atomic_reposition: bool = Field(
        default=True,
        description="Whether the store offers the atomic reposition primitive",
    )


class CatalogSettings(BaseModel):
    """Catalog invariant settings."""

    canonical_name: str = Field(default="Catalog")
    legacy_names: list[str] = Field(default_factory=lambda: ["All Songs"])
    max_heal_passes: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many verify passes the catalog healer may run before giving up",
    )

    @field_validator("canonical_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("canonical_name must not be empty")
        return value

    def is_catalog_name(self, name: str) -> bool:
        """Case-insensitive match against the canonical and legacy catalog names."""
        normalized = name.strip().lower()
        if normalized == self.canonical_name.lower():
            return True
        return any(normalized == legacy.strip().lower() for legacy in self.legacy_names)


class ImportSettings(BaseModel):
    """Bulk import limits."""

    max_rows: int = Field(default=500, ge=1)
    batch_size: int = Field(default=50, ge=1)
    min_bpm: int = Field(default=1, ge=1)
    max_bpm: int = Field(default=300, ge=1)


class MetadataSettings(BaseModel):
    """Ranges accepted for manual song metadata edits."""

    min_bpm: int = Field(default=20, ge=1)
    max_bpm: int = Field(default=300, ge=1)
    max_duration_seconds: int = Field(default=1200, ge=1)


class ReorderSettings(BaseModel):
    """Reorder persistence settings."""

    debounce_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Quiet window before a local reorder is persisted",
    )


class TempoSettings(BaseModel):
    """External tempo (BPM) lookup settings."""

    enabled: bool = Field(default=False)
    base_url: str = Field(default="https://api.getsong.co")
    api_key: str = Field(default="")
    timeout: float = Field(default=10.0, gt=0)
    batch_size: int = Field(default=3, ge=1)
    batch_delay_seconds: float = Field(default=0.5, ge=0.0)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="BANDCATALOG_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="bandcatalog")
    log_level: str = Field(default="INFO")
    log_json_format: bool = Field(default=False)

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    bulk_import: ImportSettings = Field(default_factory=ImportSettings)
    metadata: MetadataSettings = Field(default_factory=MetadataSettings)
    reorder: ReorderSettings = Field(default_factory=ReorderSettings)
    tempo: TempoSettings = Field(default_factory=TempoSettings)

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return level


# Yo, cached so every Depends(get_settings) shares one instance. Tests that need different
# values build Settings(...) directly and pass it to create_app() instead of poking env vars.
@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
