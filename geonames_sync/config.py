"""
Configuration management for the GeoNames supply pipeline.

Uses pydantic-settings for type-safe configuration with environment variable support.
The settings object is built once (see get_settings) and handed to every component
at construction time; no component reads it from module state.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from geonames_sync.kinds import EntityKind


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="POSTGRES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    user: str = "geonames"
    password: str = ""  # Set POSTGRES_PASSWORD in .env
    host: str = "localhost"
    port: int = 5432
    db: str = "geonames"

    # Full URL override, e.g. DATABASE_URL=sqlite:///geonames.db
    database_url: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    @property
    def url(self) -> str:
        """Construct database URL."""
        if self.database_url:
            return self.database_url
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.db}"


class PipelineSettings(BaseSettings):
    """Download and processing settings."""

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Staging directory for downloaded and extracted source files
    directory: Path = Field(default=Path("./data/geonames"))
    base_url: str = "https://download.geonames.org/export/dump/"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None  # rotating file sink in addition to stderr

    # HTTP settings
    http_timeout: int = 60  # seconds
    http_max_retries: int = 3
    http_retry_delay: float = 1.0  # seconds

    # Processing settings
    batch_size: int = 1000

    @field_validator("directory", mode="before")
    @classmethod
    def ensure_path(cls, v):
        """Convert string to Path."""
        return Path(v)

    @field_validator("base_url")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        return v if v.endswith("/") else v + "/"


class GeonamesSettings(BaseSettings):
    """
    Supply policy: which entity kinds are stored and which rows pass the filters.

    The enabled kinds must form a prefix of the hierarchy
    (continent -> country -> division -> city), since every child table
    carries a foreign key to its parent table.
    """

    model_config = SettingsConfigDict(
        env_prefix="GEONAMES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Entity kinds
    continents: bool = True
    countries: bool = True
    divisions: bool = True
    cities: bool = True
    translations: bool = True

    # Filters
    population: int = 15000                                    # minimal city population
    countries_filter: list[str] = Field(default_factory=list)  # ISO codes, empty = all
    languages: list[str] = Field(default_factory=lambda: ["*"])
    nullable_language: bool = True                             # keep names without a locale

    @field_validator("countries_filter")
    @classmethod
    def normalize_country_codes(cls, v: list[str]) -> list[str]:
        return [code.strip().upper() for code in v if code.strip() and code.strip() != "*"]

    @model_validator(mode="after")
    def check_hierarchy(self):
        """A child kind may only be enabled together with all its parent kinds."""
        for kind in EntityKind:
            if self.is_enabled(kind) and kind.parent and not self.is_enabled(kind.parent):
                raise ValueError(
                    "Enabled entity kinds must follow the hierarchy "
                    "continents -> countries -> divisions -> cities"
                )
        return self

    def is_enabled(self, kind: EntityKind) -> bool:
        return getattr(self, kind.plural)

    def enabled_kinds(self) -> list[EntityKind]:
        """Enabled kinds in hierarchy order."""
        return [kind for kind in EntityKind if self.is_enabled(kind)]

    def is_country_allowed(self, code: Optional[str]) -> bool:
        if not self.countries_filter:
            return True
        return code is not None and code.upper() in self.countries_filter

    def is_locale_allowed(self, locale: Optional[str]) -> bool:
        if not locale:
            return self.nullable_language
        return "*" in self.languages or locale in self.languages


class Settings(BaseSettings):
    """Main settings class that combines all settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Sub-settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    geonames: GeonamesSettings = Field(default_factory=GeonamesSettings)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
