"""Impact engine configuration loaded from environment variables.

Every client receives the :class:`Settings` instance (or the values it
needs) through its constructor; nothing reads the environment after
:func:`load_settings` returns.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from impact_engine.errors import ConfigurationError
from impact_engine.graph.matching import MatchMode
from impact_engine.models.catalog import IdentityKey

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables with IMPACT_ prefix.

    A handful of values are read from the variables GitHub Actions sets
    (``GITHUB_TOKEN``, ``GITHUB_REPOSITORY``, ``GITHUB_EVENT_PATH``, ...)
    so the tool works without extra wiring inside a workflow.
    """

    model_config = SettingsConfigDict(
        env_prefix="IMPACT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    debug: bool = False
    structured_logging: bool = False

    # Catalog / lineage API
    api_base_url: str | None = None
    api_client_id: str | None = None
    api_client_secret: SecretStr | None = None
    link_base_url: str | None = None
    request_timeout: float = 30.0
    catalog_page_limit: int = Field(default=100, ge=1)
    catalog_max_pages: int = Field(default=50, ge=1)

    # Changed files
    changed_files_list: str | None = None
    changed_files_separator: str = ","
    repo_path: Path = Path(".")

    # Traversal
    match_mode: MatchMode = MatchMode.LOOSE
    identity_key: IdentityKey = IdentityKey.ASSET
    max_depth: int = Field(default=50, ge=1)
    max_records: int = Field(default=10_000, ge=1)
    lineage_concurrency: int = Field(default=4, ge=1)

    # Column diffing
    sql_dialect: str | None = None

    # GitHub
    github_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("IMPACT_GITHUB_TOKEN", "GITHUB_TOKEN", "github_token"),
    )
    github_api_url: str = "https://api.github.com"
    github_repository: str | None = Field(
        default=None,
        validation_alias=AliasChoices("IMPACT_GITHUB_REPOSITORY", "GITHUB_REPOSITORY", "github_repository"),
    )
    github_event_path: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("IMPACT_GITHUB_EVENT_PATH", "GITHUB_EVENT_PATH", "github_event_path"),
    )
    base_sha: str | None = Field(
        default=None,
        validation_alias=AliasChoices("IMPACT_BASE_SHA", "GITHUB_BASE_SHA", "base_sha"),
    )
    head_sha: str | None = Field(
        default=None,
        validation_alias=AliasChoices("IMPACT_HEAD_SHA", "GITHUB_HEAD_SHA", "head_sha"),
    )
    step_summary_path: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("IMPACT_STEP_SUMMARY_PATH", "GITHUB_STEP_SUMMARY", "step_summary_path"),
    )
    output_path: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("IMPACT_OUTPUT_PATH", "GITHUB_OUTPUT", "output_path"),
    )

    @field_validator("api_client_secret", "github_token", mode="before")
    @classmethod
    def mask_secret_in_repr(cls, v: str | None) -> SecretStr | None:
        if v is None or v == "":
            return None
        if isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    @field_validator("api_base_url", "link_base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        if not v:
            return None
        return str(v).rstrip("/")

    def missing_credentials(self) -> list[str]:
        """Return the names of required API settings that are unset."""
        missing: list[str] = []
        if not self.api_base_url:
            missing.append("api_base_url")
        if not self.api_client_id:
            missing.append("api_client_id")
        if self.api_client_secret is None or not self.api_client_secret.get_secret_value():
            missing.append("api_client_secret")
        return missing

    def require_credentials(self) -> None:
        """Raise :class:`ConfigurationError` if the catalog API is not configured."""
        missing = self.missing_credentials()
        if missing:
            raise ConfigurationError(missing)

    def api_credentials(self) -> tuple[str, str, str]:
        """Return ``(base_url, client_id, client_secret)``.

        Raises
        ------
        ConfigurationError
            If any of the three is unset.
        """
        self.require_credentials()
        secret = self.api_client_secret.get_secret_value() if self.api_client_secret else ""
        return self.api_base_url or "", self.api_client_id or "", secret


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    # Drop unset CLI options so they do not shadow environment values.
    provided = {k: v for k, v in overrides.items() if v is not None}
    settings = Settings(**provided)  # type: ignore[arg-type]

    if settings.debug:
        logger.info(
            "Loaded settings: match_mode=%s identity_key=%s max_depth=%d max_records=%d",
            settings.match_mode.value,
            settings.identity_key.value,
            settings.max_depth,
            settings.max_records,
        )

    return settings
