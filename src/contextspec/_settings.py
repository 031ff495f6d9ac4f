"""Framework configuration via pydantic-settings.

Configuration is loaded from environment variables and/or a ``.env``
file.  Every variable carries the ``CONTEXTSPEC_`` prefix and nested
models use ``__`` as the delimiter, e.g.
``CONTEXTSPEC_AUDIT__AUTO_VERIFY_MOCKS=true``.

Three concerns are covered:

* **Audit** — default strictness of the mock-verification audit.
  Fixture classes may override either flag individually.
* **Collection** — how assertion methods are recognised.
* **Logging** — level, format and optional file sink for the CLI.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuditSettings(BaseModel):
    """Default strictness of the teardown-time mock audit.

    Environment variables::

        CONTEXTSPEC_AUDIT__AUTO_VERIFY_MOCKS=true
        CONTEXTSPEC_AUDIT__CHECK_SETUPS_ARE_MATCHED_WITH_VERIFY_CALLS=true
    """

    check_setups_are_matched_with_verify_calls: bool = Field(
        default=False,
        description=(
            "Require an explicit verify call, made while assertions run, "
            "for every setup flagged as verifiable."
        ),
    )
    auto_verify_mocks: bool = Field(
        default=False,
        description=(
            "Require every setup, verifiable or not, to have been invoked "
            "at least once."
        ),
    )


class CollectionSettings(BaseModel):
    """How fixture members are recognised as assertion methods."""

    assertion_prefix: str = Field(
        default="then_",
        description="Name prefix marking a fixture method as an assertion.",
    )

    @field_validator("assertion_prefix")
    @classmethod
    def _prefix_is_identifier(cls, value: str) -> str:
        if not value.isidentifier():
            msg = f"assertion_prefix must be a non-empty identifier prefix, got {value!r}"
            raise ValueError(msg)
        return value


class LoggingSettings(BaseModel):
    """Logging configuration for the command-line runner.

    The ``format`` field selects the output format:

    - ``"text"`` (default) — human-readable timestamped lines.
    - ``"json"`` — structured JSON lines, one object per record, for
      CI log collectors.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Root log level.",
    )
    format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format.",
    )
    file: str | None = Field(
        default=None,
        description="Optional log file path. ``None`` means stderr only.",
    )
    max_file_size_mb: Annotated[int, Field(ge=1)] = Field(
        default=10,
        description="Maximum log file size in megabytes before rotation.",
    )
    backup_count: Annotated[int, Field(ge=0)] = Field(
        default=3,
        description="Number of rotated log files to keep.",
    )


class Settings(BaseSettings):
    """Root contextspec settings.

    Example ``.env``::

        CONTEXTSPEC_AUDIT__AUTO_VERIFY_MOCKS=true
        CONTEXTSPEC_COLLECTION__ASSERTION_PREFIX=it_
        CONTEXTSPEC_LOGGING__LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="CONTEXTSPEC_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    audit: AuditSettings = Field(
        default_factory=AuditSettings,
        description="Mock-verification audit defaults.",
    )
    collection: CollectionSettings = Field(
        default_factory=CollectionSettings,
        description="Assertion method discovery.",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration.",
    )
