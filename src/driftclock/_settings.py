"""Configuration via pydantic-settings.

Configuration is loaded from environment variables and/or ``.env``
files.  Nested models use ``__`` as the delimiter in env var names,
e.g. ``NTP__DEFAULT_SERVER=time.example.org``.

The schema covers three concerns:

* **NTP** — default server, port, network suppression, resolution
  deadline.
* **Network** — availability probe address and polling interval.
* **Logging** — level, format, optional file sink, rotation.

All durations are in **seconds**.  The reply deadline of a sync round
is fixed at 3 seconds and deliberately not configurable.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from driftclock._state import FALLBACK_SERVER

# -------------------------------------------------------------------
# Sub-models (BaseModel, NOT BaseSettings, nested via composition)
# -------------------------------------------------------------------


class NtpSettings(BaseModel):
    """NTP server and synchronisation policy.

    Environment variables (with ``__`` nesting)::

        NTP__DEFAULT_SERVER=time.example.org
        NTP__PORT=123
        NTP__SUPPRESS_NETWORK_CALLS=false
        NTP__RESOLVE_TIMEOUT=3.0
    """

    default_server: str = Field(
        default=FALLBACK_SERVER,
        description="NTP server used when a sync call names none.",
    )
    port: Annotated[int, Field(ge=1, le=65535)] = Field(
        default=123,
        description="NTP server UDP port.",
    )
    suppress_network_calls: bool = Field(
        default=False,
        description=(
            "Disable every automatic and triggered sync attempt, "
            "regardless of network availability."
        ),
    )
    resolve_timeout: Annotated[float, Field(gt=0)] = Field(
        default=3.0,
        description="Seconds allowed for resolving the server host name.",
    )


class NetworkSettings(BaseModel):
    """Network-availability monitoring.

    Environment variables::

        NETWORK__PROBE_HOST=8.8.8.8
        NETWORK__POLL_INTERVAL=30
    """

    probe_host: str = Field(
        default="8.8.8.8",
        description=(
            "IPv4 literal used to check for a route.  No traffic is "
            "sent to it."
        ),
    )
    poll_interval: Annotated[float, Field(gt=0)] = Field(
        default=30.0,
        description="Seconds between availability checks.",
    )


class LoggingSettings(BaseModel):
    """Logging configuration.

    When ``file`` is set, logs are also written to a rotating file
    (size-based rotation, ``backup_count`` generations kept).  When
    ``None``, logs go to stderr only.

    The ``format`` field selects the output format:

    - ``"json"`` (default) — structured JSON lines for log
      aggregators.
    - ``"text"`` — human-readable timestamped lines for terminals.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root log level.",
    )
    format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format: 'json' or 'text'.",
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


# -------------------------------------------------------------------
# Root settings
# -------------------------------------------------------------------


class Settings(BaseSettings):
    """Root settings for driftclock.

    Loaded from environment variables with the nested delimiter
    ``__`` and an optional ``.env`` file in the working directory.

    Example ``.env``::

        NTP__DEFAULT_SERVER=time.cloudflare.com
        NETWORK__POLL_INTERVAL=60
        LOGGING__LEVEL=DEBUG
        LOGGING__FORMAT=text
    """

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
    """``extra="ignore"`` because no ``env_prefix`` is set: every
    environment variable is visible and unrelated ones must not fail
    validation."""

    ntp: NtpSettings = Field(
        default_factory=NtpSettings,
        description="NTP server and sync policy.",
    )
    network: NetworkSettings = Field(
        default_factory=NetworkSettings,
        description="Network-availability monitoring.",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration.",
    )
