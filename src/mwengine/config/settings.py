"""Engine settings loaded from environment variables.

Uses Pydantic Settings v2 for validated, type-safe configuration.
Credentials (bot username / password) are read exclusively through this
module; never call ``os.getenv`` directly elsewhere in the codebase.

Usage::

    from mwengine.config.settings import get_settings

    settings = get_settings()
    pause = settings.maxlag_pause

Override precedence, highest first:

1. Keyword overrides passed to :meth:`EngineSettings.with_overrides`
   (and therefore to the ``ApiClient`` / ``Bot`` constructors).
2. Environment variables prefixed ``MWENGINE_`` and the optional ``.env``.
3. The field defaults declared below.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mwengine import __version__

DEFAULT_USER_AGENT: str = (
    f"mwengine/{__version__} (https://github.com/mwengine/mwengine) python-httpx"
)
"""User-Agent sent when none is configured.

Wikimedia's User-Agent policy asks for a string identifying the tool and a
way to contact its operator; bot operators should override this.
"""

HIGH_LIMIT_BATCH_SIZE: int = 500
"""Multi-value field cap for accounts holding the ``apihighlimits`` right."""

LOW_LIMIT_BATCH_SIZE: int = 50
"""Multi-value field cap for ordinary accounts."""


class EngineSettings(BaseSettings):
    """Per-engine configuration backed by environment variables and an optional .env file.

    Every field has a usable default, so an ``EngineSettings()`` with an empty
    environment is valid; ``api_url`` must be set before any request is sent.
    """

    model_config = SettingsConfigDict(
        env_prefix="MWENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Site and account
    # ------------------------------------------------------------------

    api_url: Optional[str] = None
    """Action API endpoint, e.g. ``https://en.wikipedia.org/w/api.php``."""

    username: Optional[str] = None
    """Bot username, set up through Special:BotPasswords."""

    password: Optional[str] = None
    """Bot password matching :attr:`username`.  Never logged."""

    user_agent: str = DEFAULT_USER_AGENT
    """Value of the ``User-Agent`` header on every request."""

    has_api_high_limit: bool = True
    """Whether the account has the ``apihighlimits`` right (bots and sysops do).

    Selects the multi-value batch cap used by ``mass_query``: 500 when
    ``True``, 50 otherwise.  Not auto-detected.
    """

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    request_timeout: float = Field(default=120.0, gt=0)
    """Timeout in seconds applied to each individual HTTP call."""

    maxlag: int = 5
    """Value of the ``maxlag`` parameter sent with every request (seconds of lag)."""

    # ------------------------------------------------------------------
    # Recovery policy
    # ------------------------------------------------------------------

    maxlag_pause: float = Field(default=5.0, ge=0)
    """Seconds to wait before resending a request that failed with ``maxlag``."""

    maxlag_max_retries: int = Field(default=3, ge=0)
    """Number of times a single logical request is resent after ``maxlag``."""

    badtoken_max_retries: Optional[int] = Field(default=2, ge=0)
    """Number of token refreshes allowed for one logical request.

    ``None`` removes the bound, so a server that keeps answering
    ``badtoken`` makes the request loop until it is cancelled.
    """

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    default_concurrency: int = Field(default=5, ge=1)
    """Group width used by ``batch_operation`` when none is given."""

    default_throttle_delay: float = Field(default=5.0, ge=0)
    """Seconds between items in ``series_batch_operation`` when none is given."""

    continuation_call_limit: int = Field(default=10, ge=1)
    """Maximum number of calls a single ``continued_query`` may issue."""

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    silent: bool = False
    """Suppress informational progress logs.  Errors and warnings are still emitted."""

    log_level: str = "INFO"
    """Logging verbosity.  One of: DEBUG, INFO, WARNING, ERROR, CRITICAL."""

    @property
    def batch_size(self) -> int:
        """Multi-value field cap implied by :attr:`has_api_high_limit`."""
        return HIGH_LIMIT_BATCH_SIZE if self.has_api_high_limit else LOW_LIMIT_BATCH_SIZE

    def with_overrides(self, **overrides: Any) -> EngineSettings:
        """Return a validated copy with the given fields replaced.

        Only declared field names are accepted.  ``None`` is a real value
        here (it unbounds ``badtoken_max_retries``).

        Raises:
            ValueError: If an override names an unknown field.
        """
        unknown = set(overrides) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown engine option(s): {sorted(unknown)}")
        if not overrides:
            return self
        merged = self.model_dump()
        merged.update(overrides)
        return type(self).model_validate(merged)


@lru_cache
def get_settings() -> EngineSettings:
    """Return the cached settings read from the environment.

    In tests, call ``get_settings.cache_clear()`` after patching environment
    variables.
    """
    return EngineSettings()
