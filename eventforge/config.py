"""Runtime configuration — env-driven via pydantic-settings.

Reads from a .env file and EVENTFORGE_* environment variables.  Handlers and
routers read the module-level ``settings`` when they are constructed unless an
explicit ``settings=`` override is passed.
"""

from __future__ import annotations

from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EventforgeSettings(BaseSettings):
    """Settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export EVENTFORGE_ENVIRONMENT=production
        export EVENTFORGE_TRACER_NAME=payment-service
        export EVENTFORGE_TELEMETRY_INHERIT_FROM=context

    Or via .env file::

        EVENTFORGE_RECORD_EVENT_ATTRIBUTES=false
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="EVENTFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"

    # Telemetry
    tracer_name: str = "eventforge"
    telemetry_inherit_from: Literal["event", "context"] = "event"
    record_event_attributes: bool = True

    # System error payloads
    include_error_stack: bool = True
    allow_error_stack_in_production: bool = False

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"

    @model_validator(mode="after")
    def _strip_stacks_in_production(self) -> EventforgeSettings:
        # Stack traces leave the process inside error events.
        if self.is_production and not self.allow_error_stack_in_production:
            self.include_error_stack = False
        return self


# Module-level singleton — import as `from eventforge.config import settings`
settings = EventforgeSettings()
