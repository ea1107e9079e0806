"""Runtime configuration with change notification."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Protocol

from stream_limit.config import DEFAULT_MESSAGE_TEXT, DEFAULT_MESSAGE_TITLE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamLimitConfiguration:
    """Current limit table and user-facing message settings."""

    user_limits: str = ""
    message_title: str = DEFAULT_MESSAGE_TITLE
    message_text: str = DEFAULT_MESSAGE_TEXT


ConfigurationListener = Callable[[StreamLimitConfiguration], None]


class ConfigurationRepository(Protocol):
    """Persistence interface for the stream limit configuration."""

    def load(self) -> StreamLimitConfiguration | None:
        """Return the stored configuration, if any."""

    def save(self, configuration: StreamLimitConfiguration) -> None:
        """Store the configuration, replacing the previous one."""


@dataclass
class ConfigurationService:
    """Holds the current configuration and notifies listeners on change."""

    repository: ConfigurationRepository
    defaults: StreamLimitConfiguration = field(
        default_factory=StreamLimitConfiguration
    )
    _current: StreamLimitConfiguration | None = field(default=None, init=False)
    _listeners: list[ConfigurationListener] = field(
        default_factory=list, init=False
    )

    @property
    def current(self) -> StreamLimitConfiguration:
        return self._current or self.defaults

    def subscribe(self, listener: ConfigurationListener) -> None:
        """Register a listener called with every new configuration."""
        self._listeners.append(listener)

    def refresh(self) -> StreamLimitConfiguration:
        """Reload the configuration from the repository."""
        stored = self.repository.load()
        configuration = stored or self.defaults
        self._publish(configuration)
        return configuration

    def update(
        self,
        user_limits: str | None = None,
        message_title: str | None = None,
        message_text: str | None = None,
    ) -> StreamLimitConfiguration:
        """Persist changed fields and publish the new configuration."""
        changes: dict[str, str] = {}
        if user_limits is not None:
            changes["user_limits"] = user_limits
        if message_title is not None:
            changes["message_title"] = message_title
        if message_text is not None:
            changes["message_text"] = message_text
        configuration = replace(self.current, **changes)
        self.repository.save(configuration)
        self._publish(configuration)
        return configuration

    def _publish(self, configuration: StreamLimitConfiguration) -> None:
        self._current = configuration
        for listener in self._listeners:
            try:
                listener(configuration)
            except Exception:
                logger.exception("Configuration listener failed")
