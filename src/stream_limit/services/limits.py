"""Limit table, active stream counting and the over-limit decision."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from stream_limit.domain.errors import LimitTableError
from stream_limit.domain.limits import LimitTable, normalize_user_id, parse_limit_table
from stream_limit.domain.playback import PlaybackStartEvent, SessionSnapshot

logger = logging.getLogger(__name__)


class SessionRegistry(Protocol):
    """Interface to the media server's live session registry."""

    async def list_active_sessions(self) -> Sequence[SessionSnapshot]:
        """Return a snapshot of every session the server knows about."""

    async def send_stop_command(
        self, session_id: str, target_session_id: str, controlling_user_id: str
    ) -> None:
        """Ask the target session to stop playback."""

    async def send_message_command(
        self, session_id: str, target_session_id: str, header: str, text: str
    ) -> None:
        """Display a message on the target session."""

    async def end_session(self, session_id: str) -> None:
        """End a session at the registry level."""

    async def logout(self, session_id: str) -> None:
        """Log out the device behind a session."""


@dataclass
class LimitTableHolder:
    """Single-writer holder of the current limit table.

    Readers take the table reference once per lookup; ``load`` installs a
    freshly built table by rebinding, never by mutating the old one.
    """

    _table: LimitTable = field(default_factory=LimitTable)

    @property
    def table(self) -> LimitTable:
        return self._table

    def load(self, serialized: str | None) -> LimitTable:
        """Parse and install a serialized table, keeping the old one on error."""
        if serialized is None or not serialized.strip():
            return self._table
        try:
            table = parse_limit_table(serialized)
        except LimitTableError:
            logger.exception("Failed to load user stream limits")
            return self._table
        self._table = table
        logger.info("Loaded stream limits for %d users", len(table))
        return table

    def lookup(self, user_id: str) -> int:
        """Return the stream limit for a user, 0 when unlimited."""
        return self._table.lookup(user_id)


@dataclass
class ActiveStreamCounter:
    """Counts the sessions of a user that are currently streaming."""

    session_registry: SessionRegistry

    async def count(self, user_id: str) -> int:
        """Return how many active sessions with a now-playing item the user has."""
        normalized = normalize_user_id(user_id)
        sessions = await self.session_registry.list_active_sessions()
        return sum(
            1
            for session in sessions
            if session.user_id is not None
            and normalize_user_id(session.user_id) == normalized
            and session.has_now_playing_item
            and session.is_active
        )


@dataclass(frozen=True)
class LimitDecision:
    """Whether a playback start must be enforced, and why."""

    proceed: bool
    reason: str
    user_id: str | None = None
    active_streams: int = 0
    max_streams: int = 0


@dataclass
class LimitDecisionService:
    """Decides whether a playback-start event exceeds the user's limit."""

    limit_table: LimitTableHolder
    stream_counter: ActiveStreamCounter

    async def evaluate(self, event: PlaybackStartEvent) -> LimitDecision:
        """Evaluate a playback-start event against the user's limit."""
        if not event.has_valid_user:
            return LimitDecision(proceed=False, reason="invalid-user")
        if not event.has_valid_session:
            return LimitDecision(proceed=False, reason="invalid-session")

        user_id = normalize_user_id(event.primary_user_id)
        active_streams = await self.stream_counter.count(user_id)
        max_streams = self.limit_table.lookup(user_id)

        # The session that just started is already counted as active.
        if max_streams <= 0:
            reason = "unlimited"
        elif active_streams > max_streams:
            reason = "over-limit"
        else:
            reason = "within-limit"
        return LimitDecision(
            proceed=reason == "over-limit",
            reason=reason,
            user_id=user_id,
            active_streams=active_streams,
            max_streams=max_streams,
        )
