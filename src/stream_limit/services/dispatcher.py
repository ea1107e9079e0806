"""Playback-start event handling: decision, then enforcement."""

import asyncio
import itertools
import logging
import threading
from dataclasses import dataclass, field, replace

from stream_limit.app_logging import RunLogAdapter
from stream_limit.domain.limits import normalize_user_id
from stream_limit.domain.playback import PlaybackStartEvent, SessionSnapshot
from stream_limit.services.enforcement import EnforcementEscalator
from stream_limit.services.limits import LimitDecisionService, SessionRegistry

logger = logging.getLogger(__name__)


class RunSequence:
    """Monotonic run numbers used to correlate the log lines of one run."""

    def __init__(self, start: int = 1) -> None:
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            return next(self._counter)


@dataclass
class PlaybackEventDispatcher:
    """Entry point for playback-start notifications."""

    limit_decision: LimitDecisionService
    escalator: EnforcementEscalator
    session_registry: SessionRegistry
    run_sequence: RunSequence = field(default_factory=RunSequence)
    serialize_user_enforcement: bool = False
    _user_locks: dict[str, asyncio.Lock] = field(default_factory=dict, init=False)
    _lock_holders: dict[str, int] = field(default_factory=dict, init=False)

    async def on_playback_start(self, event: PlaybackStartEvent) -> None:
        """Handle one playback start; never raises."""
        log = RunLogAdapter(logger, self.run_sequence.next())
        log.info("---------------[StreamLimit_Start]---------------")
        try:
            if self.serialize_user_enforcement and event.has_valid_user:
                await self._handle_serialized(event, log)
            else:
                await self._handle(event, log)
        except Exception as exc:
            if exc.__cause__ is not None:
                log.error("Inner exception", exc_info=exc.__cause__)
            log.exception(
                "Error details - Users: %s, PlaySessionId: %s, Session: %s",
                list(event.users),
                event.play_session_id,
                event.session_id,
            )
        log.info("----------------[StreamLimit_End]----------------")

    async def _handle_serialized(
        self, event: PlaybackStartEvent, log: RunLogAdapter
    ) -> None:
        key = normalize_user_id(event.primary_user_id)
        lock = self._user_locks.setdefault(key, asyncio.Lock())
        self._lock_holders[key] = self._lock_holders.get(key, 0) + 1
        try:
            async with lock:
                await self._handle(event, log)
        finally:
            self._lock_holders[key] -= 1
            if not self._lock_holders[key]:
                del self._lock_holders[key]
                self._user_locks.pop(key, None)

    async def _resolve_target(
        self, event: PlaybackStartEvent, log: RunLogAdapter
    ) -> SessionSnapshot:
        """Fetch the session's current state, falling back to the event."""
        from_event = SessionSnapshot.from_event(event)
        try:
            sessions = await self.session_registry.list_active_sessions()
        except Exception:
            log.warning("Failed to fetch session %s", event.session_id, exc_info=True)
            return from_event
        current = next(
            (s for s in sessions if s.session_id == from_event.session_id), None
        )
        if current is None:
            log.info("Session %s not in registry, using event data", event.session_id)
            return from_event
        return replace(
            current,
            user_id=current.user_id or from_event.user_id,
            live_stream_id=current.live_stream_id or from_event.live_stream_id,
            media_source_id=current.media_source_id or from_event.media_source_id,
            device_id=current.device_id or from_event.device_id,
        )

    async def _handle(self, event: PlaybackStartEvent, log: RunLogAdapter) -> None:
        decision = await self.limit_decision.evaluate(event)
        if decision.reason == "invalid-user":
            log.info("[Error] Invalid user ID")
            return
        if decision.reason == "invalid-session":
            log.info("[Error] Invalid session")
            return

        log.info("Playback Started : %s", decision.user_id)
        log.info("PlaySessionId: %s", event.play_session_id)
        log.info("MediaSourceId: %s", event.media_source_id)
        log.info("Device: %s (%s)", event.device_name, event.device_id)
        log.info("Client: %s", event.client)
        log.info("LiveStreamId: %s", event.live_stream_id or "(null)")
        log.info("Streaming Active : %d", decision.active_streams)
        log.info(
            "Streaming Limit  : %d [%s]",
            decision.max_streams,
            "Y" if decision.max_streams > 0 else "N",
        )

        if not decision.proceed:
            log.info(
                "%s : Play Bypass",
                "Not Limited" if decision.max_streams > 0 else "No In Limit",
            )
            return

        target = await self._resolve_target(event, log)
        await self.escalator.run(target, log)
