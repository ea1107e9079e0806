"""Escalating, verified termination of an over-limit playback session."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

from stream_limit.domain.errors import (
    LiveStreamNotFoundError,
    VerificationInconclusiveError,
)
from stream_limit.domain.playback import (
    EnforcementOutcome,
    EscalationStage,
    LiveStreamById,
    LiveStreamByMediaSource,
    LiveStreamInfo,
    SessionSnapshot,
    StepResult,
    resolve_live_stream,
)
from stream_limit.services.configuration import ConfigurationService
from stream_limit.services.limits import SessionRegistry

logger = logging.getLogger(__name__)


class MediaSourceRegistry(Protocol):
    """Interface to the media server's open live streams."""

    async def close_live_stream(self, live_stream_id: str) -> None:
        """Close a live stream, cutting network delivery to the client."""

    async def find_live_stream_info(self, media_source_id: str) -> LiveStreamInfo:
        """Return the live stream open for a media source.

        Raises ``LiveStreamNotFoundError`` when there is none.
        """


@dataclass(frozen=True)
class EscalationTimings:
    """Settling delays, in seconds, between escalation steps."""

    settle_delay: float = 0.5
    retry_delay: float = 0.2
    final_settle_delay: float = 0.5


@dataclass
class EnforcementEscalator:
    """Stops a session through increasingly aggressive, verified steps."""

    session_registry: SessionRegistry
    media_source_registry: MediaSourceRegistry
    configuration: ConfigurationService
    timings: EscalationTimings = field(default_factory=EscalationTimings)
    max_stop_attempts: int = 4

    async def run(
        self,
        target: SessionSnapshot,
        log: logging.LoggerAdapter | logging.Logger = logger,
    ) -> EnforcementOutcome:
        """Run every escalation stage against ``target`` and report the outcome.

        Steps never raise: each failure is logged and recorded as a failed
        ``StepResult``. The retry loop is the only place the run can skip
        ahead, and only once the stop has been confirmed.
        """
        log.info("Attempting to stop playback for session %s", target.session_id)
        steps: list[StepResult] = [await self._cut_transport_stream(target, log)]

        attempts = 0
        stopped = False
        stopped_stage: EscalationStage | None = None
        while attempts < self.max_stop_attempts and not stopped:
            attempts += 1
            first_attempt = attempts == 1
            stage = (
                EscalationStage.VERIFY_STOPPED
                if first_attempt
                else EscalationStage.RETRY_LOOP
            )
            sent = await self._send_stop_command(target, log)
            steps.append(sent)
            if not sent.ok:
                log.warning("Stop attempt %d aborted", attempts)
                continue
            delay = (
                self.timings.settle_delay if first_attempt else self.timings.retry_delay
            )
            stopped = await self._verify_stopped(target, delay, log)
            steps.append(StepResult(stage=stage, ok=stopped))
            if stopped:
                stopped_stage = stage
            elif first_attempt:
                log.warning(
                    "Playback did NOT stop after command - trying aggressive methods"
                )
        if stopped and attempts > 1:
            log.info("Playback stopped after %d attempts", attempts)

        steps.append(await self._show_message(target, log))
        steps.extend(await self._force_logout(target, log))

        success = await self._verify_stopped(
            target, self.timings.final_settle_delay, log
        )
        steps.append(StepResult(stage=EscalationStage.FINAL_VERIFY, ok=success))
        outcome = EnforcementOutcome(
            stage_reached=stopped_stage or EscalationStage.FINAL_VERIFY,
            success=success,
            attempts=attempts,
            steps=tuple(steps),
        )
        log.info(
            "%s : Play %s",
            outcome.status,
            "Fully Canceled" if success else "Stopped but session may persist",
        )
        return outcome

    async def _cut_transport_stream(
        self, target: SessionSnapshot, log: logging.LoggerAdapter | logging.Logger
    ) -> StepResult:
        stage = EscalationStage.CUT_TRANSPORT_STREAM
        reference = resolve_live_stream(target)
        if isinstance(reference, LiveStreamById):
            log.info("LiveStreamId detected: %s", reference.live_stream_id)
            return await self._close_live_stream(reference.live_stream_id, log)
        log.info("No LiveStreamId found in session PlayState")
        if not isinstance(reference, LiveStreamByMediaSource):
            return StepResult(stage=stage, ok=True, detail="no live stream")

        log.info(
            "Attempting to find LiveStream via MediaSourceId: %s",
            reference.media_source_id,
        )
        try:
            info = await self.media_source_registry.find_live_stream_info(
                reference.media_source_id
            )
        except LiveStreamNotFoundError as exc:
            log.info(
                "No LiveStream found for MediaSourceId (normal for Direct Play): %s",
                exc,
            )
            return StepResult(stage=stage, ok=True, detail="no live stream")
        except Exception:
            log.exception(
                "Failed to look up LiveStream for MediaSourceId %s",
                reference.media_source_id,
            )
            return StepResult(stage=stage, ok=False, detail="lookup failed")
        if info.session_id and info.session_id != target.session_id:
            log.info(
                "LiveStream %s belongs to session %s, not closing it",
                info.live_stream_id,
                info.session_id,
            )
            return StepResult(
                stage=stage, ok=True, detail="live stream belongs to another session"
            )
        log.info("Found LiveStream via MediaSourceId, closing it")
        return await self._close_live_stream(info.live_stream_id, log)

    async def _close_live_stream(
        self, live_stream_id: str, log: logging.LoggerAdapter | logging.Logger
    ) -> StepResult:
        stage = EscalationStage.CUT_TRANSPORT_STREAM
        log.info("Attempting to close LiveStream %s", live_stream_id)
        try:
            await self.media_source_registry.close_live_stream(live_stream_id)
        except Exception:
            log.exception("Failed to close LiveStream %s", live_stream_id)
            return StepResult(stage=stage, ok=False, detail=live_stream_id)
        log.info("Closed LiveStream %s, network stream cut", live_stream_id)
        return StepResult(stage=stage, ok=True, detail=live_stream_id)

    async def _send_stop_command(
        self, target: SessionSnapshot, log: logging.LoggerAdapter | logging.Logger
    ) -> StepResult:
        stage = EscalationStage.SEND_STOP_COMMAND
        try:
            await self.session_registry.send_stop_command(
                target.session_id,
                target.session_id,
                str(target.user_id or ""),
            )
        except Exception:
            log.exception("Failed to send stop command")
            return StepResult(stage=stage, ok=False)
        log.info("Stop command sent (not verified yet)")
        return StepResult(stage=stage, ok=True)

    async def _verify_stopped(
        self,
        target: SessionSnapshot,
        delay: float,
        log: logging.LoggerAdapter | logging.Logger,
    ) -> bool:
        await asyncio.sleep(delay)
        try:
            current = await self._fetch_snapshot(target.session_id)
        except VerificationInconclusiveError:
            log.exception("Failed to verify playback stopped")
            return False

        if current is None:
            log.info("Session no longer exists - playback stopped")
            return True
        if current.has_now_playing_item or current.is_active:
            log.warning(
                "Playback still active! NowPlayingItem: %s, IsActive: %s",
                current.now_playing_item_name or "(null)",
                current.is_active,
            )
            return False
        log.info("Playback stopped confirmed - nothing playing and session inactive")
        return True

    async def _fetch_snapshot(self, session_id: str) -> SessionSnapshot | None:
        try:
            sessions = await self.session_registry.list_active_sessions()
        except Exception as exc:
            raise VerificationInconclusiveError(
                f"Could not fetch session {session_id}"
            ) from exc
        return next((s for s in sessions if s.session_id == session_id), None)

    async def _show_message(
        self, target: SessionSnapshot, log: logging.LoggerAdapter | logging.Logger
    ) -> StepResult:
        stage = EscalationStage.SHOW_MESSAGE
        configuration = self.configuration.current
        try:
            await self.session_registry.send_message_command(
                target.session_id,
                target.session_id,
                configuration.message_title,
                configuration.message_text,
            )
        except Exception:
            log.exception("Failed to send message command")
            return StepResult(stage=stage, ok=False)
        log.info("Sent message command")
        return StepResult(stage=stage, ok=True)

    async def _force_logout(
        self, target: SessionSnapshot, log: logging.LoggerAdapter | logging.Logger
    ) -> list[StepResult]:
        stage = EscalationStage.FORCE_LOGOUT
        results: list[StepResult] = []

        log.info("Forcefully ending session %s", target.session_id)
        try:
            await self.session_registry.end_session(target.session_id)
        except Exception:
            log.warning("Failed to end session", exc_info=True)
            results.append(StepResult(stage=stage, ok=False, detail="end_session"))
        else:
            log.info("Session ended")
            results.append(StepResult(stage=stage, ok=True, detail="end_session"))

        try:
            await self.session_registry.logout(target.session_id)
        except Exception:
            log.warning("Failed to logout session", exc_info=True)
            results.append(StepResult(stage=stage, ok=False, detail="logout"))
        else:
            log.info("Logged out session")
            results.append(StepResult(stage=stage, ok=True, detail="logout"))
        return results
