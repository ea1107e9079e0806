"""Domain models for playback sessions and enforcement runs."""

from dataclasses import dataclass
from enum import Enum

from stream_limit.domain.limits import is_empty_user_id


@dataclass(frozen=True)
class PlaybackStartEvent:
    """A playback-start notification from the media server."""

    users: tuple[str, ...]
    session_id: str | None
    play_session_id: str | None = None
    media_source_id: str | None = None
    live_stream_id: str | None = None
    device_name: str | None = None
    device_id: str | None = None
    client: str | None = None

    @property
    def primary_user_id(self) -> str | None:
        """The first listed user, which owns the session."""
        return self.users[0] if self.users else None

    @property
    def has_valid_user(self) -> bool:
        return self.primary_user_id is not None and not is_empty_user_id(
            self.primary_user_id
        )

    @property
    def has_valid_session(self) -> bool:
        return bool(self.session_id and self.session_id.strip())


@dataclass(frozen=True)
class SessionSnapshot:
    """Point-in-time view of a session in the registry."""

    session_id: str
    user_id: str | None
    is_active: bool
    has_now_playing_item: bool
    live_stream_id: str | None = None
    media_source_id: str | None = None
    device_id: str | None = None
    now_playing_item_name: str | None = None

    @property
    def is_streaming(self) -> bool:
        """True while the session is active and has something playing."""
        return self.is_active and self.has_now_playing_item

    @classmethod
    def from_event(cls, event: PlaybackStartEvent) -> "SessionSnapshot":
        """Describe the session that started playing in ``event``."""
        return cls(
            session_id=str(event.session_id),
            user_id=event.primary_user_id,
            is_active=True,
            has_now_playing_item=True,
            live_stream_id=event.live_stream_id,
            media_source_id=event.media_source_id,
            device_id=event.device_id,
        )


@dataclass(frozen=True)
class LiveStreamInfo:
    """An open transport-level live stream."""

    live_stream_id: str
    session_id: str | None = None


@dataclass(frozen=True)
class NoLiveStream:
    """The session has no live stream to close."""


@dataclass(frozen=True)
class LiveStreamById:
    """The session reports its live stream id directly."""

    live_stream_id: str


@dataclass(frozen=True)
class LiveStreamByMediaSource:
    """A live stream may be open for the session's media source."""

    media_source_id: str


LiveStreamRef = NoLiveStream | LiveStreamById | LiveStreamByMediaSource


def resolve_live_stream(session: SessionSnapshot) -> LiveStreamRef:
    """Pick how the live stream of a session should be found."""
    if session.live_stream_id:
        return LiveStreamById(session.live_stream_id)
    if session.media_source_id:
        return LiveStreamByMediaSource(session.media_source_id)
    return NoLiveStream()


class EscalationStage(str, Enum):
    """Ordered stages of an enforcement run."""

    CUT_TRANSPORT_STREAM = "cut_transport_stream"
    SEND_STOP_COMMAND = "send_stop_command"
    VERIFY_STOPPED = "verify_stopped"
    RETRY_LOOP = "retry_loop"
    SHOW_MESSAGE = "show_message"
    FORCE_LOGOUT = "force_logout"
    FINAL_VERIFY = "final_verify"


@dataclass(frozen=True)
class StepResult:
    """Status of a single escalation step."""

    stage: EscalationStage
    ok: bool
    detail: str | None = None


@dataclass(frozen=True)
class EnforcementOutcome:
    """Result of one enforcement run."""

    stage_reached: EscalationStage
    success: bool
    attempts: int
    steps: tuple[StepResult, ...] = ()

    @property
    def status(self) -> str:
        return "SUCCESS" if self.success else "PARTIAL"

    def steps_for(self, stage: EscalationStage) -> list[StepResult]:
        return [step for step in self.steps if step.stage == stage]
