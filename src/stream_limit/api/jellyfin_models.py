"""Pydantic models for Jellyfin webhook payloads."""

from pydantic import BaseModel, ConfigDict, Field

from stream_limit.domain.errors import InvalidEventError
from stream_limit.domain.playback import PlaybackStartEvent

PLAYBACK_START = "PlaybackStart"


class JellyfinWebhookPayload(BaseModel):
    """Notification posted by the Jellyfin webhook plugin."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    notification_type: str = Field(alias="NotificationType")
    user_id: str | None = Field(default=None, alias="UserId")
    session_id: str | None = Field(default=None, alias="SessionId")
    play_session_id: str | None = Field(default=None, alias="PlaySessionId")
    media_source_id: str | None = Field(default=None, alias="MediaSourceId")
    live_stream_id: str | None = Field(default=None, alias="LiveStreamId")
    device_name: str | None = Field(default=None, alias="DeviceName")
    device_id: str | None = Field(default=None, alias="DeviceId")
    client_name: str | None = Field(default=None, alias="ClientName")

    @property
    def is_playback_start(self) -> bool:
        return self.notification_type == PLAYBACK_START

    def to_event(self) -> PlaybackStartEvent:
        """Convert a PlaybackStart notification into a domain event."""
        if not self.is_playback_start:
            raise InvalidEventError(
                f"Not a playback start notification: {self.notification_type}"
            )
        return PlaybackStartEvent(
            users=(self.user_id,) if self.user_id else (),
            session_id=self.session_id,
            play_session_id=self.play_session_id,
            media_source_id=self.media_source_id,
            live_stream_id=self.live_stream_id or None,
            device_name=self.device_name,
            device_id=self.device_id,
            client=self.client_name,
        )
