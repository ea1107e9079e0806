"""Jellyfin REST API client adapter."""

from dataclasses import dataclass

import httpx

from stream_limit.domain.errors import JellyfinError, LiveStreamNotFoundError
from stream_limit.domain.playback import LiveStreamInfo, SessionSnapshot


@dataclass
class HttpxJellyfinClient:
    """Session and media-source registry backed by the Jellyfin API.

    Commands are issued with the server API key, so the source session id
    that in-process registries use is not sent over the wire.
    """

    base_url: str
    api_key: str
    http_client: httpx.AsyncClient
    message_timeout_ms: int = 8000
    timeout: float = 10

    @classmethod
    def create(
        cls,
        base_url: str,
        api_key: str,
        message_timeout_ms: int = 8000,
        timeout: float = 10,
    ) -> "HttpxJellyfinClient":
        """Create a Jellyfin client with a managed httpx session."""
        return cls(
            base_url=base_url.strip().rstrip("/"),
            api_key=api_key,
            http_client=httpx.AsyncClient(),
            message_timeout_ms=message_timeout_ms,
            timeout=timeout,
        )

    async def list_active_sessions(self) -> list[SessionSnapshot]:
        """Return a snapshot of every session on the server."""
        payload = await self._request("GET", "/Sessions")
        return [_to_snapshot(raw) for raw in payload or [] if raw.get("Id")]

    async def send_stop_command(
        self, session_id: str, target_session_id: str, controlling_user_id: str
    ) -> None:
        """Send a Stop playstate command with the seek position reset."""
        await self._request(
            "POST",
            f"/Sessions/{target_session_id}/Playing/Stop",
            params={
                "seekPositionTicks": 0,
                "controllingUserId": controlling_user_id,
            },
        )

    async def send_message_command(
        self, session_id: str, target_session_id: str, header: str, text: str
    ) -> None:
        """Display a message on the target session."""
        await self._request(
            "POST",
            f"/Sessions/{target_session_id}/Message",
            json={
                "Header": header,
                "Text": text,
                "TimeoutMs": int(self.message_timeout_ms),
            },
        )

    async def end_session(self, session_id: str) -> None:
        """Send the client back to its home screen, leaving the player."""
        await self._request("POST", f"/Sessions/{session_id}/Command/GoHome")

    async def logout(self, session_id: str) -> None:
        """Revoke the device behind a session, which signs it out."""
        device_id = await self._device_id_for(session_id)
        await self._request("DELETE", "/Devices", params={"id": device_id})

    async def close_live_stream(self, live_stream_id: str) -> None:
        """Close a live stream by id."""
        await self._request(
            "POST", "/LiveStreams/Close", params={"liveStreamId": live_stream_id}
        )

    async def find_live_stream_info(self, media_source_id: str) -> LiveStreamInfo:
        """Find a session streaming a live stream opened for a media source."""
        for session in await self.list_active_sessions():
            if session.live_stream_id and session.live_stream_id == media_source_id:
                return LiveStreamInfo(
                    live_stream_id=session.live_stream_id,
                    session_id=session.session_id,
                )
        raise LiveStreamNotFoundError(
            f"No live stream open for media source {media_source_id}"
        )

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()

    async def _device_id_for(self, session_id: str) -> str:
        for session in await self.list_active_sessions():
            if session.session_id == session_id and session.device_id:
                return session.device_id
        raise JellyfinError(f"Session {session_id} has no known device")

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, object] | None = None,
        json: dict[str, object] | None = None,
    ) -> object:
        url = f"{self.base_url}{path}"
        headers = {"X-Emby-Token": self.api_key, "Accept": "application/json"}
        try:
            response = await self.http_client.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            code = getattr(getattr(exc, "response", None), "status_code", None)
            raise JellyfinError(
                f"Jellyfin {method} {path} failed: {code or type(exc).__name__}"
            ) from exc
        if not response.content:
            return None
        return response.json()


def _to_snapshot(raw: dict) -> SessionSnapshot:
    play_state = raw.get("PlayState") or {}
    now_playing = raw.get("NowPlayingItem") or None
    user_id = raw.get("UserId") or (raw.get("User") or {}).get("Id")
    return SessionSnapshot(
        session_id=str(raw["Id"]),
        user_id=str(user_id) if user_id else None,
        is_active=bool(raw.get("IsActive")),
        has_now_playing_item=now_playing is not None,
        live_stream_id=play_state.get("LiveStreamId") or None,
        media_source_id=play_state.get("MediaSourceId") or None,
        device_id=raw.get("DeviceId") or None,
        now_playing_item_name=(now_playing or {}).get("Name"),
    )
