"""Supabase repository for the stream limit configuration."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from stream_limit.services.configuration import (
    ConfigurationRepository,
    StreamLimitConfiguration,
)

_SETTINGS_ROW_ID = 1


@dataclass
class SupabaseConfigurationRepository(ConfigurationRepository):
    """Supabase implementation storing the configuration in a single row."""

    client: Client

    def load(self) -> StreamLimitConfiguration | None:
        """Return the stored configuration, if the row exists."""
        response = (
            self.client.table("stream_limit_settings")
            .select("user_limits, message_title, message_text")
            .eq("id", _SETTINGS_ROW_ID)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        defaults = StreamLimitConfiguration()
        return StreamLimitConfiguration(
            user_limits=row.get("user_limits") or "",
            message_title=row.get("message_title") or defaults.message_title,
            message_text=row.get("message_text") or defaults.message_text,
        )

    def save(self, configuration: StreamLimitConfiguration) -> None:
        """Insert or replace the configuration row."""
        self.client.table("stream_limit_settings").upsert(
            {
                "id": _SETTINGS_ROW_ID,
                "user_limits": configuration.user_limits,
                "message_title": configuration.message_title,
                "message_text": configuration.message_text,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).execute()
