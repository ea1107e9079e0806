"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from stream_limit.adapters.jellyfin_client import HttpxJellyfinClient
from stream_limit.adapters.supabase_configuration_repository import (
    SupabaseConfigurationRepository,
)
from stream_limit.config import Settings
from stream_limit.services.configuration import (
    ConfigurationService,
    StreamLimitConfiguration,
)
from stream_limit.services.dispatcher import PlaybackEventDispatcher
from stream_limit.services.enforcement import EnforcementEscalator, EscalationTimings
from stream_limit.services.limits import (
    ActiveStreamCounter,
    LimitDecisionService,
    LimitTableHolder,
    SessionRegistry,
)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    jellyfin_client: SessionRegistry
    configuration_service: ConfigurationService
    limit_table: LimitTableHolder
    stream_counter: ActiveStreamCounter
    limit_decision: LimitDecisionService
    escalator: EnforcementEscalator
    dispatcher: PlaybackEventDispatcher
    close_resources: Callable[[], Awaitable[None]]


def default_configuration(settings: Settings) -> StreamLimitConfiguration:
    """Configuration used until the store provides one."""
    return StreamLimitConfiguration(
        user_limits=settings.default_user_limits,
        message_title=settings.message_title,
        message_text=settings.message_text,
    )


def escalation_timings(settings: Settings) -> EscalationTimings:
    return EscalationTimings(
        settle_delay=settings.settle_delay_seconds,
        retry_delay=settings.retry_delay_seconds,
        final_settle_delay=settings.final_settle_delay_seconds,
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    configuration_service = ConfigurationService(
        repository=SupabaseConfigurationRepository(supabase_client),
        defaults=default_configuration(resolved_settings),
    )
    limit_table = LimitTableHolder()
    configuration_service.subscribe(
        lambda configuration: limit_table.load(configuration.user_limits)
    )
    limit_table.load(configuration_service.current.user_limits)

    jellyfin_client = HttpxJellyfinClient.create(
        base_url=resolved_settings.jellyfin_url,
        api_key=resolved_settings.jellyfin_api_key,
        message_timeout_ms=resolved_settings.message_timeout_ms,
        timeout=resolved_settings.http_timeout_seconds,
    )
    stream_counter = ActiveStreamCounter(jellyfin_client)
    limit_decision = LimitDecisionService(
        limit_table=limit_table,
        stream_counter=stream_counter,
    )
    escalator = EnforcementEscalator(
        session_registry=jellyfin_client,
        media_source_registry=jellyfin_client,
        configuration=configuration_service,
        timings=escalation_timings(resolved_settings),
        max_stop_attempts=resolved_settings.max_stop_attempts,
    )
    dispatcher = PlaybackEventDispatcher(
        limit_decision=limit_decision,
        escalator=escalator,
        session_registry=jellyfin_client,
        serialize_user_enforcement=resolved_settings.serialize_user_enforcement,
    )

    async def close_resources() -> None:
        await jellyfin_client.close()

    return AppContainer(
        settings=resolved_settings,
        jellyfin_client=jellyfin_client,
        configuration_service=configuration_service,
        limit_table=limit_table,
        stream_counter=stream_counter,
        limit_decision=limit_decision,
        escalator=escalator,
        dispatcher=dispatcher,
        close_resources=close_resources,
    )
