"""
Dependency providers for the API.

Singletons are built lazily from settings on first use. Tests swap them out
with ``app.dependency_overrides[get_personalization_service] = ...``.
"""

from functools import lru_cache
from typing import Optional

from config.settings import get_settings
from core.logging import get_logger
from integrations.catalog import StaticCandidateRetriever
from integrations.interaction_store import SupabaseInteractionStore
from integrations.orion import OrionCandidateRetriever, OrionMemoryClient
from personalization.cache import create_profile_cache
from personalization.service import PersonalizationService


logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_orion_client() -> Optional[OrionMemoryClient]:
    """ORION-CORE client, or None when the integration is disabled."""
    settings = get_settings()
    if not settings.orion_enabled:
        return None
    return OrionMemoryClient(
        settings.orion_mcp_url,
        timeout_seconds=settings.orion_request_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_personalization_service() -> PersonalizationService:
    """Wire the personalization service from settings."""
    settings = get_settings()
    orion = get_orion_client()

    if orion is not None:
        retriever = OrionCandidateRetriever(
            orion,
            limit=settings.candidate_limit,
            threshold=settings.candidate_threshold,
        )
    else:
        logger.warning("ORION-CORE disabled, recommendations will be empty")
        retriever = StaticCandidateRetriever()

    event_sink = orion if orion is not None and settings.recommendation_events_enabled else None

    return PersonalizationService(
        store=SupabaseInteractionStore(table=settings.interactions_table),
        retriever=retriever,
        cache=create_profile_cache(settings),
        event_sink=event_sink,
        interaction_window_days=settings.interaction_window_days,
        interaction_limit=settings.interaction_limit,
        candidate_limit=settings.candidate_limit,
    )


async def close_clients() -> None:
    """Release network clients created by the providers (app shutdown)."""
    if get_orion_client.cache_info().currsize:
        client = get_orion_client()
        if client is not None:
            await client.close()
