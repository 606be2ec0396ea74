"""
Personalization Routes.

Endpoints for personalized recommendations, profile inspection and
interaction ingestion.

Upstream failures (interaction store, ORION-CORE) never fail a
recommendation request: the response is returned with ``degraded: true``.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from api.deps import get_personalization_service
from core.logging import get_logger
from core.utils import utc_now
from personalization.errors import UpstreamUnavailable
from personalization.models import (
    InteractionKind,
    InteractionRecord,
    PersonalizationContext,
)
from personalization.service import PersonalizationService


logger = get_logger(__name__)

router = APIRouter(prefix="/api/personalization", tags=["Personalization"])


# =============================================================================
# Request/Response Models
# =============================================================================

class RecommendationRequest(BaseModel):
    """Request for a personalized recommendation list."""
    user_id: str = Field(..., min_length=1, description="User to personalize for")
    context: PersonalizationContext = Field(
        default_factory=PersonalizationContext,
        description="Situational context (mood, budget, current page, ...)"
    )
    limit: Optional[int] = Field(default=None, ge=1, le=20)
    refresh: bool = Field(default=False, description="Ignore any cached profile")


class RecommendationItem(BaseModel):
    id: str
    final_score: float
    base_score: Optional[float] = None
    category: Optional[str] = None
    style: Optional[str] = None
    timestamp: Optional[datetime] = None
    content: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RecommendationResponse(BaseModel):
    user_id: str
    recommendations: List[RecommendationItem]
    query: str
    confidence: float
    degraded: bool
    degraded_reason: Optional[str] = None
    generated_at: datetime
    profile: Dict[str, Any]


class InteractionRequest(BaseModel):
    """A single interaction to append to the store."""
    user_id: str = Field(..., min_length=1)
    kind: InteractionKind
    timestamp: Optional[datetime] = Field(
        default=None,
        description="When the interaction happened (defaults to now; future times are stored as now)"
    )
    attributes: Dict[str, Any] = Field(default_factory=dict)


class InteractionResponse(BaseModel):
    status: str
    user_id: str
    kind: InteractionKind
    timestamp: datetime


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/recommendations", response_model=RecommendationResponse)
async def personalized_recommendations(
    request: RecommendationRequest,
    service: PersonalizationService = Depends(get_personalization_service),
) -> Dict[str, Any]:
    """Rank candidates for a user against their interaction-derived profile."""
    result = await service.recommend(
        request.user_id,
        context=request.context,
        limit=request.limit,
        refresh=request.refresh,
    )
    return result.to_dict()


@router.get("/profile/{user_id}")
async def user_profile(
    user_id: str,
    refresh: bool = Query(default=False, description="Ignore any cached profile"),
    service: PersonalizationService = Depends(get_personalization_service),
) -> Dict[str, Any]:
    """The user's current preference profile."""
    profile = await service.build_profile(user_id, refresh=refresh)
    return profile.to_dict()


@router.post(
    "/interactions",
    response_model=InteractionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_interaction(
    request: InteractionRequest,
    service: PersonalizationService = Depends(get_personalization_service),
) -> Dict[str, Any]:
    """Append one interaction record and invalidate the user's cached profile."""
    record = InteractionRecord(
        user_id=request.user_id,
        kind=request.kind,
        timestamp=request.timestamp or utc_now(),
        attributes=request.attributes,
    )

    try:
        record = await service.record_interaction(record)
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    return {
        "status": "recorded",
        "user_id": record.user_id,
        "kind": record.kind,
        "timestamp": record.timestamp,
    }
