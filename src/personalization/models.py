"""
Data model for the personalization engine.

Models cover:
- Interaction records (one attribute model per interaction kind)
- Categorized, recency-weighted memory sets
- Insight sets and user profiles derived from them
- Recommendation candidates and their scored counterparts
- Request context and the final personalized result

Boundary inputs (records, candidates, context) are pydantic models so that
rows coming from Supabase or ORION-CORE are validated on the way in. The
derived, in-process state is plain dataclasses with to_dict/from_dict for
caching.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from core.logging import get_logger
from core.utils import ensure_utc, first_present, parse_timestamp
from personalization.errors import MalformedRecord


logger = get_logger(__name__)


# =============================================================================
# Enums
# =============================================================================

class InteractionKind(str, Enum):
    """Kind of a raw interaction record."""
    PRODUCT_VIEW = "product_view"
    SEARCH_QUERY = "search_query"
    USER_INTERACTION = "user_interaction"
    PURCHASE_BEHAVIOR = "purchase_behavior"
    PREFERENCE_LEARNING = "preference_learning"


class EngagementLevel(str, Enum):
    """Coarse engagement bucket derived from mean view duration."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# =============================================================================
# Interaction Attributes (one model per kind)
# =============================================================================

def _split_list(v):
    """Comma string or list -> list of non-empty strings. Anything else -> []."""
    if v is None:
        return []
    if isinstance(v, str):
        return [part.strip() for part in v.split(",") if part.strip()]
    if isinstance(v, (list, tuple)):
        return [item.strip() for item in v if isinstance(item, str) and item.strip()]
    return []


class _Attributes(BaseModel):
    """
    Base for attribute models.

    A field that fails validation falls back to its default instead of
    rejecting the whole record.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("*", mode="wrap")
    @classmethod
    def _lenient_field(cls, v, handler, info: ValidationInfo):
        try:
            return handler(v)
        except ValidationError:
            logger.debug("Dropping invalid attribute", model=cls.__name__, field=info.field_name)
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)


class ProductViewAttributes(_Attributes):
    """A product detail view."""
    product_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("product_id", "productId")
    )
    title: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("title", "product_title")
    )
    category: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("category", "product_category")
    )
    style: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("style", "product_style")
    )
    artist: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("artist", "product_artist")
    )
    price: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("price", "product_price")
    )
    tags: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("tags", "product_tags")
    )
    dominant_colors: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("dominant_colors", "colors")
    )
    view_duration_seconds: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("view_duration_seconds", "view_duration"),
    )
    source: Optional[str] = None

    @field_validator("tags", "dominant_colors", mode="before")
    @classmethod
    def _comma_lists(cls, v):
        return _split_list(v)


class SearchQueryAttributes(_Attributes):
    """A search submitted by the user."""
    query: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("query", "search_query")
    )
    query_categories: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("query_categories", "categories"),
    )
    query_intent: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("query_intent", "intent")
    )
    result_count: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("result_count", "results_count")
    )

    @field_validator("query_categories", mode="before")
    @classmethod
    def _comma_lists(cls, v):
        return _split_list(v)


class UserInteractionAttributes(_Attributes):
    """A generic UI interaction (like, share, add-to-cart, ...)."""
    action: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("action", "action_type", "interaction_type")
    )
    product_id: Optional[str] = None
    category: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("category", "product_category")
    )
    page_context: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("page_context", "page")
    )
    time_spent_seconds: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("time_spent_seconds", "time_spent")
    )


class PurchaseBehaviorAttributes(_Attributes):
    """A completed purchase. Stored and bucketed, not scored."""
    product_id: Optional[str] = None
    category: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("category", "product_category")
    )
    price: Optional[float] = None
    quantity: Optional[int] = None


class PreferenceLearningAttributes(_Attributes):
    """An explicitly learned preference. Stored and bucketed, not scored."""
    dimension: Optional[str] = None
    value: Optional[str] = None
    weight: Optional[float] = None


InteractionAttributes = Union[
    ProductViewAttributes,
    SearchQueryAttributes,
    UserInteractionAttributes,
    PurchaseBehaviorAttributes,
    PreferenceLearningAttributes,
]

ATTRIBUTE_MODELS = {
    InteractionKind.PRODUCT_VIEW: ProductViewAttributes,
    InteractionKind.SEARCH_QUERY: SearchQueryAttributes,
    InteractionKind.USER_INTERACTION: UserInteractionAttributes,
    InteractionKind.PURCHASE_BEHAVIOR: PurchaseBehaviorAttributes,
    InteractionKind.PREFERENCE_LEARNING: PreferenceLearningAttributes,
}


# =============================================================================
# Interaction Record
# =============================================================================

class InteractionRecord(BaseModel):
    """
    A single raw user interaction. Immutable once created.

    ``attributes`` is always the model matching ``kind``; a plain dict is
    parsed with that model on construction.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str = ""
    kind: InteractionKind
    timestamp: datetime
    attributes: InteractionAttributes

    @model_validator(mode="before")
    @classmethod
    def _attributes_for_kind(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        try:
            kind = InteractionKind(data.get("kind"))
        except ValueError:
            return data
        model = ATTRIBUTE_MODELS[kind]
        attributes = data.get("attributes")
        if not isinstance(attributes, model):
            data = dict(data)
            data["attributes"] = model.model_validate(
                attributes if isinstance(attributes, dict) else {}
            )
        return data

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "InteractionRecord":
        """
        Parse a stored row or an ORION-CORE memory result.

        Store rows look like ``{user_id, kind, occurred_at, attributes}``.
        Memory results carry everything in ``metadata`` (``memory_type``,
        ``timestamp``, ``product_category``, ...).

        Raises:
            MalformedRecord: kind or timestamp is missing or invalid
        """
        if not isinstance(row, dict):
            raise MalformedRecord("row is not a mapping", row)

        metadata = row.get("metadata")
        if isinstance(metadata, dict) and "attributes" not in row:
            source = metadata
            attributes = metadata
        else:
            source = row
            attributes = row.get("attributes") or {}

        raw_kind = first_present(source, "kind", "memory_type")
        if not raw_kind:
            raise MalformedRecord("missing kind", row)
        try:
            kind = InteractionKind(raw_kind)
        except ValueError:
            raise MalformedRecord(f"unknown kind: {raw_kind}", row) from None

        timestamp = first_present(source, "occurred_at", "timestamp")
        if timestamp is None:
            raise MalformedRecord("missing timestamp", row)

        try:
            return cls(
                user_id=str(source.get("user_id") or ""),
                kind=kind,
                timestamp=timestamp,
                attributes=attributes,
            )
        except ValidationError as e:
            raise MalformedRecord(f"invalid record ({e.error_count()} errors)", row) from e

    def to_row(self) -> Dict[str, Any]:
        """Row shape used by the interaction store."""
        return {
            "user_id": self.user_id,
            "kind": self.kind.value,
            "occurred_at": self.timestamp.isoformat(),
            "attributes": self.attributes.model_dump(exclude_none=True),
        }


def parse_records(rows: Iterable[Dict[str, Any]]) -> List[InteractionRecord]:
    """Parse raw rows, skipping (and logging) malformed ones."""
    records = []
    skipped = 0
    for row in rows:
        try:
            records.append(InteractionRecord.from_row(row))
        except MalformedRecord as e:
            skipped += 1
            logger.debug("Skipping malformed interaction record", reason=e.reason)
    if skipped:
        logger.info("Dropped malformed interaction records", skipped=skipped, kept=len(records))
    return records


# =============================================================================
# Categorized Memory Set
# =============================================================================

@dataclass(frozen=True)
class WeightedRecord:
    """An interaction record with its age and recency weight."""
    record: InteractionRecord
    age_ms: float
    recency_weight: float

    @property
    def attributes(self):
        return self.record.attributes

    @property
    def timestamp(self) -> datetime:
        return self.record.timestamp


@dataclass
class CategorizedMemorySet:
    """
    Records partitioned by kind, each bucket sorted by recency weight
    (descending). ``now`` is the instant every weight was computed against.
    """
    now: datetime
    recent_views: List[WeightedRecord] = field(default_factory=list)
    search_history: List[WeightedRecord] = field(default_factory=list)
    interactions: List[WeightedRecord] = field(default_factory=list)
    preferences: List[WeightedRecord] = field(default_factory=list)
    purchase_behavior: List[WeightedRecord] = field(default_factory=list)

    def bucket(self, kind: InteractionKind) -> List[WeightedRecord]:
        return getattr(self, BUCKET_FOR_KIND[kind])

    @property
    def total_records(self) -> int:
        return sum(len(getattr(self, name)) for name in BUCKET_FOR_KIND.values())

    def counts(self) -> Dict[str, int]:
        return {name: len(getattr(self, name)) for name in BUCKET_FOR_KIND.values()}


BUCKET_FOR_KIND = {
    InteractionKind.PRODUCT_VIEW: "recent_views",
    InteractionKind.SEARCH_QUERY: "search_history",
    InteractionKind.USER_INTERACTION: "interactions",
    InteractionKind.PREFERENCE_LEARNING: "preferences",
    InteractionKind.PURCHASE_BEHAVIOR: "purchase_behavior",
}


# =============================================================================
# Insights & Profile
# =============================================================================

@dataclass
class EngagementStats:
    """Accumulated view time for one category."""
    total_time: float = 0.0
    view_count: int = 0

    @property
    def average_time(self) -> float:
        return self.total_time / self.view_count if self.view_count else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"total_time": self.total_time, "view_count": self.view_count}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngagementStats":
        return cls(
            total_time=float(data.get("total_time", 0.0)),
            view_count=int(data.get("view_count", 0)),
        )


_WEIGHT_MAPS = (
    "preferred_categories",
    "preferred_styles",
    "preferred_artists",
    "color_preferences",
    "shopping_intent_distribution",
)


@dataclass
class InsightSet:
    """Normalized preference weights extracted from a memory set."""
    preferred_categories: Dict[str, float] = field(default_factory=dict)
    preferred_styles: Dict[str, float] = field(default_factory=dict)
    preferred_artists: Dict[str, float] = field(default_factory=dict)
    color_preferences: Dict[str, float] = field(default_factory=dict)
    shopping_intent_distribution: Dict[str, float] = field(default_factory=dict)
    engagement_by_category: Dict[str, EngagementStats] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {name: dict(getattr(self, name)) for name in _WEIGHT_MAPS}
        data["engagement_by_category"] = {
            k: v.to_dict() for k, v in self.engagement_by_category.items()
        }
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InsightSet":
        kwargs: Dict[str, Any] = {
            name: {k: float(v) for k, v in (data.get(name) or {}).items()}
            for name in _WEIGHT_MAPS
        }
        kwargs["engagement_by_category"] = {
            k: EngagementStats.from_dict(v)
            for k, v in (data.get("engagement_by_category") or {}).items()
        }
        return cls(**kwargs)


@dataclass
class DominantCharacteristics:
    primary_category: Optional[str] = None
    primary_style: Optional[str] = None
    engagement_level: EngagementLevel = EngagementLevel.LOW

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_category": self.primary_category,
            "primary_style": self.primary_style,
            "engagement_level": self.engagement_level.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DominantCharacteristics":
        return cls(
            primary_category=data.get("primary_category"),
            primary_style=data.get("primary_style"),
            engagement_level=EngagementLevel(data.get("engagement_level", "low")),
        )


@dataclass
class UserProfile:
    """
    Derived summary of a user's preferences.

    Always rebuildable from the interaction store; the cached copy is never
    the source of truth.
    """
    user_id: str
    insights: InsightSet
    activity_level: int
    last_active: Optional[datetime]
    exploration_score: float
    confidence: float
    dominant_characteristics: DominantCharacteristics
    built_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "insights": self.insights.to_dict(),
            "activity_level": self.activity_level,
            "last_active": self.last_active.isoformat() if self.last_active else None,
            "exploration_score": self.exploration_score,
            "confidence": self.confidence,
            "dominant_characteristics": self.dominant_characteristics.to_dict(),
            "built_at": self.built_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        return cls(
            user_id=data.get("user_id", ""),
            insights=InsightSet.from_dict(data.get("insights") or {}),
            activity_level=int(data.get("activity_level", 0)),
            last_active=parse_timestamp(data.get("last_active")),
            exploration_score=float(data.get("exploration_score", 0.5)),
            confidence=float(data.get("confidence", 0.0)),
            dominant_characteristics=DominantCharacteristics.from_dict(
                data.get("dominant_characteristics") or {}
            ),
            built_at=parse_timestamp(data.get("built_at")),
        )


# =============================================================================
# Candidates
# =============================================================================

class RecommendationCandidate(BaseModel):
    """
    An item proposed by the candidate retriever.

    Lenient by construction: a malformed field becomes ``None`` (``{}`` for
    metadata) instead of failing, and the ranker applies its defaults (base
    score from config, epoch for the timestamp).
    """
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    base_score: Optional[float] = None
    category: Optional[str] = None
    style: Optional[str] = None
    timestamp: Optional[datetime] = None
    content: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("base_score", mode="wrap")
    @classmethod
    def _lenient_score(cls, v, handler):
        try:
            score = handler(v)
        except ValidationError:
            return None
        if score is None or math.isnan(score) or math.isinf(score):
            return None
        return score

    @field_validator("timestamp", mode="wrap")
    @classmethod
    def _lenient_timestamp(cls, v, handler):
        try:
            ts = handler(v)
        except ValidationError:
            return None
        return ensure_utc(ts) if ts is not None else None

    @field_validator("category", "style", "content", mode="wrap")
    @classmethod
    def _lenient_text(cls, v, handler):
        try:
            return handler(v)
        except ValidationError:
            return None

    @field_validator("metadata", mode="wrap")
    @classmethod
    def _lenient_metadata(cls, v, handler):
        try:
            return handler(v)
        except ValidationError:
            return {}

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        return "" if v is None else str(v)


@dataclass
class ScoredRecommendation:
    """A candidate with its final (unbounded) ranking score."""
    candidate: RecommendationCandidate
    final_score: float

    def to_dict(self) -> Dict[str, Any]:
        data = self.candidate.model_dump(mode="json")
        data["final_score"] = self.final_score
        return data


# =============================================================================
# Request Context & Result
# =============================================================================

class PersonalizationContext(BaseModel):
    """Situational context supplied by the caller with a request."""
    mood: Optional[str] = None
    budget: Optional[str] = None
    current_page: Optional[str] = None
    current_category: Optional[str] = None
    time_of_day: Optional[str] = None
    device_type: Optional[str] = None
    intent: Optional[str] = None

    @field_validator("budget", mode="before")
    @classmethod
    def _budget_as_str(cls, v):
        return None if v is None else str(v)


@dataclass
class PersonalizedRecommendations:
    """Final output of the personalization pipeline."""
    user_id: str
    recommendations: List[ScoredRecommendation]
    profile: UserProfile
    query: str
    confidence: float
    generated_at: datetime
    degraded: bool = False
    degraded_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "recommendations": [r.to_dict() for r in self.recommendations],
            "profile": self.profile.to_dict(),
            "query": self.query,
            "confidence": self.confidence,
            "generated_at": self.generated_at.isoformat(),
            "degraded": self.degraded,
            "degraded_reason": self.degraded_reason,
        }
