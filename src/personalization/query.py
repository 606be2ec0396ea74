"""
Query builders for the vector memory service.

Both builders produce space-separated ``key:value`` strings that the
ORION-CORE semantic search embeds as-is.
"""

from typing import Optional

from personalization.models import PersonalizationContext, UserProfile


FALLBACK_RECOMMENDATION_QUERY = "popular artwork recommendations"
RELATED_CATEGORY_COUNT = 2


def build_recommendation_query(
    profile: UserProfile,
    context: Optional[PersonalizationContext] = None,
) -> str:
    """
    Query used to retrieve recommendation candidates.

    Example:
        "category:Abstract style:Modern related_categories:Abstract,Portrait mood:calm"
    """
    context = context or PersonalizationContext()
    dominant = profile.dominant_characteristics
    parts = []

    if dominant.primary_category:
        parts.append(f"category:{dominant.primary_category}")
    if dominant.primary_style:
        parts.append(f"style:{dominant.primary_style}")

    # sorted() is stable, so ties keep insertion order
    top = sorted(
        profile.insights.preferred_categories.items(),
        key=lambda kv: kv[1],
        reverse=True,
    )[:RELATED_CATEGORY_COUNT]
    if top:
        parts.append("related_categories:" + ",".join(name for name, _ in top))

    if context.mood:
        parts.append(f"mood:{context.mood}")
    if context.budget:
        parts.append(f"budget:{context.budget}")

    return " ".join(parts) or FALLBACK_RECOMMENDATION_QUERY


def build_contextual_query(
    user_id: str,
    context: Optional[PersonalizationContext] = None,
) -> str:
    """Query used to retrieve a user's own memories for the current situation."""
    context = context or PersonalizationContext()
    parts = [f"user:{user_id}"]

    for prefix, value in (
        ("page", context.current_page),
        ("category", context.current_category),
        ("time", context.time_of_day),
        ("device", context.device_type),
        ("intent", context.intent),
    ):
        if value:
            parts.append(f"{prefix}:{value}")

    return " ".join(parts)
