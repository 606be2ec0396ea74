"""
Tunable constants for the personalization engine.

Every number the extractor, profile builder and ranker use lives here so
that a single frozen object can be passed around (and swapped in tests).
"""

from dataclasses import dataclass


MS_PER_DAY = 24 * 60 * 60 * 1000
MS_PER_WEEK = 7 * MS_PER_DAY


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class PersonalizationConfig:
    """Tunable parameters for preference extraction and ranking."""

    # --- Preference extraction ---
    RECENCY_HALF_LIFE_MS: float = 7 * MS_PER_DAY   # exp(-age / 7d)
    SEARCH_WEIGHT: float = 0.8                     # Searches count less than views
    NORMALIZED_FLOOR: float = 0.05                 # Drop normalized weights <= this

    # --- Profile building ---
    CONFIDENCE_INTERACTION_SATURATION: int = 50    # Interactions for full volume credit
    CONFIDENCE_SPAN_WEEKS: float = 2.0             # History span for full span credit
    DEFAULT_EXPLORATION_SCORE: float = 0.5         # No views yet
    DOMINANCE_THRESHOLD: float = 0.3               # Primary category/style cut-off
    HIGH_ENGAGEMENT_SECONDS: float = 30.0
    MEDIUM_ENGAGEMENT_SECONDS: float = 10.0

    # --- Candidate ranking ---
    DEFAULT_BASE_SCORE: float = 0.5
    CANDIDATE_DECAY_MS: float = 30 * MS_PER_DAY
    RECENCY_FLOOR: float = 0.5                     # Oldest items keep half their score
    EXPLORATION_THRESHOLD: float = 0.7             # Diversity boost only above this
    DIVERSITY_BOOST: float = 0.3
    MAX_RESULTS: int = 20


DEFAULT_CONFIG = PersonalizationConfig()
