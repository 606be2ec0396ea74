"""Fixed-list candidate retriever (ORION disabled, offline reports, tests)."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Union

from personalization.models import RecommendationCandidate


class StaticCandidateRetriever:
    """Returns the same candidate list for every query, capped at ``limit``."""

    def __init__(
        self,
        candidates: Optional[Iterable[Union[RecommendationCandidate, Dict[str, Any]]]] = None,
    ) -> None:
        self.candidates: List[RecommendationCandidate] = [
            c if isinstance(c, RecommendationCandidate) else RecommendationCandidate.model_validate(c)
            for c in (candidates or [])
        ]
        self.queries: List[str] = []

    async def retrieve(
        self,
        query: str,
        limit: Optional[int] = None,
        exclude_user: Optional[str] = None,
    ) -> List[RecommendationCandidate]:
        self.queries.append(query)
        return self.candidates[:limit] if limit else list(self.candidates)
