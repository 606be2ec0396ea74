#!/usr/bin/env python3
"""
Diagnostic: trace the personalization pipeline step by step for one user.

Shows what happens at each stage:
  1. Interaction buckets and their recency weights
  2. Normalized insights (categories, styles, artists, colors, intents)
  3. The derived profile (exploration, confidence, dominant traits)
  4. The recommendation query sent to the retriever
  5. Per-candidate score breakdown and final ranking + confidence

Input is a JSON export:
    {
      "user_id": "u1",
      "now": "2024-06-01T00:00:00Z",          (optional)
      "interactions": [{"kind": ..., "occurred_at": ..., "attributes": {...}}, ...],
      "candidates": [{"id": ..., "base_score": ..., "category": ..., "timestamp": ...}, ...]
    }

Or read interactions straight from Supabase with --from-supabase USER_ID.

Usage:
    PYTHONPATH=src python scripts/profile_report.py export.json
    PYTHONPATH=src python scripts/profile_report.py --from-supabase u1 --candidates candidates.json
"""

import argparse
import asyncio
import json
import sys
from datetime import timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env")

from core.utils import parse_timestamp, utc_now
from personalization.config import DEFAULT_CONFIG, MS_PER_DAY
from personalization.confidence import estimate_confidence
from personalization.extractor import PreferenceExtractor
from personalization.models import RecommendationCandidate, parse_records
from personalization.profile_builder import ProfileBuilder
from personalization.query import build_recommendation_query
from personalization.ranker import RecommendationRanker


def _load_json(path):
    with open(path) as f:
        return json.load(f)


def _fetch_from_supabase(user_id, now):
    from config.settings import get_settings
    from integrations.interaction_store import SupabaseInteractionStore

    settings = get_settings()
    store = SupabaseInteractionStore(table=settings.interactions_table)
    return asyncio.run(store.fetch_interactions(
        user_id,
        since=now - timedelta(days=settings.interaction_window_days),
        limit=settings.interaction_limit,
    ))


def _print_weights(title, weights):
    print(f"  {title}:")
    if not weights:
        print("    (none)")
    for key, value in sorted(weights.items(), key=lambda kv: kv[1], reverse=True):
        print(f"    {key:<28} {value:.3f}")


def main():
    parser = argparse.ArgumentParser(description="Trace the personalization pipeline for one user")
    parser.add_argument("export", nargs="?", help="JSON export with interactions and candidates")
    parser.add_argument("--from-supabase", metavar="USER_ID", help="Read interactions from Supabase")
    parser.add_argument("--candidates", help="JSON file with a list of candidates")
    parser.add_argument("--top", type=int, default=DEFAULT_CONFIG.MAX_RESULTS)
    args = parser.parse_args()

    if not args.export and not args.from_supabase:
        parser.error("pass an export file or --from-supabase USER_ID")

    data = _load_json(args.export) if args.export else {}
    now = parse_timestamp(data.get("now")) or utc_now()

    if args.from_supabase:
        user_id = args.from_supabase
        records = _fetch_from_supabase(user_id, now)
    else:
        user_id = data.get("user_id", "")
        rows = [dict(row, user_id=row.get("user_id", user_id)) for row in data.get("interactions", [])]
        records = parse_records(rows)

    candidate_rows = _load_json(args.candidates) if args.candidates else data.get("candidates", [])
    candidates = [RecommendationCandidate.model_validate(c) for c in candidate_rows]

    extractor = PreferenceExtractor()
    memories = extractor.extract(records, now=now)
    insights = extractor.build_insights(memories)
    profile = ProfileBuilder().build_profile(memories, insights, user_id=user_id)

    print("=" * 60)
    print(f"User: {user_id}    now: {now.isoformat()}")
    print("=" * 60)

    print("\n1. Memory buckets")
    for name, count in memories.counts().items():
        print(f"  {name:<20} {count}")
    for view in memories.recent_views[:10]:
        attrs = view.attributes
        print(f"    view {attrs.category or '-':<16} {attrs.style or '-':<14} "
              f"age={view.age_ms / MS_PER_DAY:5.1f}d  w={view.recency_weight:.3f}")

    print("\n2. Insights")
    _print_weights("categories", insights.preferred_categories)
    _print_weights("styles", insights.preferred_styles)
    _print_weights("artists", insights.preferred_artists)
    _print_weights("colors", insights.color_preferences)
    _print_weights("intents", insights.shopping_intent_distribution)

    print("\n3. Profile")
    dominant = profile.dominant_characteristics
    print(f"  activity_level     {profile.activity_level}")
    print(f"  last_active        {profile.last_active.isoformat() if profile.last_active else '-'}")
    print(f"  exploration_score  {profile.exploration_score:.3f}")
    print(f"  confidence         {profile.confidence:.3f}")
    print(f"  primary_category   {dominant.primary_category or '-'}")
    print(f"  primary_style      {dominant.primary_style or '-'}")
    print(f"  engagement_level   {dominant.engagement_level.value}")

    print("\n4. Recommendation query")
    print(f"  {build_recommendation_query(profile)}")

    ranker = RecommendationRanker()
    ranked = ranker.rank(candidates, profile, now=now, limit=args.top)

    print(f"\n5. Ranking ({len(candidates)} candidates -> {len(ranked)})")
    for i, rec in enumerate(ranked, 1):
        b = ranker.explain(rec.candidate, profile, now=now)
        print(f"  {i:>2}. {b['candidate_id']:<20} base={b['base_score']:.3f} "
              f"pref=x{b['preference_boost']:.3f} rec=x{b['recency_factor']:.3f} "
              f"div=x{b['diversity_boost']:.3f} -> {b['final_score']:.4f}")

    print(f"\nConfidence: {estimate_confidence(profile, ranked):.3f}")


if __name__ == "__main__":
    main()
