"""
Route modules for the API.

- health: liveness/readiness and dependency checks
- personalization: recommendations, profiles, interaction ingestion
"""
