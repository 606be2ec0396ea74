"""
External service adapters.

- interaction_store: Supabase / in-memory interaction records
- orion: ORION-CORE memory service client and candidate retriever
"""
