"""Interaction store adapters (Supabase-backed and in-memory)."""

from __future__ import annotations

import asyncio
from datetime import datetime
from threading import Lock
from typing import Any, Dict, List, Optional, Sequence

from supabase import Client

from config.database import get_supabase_client
from core.logging import get_logger
from core.utils import ensure_utc
from personalization.errors import UpstreamUnavailable
from personalization.models import InteractionKind, InteractionRecord, parse_records


logger = get_logger(__name__)

INTERACTION_COLUMNS = "user_id, kind, occurred_at, attributes"


class SupabaseInteractionStore:
    """
    Interaction records in a Supabase table.

    Expected schema:
        user_id text, kind text, occurred_at timestamptz, attributes jsonb

    The supabase client is synchronous, so queries run in a worker thread.
    """

    def __init__(self, client: Optional[Client] = None, table: str = "user_interactions") -> None:
        self._client = client
        self.table = table

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    # ---------------------------------------------------------------------
    # Reads
    # ---------------------------------------------------------------------

    async def fetch_interactions(
        self,
        user_id: str,
        since: datetime,
        kinds: Optional[Sequence[InteractionKind]] = None,
        limit: Optional[int] = None,
        query: Optional[str] = None,
    ) -> List[InteractionRecord]:
        rows = await asyncio.to_thread(self._select_rows, user_id, since, kinds, limit)
        records = parse_records(rows)
        logger.debug("Fetched interactions", user_id=user_id, rows=len(rows), records=len(records))
        return records

    def _select_rows(
        self,
        user_id: str,
        since: datetime,
        kinds: Optional[Sequence[InteractionKind]],
        limit: Optional[int],
    ) -> List[Dict[str, Any]]:
        try:
            request = (
                self.client
                .table(self.table)
                .select(INTERACTION_COLUMNS)
                .eq("user_id", user_id)
                .gte("occurred_at", ensure_utc(since).isoformat())
            )
            if kinds:
                request = request.in_("kind", [InteractionKind(k).value for k in kinds])
            request = request.order("occurred_at", desc=True)
            if limit:
                request = request.limit(limit)
            result = request.execute()
        except Exception as e:
            logger.warning("Interaction fetch failed", user_id=user_id, error=str(e))
            raise UpstreamUnavailable("interaction_store", str(e)) from e
        return result.data or []

    # ---------------------------------------------------------------------
    # Writes
    # ---------------------------------------------------------------------

    async def record_interaction(self, record: InteractionRecord) -> None:
        await asyncio.to_thread(self._insert_row, record.to_row())

    def _insert_row(self, row: Dict[str, Any]) -> None:
        try:
            self.client.table(self.table).insert(row).execute()
        except Exception as e:
            logger.warning("Interaction insert failed", user_id=row.get("user_id"), error=str(e))
            raise UpstreamUnavailable("interaction_store", str(e)) from e


class InMemoryInteractionStore:
    """
    Append-only in-process store for development/testing.

    Note: Records are lost on restart.
    """

    def __init__(self, records: Optional[Sequence[InteractionRecord]] = None) -> None:
        self._records: List[InteractionRecord] = list(records or [])
        self._lock = Lock()

    async def fetch_interactions(
        self,
        user_id: str,
        since: datetime,
        kinds: Optional[Sequence[InteractionKind]] = None,
        limit: Optional[int] = None,
        query: Optional[str] = None,
    ) -> List[InteractionRecord]:
        since = ensure_utc(since)
        wanted = {InteractionKind(k) for k in kinds} if kinds else None
        with self._lock:
            matches = [
                r for r in self._records
                if r.user_id == user_id
                and r.timestamp >= since
                and (wanted is None or r.kind in wanted)
            ]
        matches.sort(key=lambda r: r.timestamp, reverse=True)
        return matches[:limit] if limit else matches

    async def record_interaction(self, record: InteractionRecord) -> None:
        with self._lock:
            self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)
