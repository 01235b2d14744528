from __future__ import annotations

import os
import uuid
from enum import Enum

from supabase import Client

from src.infrastructure.database.postgres_client import get_postgres_client


class PartyStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    NOT_FOUND = "not_found"


# module-level in-memory store for disabled mode
_MEM_PARTIES: dict[str, PartyStatus] = {}


class PartyRepository:
    """Read-side view of parties; lifecycle management lives elsewhere."""

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.use_local_db = os.getenv("USE_LOCAL_DB", "0") == "1"
        self.pg_client = get_postgres_client() if self.use_local_db else None

    @staticmethod
    def _to_status(row: dict | None) -> PartyStatus:
        if not row:
            return PartyStatus.NOT_FOUND
        try:
            return PartyStatus(row.get("status"))
        except ValueError:
            return PartyStatus.NOT_FOUND

    def get_status(self, party_id: str) -> PartyStatus:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            row = self.pg_client.execute_one("SELECT status FROM parties WHERE id = %s", (party_id,))
            return self._to_status(row)

        # In-memory mode
        if self.disabled or self.client is None:
            return _MEM_PARTIES.get(party_id, PartyStatus.NOT_FOUND)

        # Supabase mode
        try:  # pragma: no cover - network
            res = (
                self.client.table("parties")
                .select("status")
                .eq("id", party_id)
                .maybe_single()
                .execute()
            )
            return self._to_status(res.data if res else None)
        except Exception as exc:
            raise RuntimeError(f"DB get party status failed: {exc}") from exc

    def create(self, party_id: str | None = None, status: PartyStatus = PartyStatus.ACTIVE) -> str:
        """Seed a party row; used by local/demo setups and tests."""
        party_id = party_id or str(uuid.uuid4())
        if self.use_local_db and self.pg_client:
            self.pg_client.execute_insert(
                "INSERT INTO parties (id, status, join_token_hash) VALUES (%s, %s, '') RETURNING id",
                (party_id, status.value),
            )
            return party_id

        if self.disabled or self.client is None:
            _MEM_PARTIES[party_id] = status
            return party_id

        try:  # pragma: no cover - network
            self.client.table("parties").insert(
                {"id": party_id, "status": status.value, "join_token_hash": ""}
            ).execute()
            return party_id
        except Exception as exc:
            raise RuntimeError(f"DB insert party failed: {exc}") from exc
