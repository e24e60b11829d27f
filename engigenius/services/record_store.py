"""
services/record_store.py

Access to the collaborator-owned record tables.
  - Production:  Supabase REST / PostgREST (RECORD_STORE=rest in .env)
  - Development: in-memory dict (resets on restart)

Only two operations exist: select a user's rows, insert one row.
No updates, no deletes.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Protocol, Sequence

import httpx

from engigenius.core.config import settings
from engigenius.core.errors import StoreError
from engigenius.core.logger import get_logger

logger = get_logger(__name__)


class RecordStore(Protocol):
    async def select(self, table: str, columns: Sequence[str], *, user_id: str) -> list[dict[str, Any]]:
        ...

    async def insert(self, table: str, row: dict[str, Any]) -> None:
        ...


class InMemoryRecordStore:
    """Dict-of-lists store. Rows get an id and created_at like the real tables."""

    def __init__(self, seed: Optional[dict[str, list[dict[str, Any]]]] = None):
        self._tables: dict[str, list[dict[str, Any]]] = {
            table: [dict(row) for row in rows] for table, rows in (seed or {}).items()
        }

    async def select(self, table: str, columns: Sequence[str], *, user_id: str) -> list[dict[str, Any]]:
        rows = [r for r in self._tables.get(table, []) if r.get("user_id") == user_id]
        return [{c: r.get(c) for c in columns} for r in rows]

    async def insert(self, table: str, row: dict[str, Any]) -> None:
        stored = {
            "id": str(uuid.uuid4()),
            "created_at": datetime.now(timezone.utc).isoformat(),
            **row,
        }
        self._tables.setdefault(table, []).append(stored)

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self._tables.get(table, []))


class RestRecordStore:
    """
    PostgREST client (Supabase exposes one at <project>/rest/v1).
    `api_key` is sent as `apikey`. The Bearer token is `access_token` when
    given (a signed-in user's session, subject to row-level security),
    otherwise the key itself.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
        access_token: Optional[str] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._access_token = access_token or api_key
        self._timeout = timeout
        self._client = http_client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers={
                    "apikey": self._api_key,
                    "Authorization": f"Bearer {self._access_token}",
                },
            )
        return self._client

    async def select(self, table: str, columns: Sequence[str], *, user_id: str) -> list[dict[str, Any]]:
        params = {"select": ",".join(columns), "user_id": f"eq.{user_id}"}
        try:
            resp = await self.client.get(f"/{table}", params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise StoreError(f"select from {table} failed: {e}", table=table) from e
        except ValueError as e:
            raise StoreError(f"select from {table} returned invalid JSON: {e}", table=table) from e
        return data if isinstance(data, list) else []

    async def insert(self, table: str, row: dict[str, Any]) -> None:
        try:
            resp = await self.client.post(
                f"/{table}",
                json=row,
                headers={"Prefer": "return=minimal"},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise StoreError(f"insert into {table} failed: {e}", table=table) from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def build_record_store(access_token: Optional[str] = None) -> RecordStore:
    """
    Store selected by RECORD_STORE.

    Without `access_token` the REST store uses the service-role key (server
    side only). With one it sends SUPABASE_ANON_KEY as `apikey` and the
    user's token as Bearer, so row-level security applies.
    """
    if settings.RECORD_STORE == "rest":
        if not settings.SUPABASE_URL:
            logger.warning("RECORD_STORE=rest but SUPABASE_URL is empty, falling back to in-memory store")
            return InMemoryRecordStore()
        if access_token:
            return RestRecordStore(
                settings.store_rest_url,
                settings.SUPABASE_ANON_KEY,
                timeout=settings.STORE_TIMEOUT,
                access_token=access_token,
            )
        return RestRecordStore(
            settings.store_rest_url,
            settings.SUPABASE_SERVICE_ROLE_KEY,
            timeout=settings.STORE_TIMEOUT,
        )
    return InMemoryRecordStore()


# Singleton
record_store = build_record_store()
