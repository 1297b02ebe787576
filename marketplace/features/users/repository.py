from typing import Any, Dict, List, Optional, Tuple

from marketplace.common.pagination import Page
from marketplace.common.query import SupabaseRepository

PUBLIC_COLUMNS = "id, full_name, avatar_url, created_at"


class ProfileRepository(SupabaseRepository):
    """PostgREST access to the ``profiles`` table (one row per auth user)."""

    table = "profiles"

    async def get_public(self, client, user_id: str) -> Optional[dict]:
        resp = await self._exec(
            client.table(self.table).select(PUBLIC_COLUMNS).eq("id", user_id).limit(1).execute(),
            op="profiles.select_public",
        )
        return self._first(resp)

    async def get_full(self, client, user_id: str) -> Optional[dict]:
        resp = await self._exec(
            client.table(self.table).select("*").eq("id", user_id).limit(1).execute(),
            op="profiles.select_by_id",
        )
        return self._first(resp)

    async def update(self, client, user_id: str, fields: Dict[str, Any]) -> Optional[dict]:
        if not fields:
            return await self.get_full(client, user_id)
        resp = await self._exec(
            client.table(self.table).update(fields).eq("id", user_id).execute(),
            op="profiles.update",
        )
        return self._first(resp)

    async def search_by_name(self, client, q: str, page: Page) -> Tuple[List[dict], Optional[int]]:
        resp = await self._exec(
            client.table(self.table)
            .select(PUBLIC_COLUMNS, count="exact")
            .ilike("full_name", f"%{q}%")
            .order("full_name")
            .range(page.offset, page.range_end)
            .execute(),
            op="profiles.search",
        )
        return list(getattr(resp, "data", None) or []), getattr(resp, "count", None)


profile_repository = ProfileRepository()
