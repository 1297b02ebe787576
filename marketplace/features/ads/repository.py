from typing import Any, Dict, List, Optional, Tuple

from marketplace.common.pagination import Page
from marketplace.common.query import SupabaseRepository
from .query import AdQuery, apply_ad_query

SELLER_EMBED = "profiles(full_name, avatar_url)"


class AdRepository(SupabaseRepository):
    """PostgREST access to the ``ads`` table.

    Every method takes the client to run on so callers decide between the
    service-role handle (public reads) and the caller's token-bound handle
    (anything owner-scoped).
    """

    table = "ads"

    async def search(self, client, query: AdQuery, page: Page, with_seller: bool = True) -> Tuple[List[dict], Optional[int]]:
        columns = f"*, {SELLER_EMBED}" if with_seller else "*"
        builder = client.table(self.table).select(columns, count="exact")
        resp = await self._exec(apply_ad_query(builder, query, page).execute(), op="ads.search")
        return list(getattr(resp, "data", None) or []), getattr(resp, "count", None)

    async def get_by_id(self, client, ad_id: str) -> Optional[dict]:
        resp = await self._exec(
            client.table(self.table).select(f"*, {SELLER_EMBED}").eq("id", ad_id).limit(1).execute(),
            op="ads.select_by_id",
        )
        return self._first(resp)

    async def get_owner_id(self, client, ad_id: str) -> Optional[str]:
        resp = await self._exec(
            client.table(self.table).select("user_id").eq("id", ad_id).limit(1).execute(),
            op="ads.select_owner",
        )
        row = self._first(resp)
        return str(row["user_id"]) if row and row.get("user_id") is not None else None

    async def insert(self, client, record: Dict[str, Any]) -> dict:
        resp = await self._exec(client.table(self.table).insert(record).execute(), op="ads.insert")
        row = self._first(resp)
        if row is None:
            raise RuntimeError("Insert returned no ad row")
        return row

    async def update(self, client, ad_id: str, fields: Dict[str, Any]) -> Optional[dict]:
        resp = await self._exec(client.table(self.table).update(fields).eq("id", ad_id).execute(), op="ads.update")
        return self._first(resp)

    async def delete(self, client, ad_id: str) -> None:
        await self._exec(client.table(self.table).delete().eq("id", ad_id).execute(), op="ads.delete")


ad_repository = AdRepository()
