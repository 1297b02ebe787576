from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from postgrest.exceptions import APIError

from marketplace.Core.config import get_settings
from .errors import UpstreamError

logger = logging.getLogger("supabase.query")


class SupabaseRepository:
    """Base for repositories issuing PostgREST calls through a supplied client."""

    table: str = ""

    async def _exec(self, awaitable, op: str) -> Any:
        timeout = get_settings().query_timeout
        t0 = time.perf_counter()
        try:
            resp = await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            raise UpstreamError(f"Supabase {op} timed out after {timeout}s")
        ms = int((time.perf_counter() - t0) * 1000)
        if ms > 50:
            logger.info("supabase_%s_ms=%d", op, ms)
        return resp

    @staticmethod
    def _first(resp: Any) -> dict | None:
        data = getattr(resp, "data", None)
        if not data:
            return None
        return data[0] if isinstance(data, list) else data


def api_error_message(exc: APIError) -> str:
    return getattr(exc, "message", None) or str(exc)
