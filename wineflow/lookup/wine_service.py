"""
Recommendation lookup for wine result nodes.

Given a result node's lookup key, find the top-rated matching bottle in the
supabase catalogue (wine_instances joined to wines_master), keeping an eye on
price:

- over the never-show threshold: look for a budget alternative instead
- over the show-with-message threshold: return it flagged as an alternative
- otherwise: return it as is
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from postgrest.exceptions import APIError
from pydantic import BaseModel
from supabase import AsyncClient, acreate_client
from supabase._async.client import SupabaseException

from wineflow.config import Settings
from wineflow.lookup.wine_key_map import EXCLUDE_SPARKLING_FOR, search_terms_for

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 100

SELECT_COLUMNS = (
    "id,specific_price,purchased_from_store,rating,"
    "wines_master!inner(name,appellation,region,country,style)"
)


class WineLookupError(Exception):
    """The catalogue backend failed."""
    pass


class Recommendation(BaseModel):
    name: str
    source: Optional[str] = None
    price: Optional[float] = None
    is_alternative: bool = False
    region: Optional[str] = None
    country: Optional[str] = None
    style: Optional[str] = None
    rating: Optional[float] = None

    @classmethod
    def from_row(cls, row: dict[str, Any], *, is_alternative: bool) -> "Recommendation":
        master = row.get("wines_master") or {}
        return cls(
            name=master.get("name") or "",
            source=row.get("purchased_from_store"),
            price=row.get("specific_price"),
            is_alternative=is_alternative,
            region=master.get("region"),
            country=master.get("country"),
            style=master.get("style"),
            rating=row.get("rating"),
        )


def _is_sparkling(row: dict[str, Any]) -> bool:
    style = (row.get("wines_master") or {}).get("style")
    return isinstance(style, str) and style.lower() == "sparkling"


class WineService:
    """Async lookup against the catalogue. With no client every lookup returns None."""

    def __init__(self, client: Optional[AsyncClient], settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or Settings()

    async def lookup_recommendation(self, wine_key: str) -> Optional[Recommendation]:
        """
        Find a recommendation for a lookup key.

        Raises:
            ValueError: If the key is empty or too long
            WineLookupError: If the backend query fails
        """
        if not isinstance(wine_key, str) or not wine_key.strip() or len(wine_key) > MAX_KEY_LENGTH:
            raise ValueError(f"Invalid wineKey: {wine_key!r}")

        if self.client is None:
            logger.debug("No catalogue configured; skipping lookup for %s", wine_key)
            return None

        exclude_sparkling = wine_key in EXCLUDE_SPARKLING_FOR
        s = self.settings

        for term in search_terms_for(wine_key):
            top = await self._fetch_top(term, exclude_sparkling=exclude_sparkling)
            if top is None:
                continue

            price = top.get("specific_price")

            if price is not None and price > s.price_never_show:
                budget = await self._fetch_top(
                    term, exclude_sparkling=exclude_sparkling, max_price=s.budget_max_price
                )
                if budget is not None:
                    return Recommendation.from_row(budget, is_alternative=False)
                logger.debug("Term %r only matched wines over %s", term, s.price_never_show)
                continue

            if price is not None and price > s.price_show_with_message:
                return Recommendation.from_row(top, is_alternative=True)

            return Recommendation.from_row(top, is_alternative=False)

        logger.info("No recommendation found for %s", wine_key)
        return None

    async def _fetch_top(
        self,
        term: str,
        *,
        exclude_sparkling: bool = False,
        max_price: Optional[float] = None,
    ) -> Optional[dict[str, Any]]:
        limit = self.settings.query_limit_with_filter if exclude_sparkling else self.settings.query_limit_no_filter
        filters = ",".join(
            f"{column}.ilike.%{term}%" for column in ("name", "appellation", "region", "country")
        )

        query = (
            self.client.table("wine_instances")
            .select(SELECT_COLUMNS)
            .or_(filters, reference_table="wines_master")
        )
        if max_price is not None:
            query = query.lte("specific_price", max_price)
        query = query.order("rating", desc=True, nullsfirst=False).limit(limit)

        try:
            response = await query.execute()
        except (APIError, httpx.HTTPError) as e:
            raise WineLookupError(f"Catalogue query for {term!r} failed: {e}") from e

        rows = response.data or []
        if exclude_sparkling:
            rows = [row for row in rows if not _is_sparkling(row)]
        return rows[0] if rows else None


async def create_wine_service(settings: Settings) -> WineService:
    """Build a WineService, connected when supabase is configured and the client can be built."""
    if not settings.has_supabase_config:
        logger.warning("SUPABASE_URL/SUPABASE_KEY not set; recommendations disabled")
        return WineService(None, settings)
    try:
        client = await acreate_client(settings.supabase_url, settings.supabase_key)
    except SupabaseException as e:
        logger.warning("Could not create supabase client (%s); recommendations disabled", e)
        return WineService(None, settings)
    return WineService(client, settings)
