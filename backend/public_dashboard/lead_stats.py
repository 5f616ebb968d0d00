"""
Lead Statistics Aggregator
==========================
Reduces the tenant's leads created inside the shared period into one
immutable LeadStats record. Computed once per request and handed to every
widget by reference.

Status buckets:
  sold  : 'sold' | 'vendido'
  lost  : 'lost' | 'perdido'
  active: anything else
"""

import asyncio
import logging
import math
from dataclasses import dataclass

from .errors import AggregationFailure
from .models import SharePeriod

logger = logging.getLogger(__name__)

SOLD_STATUSES = frozenset({"sold", "vendido"})
LOST_STATUSES = frozenset({"lost", "perdido"})


@dataclass(frozen=True)
class LeadStats:
    total: int = 0
    active: int = 0
    sold: int = 0
    lost: int = 0
    totalValue: float = 0.0
    soldValue: float = 0.0
    avgValue: float = 0.0
    conversionRate: float = 0.0


def to_number(value) -> float:
    """Coerce a stored numeric column; null and junk count as 0."""
    try:
        num = float(value)
    except (TypeError, ValueError):
        return 0.0
    return num if math.isfinite(num) else 0.0


LEADS_PAGE_SIZE = 1000


async def fetch_period_leads(
    supabase,
    empresa_id: str,
    period: SharePeriod,
    columns: str,
    page_size: int = LEADS_PAGE_SIZE,
) -> list[dict]:
    """Leads of one tenant with created_at inside the inclusive period.

    PostgREST caps each response at max-rows, so pages are read with
    .range() until a short page comes back.
    """
    leads: list[dict] = []
    offset = 0
    while True:
        result = await asyncio.to_thread(lambda start=offset: supabase.table("leads")
            .select(columns)
            .eq("empresa_id", empresa_id)
            .gte("created_at", period.created_at_from)
            .lte("created_at", period.created_at_to)
            .order("id")
            .range(start, start + page_size - 1)
            .execute())
        page = result.data or []
        leads.extend(page)
        if len(page) < page_size:
            return leads
        offset += page_size


def summarize_leads(leads: list[dict]) -> LeadStats:
    total = len(leads)
    sold_leads = [l for l in leads if l.get("status") in SOLD_STATUSES]
    sold = len(sold_leads)
    lost = sum(1 for l in leads if l.get("status") in LOST_STATUSES)

    total_value = sum(to_number(l.get("value")) for l in leads)
    # sold_value of 0/null falls back to the lead's value
    sold_value = sum(to_number(l.get("sold_value")) or to_number(l.get("value")) for l in sold_leads)

    return LeadStats(
        total=total,
        active=total - sold - lost,
        sold=sold,
        lost=lost,
        totalValue=total_value,
        soldValue=sold_value,
        avgValue=total_value / total if total > 0 else 0.0,
        conversionRate=sold / total if total > 0 else 0.0,
    )


async def get_lead_stats(supabase, empresa_id: str, period: SharePeriod) -> LeadStats:
    """Fetch and aggregate. Raises AggregationFailure if the fetch fails."""
    try:
        leads = await fetch_period_leads(supabase, empresa_id, period, "id,value,status,sold_value")
    except Exception as e:
        logger.error(f"Lead fetch failed for empresa {empresa_id}: {e}")
        raise AggregationFailure() from e

    stats = summarize_leads(leads)
    logger.debug(
        "Lead stats for %s [%s..%s]: total=%d sold=%d lost=%d",
        empresa_id, period.start, period.end, stats.total, stats.sold, stats.lost,
    )
    return stats
