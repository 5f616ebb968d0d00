"""
Variable Value Resolver
=======================
static  : the stored value, unchanged.
periodic: sum of every dashboard_variable_periods row overlapping the query
           period. A partial overlap contributes the row's entire value.
"""

import asyncio
import logging
from typing import Optional

from .formatting import FORMAT_NUMBER, NumberFormatter
from .lead_stats import to_number
from .models import SharePeriod, WidgetResult

logger = logging.getLogger(__name__)

VALUE_TYPE_STATIC = "static"
VALUE_TYPE_PERIODIC = "periodic"


async def load_variable(supabase, empresa_id: str, variable_id: str) -> Optional[dict]:
    result = await asyncio.to_thread(lambda: supabase.table("dashboard_variables")
        .select("id,name,description,value_type,value,format")
        .eq("id", variable_id)
        .eq("empresa_id", empresa_id)
        .limit(1)
        .execute())
    return result.data[0] if result.data else None


async def load_variable_periods(supabase, variable_id: str) -> list[dict]:
    result = await asyncio.to_thread(lambda: supabase.table("dashboard_variable_periods")
        .select("id,start_date,end_date,value")
        .eq("variable_id", variable_id)
        .execute())
    return result.data or []


def resolve_variable_value(variable: dict, periods: list[dict], period: SharePeriod) -> float:
    if variable.get("value_type") != VALUE_TYPE_PERIODIC:
        return to_number(variable.get("value"))

    total = 0.0
    for p in periods:
        start, end = p.get("start_date"), p.get("end_date")
        if start and end and period.overlaps(str(start), str(end)):
            total += to_number(p.get("value"))
    return total


async def compute_variable(
    supabase,
    empresa_id: str,
    variable_id: str,
    period: SharePeriod,
    formatter: NumberFormatter,
) -> WidgetResult:
    variable = await load_variable(supabase, empresa_id, variable_id)
    if not variable:
        logger.warning(f"Variable {variable_id} not found for empresa {empresa_id}")
        return WidgetResult(value=0, formatted="0", subtitle="Variável não encontrada")

    periods = []
    if variable.get("value_type") == VALUE_TYPE_PERIODIC:
        periods = await load_variable_periods(supabase, variable_id)

    value = resolve_variable_value(variable, periods, period)
    fmt = variable.get("format") or FORMAT_NUMBER
    return WidgetResult(
        value=value,
        formatted=formatter.format(value, fmt),
        subtitle=variable.get("description") or variable.get("name") or "",
    )
