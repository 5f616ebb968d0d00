"""Custom field fill rate: how many period leads have a non-empty value for a field."""

from .formatting import NumberFormatter
from .lead_stats import fetch_period_leads
from .models import SharePeriod, WidgetResult


def has_field_value(lead: dict, field_id: str) -> bool:
    for entry in lead.get("custom_field_values") or []:
        if not isinstance(entry, dict) or str(entry.get("field_id")) != field_id:
            continue
        if entry.get("value") is not None and entry.get("value") != "":
            return True
    return False


async def compute_custom_field(
    supabase,
    empresa_id: str,
    field_id: str,
    period: SharePeriod,
    formatter: NumberFormatter,
) -> WidgetResult:
    leads = await fetch_period_leads(supabase, empresa_id, period, "id,custom_field_values")
    count = sum(1 for lead in leads if has_field_value(lead, field_id))
    return WidgetResult(value=count, formatted=formatter.number_fmt(count), subtitle=f"{count} registros")
