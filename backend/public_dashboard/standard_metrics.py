"""Built-in metric keys mapped onto LeadStats fields."""

from typing import NamedTuple

from .formatting import FORMAT_CURRENCY, FORMAT_NUMBER, FORMAT_PERCENTAGE, NumberFormatter
from .lead_stats import LeadStats
from .models import WidgetResult


class StandardMetric(NamedTuple):
    field: str      # LeadStats attribute
    fmt: str
    subtitle: str


STANDARD_METRICS: dict[str, StandardMetric] = {
    "leads_total":           StandardMetric("total",          FORMAT_NUMBER,     "Total de leads"),
    "leads_active":          StandardMetric("active",         FORMAT_NUMBER,     "Leads ativos"),
    "leads_total_value":     StandardMetric("totalValue",     FORMAT_CURRENCY,   "Valor total"),
    "leads_average_value":   StandardMetric("avgValue",       FORMAT_CURRENCY,   "Ticket médio"),
    "leads_conversion_rate": StandardMetric("conversionRate", FORMAT_PERCENTAGE, "Taxa de conversão"),
    "sales_total":           StandardMetric("sold",           FORMAT_NUMBER,     "Total de vendas"),
    "sales_total_value":     StandardMetric("soldValue",      FORMAT_CURRENCY,   "Valor vendido"),
    "losses_total":          StandardMetric("lost",           FORMAT_NUMBER,     "Leads perdidos"),
}


def compute_standard_metric(key: str, stats: LeadStats, formatter: NumberFormatter) -> WidgetResult:
    """Unknown keys degrade to a dash instead of failing; widgets may point at removed metrics."""
    metric = STANDARD_METRICS.get(key)
    if metric is None:
        return WidgetResult(value=0, formatted="—", subtitle=key)
    value = getattr(stats, metric.field)
    return WidgetResult(value=value, formatted=formatter.format(value, metric.fmt), subtitle=metric.subtitle)


def metric_labels() -> dict[str, str]:
    """Display labels for formula text rendering."""
    return {key: m.subtitle for key, m in STANDARD_METRICS.items()}
