"""
Widget Metric Router
====================
A widget's metric_key is decided once into one of four references:

  variable_<id>      → VariableMetricKey     → variables.compute_variable
  calculation_<id>   → CalculationMetricKey  → formula.resolve_formula
  custom_field_<id>  → CustomFieldMetricKey  → custom_fields.compute_custom_field
  anything else      → StandardMetricKey     → standard_metrics.compute_standard_metric
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union

from .config import DEFAULT_FORMULA_MAX_DEPTH
from .custom_fields import compute_custom_field
from .errors import CalculationNotFound, InvalidMetricKey
from .formatting import FORMAT_NUMBER
from .formula import (
    FormulaContext,
    formula_to_text,
    parse_formula,
    resolve_formula,
    validate_formula,
)
from .models import WidgetResult
from .standard_metrics import compute_standard_metric, metric_labels
from .variables import compute_variable

logger = logging.getLogger(__name__)

VARIABLE_PREFIX = "variable_"
CALCULATION_PREFIX = "calculation_"
CUSTOM_FIELD_PREFIX = "custom_field_"


@dataclass(frozen=True)
class StandardMetricKey:
    key: str


@dataclass(frozen=True)
class VariableMetricKey:
    variable_id: str


@dataclass(frozen=True)
class CalculationMetricKey:
    calculation_id: str


@dataclass(frozen=True)
class CustomFieldMetricKey:
    custom_field_id: str


MetricKey = Union[StandardMetricKey, VariableMetricKey, CalculationMetricKey, CustomFieldMetricKey]

_PREFIXES = (
    (VARIABLE_PREFIX, VariableMetricKey),
    (CALCULATION_PREFIX, CalculationMetricKey),
    (CUSTOM_FIELD_PREFIX, CustomFieldMetricKey),
)


def parse_metric_key(metric_key: Optional[str]) -> MetricKey:
    if not metric_key or not isinstance(metric_key, str):
        raise InvalidMetricKey("Widget has no metric key")

    for prefix, ref_cls in _PREFIXES:
        if metric_key.startswith(prefix):
            ref_id = metric_key[len(prefix):]
            if not ref_id:
                raise InvalidMetricKey(f"Metric key {metric_key!r} has no id")
            return ref_cls(ref_id)
    return StandardMetricKey(metric_key)


async def load_calculation(supabase, empresa_id: str, calculation_id: str) -> Optional[dict]:
    result = await asyncio.to_thread(lambda: supabase.table("dashboard_calculations")
        .select("id,name,description,formula,result_format")
        .eq("id", calculation_id)
        .eq("empresa_id", empresa_id)
        .limit(1)
        .execute())
    return result.data[0] if result.data else None


async def compute_calculation(
    calculation_id: str,
    ctx: FormulaContext,
    max_depth: int = DEFAULT_FORMULA_MAX_DEPTH,
) -> WidgetResult:
    calc = await load_calculation(ctx.supabase, ctx.empresa_id, calculation_id)
    if not calc:
        raise CalculationNotFound(f"Calculation {calculation_id} not found")

    raw = calc.get("formula")
    # parse_formula enforces max_depth; validate_formula recurses unbounded
    node = parse_formula(raw, max_depth=max_depth)
    valid, error = validate_formula(raw)
    if not valid:
        logger.warning("Calculation %s has an invalid formula: %s", calculation_id, error)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Evaluating calculation %s: %s", calculation_id, formula_to_text(node, metric_labels()))
    value = await resolve_formula(node, ctx)

    fmt = calc.get("result_format") or FORMAT_NUMBER
    return WidgetResult(
        value=value,
        formatted=ctx.formatter.format(value, fmt, max_fraction_digits=2),
        subtitle=calc.get("description") or calc.get("name") or "",
    )


async def compute_widget_data(
    metric: MetricKey,
    ctx: FormulaContext,
    max_depth: int = DEFAULT_FORMULA_MAX_DEPTH,
) -> WidgetResult:
    if isinstance(metric, VariableMetricKey):
        return await compute_variable(ctx.supabase, ctx.empresa_id, metric.variable_id, ctx.period, ctx.formatter)

    if isinstance(metric, CalculationMetricKey):
        return await compute_calculation(metric.calculation_id, ctx, max_depth=max_depth)

    if isinstance(metric, CustomFieldMetricKey):
        return await compute_custom_field(
            ctx.supabase, ctx.empresa_id, metric.custom_field_id, ctx.period, ctx.formatter
        )

    return compute_standard_metric(metric.key, ctx.stats, ctx.formatter)
