"""
Formula Resolver
================
Calculations store their formula as a JSON tree:

  {"type": "constant",     "value": 10}
  {"type": "variable",     "variableId": "..."}
  {"type": "metric",       "metricKey": "leads_total"}
  {"type": "custom_field", "customFieldId": "..."}
  {"type": "operation",    "operator": "+|-|*|/", "left": {...}, "right": {...}}

parse_formula() turns the JSON into frozen node dataclasses once; anything
malformed becomes an InvalidNode, which evaluates to 0. resolve_formula() is a
post-order walk that always returns a finite float: division by zero and
non-finite intermediate results yield 0.

Parsing enforces a depth limit and rejects a node that appears inside its own
subtree (FormulaConfigurationError). Both are widget-level failures.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Optional, Union

from .config import DEFAULT_FORMULA_MAX_DEPTH
from .custom_fields import compute_custom_field
from .errors import FormulaConfigurationError
from .formatting import NumberFormatter
from .lead_stats import LeadStats
from .models import SharePeriod
from .standard_metrics import compute_standard_metric
from .variables import compute_variable

logger = logging.getLogger(__name__)

OPERATORS = ("+", "-", "*", "/")
_OPERATOR_SYMBOLS = {"+": "+", "-": "-", "*": "×", "/": "÷"}


# ---------------------------------------------------------------------------
# Node types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Constant:
    value: float


@dataclass(frozen=True)
class VariableRef:
    variable_id: str


@dataclass(frozen=True)
class MetricRef:
    metric_key: str


@dataclass(frozen=True)
class CustomFieldRef:
    custom_field_id: str


@dataclass(frozen=True)
class Operation:
    operator: str
    left: "FormulaNode"
    right: "FormulaNode"


@dataclass(frozen=True)
class InvalidNode:
    reason: str


FormulaNode = Union[Constant, VariableRef, MetricRef, CustomFieldRef, Operation, InvalidNode]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_formula(raw: Any, max_depth: int = DEFAULT_FORMULA_MAX_DEPTH) -> FormulaNode:
    return _parse(raw, 0, max_depth, frozenset())


def _parse(raw: Any, depth: int, max_depth: int, ancestors: frozenset) -> FormulaNode:
    if depth > max_depth:
        raise FormulaConfigurationError(f"Formula deeper than {max_depth} levels")
    if not isinstance(raw, dict):
        return InvalidNode("empty node" if raw is None else "node is not an object")
    if id(raw) in ancestors:
        raise FormulaConfigurationError("Formula node references itself")

    node_type = raw.get("type")

    if node_type == "constant":
        value = raw.get("value")
        if value is None:
            return Constant(0.0)
        if isinstance(value, bool):
            return InvalidNode("constant is not a number")
        try:
            num = float(value)
        except (TypeError, ValueError):
            return InvalidNode("constant is not a number")
        return Constant(num) if math.isfinite(num) else InvalidNode("constant is not finite")

    if node_type == "variable":
        ref = raw.get("variableId")
        return VariableRef(str(ref)) if ref else InvalidNode("variable not selected")

    if node_type == "metric":
        ref = raw.get("metricKey")
        return MetricRef(str(ref)) if ref else InvalidNode("metric not selected")

    if node_type == "custom_field":
        ref = raw.get("customFieldId")
        return CustomFieldRef(str(ref)) if ref else InvalidNode("custom field not selected")

    if node_type == "operation":
        operator, left, right = raw.get("operator"), raw.get("left"), raw.get("right")
        if not operator or not left or not right:
            return InvalidNode("incomplete operation")
        if operator not in OPERATORS:
            return InvalidNode(f"unknown operator {operator!r}")
        path = ancestors | {id(raw)}
        return Operation(
            operator=operator,
            left=_parse(left, depth + 1, max_depth, path),
            right=_parse(right, depth + 1, max_depth, path),
        )

    return InvalidNode(f"unknown node type {node_type!r}")


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FormulaContext:
    """Everything a leaf needs; shared read-only by the whole walk."""
    supabase: Any
    empresa_id: str
    period: SharePeriod
    stats: LeadStats
    formatter: NumberFormatter


def apply_operator(left: float, right: float, operator: str) -> float:
    if operator == "+":
        result = left + right
    elif operator == "-":
        result = left - right
    elif operator == "*":
        result = left * right
    elif operator == "/":
        result = left / right if right != 0 else 0.0
    else:
        return 0.0
    return result if math.isfinite(result) else 0.0


async def resolve_formula(node: FormulaNode, ctx: FormulaContext) -> float:
    if isinstance(node, Constant):
        return node.value

    if isinstance(node, VariableRef):
        result = await compute_variable(ctx.supabase, ctx.empresa_id, node.variable_id, ctx.period, ctx.formatter)
        return float(result.value)

    if isinstance(node, MetricRef):
        return float(compute_standard_metric(node.metric_key, ctx.stats, ctx.formatter).value)

    if isinstance(node, CustomFieldRef):
        result = await compute_custom_field(
            ctx.supabase, ctx.empresa_id, node.custom_field_id, ctx.period, ctx.formatter
        )
        return float(result.value)

    if isinstance(node, Operation):
        left, right = await asyncio.gather(
            resolve_formula(node.left, ctx),
            resolve_formula(node.right, ctx),
        )
        return apply_operator(left, right, node.operator)

    if isinstance(node, InvalidNode):
        logger.debug(f"Invalid formula node resolved to 0: {node.reason}")
    return 0.0


# ---------------------------------------------------------------------------
# Validation and display
# ---------------------------------------------------------------------------

def validate_formula(raw: Any) -> tuple[bool, Optional[str]]:
    """Structural check of a stored formula. Returns (valid, first error message)."""
    if not raw or not isinstance(raw, dict):
        return False, "Fórmula vazia"

    node_type = raw.get("type")
    if node_type == "constant":
        if raw.get("value") is None:
            return False, "Valor constante não definido"
        return True, None
    if node_type == "metric":
        return (True, None) if raw.get("metricKey") else (False, "Métrica não selecionada")
    if node_type == "custom_field":
        return (True, None) if raw.get("customFieldId") else (False, "Campo personalizado não selecionado")
    if node_type == "variable":
        return (True, None) if raw.get("variableId") else (False, "Variável não selecionada")
    if node_type == "operation":
        if not raw.get("operator"):
            return False, "Operador não definido"
        if not raw.get("left"):
            return False, "Lado esquerdo da operação está vazio"
        if not raw.get("right"):
            return False, "Lado direito da operação está vazio"
        valid, error = validate_formula(raw["left"])
        if not valid:
            return valid, error
        return validate_formula(raw["right"])

    return False, "Tipo de node desconhecido"


def _constant_text(value: float) -> str:
    return str(int(value)) if value.is_integer() else repr(value)


def formula_to_text(
    node: FormulaNode,
    metric_labels: dict[str, str],
    variable_names: Optional[dict[str, str]] = None,
) -> str:
    """Readable rendering, e.g. '(Valor total - 100) ÷ Total de leads'."""
    variable_names = variable_names or {}

    if isinstance(node, Constant):
        return _constant_text(node.value)
    if isinstance(node, VariableRef):
        return variable_names.get(node.variable_id) or "Variável"
    if isinstance(node, MetricRef):
        return metric_labels.get(node.metric_key) or node.metric_key
    if isinstance(node, CustomFieldRef):
        return metric_labels.get(f"custom_field_{node.custom_field_id}") or "Campo personalizado"
    if isinstance(node, Operation):
        left = formula_to_text(node.left, metric_labels, variable_names)
        right = formula_to_text(node.right, metric_labels, variable_names)

        def needs_parens(child: FormulaNode) -> bool:
            return (
                isinstance(child, Operation)
                and node.operator in ("*", "/")
                and child.operator in ("+", "-")
            )

        if needs_parens(node.left):
            left = f"({left})"
        if needs_parens(node.right):
            right = f"({right})"
        return f"{left} {_OPERATOR_SYMBOLS[node.operator]} {right}"
    return "???"
