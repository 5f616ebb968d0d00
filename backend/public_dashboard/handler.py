"""
Access Gate / Request Handler
=============================
build_public_dashboard(supabase, token) resolves a share token into the full
public payload. Request-level problems raise PublicDashboardError subclasses;
each widget is computed in isolation and a failing widget is replaced by the
error sentinel.

The token is a bearer capability: it is never returned and only its
fingerprint is logged.
"""

import asyncio
import hashlib
import logging
from typing import Any, Optional

from .config import Settings, get_settings
from .errors import DashboardNotFound, InvalidConfiguration, InvalidRequest
from .formatting import NumberFormatter
from .formula import FormulaContext
from .lead_stats import get_lead_stats
from .metric_router import compute_widget_data, parse_metric_key
from .models import (
    DashboardSummary,
    PublicDashboardResponse,
    SharePeriod,
    WidgetPayload,
    WidgetResult,
    error_result,
)

logger = logging.getLogger(__name__)


def token_fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()[:8]


def require_token(token: Any) -> str:
    """Step one of every request: a non-blank string token, else 400."""
    if not token or not isinstance(token, str) or not token.strip():
        raise InvalidRequest()
    return token


async def load_shared_dashboard(supabase, token: str) -> dict:
    """The single active dashboard shared under this token."""
    result = await asyncio.to_thread(lambda: supabase.table("custom_dashboards")
        .select("id,name,description,empresa_id,share_period,share_active")
        .eq("share_token", token)
        .eq("share_active", True)
        .limit(2)
        .execute())
    rows = result.data or []
    if len(rows) != 1:
        if rows:
            logger.error(f"Share token {token_fingerprint(token)} matches {len(rows)} dashboards")
        raise DashboardNotFound()
    return rows[0]


def parse_share_period(raw: Any) -> SharePeriod:
    if not isinstance(raw, dict) or not raw.get("start") or not raw.get("end"):
        raise InvalidConfiguration()
    period = SharePeriod(start=str(raw["start"])[:10], end=str(raw["end"])[:10])
    if period.start > period.end:
        raise InvalidConfiguration()
    return period


async def load_widgets(supabase, dashboard_id: str) -> list[dict]:
    result = await asyncio.to_thread(lambda: supabase.table("dashboard_widgets")
        .select("*")
        .eq("dashboard_id", dashboard_id)
        .order("position_y")
        .order("position_x")
        .execute())
    return result.data or []


async def build_public_dashboard(
    supabase,
    token: Optional[str],
    settings: Optional[Settings] = None,
) -> PublicDashboardResponse:
    token = require_token(token)
    settings = settings or get_settings()
    fingerprint = token_fingerprint(token)

    try:
        dashboard = await load_shared_dashboard(supabase, token)
    except DashboardNotFound:
        logger.warning(f"Rejected share token {fingerprint}: no active dashboard")
        raise

    period = parse_share_period(dashboard.get("share_period"))
    dashboard_id = str(dashboard["id"])
    empresa_id = dashboard.get("empresa_id")

    widgets = await load_widgets(supabase, dashboard_id)
    stats = await get_lead_stats(supabase, empresa_id, period)

    ctx = FormulaContext(
        supabase=supabase,
        empresa_id=empresa_id,
        period=period,
        stats=stats,
        formatter=NumberFormatter.from_settings(settings),
    )

    widget_data: dict[str, WidgetResult] = {}
    for w in widgets:
        widget_id = str(w["id"])
        try:
            metric = parse_metric_key(w.get("metric_key"))
            widget_data[widget_id] = await compute_widget_data(
                metric, ctx, max_depth=settings.formula_max_depth
            )
        except Exception as e:
            logger.error(f"Widget {widget_id} failed ({w.get('metric_key')}): {e}")
            widget_data[widget_id] = error_result()

    logger.info(
        f"Served dashboard {dashboard_id} ({len(widgets)} widgets) for token {fingerprint}"
    )

    return PublicDashboardResponse(
        dashboard=DashboardSummary(
            id=dashboard_id,
            name=dashboard.get("name"),
            description=dashboard.get("description"),
        ),
        widgets=[WidgetPayload.from_row(w) for w in widgets],
        period=period,
        widgetData=widget_data,
    )
