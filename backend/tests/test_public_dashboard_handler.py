"""
Tests for public_dashboard/handler.py
======================================
Covers:
  - token gate (missing / unknown / inactive / ambiguous)
  - share period validation
  - widget ordering and payload shape
  - end-to-end value for a single standard widget
  - per-widget failure isolation
  - lead stats computed once per request
  - token never echoed or logged in clear
"""

import logging
import sys
import os

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from supabase_fake import FakeSupabase
from public_dashboard.config import Settings
from public_dashboard.errors import DashboardNotFound, InvalidConfiguration, InvalidRequest
from public_dashboard.handler import build_public_dashboard, parse_share_period, token_fingerprint

EMPRESA = "empresa-a"
TOKEN = "tok-secret-123"
SETTINGS = Settings(supabase_url="http://localhost", supabase_key="k")


def _dashboard(**overrides):
    row = {
        "id": "dash-1", "name": "Vendas", "description": "Painel TV", "empresa_id": EMPRESA,
        "share_period": {"start": "2024-01-01", "end": "2024-01-31"},
        "share_active": True, "share_token": TOKEN,
    }
    row.update(overrides)
    return row


def _widget(widget_id, metric_key, x=0, y=0):
    return {
        "id": widget_id, "dashboard_id": "dash-1", "widget_type": "kpi", "metric_key": metric_key,
        "title": widget_id.upper(), "config": {"color": "blue"},
        "position_x": x, "position_y": y, "width": 2, "height": 1,
    }


def _lead(i, value, status="new", created_at="2024-01-15T10:00:00", empresa=EMPRESA):
    return {"id": f"lead-{i}", "empresa_id": empresa, "value": value, "status": status,
            "sold_value": None, "created_at": created_at, "custom_field_values": []}


def _tables(widgets, leads=None, **extra):
    tables = {
        "custom_dashboards": [_dashboard()],
        "dashboard_widgets": widgets,
        "leads": leads or [],
    }
    tables.update(extra)
    return tables


class TestTokenGate:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, "", "   "])
    async def test_missing_token(self, token):
        with pytest.raises(InvalidRequest) as exc:
            await build_public_dashboard(FakeSupabase(), token, settings=SETTINGS)
        assert exc.value.status_code == 400
        assert exc.value.message == "Token obrigatório"

    @pytest.mark.asyncio
    async def test_unknown_token(self):
        sb = FakeSupabase(_tables([]))
        with pytest.raises(DashboardNotFound) as exc:
            await build_public_dashboard(sb, "other-token", settings=SETTINGS)
        assert exc.value.status_code == 404

    @pytest.mark.asyncio
    async def test_inactive_share(self):
        sb = FakeSupabase({"custom_dashboards": [_dashboard(share_active=False)]})
        with pytest.raises(DashboardNotFound):
            await build_public_dashboard(sb, TOKEN, settings=SETTINGS)

    @pytest.mark.asyncio
    async def test_token_matching_two_dashboards_is_rejected(self):
        sb = FakeSupabase({"custom_dashboards": [_dashboard(), _dashboard(id="dash-2")]})
        with pytest.raises(DashboardNotFound):
            await build_public_dashboard(sb, TOKEN, settings=SETTINGS)


class TestSharePeriod:
    @pytest.mark.parametrize("raw", [
        None, {}, {"start": "2024-01-01"}, {"end": "2024-01-31"},
        {"start": "2024-02-01", "end": "2024-01-01"}, "2024-01-01",
    ])
    def test_invalid(self, raw):
        with pytest.raises(InvalidConfiguration):
            parse_share_period(raw)

    def test_timestamps_are_truncated_to_dates(self):
        period = parse_share_period({"start": "2024-01-01T03:00:00Z", "end": "2024-01-31"})
        assert (period.start, period.end) == ("2024-01-01", "2024-01-31")

    @pytest.mark.asyncio
    async def test_dashboard_without_period(self):
        sb = FakeSupabase({"custom_dashboards": [_dashboard(share_period=None)]})
        with pytest.raises(InvalidConfiguration) as exc:
            await build_public_dashboard(sb, TOKEN, settings=SETTINGS)
        assert exc.value.message == "Período não configurado"


class TestBuildPublicDashboard:
    @pytest.mark.asyncio
    async def test_end_to_end_total_value(self):
        leads = [_lead(1, 100), _lead(2, 200), _lead(3, 300),
                 _lead(4, 999, empresa="empresa-b"), _lead(5, 999, created_at="2024-02-01T00:00:00")]
        sb = FakeSupabase(_tables([_widget("w1", "leads_total_value")], leads))

        response = await build_public_dashboard(sb, TOKEN, settings=SETTINGS)

        assert response.widgetData["w1"].model_dump() == {
            "value": 600.0, "formatted": "R$ 600,00", "subtitle": "Valor total",
        }

    @pytest.mark.asyncio
    async def test_payload_shape_and_order(self):
        widgets = [_widget("c", "leads_total", x=1, y=1), _widget("a", "leads_total", x=5, y=0),
                   _widget("b", "leads_total", x=0, y=1)]
        sb = FakeSupabase(_tables(widgets))

        body = (await build_public_dashboard(sb, TOKEN, settings=SETTINGS)).model_dump()

        assert body["dashboard"] == {"id": "dash-1", "name": "Vendas", "description": "Painel TV"}
        assert body["period"] == {"start": "2024-01-01", "end": "2024-01-31"}
        assert [w["id"] for w in body["widgets"]] == ["a", "b", "c"]
        assert body["widgets"][0] == {
            "id": "a", "widget_type": "kpi", "metric_key": "leads_total", "title": "A",
            "config": {"color": "blue"}, "position_x": 5, "position_y": 0, "width": 2, "height": 1,
        }
        assert TOKEN not in str(body)

    @pytest.mark.asyncio
    async def test_widget_failure_is_isolated(self):
        widgets = [
            _widget("w1", "leads_total", y=0),
            _widget("w2", "calculation_does-not-exist", y=1),
            _widget("w3", "sales_total", y=2),
            _widget("w4", "variable_", y=3),
        ]
        leads = [_lead(1, 10, "sold"), _lead(2, 20)]
        sb = FakeSupabase(_tables(widgets, leads))

        response = await build_public_dashboard(sb, TOKEN, settings=SETTINGS)

        assert len(response.widgetData) == 4
        sentinel = {"value": 0, "formatted": "—", "subtitle": "Erro"}
        assert response.widgetData["w2"].model_dump() == sentinel
        assert response.widgetData["w4"].model_dump() == sentinel
        assert response.widgetData["w1"].formatted == "2"
        assert response.widgetData["w3"].formatted == "1"

    @pytest.mark.asyncio
    async def test_fetch_failure_scoped_to_widget(self):
        widgets = [_widget("w1", "leads_total"), _widget("w2", "variable_v1", y=1)]
        sb = FakeSupabase(_tables(widgets), failing={"dashboard_variables"})

        response = await build_public_dashboard(sb, TOKEN, settings=SETTINGS)

        assert response.widgetData["w1"].formatted == "0"
        assert response.widgetData["w2"].subtitle == "Erro"

    @pytest.mark.asyncio
    async def test_lead_stats_fetched_once(self):
        widgets = [_widget(f"w{i}", key, y=i) for i, key in enumerate(
            ["leads_total", "leads_active", "sales_total_value", "losses_total"])]
        sb = FakeSupabase(_tables(widgets))

        await build_public_dashboard(sb, TOKEN, settings=SETTINGS)

        assert len(sb.filters_for("leads")) == 1

    @pytest.mark.asyncio
    async def test_formula_depth_limit_from_settings(self):
        formula = {"type": "constant", "value": 1}
        for _ in range(4):
            formula = {"type": "operation", "operator": "+", "left": formula,
                       "right": {"type": "constant", "value": 1}}
        calcs = [{"id": "c1", "empresa_id": EMPRESA, "name": "Soma", "formula": formula,
                  "result_format": "number"}]
        sb = FakeSupabase(_tables([_widget("w1", "calculation_c1")], dashboard_calculations=calcs))

        shallow = Settings(supabase_url="u", supabase_key="k", formula_max_depth=2)
        assert (await build_public_dashboard(sb, TOKEN, settings=shallow)).widgetData["w1"].subtitle == "Erro"
        assert (await build_public_dashboard(sb, TOKEN, settings=SETTINGS)).widgetData["w1"].value == 5

    @pytest.mark.asyncio
    async def test_locale_from_settings(self):
        sb = FakeSupabase(_tables([_widget("w1", "leads_total_value")], [_lead(1, 1234.5)]))
        us = Settings(supabase_url="u", supabase_key="k", locale="en_US", currency="USD")
        response = await build_public_dashboard(sb, TOKEN, settings=us)
        assert response.widgetData["w1"].formatted == "$1,234.50"

    @pytest.mark.asyncio
    async def test_token_not_logged_in_clear(self, caplog):
        sb = FakeSupabase(_tables([_widget("w1", "leads_total")]))
        with caplog.at_level(logging.DEBUG):
            await build_public_dashboard(sb, TOKEN, settings=SETTINGS)
            with pytest.raises(DashboardNotFound):
                await build_public_dashboard(sb, "wrong-token", settings=SETTINGS)
        assert TOKEN not in caplog.text
        assert "wrong-token" not in caplog.text
        assert token_fingerprint(TOKEN) in caplog.text
