"""
Shared Pydantic models for the public dashboard engine.

  SharePeriod            : inclusive calendar-date window of a shared link
  WidgetResult           : one computed widget value {value, formatted, subtitle}
  WidgetPayload          : widget row as returned to the viewer
  PublicDashboardResponse: full response body
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class SharePeriod(BaseModel):
    """Dates are ISO 'YYYY-MM-DD'; string order equals date order."""
    start: str
    end: str

    @property
    def created_at_from(self) -> str:
        return f"{self.start}T00:00:00"

    @property
    def created_at_to(self) -> str:
        return f"{self.end}T23:59:59"

    def overlaps(self, start_date: str, end_date: str) -> bool:
        """Any overlap at all counts; no proration."""
        return start_date <= self.end and end_date >= self.start


class WidgetResult(BaseModel):
    value: int | float = 0
    formatted: str = "—"
    subtitle: str = ""


def error_result() -> WidgetResult:
    """Sentinel shown in place of a widget whose computation failed."""
    return WidgetResult(value=0, formatted="—", subtitle="Erro")


class DashboardSummary(BaseModel):
    id: str
    name: Optional[str] = None
    description: Optional[str] = None


class WidgetPayload(BaseModel):
    id: str
    widget_type: Optional[str] = None
    metric_key: Optional[str] = None
    title: Optional[str] = None
    config: Optional[Any] = None
    position_x: int = 0
    position_y: int = 0
    width: Optional[int] = None
    height: Optional[int] = None

    @classmethod
    def from_row(cls, row: dict) -> "WidgetPayload":
        return cls(
            id=str(row["id"]),
            widget_type=row.get("widget_type"),
            metric_key=row.get("metric_key"),
            title=row.get("title"),
            config=row.get("config"),
            position_x=row.get("position_x") or 0,
            position_y=row.get("position_y") or 0,
            width=row.get("width"),
            height=row.get("height"),
        )


class PublicDashboardResponse(BaseModel):
    dashboard: DashboardSummary
    widgets: list[WidgetPayload] = Field(default_factory=list)
    period: SharePeriod
    widgetData: dict[str, WidgetResult] = Field(default_factory=dict)
