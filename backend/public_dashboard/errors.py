"""
Error hierarchy for the public dashboard engine.

Two tiers:
  Request-level : PublicDashboardError subclasses. Raised by the handler,
                   mapped to {"error": message} + status_code by server.py.
  Widget-level  : WidgetComputationError subclasses. Raised while computing
                   one widget and always caught by the per-widget isolation.
"""


class PublicDashboardError(Exception):
    """Request-level failure that short-circuits the whole response."""

    status_code = 500
    default_message = "Erro interno"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(PublicDashboardError):
    status_code = 400
    default_message = "Token obrigatório"


class DashboardNotFound(PublicDashboardError):
    status_code = 404
    default_message = "Dashboard não encontrado"


class InvalidConfiguration(PublicDashboardError):
    status_code = 400
    default_message = "Período não configurado"


class AggregationFailure(PublicDashboardError):
    """Lead fetch failed while building the shared statistics record."""
    status_code = 500
    default_message = "Erro interno"


class WidgetComputationError(Exception):
    """Failure scoped to a single widget."""


class InvalidMetricKey(WidgetComputationError):
    pass


class CalculationNotFound(WidgetComputationError):
    pass


class FormulaConfigurationError(WidgetComputationError):
    """Formula tree too deep or self-referencing."""
