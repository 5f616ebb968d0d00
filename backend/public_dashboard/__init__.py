# Public shareable-dashboard metric engine.
# Exposes build_public_dashboard as the public surface.

from .handler import build_public_dashboard  # noqa: F401
from .errors import PublicDashboardError  # noqa: F401
