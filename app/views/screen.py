"""Display metrics queried from Qt at decode time."""

from __future__ import annotations

from PySide6.QtGui import QGuiApplication

from core.models import DisplayMetrics

# Used when no screen is attached (offscreen/headless runs)
FALLBACK_METRICS = DisplayMetrics.from_points(1440, 900, 2.0)


def current_display_metrics() -> DisplayMetrics:
    """Scale factor and size of the primary screen."""
    app = QGuiApplication.instance()
    screen = QGuiApplication.primaryScreen() if app is not None else None
    if screen is None:
        return FALLBACK_METRICS
    geometry = screen.geometry()
    return DisplayMetrics.from_points(
        geometry.width(), geometry.height(), float(screen.devicePixelRatio())
    )
