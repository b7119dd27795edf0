"""
UI/view constants centralized for reuse across view modules.
"""

from __future__ import annotations

# Window
WINDOW_TITLE: str = "See"
MIN_WINDOW_WIDTH: int = 800
MIN_WINDOW_HEIGHT: int = 600

# Filmstrip
FILMSTRIP_SPACING_PX: int = 8
FILMSTRIP_PADDING_PX: int = 12

# Status bar message timeouts (ms)
STATUS_SHORT_MS: int = 2000
STATUS_LONG_MS: int = 5000

# Pinch gestures report relative scale changes; ignore jitter below this
PINCH_EPSILON: float = 0.001

# Wheel: one notch is 120 units in Qt
WHEEL_NOTCH: int = 120
