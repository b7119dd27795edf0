"""Viewport transform engine: zoom, pan and rotation of the current image.

Screen coordinates are view-local pixels with the origin at the top-left of
the view. The image is drawn centred in the view, scaled by ``zoom_scale``
and translated by ``offset``, so a screen point ``p`` shows the image-space
coordinate ``(p - C - offset) / zoom_scale`` where ``C`` is the view centre.
"""

from __future__ import annotations

from core.models import ViewportState

Vec2 = tuple[float, float]

MIN_ZOOM: float = 0.1
MAX_ZOOM: float = 10.0
ZOOM_STEP: float = 0.2
DOUBLE_CLICK_FACTOR: float = 2.0


def clamp_zoom(scale: float) -> float:
    """Clamp `scale` into ``[MIN_ZOOM, MAX_ZOOM]``."""
    return max(MIN_ZOOM, min(scale, MAX_ZOOM))


def anchored_offset(
    anchor: Vec2, view_size: Vec2, offset: Vec2, old_scale: float, new_scale: float
) -> Vec2:
    """Offset that keeps the image point under `anchor` fixed across a zoom.

    Args:
        anchor: Screen point that must not move.
        view_size: (width, height) of the view.
        offset: Offset before the zoom.
        old_scale: Scale before the zoom.
        new_scale: Scale after the zoom.
    """
    cx, cy = view_size[0] / 2.0, view_size[1] / 2.0
    image_x = (anchor[0] - cx - offset[0]) / old_scale
    image_y = (anchor[1] - cy - offset[1]) / old_scale
    return (anchor[0] - cx - image_x * new_scale, anchor[1] - cy - image_y * new_scale)


def normalize_rotation(degrees: int) -> int:
    """Map an accumulated rotation onto 0, 90, 180 or 270."""
    return int(degrees) % 360


class ViewportTransform:
    """Owns the viewport state of the image currently on screen."""

    def __init__(self) -> None:
        self.state = ViewportState()
        self._pan_origin: Vec2 | None = None
        self._pointer: Vec2 | None = None
        self._view_size: Vec2 | None = None

    @property
    def zoom_scale(self) -> float:
        return self.state.zoom_scale

    @property
    def offset(self) -> Vec2:
        return self.state.offset

    @property
    def rotation_degrees(self) -> int:
        return self.state.rotation_degrees

    # Zoom
    def zoom_in(self, anchor: Vec2 | None = None, view_size: Vec2 | None = None) -> None:
        """Step the zoom up by ``ZOOM_STEP``."""
        self.set_zoom(self.state.zoom_scale + ZOOM_STEP, anchor, view_size)

    def zoom_out(self, anchor: Vec2 | None = None, view_size: Vec2 | None = None) -> None:
        """Step the zoom down by ``ZOOM_STEP``; at or below 100% snaps to reset."""
        self.set_zoom(self.state.zoom_scale - ZOOM_STEP, anchor, view_size)

    def set_zoom(
        self, scale: float, anchor: Vec2 | None = None, view_size: Vec2 | None = None
    ) -> None:
        """Set an absolute zoom scale (pinch gestures, double-click).

        Args:
            scale: Requested scale; clamped into the allowed range.
            anchor: Screen point to keep fixed; requires `view_size`.
            view_size: (width, height) of the view.
        """
        old_scale = self.state.zoom_scale
        new_scale = clamp_zoom(scale)
        if new_scale <= 1.0:
            # below 100% the image fits the view, there is nothing to pan
            self.reset()
            return
        self.state.zoom_scale = new_scale
        if anchor is not None and view_size is not None:
            self.state.offset = anchored_offset(
                anchor, view_size, self.state.offset, old_scale, new_scale
            )
        elif old_scale != new_scale:
            ratio = new_scale / old_scale
            ox, oy = self.state.offset
            self.state.offset = (ox * ratio, oy * ratio)

    def track_pointer(self, point: Vec2, view_size: Vec2 | None = None) -> None:
        """Remember the last pointer position for double-click zoom."""
        self._pointer = point
        if view_size is not None:
            self._view_size = view_size

    def zoom_double(self, anchor: Vec2 | None = None, view_size: Vec2 | None = None) -> None:
        """Double the zoom, anchored at `anchor` or the last tracked pointer."""
        anchor = anchor if anchor is not None else self._pointer
        view_size = view_size if view_size is not None else self._view_size
        self.set_zoom(self.state.zoom_scale * DOUBLE_CLICK_FACTOR, anchor, view_size)

    # Pan
    def begin_pan(self) -> None:
        """Start a drag gesture from the current offset."""
        self._pan_origin = self.state.offset

    def pan(self, delta: Vec2) -> bool:
        """Apply a drag `delta` measured from the gesture start.

        Returns:
            False when the image is not zoomed in and the drag is ignored.
        """
        if self.state.zoom_scale <= 1.0:
            return False
        if self._pan_origin is None:
            self.begin_pan()
        ox, oy = self._pan_origin  # type: ignore[misc]
        self.state.offset = (ox + delta[0], oy + delta[1])
        return True

    def end_pan(self) -> None:
        self._pan_origin = None

    # Rotation
    def rotate_left(self) -> None:
        self.state.rotation_degrees -= 90

    def rotate_right(self) -> None:
        self.state.rotation_degrees += 90

    def normalized_rotation(self) -> int:
        return normalize_rotation(self.state.rotation_degrees)

    def reset_rotation(self) -> None:
        self.state.rotation_degrees = 0

    # Reset
    def reset(self) -> None:
        """Return to 100% with no offset."""
        self.state.zoom_scale = 1.0
        self.state.offset = (0.0, 0.0)
        self._pan_origin = None

    def reset_all(self) -> None:
        """Reset zoom, offset and rotation (a new image was selected)."""
        self.reset()
        self.reset_rotation()
