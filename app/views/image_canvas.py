"""Widget that paints the current image through the viewport transform."""

from __future__ import annotations

from PySide6.QtCore import QEvent, QPointF, QRectF, QSize, Qt
from PySide6.QtGui import QColor, QImage, QPainter
from PySide6.QtWidgets import QGestureEvent, QPinchGesture, QWidget
from loguru import logger

from app.viewmodels.main_vm import MainVM
from app.views.constants import PINCH_EPSILON, WHEEL_NOTCH


def fit_size(image_size: QSize, view_size: QSize, rotation: int) -> tuple[float, float]:
    """Size the image is drawn at before zoom so that it fits the view."""
    w, h = float(image_size.width()), float(image_size.height())
    if rotation % 180:
        w, h = h, w
    if w <= 0 or h <= 0 or view_size.width() <= 0 or view_size.height() <= 0:
        return (0.0, 0.0)
    scale = min(view_size.width() / w, view_size.height() / h)
    return (w * scale, h * scale)


class ImageCanvas(QWidget):
    """Paints `vm.current_image` and turns input events into viewport calls."""

    def __init__(self, vm: MainVM, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._vm = vm
        self._press_pos: QPointF | None = None
        self._pinch_start_scale = 1.0
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.StrongFocus)
        self.setMinimumSize(200, 200)
        self.grabGesture(Qt.PinchGesture)

        vm.imageChanged.connect(lambda _img: self.update())
        vm.viewportChanged.connect(self.update)

    def _view_size(self) -> tuple[float, float]:
        return (float(self.width()), float(self.height()))

    # Painting
    def paintEvent(self, event) -> None:  # type: ignore[override]
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor(0, 0, 0))
        image: QImage | None = self._vm.current_image
        if image is None or image.isNull():
            painter.setPen(QColor(140, 140, 140))
            text = "Loading…" if self._vm.current_path else "No Image Loaded"
            painter.drawText(self.rect(), Qt.AlignCenter, text)
            painter.end()
            return

        vp = self._vm.viewport
        rotation = vp.rotation_degrees
        fw, fh = fit_size(image.size(), self.size(), rotation)
        if rotation % 180:
            fw, fh = fh, fw
        ox, oy = vp.offset
        painter.setRenderHint(QPainter.SmoothPixmapTransform, True)
        painter.translate(self.width() / 2.0 + ox, self.height() / 2.0 + oy)
        painter.scale(vp.zoom_scale, vp.zoom_scale)
        painter.rotate(rotation)
        painter.drawImage(QRectF(-fw / 2.0, -fh / 2.0, fw, fh), image)
        painter.end()

    # Mouse / wheel
    def wheelEvent(self, event) -> None:  # type: ignore[override]
        steps = event.angleDelta().y() / WHEEL_NOTCH
        if not steps:
            return
        anchor = (event.position().x(), event.position().y())
        vp = self._vm.viewport
        for _ in range(int(abs(steps)) or 1):
            if steps > 0:
                vp.zoom_in(anchor, self._view_size())
            else:
                vp.zoom_out(anchor, self._view_size())
        self._vm.viewportChanged.emit()
        event.accept()

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if event.button() == Qt.LeftButton:
            self._press_pos = event.position()
            self._vm.viewport.begin_pan()
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        pos = event.position()
        self._vm.viewport.track_pointer((pos.x(), pos.y()), self._view_size())
        if self._press_pos is not None and event.buttons() & Qt.LeftButton:
            delta = (pos.x() - self._press_pos.x(), pos.y() - self._press_pos.y())
            if self._vm.viewport.pan(delta):
                self._vm.viewportChanged.emit()
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        if event.button() == Qt.LeftButton:
            self._press_pos = None
            self._vm.viewport.end_pan()
        super().mouseReleaseEvent(event)

    def mouseDoubleClickEvent(self, event) -> None:  # type: ignore[override]
        pos = event.position()
        self._vm.viewport.zoom_double((pos.x(), pos.y()), self._view_size())
        self._vm.viewportChanged.emit()

    # Gestures
    def event(self, event: QEvent) -> bool:  # type: ignore[override]
        if event.type() == QEvent.Gesture:
            return self._gesture_event(event)  # type: ignore[arg-type]
        return super().event(event)

    def _gesture_event(self, event: QGestureEvent) -> bool:
        pinch = event.gesture(Qt.PinchGesture)
        if not isinstance(pinch, QPinchGesture):
            return False
        vp = self._vm.viewport
        if pinch.state() == Qt.GestureStarted:
            self._pinch_start_scale = vp.zoom_scale
        factor = pinch.totalScaleFactor()
        if abs(factor - 1.0) > PINCH_EPSILON:
            center = self.mapFromGlobal(pinch.centerPoint().toPoint())
            vp.set_zoom(
                self._pinch_start_scale * factor,
                (float(center.x()), float(center.y())),
                self._view_size(),
            )
            self._vm.viewportChanged.emit()
        if pinch.state() == Qt.GestureFinished:
            logger.debug("Pinch finished at {:.2f}x", vp.zoom_scale)
        event.accept()
        return True
