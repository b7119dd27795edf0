"""Tests for core.services.viewport_service."""
import random

import pytest

from core.services.viewport_service import (
    MAX_ZOOM,
    MIN_ZOOM,
    ViewportTransform,
    anchored_offset,
    clamp_zoom,
    normalize_rotation,
)

VIEW = (800.0, 600.0)


def _image_point(vp, anchor, view=VIEW):
    cx, cy = view[0] / 2.0, view[1] / 2.0
    ox, oy = vp.offset
    return ((anchor[0] - cx - ox) / vp.zoom_scale, (anchor[1] - cy - oy) / vp.zoom_scale)


def test_center_anchor_keeps_zero_offset():
    vp = ViewportTransform()
    vp.set_zoom(2.0, anchor=(400.0, 300.0), view_size=VIEW)
    assert vp.zoom_scale == 2.0
    assert vp.offset == (0.0, 0.0)


def test_anchor_point_stays_fixed():
    vp = ViewportTransform()
    anchor = (100.0, 500.0)
    before = _image_point(vp, anchor)
    vp.set_zoom(3.0, anchor=anchor, view_size=VIEW)
    after = _image_point(vp, anchor)
    assert after == pytest.approx(before)


def test_anchored_zoom_round_trip_restores_offset():
    rng = random.Random(7)
    for _ in range(50):
        vp = ViewportTransform()
        vp.set_zoom(rng.uniform(1.5, 4.0))
        vp.begin_pan()
        vp.pan((rng.uniform(-200, 200), rng.uniform(-200, 200)))
        vp.end_pan()
        start_scale, start_offset = vp.zoom_scale, vp.offset
        anchor = (rng.uniform(0, VIEW[0]), rng.uniform(0, VIEW[1]))
        target = rng.uniform(1.5, 9.0)
        vp.set_zoom(target, anchor=anchor, view_size=VIEW)
        vp.set_zoom(start_scale, anchor=anchor, view_size=VIEW)
        assert vp.offset[0] == pytest.approx(start_offset[0], abs=1e-6)
        assert vp.offset[1] == pytest.approx(start_offset[1], abs=1e-6)


def test_anchored_offset_identity_when_scale_unchanged():
    assert anchored_offset((10.0, 20.0), VIEW, (5.0, -3.0), 2.0, 2.0) == pytest.approx((5.0, -3.0))


def test_zoom_always_clamped():
    rng = random.Random(3)
    vp = ViewportTransform()
    for _ in range(500):
        op = rng.choice(["in", "out", "set"])
        if op == "in":
            vp.zoom_in()
        elif op == "out":
            vp.zoom_out()
        else:
            vp.set_zoom(rng.uniform(-5, 50), anchor=(rng.uniform(0, 800), 300.0), view_size=VIEW)
        assert MIN_ZOOM <= vp.zoom_scale <= MAX_ZOOM


def test_zoom_in_stops_at_max():
    vp = ViewportTransform()
    for _ in range(100):
        vp.zoom_in()
    assert vp.zoom_scale == MAX_ZOOM
    assert clamp_zoom(0.0) == MIN_ZOOM


def test_zoom_out_to_one_snaps_to_reset():
    vp = ViewportTransform()
    vp.set_zoom(1.2, anchor=(0.0, 0.0), view_size=VIEW)
    assert vp.offset != (0.0, 0.0)
    vp.zoom_out(anchor=(0.0, 0.0), view_size=VIEW)
    assert vp.zoom_scale == 1.0
    assert vp.offset == (0.0, 0.0)


def test_unanchored_zoom_scales_offset():
    vp = ViewportTransform()
    vp.set_zoom(2.0)
    vp.begin_pan()
    vp.pan((10.0, -20.0))
    vp.set_zoom(4.0)
    assert vp.offset == pytest.approx((20.0, -40.0))


def test_pan_ignored_at_base_zoom():
    vp = ViewportTransform()
    vp.begin_pan()
    assert vp.pan((50.0, 50.0)) is False
    assert vp.offset == (0.0, 0.0)


def test_pan_is_relative_to_gesture_start():
    vp = ViewportTransform()
    vp.set_zoom(2.0)
    vp.begin_pan()
    vp.pan((10.0, 10.0))
    vp.pan((30.0, 5.0))
    assert vp.offset == (30.0, 5.0)
    vp.end_pan()
    vp.begin_pan()
    vp.pan((1.0, 1.0))
    assert vp.offset == (31.0, 6.0)


def test_double_click_zooms_at_last_pointer():
    vp = ViewportTransform()
    vp.track_pointer((400.0, 300.0), VIEW)
    vp.zoom_double()
    assert vp.zoom_scale == 2.0
    assert vp.offset == (0.0, 0.0)
    vp.track_pointer((600.0, 300.0))
    before = _image_point(vp, (600.0, 300.0))
    vp.zoom_double()
    assert vp.zoom_scale == 4.0
    assert _image_point(vp, (600.0, 300.0)) == pytest.approx(before)


def test_rotation_accumulates_and_normalizes():
    vp = ViewportTransform()
    vp.rotate_left()
    vp.rotate_left()
    assert vp.rotation_degrees == -180
    assert vp.normalized_rotation() == 180
    for _ in range(6):
        vp.rotate_right()
    assert vp.rotation_degrees == 360
    assert vp.normalized_rotation() == 0
    assert normalize_rotation(-90) == 270


def test_reset_all_restores_defaults():
    vp = ViewportTransform()
    vp.set_zoom(3.0, anchor=(10.0, 10.0), view_size=VIEW)
    vp.rotate_right()
    vp.reset_all()
    assert (vp.zoom_scale, vp.offset, vp.rotation_degrees) == (1.0, (0.0, 0.0), 0)
