"""Tests for infrastructure.image_service: decode policy, thumbnails, rotate-and-save."""
import os
import stat

from PIL import Image
import pytest

from conftest import make_broken, make_image
from core.models import DisplayMetrics
from core.services.interfaces import ImageIOError, UnreadableImageError
from infrastructure.image_service import (
    BASE_DECODE_POINTS,
    EXIF_ORIENTATION_TAG,
    MAX_DECODE_PIXELS,
    ORIENTATION_NORMAL,
    ThumbnailCache,
    center_crop_box,
    encode_format_for,
    read_orientation,
    read_pixel_size,
    target_max_dimension,
)


def _exif_with_orientation(value):
    exif = Image.Exif()
    exif[EXIF_ORIENTATION_TAG] = value
    return exif.tobytes()


# ---------------------------------------------------------------------------
# Decode policy
# ---------------------------------------------------------------------------

def test_default_target_uses_scaled_points_or_screen():
    assert target_max_dimension(DisplayMetrics(2.0, 2880)) == BASE_DECODE_POINTS * 2
    assert target_max_dimension(DisplayMetrics(1.0, 5120)) == 5120


def test_full_resolution_wins_and_is_capped():
    metrics = DisplayMetrics(2.0, 2880)
    assert target_max_dimension(metrics, True, 1200) == 1200
    assert target_max_dimension(metrics, True, 40000) == MAX_DECODE_PIXELS
    assert target_max_dimension(metrics, False, 1200) == BASE_DECODE_POINTS * 2


def test_decode_downsamples_large_images(tmp_path, image_service):
    path = make_image(tmp_path / "big.png", size=(1000, 500))
    qimg = image_service.decode(path, False, DisplayMetrics(1.0, 400))
    assert (qimg.width(), qimg.height()) == (1000, 500)
    qimg = image_service.decode(path, False, DisplayMetrics(0.1, 200))
    assert max(qimg.width(), qimg.height()) == 200


def test_decode_applies_exif_orientation(tmp_path, image_service):
    path = make_image(tmp_path / "turned.jpg", size=(60, 20), exif=_exif_with_orientation(6))
    qimg = image_service.decode(path)
    assert (qimg.width(), qimg.height()) == (20, 60)


def test_decode_broken_file_raises(tmp_path, image_service):
    path = make_broken(tmp_path / "bad.jpg")
    with pytest.raises(UnreadableImageError) as info:
        image_service.decode(path)
    assert info.value.path == path


def test_decode_truncated_file_raises(tmp_path, image_service):
    src = tmp_path / "full.png"
    Image.effect_noise((256, 256), 64).convert("RGB").save(str(src))
    data = src.read_bytes()
    path = make_broken(tmp_path / "cut.png", data[: len(data) // 2])
    with pytest.raises(UnreadableImageError):
        image_service.decode_thumbnail(path, 64)


# ---------------------------------------------------------------------------
# Thumbnails
# ---------------------------------------------------------------------------

def test_center_crop_box():
    assert center_crop_box(100, 60) == (20, 0, 80, 60)
    assert center_crop_box(30, 50) == (0, 10, 30, 40)


def test_thumbnail_is_square_at_device_pixels(tmp_path, image_service):
    path = make_image(tmp_path / "wide.png", size=(300, 100))
    thumb = image_service.decode_thumbnail(path, 64, 2.0)
    assert (thumb.width(), thumb.height()) == (128, 128)
    assert thumb.devicePixelRatio() == 2.0


def test_thumbnail_of_non_image_raises(tmp_path, image_service):
    path = make_broken(tmp_path / "fake.png")
    with pytest.raises(UnreadableImageError):
        image_service.decode_thumbnail(path, 64)


def test_thumbnail_cache_basics(tmp_path, image_service):
    cache = ThumbnailCache()
    thumb = image_service.decode_thumbnail(make_image(tmp_path / "a.png"), 16)
    cache.put("a", thumb)
    assert "a" in cache and len(cache) == 1
    assert cache.pop("a") is thumb
    assert cache.get("a") is None


# ---------------------------------------------------------------------------
# Rotate and save
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "name, pillow_format",
    [
        ("a.jpg", "JPEG"),
        ("a.JPEG", "JPEG"),
        ("a.png", "PNG"),
        ("a.tif", "TIFF"),
        ("a.bmp", "BMP"),
        ("a.gif", "GIF"),
        ("a.heic", "PNG"),
        ("a.webp", "PNG"),
    ],
)
def test_encode_format_mapping(name, pillow_format):
    assert encode_format_for(name).pillow_format == pillow_format


def test_rotate_90_swaps_dimensions(tmp_path, image_service):
    path = make_image(tmp_path / "a.png", size=(40, 30))
    assert image_service.save_rotated(path, 90) == (30, 40)
    assert read_pixel_size(path) == (30, 40)
    assert read_orientation(path) == ORIENTATION_NORMAL


def test_rotate_180_keeps_dimensions_and_flips_pixels(tmp_path, image_service):
    path = str(tmp_path / "a.png")
    img = Image.new("RGB", (4, 2), (0, 0, 0))
    img.putpixel((0, 0), (255, 0, 0))
    img.save(path)
    image_service.save_rotated(path, -180)
    with Image.open(path) as out:
        assert out.size == (4, 2)
        assert out.convert("RGB").getpixel((3, 1)) == (255, 0, 0)


def test_rotate_clockwise_direction(tmp_path, image_service):
    path = str(tmp_path / "a.png")
    img = Image.new("RGB", (3, 2), (0, 0, 0))
    img.putpixel((0, 0), (0, 255, 0))
    img.save(path)
    image_service.save_rotated(path, 90)
    with Image.open(path) as out:
        # top-left moves to top-right under a clockwise quarter turn
        assert out.convert("RGB").getpixel((1, 0)) == (0, 255, 0)


@pytest.mark.parametrize("name", ["r.jpg", "r.png", "r.bmp"])
def test_four_right_rotations_restore_dimensions(tmp_path, image_service, name):
    path = make_image(tmp_path / name, size=(48, 32))
    for _ in range(4):
        image_service.save_rotated(path, 90)
        assert read_orientation(path) == ORIENTATION_NORMAL
    assert read_pixel_size(path) == (48, 32)


def test_rotate_bakes_in_existing_orientation(tmp_path, image_service):
    path = make_image(tmp_path / "o.jpg", size=(60, 20), exif=_exif_with_orientation(6))
    # upright is 20x60; a further quarter turn gives 60x20 stored with normal orientation
    assert image_service.save_rotated(path, 90) == (60, 20)
    assert read_orientation(path) == ORIENTATION_NORMAL


def test_rotate_zero_leaves_file_untouched(tmp_path, image_service):
    path = make_image(tmp_path / "z.png")
    before = (tmp_path / "z.png").read_bytes()
    image_service.save_rotated(path, 360)
    assert (tmp_path / "z.png").read_bytes() == before


def test_rotate_unreadable_raises_io_error(tmp_path, image_service):
    path = make_broken(tmp_path / "bad.png")
    with pytest.raises(ImageIOError):
        image_service.save_rotated(path, 90)
    assert (tmp_path / "bad.png").read_bytes() == b"this is not an image"


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_rotate_keeps_file_mode(tmp_path, image_service):
    path = make_image(tmp_path / "m.png", size=(40, 30))
    os.chmod(path, 0o644)
    image_service.save_rotated(path, 90)
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o644
