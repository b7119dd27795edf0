"""Image decoding, thumbnailing and rotate-and-save utilities.

Decoding is done with Pillow (HEIC/HEIF through pillow-heif) and the result
is handed to the UI as a detached `QImage`. All functions here are safe to
call from worker threads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
import shutil
import tempfile
from typing import Any

from PIL import Image, ImageOps, UnidentifiedImageError
from pillow_heif import register_heif_opener
from PySide6.QtGui import QImage
from loguru import logger

from core.models import DisplayMetrics, extension_of
from core.services.interfaces import ImageIOError, UnreadableImageError
from core.services.viewport_service import normalize_rotation

register_heif_opener()

BASE_DECODE_POINTS: int = 1600
MAX_DECODE_PIXELS: int = 16000

EXIF_ORIENTATION_TAG: int = 0x0112
ORIENTATION_NORMAL: int = 1

_RESAMPLE = Image.Resampling.LANCZOS

# Clockwise rotation in degrees -> Pillow transpose (Pillow's ROTATE_* are counter-clockwise)
_CLOCKWISE_TRANSPOSE = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}


@dataclass(frozen=True)
class EncodeFormat:
    """Pillow format name and save options for an extension."""

    pillow_format: str
    options: dict[str, Any]
    carries_exif: bool


_ENCODE_FORMATS: dict[str, EncodeFormat] = {
    "jpg": EncodeFormat("JPEG", {"quality": 90}, True),
    "jpeg": EncodeFormat("JPEG", {"quality": 90}, True),
    "png": EncodeFormat("PNG", {}, True),
    "tiff": EncodeFormat("TIFF", {}, True),
    "tif": EncodeFormat("TIFF", {}, True),
    "bmp": EncodeFormat("BMP", {}, False),
    "gif": EncodeFormat("GIF", {}, False),
}
_DEFAULT_ENCODE_FORMAT = EncodeFormat("PNG", {}, True)


def encode_format_for(path: str) -> EncodeFormat:
    """Encoder for the container implied by the extension of `path` (PNG otherwise)."""
    return _ENCODE_FORMATS.get(extension_of(path), _DEFAULT_ENCODE_FORMAT)


def target_max_dimension(
    metrics: DisplayMetrics, full_resolution: bool = False, native_max: int = 0
) -> int:
    """Longest side, in pixels, a view image should be decoded at.

    The default keeps fit-to-screen rendering sharp: at least
    ``BASE_DECODE_POINTS`` points at the display scale, and never less than
    the screen itself. A full-resolution request takes precedence and uses the
    native size, capped at ``MAX_DECODE_PIXELS``.
    """
    if full_resolution and native_max > 0:
        return min(int(native_max), MAX_DECODE_PIXELS)
    return max(int(BASE_DECODE_POINTS * metrics.scale_factor), int(metrics.max_dimension_px))


def center_crop_box(width: int, height: int) -> tuple[int, int, int, int]:
    """Square crop box centred on the image, trimming the longer side."""
    side = min(width, height)
    left = (width - side) // 2
    top = (height - side) // 2
    return (left, top, left + side, top + side)


def read_orientation(path: str) -> int:
    """EXIF orientation stored in `path` (1 when absent)."""
    try:
        with Image.open(path) as im:
            value = im.getexif().get(EXIF_ORIENTATION_TAG)
    except (OSError, ValueError) as ex:
        logger.debug("Orientation read failed for {}: {}", path, ex)
        return ORIENTATION_NORMAL
    try:
        return int(value) if value else ORIENTATION_NORMAL
    except (TypeError, ValueError):
        return ORIENTATION_NORMAL


def read_pixel_size(path: str) -> tuple[int, int]:
    """Stored (width, height) of `path`, ignoring EXIF orientation."""
    try:
        with Image.open(path) as im:
            return im.size
    except (OSError, ValueError) as ex:
        raise UnreadableImageError(path, str(ex)) from ex


class ThumbnailCache:
    """Path -> square thumbnail mapping.

    Absence means the thumbnail is not generated yet or the file is broken.
    """

    def __init__(self) -> None:
        self._data: dict[str, QImage] = {}

    def get(self, path: str) -> QImage | None:
        return self._data.get(path)

    def put(self, path: str, image: QImage) -> None:
        self._data[path] = image

    def pop(self, path: str) -> QImage | None:
        return self._data.pop(path, None)

    def clear(self) -> None:
        self._data.clear()

    def paths(self) -> list[str]:
        return list(self._data)

    def __contains__(self, path: object) -> bool:
        return path in self._data

    def __len__(self) -> int:
        return len(self._data)


class ImageService:
    """Decodes view images and thumbnails and writes rotated images."""

    # Public API
    def decode(
        self, path: str, full_resolution: bool = False, metrics: DisplayMetrics | None = None
    ) -> QImage:
        """Decode `path` for display, upright and bounded by the adaptive policy.

        Raises:
            UnreadableImageError: The file cannot be decoded.
        """
        metrics = metrics or DisplayMetrics()
        try:
            with Image.open(path) as im:
                native_max = max(im.size)
                side = target_max_dimension(metrics, full_resolution, native_max)
                if im.format == "JPEG":
                    im.draft("RGB", (side, side))
                im.load()
                upright = ImageOps.exif_transpose(im)
                if max(upright.size) > side:
                    upright.thumbnail((side, side), _RESAMPLE)
                qimg = self._pil_to_qimage(upright)
        except (
            OSError,
            SyntaxError,
            ValueError,
            UnidentifiedImageError,
            Image.DecompressionBombError,
        ) as ex:
            raise UnreadableImageError(path, str(ex)) from ex
        if qimg is None:
            raise UnreadableImageError(path, "conversion failed")
        logger.debug("Decoded {} at {}x{}", path, qimg.width(), qimg.height())
        return qimg

    def decode_thumbnail(self, path: str, edge: int, scale_factor: float = 1.0) -> QImage:
        """Decode a square, centre-cropped thumbnail of `edge` points.

        The primary frame must decode completely; truncated files are
        reported as unreadable.

        Raises:
            UnreadableImageError: The file cannot be decoded.
        """
        edge = max(1, int(edge))
        scale = scale_factor if scale_factor > 0 else 1.0
        pixels = max(1, int(round(edge * scale)))
        try:
            with Image.open(path) as im:
                if im.format == "JPEG":
                    im.draft("RGB", (pixels, pixels))
                im.load()
                upright = ImageOps.exif_transpose(im)
                square = upright.crop(center_crop_box(*upright.size))
                square = square.resize((pixels, pixels), _RESAMPLE)
                qimg = self._pil_to_qimage(square)
        except (
            OSError,
            SyntaxError,
            ValueError,
            UnidentifiedImageError,
            Image.DecompressionBombError,
        ) as ex:
            raise UnreadableImageError(path, str(ex)) from ex
        if qimg is None:
            raise UnreadableImageError(path, "conversion failed")
        qimg.setDevicePixelRatio(scale)
        return qimg

    def save_rotated(self, path: str, degrees: int) -> tuple[int, int]:
        """Rotate the image at `path` clockwise by `degrees` and write it back.

        The upright source pixels are rotated and re-encoded in the original
        container format; EXIF orientation is written as normal so viewers do
        not rotate the result a second time. The file is replaced atomically.

        Returns:
            (width, height) of the written image.

        Raises:
            ImageIOError: Reading or writing failed; the file is left untouched.
        """
        rotation = normalize_rotation(degrees)
        if rotation == 0:
            return read_pixel_size(path)
        fmt = encode_format_for(path)
        target = Path(path)
        try:
            with Image.open(path) as im:
                im.load()
                exif = im.getexif()
                rotated = ImageOps.exif_transpose(im).transpose(_CLOCKWISE_TRANSPOSE[rotation])
        except (OSError, ValueError, UnidentifiedImageError) as ex:
            raise ImageIOError(f"Failed to read {target.name}: {ex}") from ex

        if fmt.pillow_format == "JPEG" and rotated.mode not in ("RGB", "L", "CMYK"):
            rotated = rotated.convert("RGB")
        options = dict(fmt.options)
        if fmt.carries_exif:
            exif[EXIF_ORIENTATION_TAG] = ORIENTATION_NORMAL
            options["exif"] = exif.tobytes()

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.stem}.", suffix=target.suffix, dir=str(target.parent)
        )
        os.close(fd)
        try:
            rotated.save(tmp_name, fmt.pillow_format, **options)
            shutil.copymode(path, tmp_name)
            os.replace(tmp_name, path)
        except (OSError, ValueError) as ex:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise ImageIOError(f"Failed to save {target.name}: {ex}") from ex
        logger.info(
            "Saved {} rotated by {} as {} ({}x{})",
            path,
            rotation,
            fmt.pillow_format,
            rotated.width,
            rotated.height,
        )
        return rotated.size

    # Internal helpers
    def _pil_to_qimage(self, pil_img: Any) -> QImage | None:
        """Convert a Pillow image to `QImage` and detach from the source buffer."""
        try:
            mode = pil_img.mode
            if mode not in ("RGBA", "RGB"):
                pil_img = pil_img.convert("RGBA")
                mode = pil_img.mode
            if mode == "RGB":
                data = pil_img.tobytes("raw", "RGB")
                qimg = QImage(
                    data, pil_img.width, pil_img.height, pil_img.width * 3, QImage.Format_RGB888
                )
            else:
                data = pil_img.tobytes("raw", "RGBA")
                qimg = QImage(
                    data, pil_img.width, pil_img.height, pil_img.width * 4, QImage.Format_RGBA8888
                )
            if qimg is None or qimg.isNull():
                return None
            return qimg.copy()
        except (ValueError, TypeError) as ex:
            logger.debug("PIL->QImage convert failed: {}", ex)
            return None
