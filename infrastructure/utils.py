"""Filesystem helpers for folder enumeration.

Listing only looks at names and file types; decoding is left to the
thumbnail pipeline so that opening a folder costs no more than listing it.
"""

from __future__ import annotations

import os

from loguru import logger

from core.models import is_supported_image
from core.services.interfaces import EnumerationError
from core.services.sort_service import SortService


def list_image_files(folder: str, sorter: SortService | None = None) -> list[str]:
    """List supported, non-hidden image files directly inside `folder`.

    Returns:
        Absolute paths sorted by file name.

    Raises:
        EnumerationError: The folder cannot be listed.
    """
    found: list[str] = []
    try:
        with os.scandir(folder) as it:
            for dirent in it:
                if dirent.name.startswith("."):
                    continue
                try:
                    if not dirent.is_file():
                        continue
                except OSError as ex:
                    logger.debug("Skipping {}: {}", dirent.path, ex)
                    continue
                if is_supported_image(dirent.name):
                    found.append(os.path.abspath(dirent.path))
    except OSError as ex:
        raise EnumerationError(f"Could not list folder {folder}: {ex}") from ex
    result = (sorter or SortService()).sort_by_name(found)
    logger.debug("Listed {} images in {}", len(result), folder)
    return result
