"""Sorting service for image file lists.

Files are ordered by their base name using plain (case-sensitive) string
comparison, which matches the order the folder listing is shown in. The full
path is used as a tie-breaker so the order is total.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path


class SortService:
    """Provides sorting utilities for file path lists."""

    def sort_by_name(self, paths: Iterable[str]) -> list[str]:
        """Return `paths` sorted ascending by file name.

        Args:
            paths: File paths in any order.
        """
        decorated: list[tuple[tuple[str, str], str]] = [((Path(p).name, p), p) for p in paths]
        decorated.sort(key=lambda x: x[0])
        return [p for _, p in decorated]
