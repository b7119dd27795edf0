"""Trash service.

Moves files to the platform recycle bin/trash through send2trash, retrying
with alternative spellings of the path when the first attempt fails.
"""

from __future__ import annotations

import os

from loguru import logger
from send2trash import send2trash
from send2trash.exceptions import TrashPermissionError

from core.services.interfaces import DeleteResult


class DeleteService:
    """Sends files to the trash and reports per-path results."""

    def delete_to_recycle(self, paths: list[str]) -> DeleteResult:
        """Send files to recycle bin and report per-path results."""
        success: list[str] = []
        failed: list[tuple[str, str]] = []
        for p in paths:
            normalized_path = os.path.normpath(p)
            if not os.path.exists(normalized_path):
                logger.error("File does not exist: {}", normalized_path)
                failed.append((p, "File does not exist"))
                continue

            errors: list[str] = []
            for candidate in self._candidates(p):
                try:
                    send2trash(candidate)
                except (UnicodeEncodeError, TrashPermissionError, OSError) as ex:
                    logger.warning("Failed to trash {}: {}", candidate, ex)
                    errors.append(str(ex))
                    continue
                success.append(p)
                logger.info("Moved to trash: {}", p)
                break
            else:
                logger.error("All delete methods failed for {}: {}", p, " / ".join(errors))
                failed.append((p, errors[-1] if errors else "Unknown error"))
        return DeleteResult(success_paths=success, failed=failed)

    @staticmethod
    def _candidates(path: str) -> list[str]:
        """Normalized, original and absolute spellings of `path`, without repeats."""
        result: list[str] = []
        for candidate in (os.path.normpath(path), path, os.path.abspath(path)):
            if candidate not in result:
                result.append(candidate)
        return result
