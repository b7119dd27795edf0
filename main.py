from __future__ import annotations

import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication
from loguru import logger

from app.viewmodels.main_vm import MainVM
from app.views.handlers.dialog_handler import DialogHandler
from app.views.handlers.file_operations import FileOperationsHandler
from app.views.image_tasks import TaskRunner
from app.views.main_window import MainWindow
from app.views.screen import current_display_metrics
from app.views.thumbnail_pipeline import ThumbnailPipeline
from core.models import DEFAULT_THUMBNAIL_SIZE
from infrastructure.access_grants import AccessGrantStore
from infrastructure.delete_service import DeleteService
from infrastructure.image_service import ImageService
from infrastructure.logging import get_data_directory, init_logging
from infrastructure.settings import JsonSettings

BASE_DIR = Path(__file__).parent


def _state_file(settings: JsonSettings) -> Path:
    configured = settings.get("state_file")
    if configured:
        return Path(str(configured))
    return Path(get_data_directory()) / "state.json"


def main() -> int:
    settings = JsonSettings(BASE_DIR / "settings.json")
    init_logging(level=str(settings.get("logging.level", "INFO")))
    logger.info("Starting viewer")

    app = QApplication(sys.argv)

    state = JsonSettings(_state_file(settings), create_if_missing=True)
    access = AccessGrantStore(state)

    img = ImageService()
    runner = TaskRunner()
    thumbnails = ThumbnailPipeline(
        img,
        runner,
        edge=settings.get_int("thumbnail_size", DEFAULT_THUMBNAIL_SIZE),
        display_metrics=current_display_metrics,
    )
    dialogs = DialogHandler()
    vm = MainVM(
        img,
        access,
        dialogs,
        runner,
        thumbnails=thumbnails,
        file_chooser=dialogs,
        display_metrics=current_display_metrics,
        full_resolution=lambda: settings.get_bool("load_full_resolution"),
    )
    file_ops = FileOperationsHandler(vm, img, DeleteService(), access, dialogs, dialogs)

    win = MainWindow(vm=vm, file_operations=file_ops, dialogs=dialogs, settings=settings)
    dialogs.parent = win
    file_ops.status_reporter = win
    win.statusBar().showMessage("Ready", 2000)
    win.show()

    args = [a for a in sys.argv[1:] if not a.startswith("-")]
    if args:
        win.open_initial(args[0])

    try:
        return app.exec()
    finally:
        access.close()
        logger.info("Viewer closed")


if __name__ == "__main__":
    raise SystemExit(main())
