"""
Shared pytest fixtures for the viewer tests.
"""
import os
import sys

# Ensure project root is on path for all tests
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PIL import Image
import pytest
from PySide6.QtGui import QGuiApplication

from app.viewmodels.main_vm import MainVM
from app.views.image_tasks import ImmediateTaskRunner, _run_safely
from core.services.interfaces import DeleteResult
from infrastructure.access_grants import AccessGrantStore
from infrastructure.image_service import ImageService
from infrastructure.settings import JsonSettings


@pytest.fixture(scope="session", autouse=True)
def qt_app():
    app = QGuiApplication.instance() or QGuiApplication([])
    yield app


# ---------------------------------------------------------------------------
# Image helpers
# ---------------------------------------------------------------------------

def make_image(path, size=(40, 30), color=(200, 30, 30), fmt=None, exif=None):
    """Write a solid-colour image and return its path as str."""
    img = Image.new("RGB", size, color)
    kwargs = {}
    if exif is not None:
        kwargs["exif"] = exif
    img.save(str(path), fmt, **kwargs)
    return str(path)


def make_broken(path, data=b"this is not an image"):
    with open(path, "wb") as f:
        f.write(data)
    return str(path)


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------

class ManualTaskRunner:
    """Queues tasks until the test runs them, in any order it likes."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, on_done):
        self.pending.append((fn, on_done))

    def run(self, index=0):
        fn, on_done = self.pending.pop(index)
        on_done(_run_safely(fn))

    def run_all(self):
        while self.pending:
            self.run(0)

    def wait_for_done(self, msecs=-1):
        return True


class FakeFolderChooser:
    """Answers every folder request with `answer` (None declines)."""

    def __init__(self, answer=None):
        self.answer = answer
        self.requests = []

    def choose_folder(self, initial_path, message, on_done):
        self.requests.append((initial_path, message))
        on_done(self.answer)


class FakeConfirm:

    def __init__(self, accept=True):
        self.accept = accept
        self.asked = []

    def confirm(self, title, message):
        self.asked.append((title, message))
        return self.accept


class FakeTrash:
    """Records trashed paths; `fail_with` makes every call fail."""

    def __init__(self, fail_with=None):
        self.fail_with = fail_with
        self.trashed = []

    def delete_to_recycle(self, paths):
        if self.fail_with:
            return DeleteResult(success_paths=[], failed=[(p, self.fail_with) for p in paths])
        self.trashed.extend(paths)
        return DeleteResult(success_paths=list(paths), failed=[])


class MemoryStore:
    """In-memory key-value store counting saves."""

    def __init__(self, data=None):
        self.data = dict(data or {})
        self.saves = 0

    def get(self, key, default=None):
        return self.data.get(key, default)

    def set(self, key, value):
        self.data[key] = value

    def save(self):
        self.saves += 1


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def state_store(tmp_path):
    return JsonSettings(tmp_path / "state" / "state.json", create_if_missing=True)


@pytest.fixture
def access_store(state_store):
    store = AccessGrantStore(state_store)
    yield store
    store.close()


@pytest.fixture
def image_service():
    return ImageService()


@pytest.fixture
def folder_chooser():
    return FakeFolderChooser()


@pytest.fixture
def make_vm(image_service, access_store, folder_chooser):
    """Build a MainVM whose signals are recorded in `vm.events`."""

    def _make(runner=None):
        vm = MainVM(image_service, access_store, folder_chooser, runner or ImmediateTaskRunner())
        vm.errors = []
        vm.images = []
        vm.errorRaised.connect(vm.errors.append)
        vm.imageChanged.connect(vm.images.append)
        return vm

    return _make


@pytest.fixture
def photo_dir(tmp_path):
    """Folder with two good images, one broken one and a few non-images."""
    folder = tmp_path / "photos"
    folder.mkdir()
    make_image(folder / "b.png", size=(30, 20))
    make_image(folder / "a.jpg", size=(50, 40))
    make_broken(folder / "broken.png")
    (folder / "notes.txt").write_text("hello")
    make_image(folder / ".hidden.png")
    (folder / "sub.png").mkdir()
    return folder
