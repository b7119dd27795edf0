"""Tests for app.views.thumbnail_pipeline."""
from concurrent.futures import ThreadPoolExecutor

from conftest import ManualTaskRunner, make_broken, make_image
from app.views.image_tasks import ImmediateTaskRunner
from app.views.thumbnail_pipeline import ThumbnailPipeline, _BrokenAccumulator
from core.models import DisplayMetrics, EntryValidity, ImageEntry


def _entries(*paths):
    return [ImageEntry(p) for p in paths]


def test_broken_files_reported_once_after_batch(tmp_path, image_service):
    good = make_image(tmp_path / "a.png")
    bad1 = make_broken(tmp_path / "b.png")
    bad2 = make_broken(tmp_path / "c.png")
    runner = ManualTaskRunner()
    pipeline = ThumbnailPipeline(image_service, runner, edge=16)
    thumbs, broken_calls = [], []
    entries = _entries(good, bad1, bad2)

    pipeline.generate(entries, lambda p, img: thumbs.append(p), broken_calls.append)
    assert len(runner.pending) == 3
    runner.run(2)
    runner.run(1)
    assert broken_calls == []
    runner.run(0)

    assert thumbs == [good]
    assert broken_calls == [[bad2, bad1]]
    assert entries[0].validity is EntryValidity.VALID
    assert good in pipeline.cache and bad1 not in pipeline.cache


def test_no_broken_callback_without_broken_files(tmp_path, image_service):
    paths = [make_image(tmp_path / f"{i}.png") for i in range(3)]
    pipeline = ThumbnailPipeline(image_service, ImmediateTaskRunner(), edge=8)
    broken_calls = []
    pipeline.generate(_entries(*paths), lambda p, img: None, broken_calls.append)
    assert broken_calls == []
    assert sorted(pipeline.cache.paths()) == sorted(paths)


def test_clear_drops_results_of_running_batch(tmp_path, image_service):
    path = make_image(tmp_path / "a.png")
    runner = ManualTaskRunner()
    pipeline = ThumbnailPipeline(image_service, runner)
    thumbs = []
    pipeline.generate(_entries(path), lambda p, img: thumbs.append(p), lambda b: None)
    pipeline.clear()
    runner.run_all()
    assert thumbs == []
    assert len(pipeline.cache) == 0


def test_refresh_replaces_single_thumbnail(tmp_path, image_service):
    path = make_image(tmp_path / "a.png", size=(40, 20))
    pipeline = ThumbnailPipeline(image_service, ImmediateTaskRunner(), edge=10, scale_factor=2.0)
    entry = ImageEntry(path)
    pipeline.generate([entry], lambda p, img: None, lambda b: None)
    first = pipeline.cache.get(path)
    pipeline.refresh(entry, lambda p, img: None, lambda b: None)
    second = pipeline.cache.get(path)
    assert first is not second
    assert (second.width(), second.height()) == (20, 20)


def test_accumulator_is_thread_safe():
    acc = _BrokenAccumulator(200)
    with ThreadPoolExecutor(max_workers=8) as pool:
        for i in range(200):
            pool.submit(acc.report, f"/p/{i}", i % 2 == 0)
    broken = acc.take_if_complete()
    assert broken is not None and len(broken) == 100
    assert acc.take_if_complete() is None


def test_scale_is_queried_for_every_batch(tmp_path, image_service):
    path = make_image(tmp_path / "a.png", size=(40, 30))
    scales = iter([1.0, 2.0])
    pipeline = ThumbnailPipeline(
        image_service,
        ImmediateTaskRunner(),
        edge=16,
        display_metrics=lambda: DisplayMetrics(scale_factor=next(scales)),
    )
    sizes = []
    for _ in range(2):
        pipeline.generate(_entries(path), lambda p, img: sizes.append(img.width()), lambda b: None)
    assert sizes == [16, 32]
    assert pipeline.scale_factor == 2.0
