"""Tests for the StencilJob orchestration: upload, split, store, save, print."""

import asyncio

import pytest

from errors import DecodeError, StencilError, ValidationError
from job_store import JobStore
from models.callbacks import SplitCallbacks
from models.stencil_job import StencilJob
from print_utils import count_pages
from sheet_store import InlineSheetStore, LocalSheetStore


class RecordingCallbacks:
    def __init__(self):
        self.events = []

    def build(self):
        return SplitCallbacks(
            on_stage=lambda job_id, stage: self.events.append(("stage", stage)),
            on_sheet_ready=lambda job_id, page, url: self.events.append(("sheet", page)),
            on_error=lambda job_id, error: self.events.append(("error", error)),
            on_complete=lambda job_id, count, elapsed: self.events.append(
                ("complete", count)
            ),
        )


class FailingStore(LocalSheetStore):
    """Accepts the upload and the first sheets, then fails."""

    def __init__(self, root_dir, fail_on_call):
        super().__init__(root_dir)
        self.calls = 0
        self.fail_on_call = fail_on_call

    def store(self, data, key, content_type="image/png"):
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise OSError("disk full")
        return super().store(data, key, content_type)


@pytest.fixture
def job(tmp_path):
    return StencilJob("job_0", "user-1", LocalSheetStore(tmp_path / "sheets"))


def test_upload_records_dimensions_and_dpi(job, make_image_bytes):
    upload = job.upload(make_image_bytes(300, 200), "dragon.png", "image/png")

    assert upload.filename == "dragon.png"
    assert upload.dimensions == {"width": 300, "height": 200}
    assert upload.url.startswith("file://")
    assert job.settings.dpi == 46


def test_upload_rejects_gif(job, make_image_bytes):
    with pytest.raises(ValidationError):
        job.upload(make_image_bytes(10, 10), "a.gif", "image/gif")
    assert job.original_image_url is None


def test_upload_rejects_undecodable(job):
    with pytest.raises(DecodeError):
        job.upload(b"nope", "a.png", "image/png")


def test_upload_rejects_single_pixel(job, make_image_bytes):
    with pytest.raises(ValidationError):
        job.upload(make_image_bytes(1, 1), "dot.png", "image/png")


def test_run_requires_upload(job):
    with pytest.raises(ValueError):
        asyncio.run(job.run())


def test_run_stores_all_sheets(job, make_image_bytes):
    recorder = RecordingCallbacks()
    job.upload(make_image_bytes(300, 200), "dragon.png", "image/png")
    job.update_settings(target_width_inches=2, rotation=90)

    result = asyncio.run(job.run(recorder.build()))

    assert [image.page_number for image in result.images] == [1, 2, 3, 4]
    assert [(i.position.row, i.position.col) for i in result.images] == [
        (0, 0),
        (0, 1),
        (1, 0),
        (1, 1),
    ]
    assert result.settings.rotation == 90
    for image in result.images:
        assert job.store.load(image.url).startswith(b"\x89PNG")
    assert [s.to_pil_image().size for s in job.sheets] == [(300, 450)] * 4
    assert recorder.events == [
        ("stage", "fetching"),
        ("stage", "splitting"),
        ("stage", "storing"),
        ("sheet", 1),
        ("sheet", 2),
        ("sheet", 3),
        ("sheet", 4),
        ("complete", 4),
    ]
    assert not job.is_processing()


def test_run_is_all_or_nothing(tmp_path, make_image_bytes):
    # call 1 is the upload, calls 2-5 are sheets
    store = FailingStore(tmp_path / "sheets", fail_on_call=4)
    job = StencilJob("job_0", "user-1", store)
    job.upload(make_image_bytes(60, 40), "a.png", "image/png")
    job.update_settings(target_width_inches=1)
    recorder = RecordingCallbacks()

    with pytest.raises(StencilError, match="Failed to upload sheet 3"):
        asyncio.run(job.run(recorder.build()))

    assert job.split_images is None
    assert job.sheets is None
    assert not list((tmp_path / "sheets").rglob("split-*"))
    assert recorder.events[-1] == ("error", "Failed to upload sheet 3")


def test_inline_store_keeps_sheets_as_data_urls(make_image_bytes):
    job = StencilJob("job_0", "debug-user-123", InlineSheetStore())
    job.upload(make_image_bytes(60, 40), "a.webp", "image/webp")
    job.update_settings(target_width_inches=1)

    result = asyncio.run(job.run())
    assert all(i.url.startswith("data:image/png;base64,") for i in result.images)


def test_update_settings_rederives_dpi(job, make_image_bytes):
    job.upload(make_image_bytes(600, 400), "a.png", "image/png")
    settings = job.update_settings(target_width_inches=4)
    assert settings.dpi == 150

    with pytest.raises(ValueError):
        job.update_settings(rotation=270)
    assert job.settings.target_width_inches == 4


def test_dpi_follows_upload_width_under_rotation(job, make_image_bytes):
    job.upload(make_image_bytes(600, 400), "a.png", "image/png")
    job.update_settings(target_width_inches=4, rotation=90)

    result = asyncio.run(job.run())

    # 600px across 4in, regardless of the rotated 400px-wide bounding box
    assert result.settings.dpi == 150
    assert job.settings.dpi == 150
    assert [s.to_pil_image().size for s in job.sheets] == [(600, 900)] * 4


def test_new_upload_discards_sheets(job, make_image_bytes):
    job.upload(make_image_bytes(60, 40), "a.png", "image/png")
    job.update_settings(target_width_inches=1)
    asyncio.run(job.run())
    assert job.sheets

    job.upload(make_image_bytes(80, 40), "b.png", "image/png")
    assert job.sheets is None
    assert job.split_images is None


def test_save_and_print(job, tmp_path, make_image_bytes):
    job_store = JobStore(tmp_path / "jobs.json")
    with pytest.raises(ValueError):
        job.save(job_store)
    with pytest.raises(ValueError):
        job.to_pdf()

    job.upload(make_image_bytes(60, 40), "a.png", "image/png")
    job.update_settings(target_width_inches=1, overlap_mm=5)
    asyncio.run(job.run())

    saved = job.save(job_store)
    assert job_store.list(user_id="user-1") == [saved]
    assert saved.settings.overlap_mm == 5
    assert saved.original_image_url == job.original_image_url
    assert count_pages(job.to_pdf()) == 4


def test_unexpected_failure_reaches_error_callback(job, monkeypatch, make_image_bytes):
    def broken_split(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr("models.stencil_job.split_image_into_sheets", broken_split)
    job.upload(make_image_bytes(60, 40), "a.png", "image/png")
    recorder = RecordingCallbacks()

    with pytest.raises(RuntimeError, match="boom"):
        asyncio.run(job.run(recorder.build()))

    assert recorder.events[-1] == ("error", "boom")
    assert job.sheets is None
    assert not job.is_processing()


def test_store_rejection_rolls_back(tmp_path, make_image_bytes):
    class RejectingStore(FailingStore):
        def store(self, data, key, content_type="image/png"):
            if self.calls + 1 == self.fail_on_call:
                self.calls += 1
                raise ValueError("key rejected")
            return super().store(data, key, content_type)

    store = RejectingStore(tmp_path / "sheets", fail_on_call=3)
    job = StencilJob("job_0", "user-1", store)
    job.upload(make_image_bytes(60, 40), "a.png", "image/png")
    job.update_settings(target_width_inches=1)

    with pytest.raises(StencilError, match="Failed to upload sheet 2"):
        asyncio.run(job.run())

    assert not list((tmp_path / "sheets").rglob("split-*"))
