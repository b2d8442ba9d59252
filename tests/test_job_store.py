"""Tests for the print job history."""

import re

from job_store import JobStore, new_job_id
from models.api_schemas import GridPosition, SplitImage
from models.image_settings import ImageSettings


def split_images():
    return [
        SplitImage(
            url=f"file:///sheets/page-{n}.png",
            position=GridPosition(row=(n - 1) // 2, col=(n - 1) % 2),
            page_number=n,
        )
        for n in range(1, 5)
    ]


def test_job_id_format():
    assert re.fullmatch(r"job_\d+_[0-9a-z]{9}", new_job_id())


def test_create_and_get(tmp_path):
    store = JobStore(tmp_path / "jobs.json")
    settings = ImageSettings(target_width_inches=5, rotation=-30, overlap_mm=10, dpi=600)
    job = store.create("user-1", "file:///original.png", split_images(), settings)

    loaded = store.get(job.id)
    assert loaded == job
    assert loaded.settings.overlap_mm == 10
    assert [image.page_number for image in loaded.split_images] == [1, 2, 3, 4]


def test_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "jobs.json"
    job = JobStore(path).create("user-1", "u", split_images(), ImageSettings())
    assert [j.id for j in JobStore(path).list()] == [job.id]


def test_list_filters_by_user_newest_first(tmp_path):
    store = JobStore(tmp_path / "jobs.json")
    first = store.create("user-1", "a", split_images(), ImageSettings())
    store.create("user-2", "b", split_images(), ImageSettings())
    second = store.create("user-1", "c", split_images(), ImageSettings())

    mine = store.list(user_id="user-1")
    assert {job.id for job in mine} == {first.id, second.id}
    assert mine[0].created_at >= mine[1].created_at
    assert len(store.list()) == 3


def test_delete(tmp_path):
    store = JobStore(tmp_path / "jobs.json")
    job = store.create("user-1", "a", split_images(), ImageSettings())

    assert store.delete(job.id)
    assert store.get(job.id) is None
    assert not store.delete(job.id)


def test_empty_store(tmp_path):
    store = JobStore(tmp_path / "jobs.json")
    assert store.list() == []
    store.clear()
    assert store.get("job_missing") is None


def test_clear_removes_every_job(tmp_path):
    store = JobStore(tmp_path / "jobs.json")
    first = store.create("user-1", "a", split_images(), ImageSettings())
    store.create("user-2", "b", split_images(), ImageSettings())

    store.clear()

    assert store.list() == []
    assert store.get(first.id) is None
    assert JobStore(tmp_path / "jobs.json").list() == []
