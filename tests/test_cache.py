import pytest

from cloud_gallery.exceptions import CacheWriteError
from cloud_gallery.thumbnails.cache import CacheWriter
from conftest import make_record


def loaded_records(catalog, n, data=b"preview"):
    records = []
    for i in range(n):
        rec = make_record(i)
        rec.loaded = True
        rec.thumbnail = data
        catalog.add_if_absent(rec)
        records.append(rec)
    return records


def test_save_writes_files_named_after_remote_name(catalog, tmp_path):
    (rec,) = loaded_records(catalog, 1)

    result = CacheWriter(catalog, tmp_path).save()

    assert (tmp_path / rec.name).read_bytes() == b"preview"
    assert result.saved == result.written == 1
    assert rec.saved
    assert rec.thumbnail is None


def test_existing_files_are_never_overwritten(catalog, tmp_path):
    (rec,) = loaded_records(catalog, 1, data=b"new")
    (tmp_path / rec.name).write_bytes(b"old")

    result = CacheWriter(catalog, tmp_path).save()

    assert (tmp_path / rec.name).read_bytes() == b"old"
    assert result.saved == 1 and result.written == 0
    assert rec.saved and rec.thumbnail is None


def test_second_pass_does_not_touch_saved_records(catalog, tmp_path):
    (rec,) = loaded_records(catalog, 1)
    writer = CacheWriter(catalog, tmp_path)
    writer.save()
    (tmp_path / rec.name).write_bytes(b"edited")

    result = writer.save()

    assert result.saved == 0
    assert rec.saved
    assert (tmp_path / rec.name).read_bytes() == b"edited"


def test_pass_stops_after_batch_bound(catalog, tmp_path):
    records = loaded_records(catalog, 30)

    result = CacheWriter(catalog, tmp_path).save()

    assert result.saved == 25
    assert sum(r.saved for r in records) == 25
    assert all(r.thumbnail for r in records[25:])
    assert len(list(tmp_path.iterdir())) == 25


def test_unloaded_records_are_skipped(catalog, tmp_path):
    rec = make_record(1)
    catalog.add_if_absent(rec)

    result = CacheWriter(catalog, tmp_path).save()

    assert result.saved == 0
    assert not rec.saved


def test_write_error_keeps_record_for_next_pass(catalog, tmp_path):
    (rec,) = loaded_records(catalog, 1)
    writer = CacheWriter(catalog, tmp_path / "missing")  # never created

    result = writer.save()

    assert result.failed == 1
    assert not rec.saved
    assert rec.thumbnail == b"preview"


def test_ensure_directory(tmp_path):
    target = tmp_path / "a" / "b"
    CacheWriter(None, target).ensure_directory()
    assert target.is_dir()


def test_ensure_directory_failure_raises(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")

    with pytest.raises(CacheWriteError):
        CacheWriter(None, blocker / "sub").ensure_directory()


def test_cache_path_strips_directories(tmp_path):
    writer = CacheWriter(None, tmp_path)
    assert writer.cache_path("../../etc/passwd") == tmp_path / "passwd"
