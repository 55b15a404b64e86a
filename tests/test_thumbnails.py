from cloud_gallery.models import ThumbnailResult
from cloud_gallery.thumbnails.fetcher import ThumbnailFetcher, is_decodable
from conftest import make_png, make_record


def fill(catalog, n):
    records = [make_record(i) for i in range(n)]
    for rec in records:
        catalog.add_if_absent(rec)
    return records


def test_fetch_batches_at_most_25(remote, catalog):
    records = fill(catalog, 30)

    result = ThumbnailFetcher(remote, catalog).fetch()

    assert len(remote.batch_calls) == 1
    batch = remote.batch_calls[0]
    assert len(batch) == 25
    assert [e.path for e in batch] == [r.path for r in records[:25]]
    assert all(e.size == "w480h320" and e.mode == "strict" for e in batch)
    assert result.loaded == 25
    assert all(r.loaded and r.thumbnail for r in records[:25])
    assert not any(r.loaded for r in records[25:])


def test_nothing_pending_skips_the_call(remote, catalog):
    for rec in fill(catalog, 3):
        rec.loaded = True

    result = ThumbnailFetcher(remote, catalog).fetch()

    assert result.requested == 0
    assert remote.batch_calls == []


def test_failed_entry_is_marked_permanently(remote, catalog):
    records = fill(catalog, 3)
    bad = records[1]
    remote.thumbnail_failures = {bad.path}
    fetcher = ThumbnailFetcher(remote, catalog)

    fetcher.fetch()

    assert bad.error and not bad.loaded
    assert records[0].loaded and records[2].loaded

    # Later cycles never ask for it again
    remote.thumbnail_failures = set()
    bad_next = make_record(99)
    catalog.add_if_absent(bad_next)
    fetcher.fetch()
    assert [e.path for e in remote.batch_calls[1]] == [bad_next.path]
    assert bad.error


def test_batch_failure_leaves_records_untouched(remote, catalog):
    records = fill(catalog, 3)
    remote.batch_error = True

    result = ThumbnailFetcher(remote, catalog).fetch()

    assert result.batch_failed
    assert not any(r.loaded or r.error for r in records)


def test_length_mismatch_is_treated_as_batch_failure(remote, catalog):
    records = fill(catalog, 3)
    remote.drop_last_entry = True

    result = ThumbnailFetcher(remote, catalog).fetch()

    assert result.batch_failed
    assert not any(r.loaded or r.error for r in records)


def test_undecodable_preview_counts_as_failure(catalog):
    class Garbage:
        def get_thumbnail_batch(self, entries):
            return [ThumbnailResult(True, data=b"not an image") for _ in entries]

    (rec,) = fill(catalog, 1)

    ThumbnailFetcher(Garbage(), catalog).fetch()

    assert rec.error and not rec.loaded


def test_is_decodable():
    assert is_decodable(make_png())
    assert not is_decodable(b"")
    assert not is_decodable(b"\x89PNG garbage")
