"""
Tests for version resolution without network.
"""

import threading

import pytest

from conftest import FakeVersionStore, at, paginate
from s3rewind.core.resolver import VersionResolver, resolve_key, resolve_page, resolve_versions
from s3rewind.core.versions import CarriedRecords, DeleteMarker, ObjectVersion, VersionPage


def _ids(revisions):
    return {r.key: r.version_id for r in revisions}


def test_resolves_bucket_state_at_restore_time(bucket_records, restore_time):
    revisions = list(resolve_versions([VersionPage(
        versions=[r for r in bucket_records if isinstance(r, ObjectVersion)],
        delete_markers=[r for r in bucket_records if isinstance(r, DeleteMarker)],
    )], restore_time))

    assert all(isinstance(r, ObjectVersion) for r in revisions)
    assert _ids(revisions) == {
        "README": "112",
        "index.html": "221",
        "lib/": "661",
        "lib/util.py": "772",
    }


def test_earlier_delete_marker_is_superseded_by_newer_version():
    versions = [ObjectVersion("README", "112", at(14, 48)), ObjectVersion("README", "111", at(14, 47))]
    markers = [DeleteMarker("README", at(14, 40))]

    assert resolve_key(versions, markers, at(14, 49)).version_id == "112"


def test_delete_marker_after_version_hides_key():
    versions = [ObjectVersion("deleted_file", "331", at(14, 49))]
    markers = [DeleteMarker("deleted_file", at(14, 50))]

    assert resolve_key(versions, markers, at(15, 0)) is None
    # Before the deletion the file is still there
    assert resolve_key(versions, markers, at(14, 49)).version_id == "331"


def test_future_records_do_not_influence_result():
    versions = [ObjectVersion("a", "3", at(15, 0)), ObjectVersion("a", "2", at(14, 30))]
    markers = [DeleteMarker("a", at(14, 45))]

    # Marker at 14:45 is after the restore time and must be ignored, as must version 3
    assert resolve_key(versions, markers, at(14, 40)).version_id == "2"


def test_key_created_after_restore_time_is_absent():
    versions = [ObjectVersion("new", "1", at(16, 0))]
    assert resolve_key(versions, [], at(15, 0)) is None


def test_key_with_only_delete_markers_yields_nothing():
    page = VersionPage(delete_markers=[DeleteMarker("gone", at(14, 0))])
    assert list(resolve_versions([page], at(15, 0))) == []


def test_version_wins_over_delete_marker_with_same_timestamp():
    versions = [ObjectVersion("tie", "1", at(14, 0))]
    markers = [DeleteMarker("tie", at(14, 0))]

    assert resolve_key(versions, markers, at(15, 0)).version_id == "1"


def test_identical_version_timestamps_keep_listing_order():
    versions = [ObjectVersion("k", "first", at(14, 0)), ObjectVersion("k", "second", at(14, 0))]
    assert resolve_key(versions, [], at(15, 0)).version_id == "first"


def test_resolve_page_holds_back_boundary_key():
    page = VersionPage(
        versions=[
            ObjectVersion("a", "a1", at(14, 0)),
            ObjectVersion("b", "b2", at(14, 10)),
        ],
        next_key_marker="b",
    )

    resolved, carried = resolve_page(page, CarriedRecords(), at(15, 0))

    assert [r.key for r in resolved] == ["a"]
    assert carried.key == "b"
    assert [v.version_id for v in carried.versions] == ["b2"]


def test_carried_records_merge_with_next_page():
    carried = CarriedRecords(
        key="b",
        versions=(ObjectVersion("b", "b2", at(14, 10)),),
    )
    # The older version and a deletion between the two arrive on the next page
    page = VersionPage(
        versions=[ObjectVersion("b", "b1", at(14, 0)), ObjectVersion("c", "c1", at(14, 0))],
        delete_markers=[DeleteMarker("b", at(14, 5))],
    )

    resolved, next_carried = resolve_page(page, carried, at(14, 7))

    assert _ids(resolved) == {"c": "c1"}
    assert next_carried.is_empty


def test_boundary_key_flushed_after_last_page():
    page = VersionPage(versions=[ObjectVersion("only", "1", at(14, 0))], next_key_marker="only")
    assert _ids(resolve_versions([page], at(15, 0))) == {"only": "1"}


@pytest.mark.parametrize("page_size", [1, 2, 3, 5, 7])
def test_pagination_does_not_change_result(bucket_records, restore_time, page_size):
    single = list(resolve_versions(paginate(bucket_records, len(bucket_records)), restore_time))
    paged = list(resolve_versions(paginate(bucket_records, page_size), restore_time))

    assert [(r.key, r.version_id) for r in paged] == [(r.key, r.version_id) for r in single]


def test_key_spanning_three_pages():
    records = [
        ObjectVersion("big", "4", at(14, 40)),
        ObjectVersion("big", "3", at(14, 30)),
        DeleteMarker("big", at(14, 25)),
        ObjectVersion("big", "2", at(14, 20)),
        ObjectVersion("big", "1", at(14, 10)),
        ObjectVersion("z", "z1", at(14, 0)),
    ]

    assert _ids(resolve_versions(paginate(records, 2), at(14, 35))) == {"big": "3", "z": "z1"}
    assert _ids(resolve_versions(paginate(records, 2), at(14, 27))) == {"z": "z1"}
    assert _ids(resolve_versions(paginate(records, 2), at(14, 22))) == {"big": "2", "z": "z1"}


def test_no_key_is_emitted_twice(bucket_records, restore_time):
    for page_size in range(1, len(bucket_records) + 1):
        keys = [r.key for r in resolve_versions(paginate(bucket_records, page_size), restore_time)]
        assert len(keys) == len(set(keys))


def test_revisions_are_emitted_before_later_pages_are_listed():
    requested = []

    def pages():
        requested.append(1)
        yield VersionPage(versions=[ObjectVersion("a", "a1", at(14, 0))], next_key_marker="a")
        requested.append(2)
        yield VersionPage(versions=[ObjectVersion("b", "b1", at(14, 0))], next_key_marker="b")
        requested.append(3)
        yield VersionPage(versions=[ObjectVersion("c", "c1", at(14, 0))])

    stream = resolve_versions(pages(), at(15, 0))

    assert next(stream).key == "a"
    assert requested == [1, 2]


def test_resolver_lists_again_on_every_call(bucket_records, restore_time):
    store = FakeVersionStore(bucket_records, page_size=3)
    resolver = VersionResolver(store, "test-bucket", restore_time)

    first = [(r.key, r.version_id) for r in resolver.resolve()]
    second = [(r.key, r.version_id) for r in resolver.resolve()]

    assert first == second
    assert store.list_calls == [("test-bucket", ""), ("test-bucket", "")]


def test_resolver_only_evaluates_keys_under_prefix(bucket_records, restore_time):
    store = FakeVersionStore(bucket_records, page_size=2)
    resolver = VersionResolver(store, "test-bucket", restore_time, prefix="lib")

    assert _ids(resolver.resolve()) == {"lib/": "661", "lib/util.py": "772"}
    assert store.list_calls == [("test-bucket", "lib")]


def test_listing_errors_propagate(restore_time):
    class BrokenStore:
        def list_versions(self, bucket, prefix=""):
            raise PermissionError("access denied")

    with pytest.raises(PermissionError):
        list(VersionResolver(BrokenStore(), "test-bucket", restore_time).resolve())


def test_stop_event_ends_listing_after_current_page(restore_time):
    records = [ObjectVersion(f"k{i}", str(i), at(14, 0)) for i in range(6)]
    store = FakeVersionStore(records, page_size=2)
    stop = threading.Event()
    stop.set()

    keys = [r.key for r in VersionResolver(store, "test-bucket", restore_time).resolve(stop)]

    # The boundary key of the last page received is still flushed
    assert keys == ["k0", "k1"]
