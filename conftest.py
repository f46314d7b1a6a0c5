"""Shared fixtures: an in-memory versioned bucket."""

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import pytest

from s3rewind.core.versions import DeleteMarker, ObjectVersion, VersionPage

Record = Union[ObjectVersion, DeleteMarker]


def at(hour: int, minute: int, day: int = 26, month: int = 10, year: int = 2016) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def paginate(records: Sequence[Record], page_size: int) -> List[VersionPage]:
    """
    Split listing-ordered records into pages of ``page_size`` records the way
    S3 does, naming the last key of every page but the final one.
    """
    pages = []
    for start in range(0, len(records), page_size):
        chunk = records[start:start + page_size]
        is_last = start + page_size >= len(records)
        pages.append(VersionPage(
            versions=[r for r in chunk if isinstance(r, ObjectVersion)],
            delete_markers=[r for r in chunk if isinstance(r, DeleteMarker)],
            next_key_marker=None if is_last else chunk[-1].key,
        ))
    return pages or [VersionPage()]


class FakeVersionStore:
    """Versioned bucket held in memory; downloads write ``content`` or the version id."""

    def __init__(self, records: Sequence[Record], page_size: int = 1000,
                 content: Optional[Dict[str, bytes]] = None):
        self.records = list(records)
        self.page_size = page_size
        self.content = content or {}
        self.list_calls: List[tuple] = []
        self.downloads: List[tuple] = []
        self._lock = threading.Lock()

    def list_versions(self, bucket: str, prefix: str = ""):
        self.list_calls.append((bucket, prefix))
        selected = [r for r in self.records if r.key.startswith(prefix)]
        return iter(paginate(selected, self.page_size))

    def download_version(self, bucket: str, key: str, version_id: str, target_path: Path) -> Path:
        with self._lock:
            self.downloads.append((bucket, key, version_id))
        Path(target_path).write_bytes(self.content.get(key, version_id.encode()))
        return target_path


@pytest.fixture
def bucket_records():
    """Listing-ordered history of a small bucket (key ascending, newest first)."""
    return [
        ObjectVersion("README", "112", at(14, 48), 14),
        ObjectVersion("README", "111", at(14, 47), 12),
        DeleteMarker("README", at(14, 40)),
        ObjectVersion("deleted_directory/", "551", at(14, 48), 0),
        DeleteMarker("deleted_directory/", at(14, 51)),
        DeleteMarker("deleted_file", at(14, 50)),
        ObjectVersion("deleted_file", "331", at(14, 49), 7),
        ObjectVersion("future_file", "441", at(14, 49, day=5, month=11), 3),
        ObjectVersion("index.html", "221", at(14, 48), 230),
        ObjectVersion("lib/", "661", at(14, 46), 0),
        ObjectVersion("lib/util.py", "772", at(14, 45), 90),
        ObjectVersion("lib/util.py", "771", at(14, 44), 80),
    ]


@pytest.fixture
def restore_time():
    """Nov 4 2016 15:00 US/Eastern."""
    return at(19, 0, day=4, month=11)


@pytest.fixture
def store(bucket_records):
    return FakeVersionStore(bucket_records)
