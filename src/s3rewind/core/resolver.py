"""
Version Resolution

Finds the revision of every key in a versioned bucket as it stood at a given
restore time.

The S3 version listing returns records ordered by key and, within a key, by
last-modified time, newest first:

    key: "src/file1", version: 12456, last_modified: 7 Feb 11:38
    key: "src/file1", version: 12357, last_modified: 7 Feb 11:37
    key: "src/file2", version: 22222, last_modified: 7 Feb 11:39

The listing is paginated. Because of the ordering, every key on a page except
the page's NextKeyMarker is complete as soon as the page arrives, so it can be
resolved (and downloaded) before later pages are fetched. Only the records of
that one boundary key are carried over and merged into the next page.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple, TypeVar

from .versions import CarriedRecords, DeleteMarker, ObjectVersion, VersionPage


logger = logging.getLogger(__name__)

_R = TypeVar("_R", ObjectVersion, DeleteMarker)


class VersionLister(Protocol):
    def list_versions(self, bucket: str, prefix: str = "") -> Iterable[VersionPage]:
        ...


def resolve_key(versions: Sequence[ObjectVersion],
                delete_markers: Sequence[DeleteMarker],
                instant: datetime) -> Optional[ObjectVersion]:
    """
    Pick the revision of a single key as of ``instant``.

    Args:
        versions: The key's versions, newest first
        delete_markers: The key's delete markers, newest first
        instant: Restore time

    Returns:
        The newest version modified at or before ``instant``, or None when the
        key did not exist yet or a later delete marker (still at or before
        ``instant``) removed it. A delete marker sharing the version's
        timestamp does not hide it.
    """
    candidate = next((v for v in versions if v.last_modified <= instant), None)
    if candidate is None:
        return None

    marker = next((m for m in delete_markers if m.last_modified <= instant), None)
    if marker is not None and marker.last_modified > candidate.last_modified:
        return None

    return candidate


def _group_by_key(records: Iterable[_R]) -> Dict[str, List[_R]]:
    grouped: Dict[str, List[_R]] = {}
    for record in records:
        grouped.setdefault(record.key, []).append(record)
    return grouped


def resolve_page(page: VersionPage,
                 carried: CarriedRecords,
                 instant: datetime) -> Tuple[List[ObjectVersion], CarriedRecords]:
    """
    Resolve every key on a page that cannot continue on the next page.

    Args:
        page: The listing page just received
        carried: Boundary-key records held over from the previous page
        instant: Restore time

    Returns:
        Tuple of (resolved revisions in listing order, records to carry into
        the next page)
    """
    versions_by_key = _group_by_key([*carried.versions, *page.versions])
    markers_by_key = _group_by_key([*carried.delete_markers, *page.delete_markers])
    boundary = page.next_key_marker

    resolved: List[ObjectVersion] = []
    for key, versions in versions_by_key.items():
        if boundary is not None and key == boundary:
            continue
        revision = resolve_key(versions, markers_by_key.get(key, []), instant)
        if revision is not None:
            resolved.append(revision)

    if boundary is None:
        return resolved, CarriedRecords()

    next_carried = CarriedRecords(
        key=boundary,
        versions=tuple(versions_by_key.get(boundary, ())),
        delete_markers=tuple(markers_by_key.get(boundary, ())),
    )
    return resolved, next_carried


def resolve_versions(pages: Iterable[VersionPage], instant: datetime) -> Iterator[ObjectVersion]:
    """
    Lazily yield one revision per key as of ``instant``.

    Revisions are yielded page by page while the listing is still being
    fetched.
    """
    carried = CarriedRecords()
    page_count = 0
    for page in pages:
        page_count += 1
        resolved, carried = resolve_page(page, carried, instant)
        logger.debug(f"Page {page_count}: {len(resolved)} revisions resolved, "
                     f"boundary key {carried.key!r}")
        yield from resolved

    # Last page still named a boundary key; nothing else can arrive for it.
    if not carried.is_empty:
        revision = resolve_key(carried.versions, carried.delete_markers, instant)
        if revision is not None:
            yield revision


class VersionResolver:
    """
    Resolves the revisions of a bucket (optionally under a prefix) as of a
    restore time. Every call to :meth:`resolve` lists the bucket again.
    """

    def __init__(self, lister: VersionLister, bucket: str, instant: datetime, prefix: str = ""):
        self.lister = lister
        self.bucket = bucket
        self.instant = instant
        self.prefix = prefix

    def resolve(self, stop: Optional[threading.Event] = None) -> Iterator[ObjectVersion]:
        """
        Args:
            stop: When set, no further listing pages are requested. Keys from
                pages already received are still resolved.
        """
        logger.info(f"Resolving s3://{self.bucket}/{self.prefix} as of {self.instant.isoformat()}")
        pages = self.lister.list_versions(self.bucket, self.prefix)
        if stop is not None:
            pages = self._pages_until(pages, stop)
        return resolve_versions(pages, self.instant)

    @staticmethod
    def _pages_until(pages: Iterable[VersionPage], stop: threading.Event) -> Iterator[VersionPage]:
        for page in pages:
            yield page
            if stop.is_set():
                logger.warning("Listing stopped before the last page")
                return
