"""
Concurrent Fetcher

Downloads the revisions chosen by the resolver into a local directory using
a fixed pool of worker threads.

The calling thread walks the resolver output and publishes each revision into
a queue while the bucket listing is still paginating; workers take revisions
off the queue as they become free. When the listing is exhausted the queue is
closed with one sentinel per worker, and fetch() returns once every worker has
drained it. The queue holds at most one revision per worker, so once a
revision fails the listing stops after the page in hand.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, Optional, Protocol, Union

from .resolver import VersionLister, VersionResolver
from .versions import ObjectVersion
from s3rewind.utils.file_manager import FileManager
from s3rewind.utils.validators import (
    DEFAULT_CONCURRENCY,
    ConfigurationError,
    normalize_prefix,
    parse_restore_time,
    validate_bucket_name,
    validate_concurrency,
)


Observer = Callable[[ObjectVersion], None]

_CLOSED = object()


class _FirstFailure:
    """Keeps the first error raised by the listing or any worker."""

    def __init__(self):
        self.error: Optional[BaseException] = None
        self.key: Optional[str] = None
        self.occurred = threading.Event()
        self._lock = threading.Lock()

    def record(self, error: BaseException, key: Optional[str] = None) -> None:
        with self._lock:
            if self.error is None:
                self.error = error
                self.key = key
                self.occurred.set()


class VersionStore(VersionLister, Protocol):
    def download_version(self, bucket: str, key: str, version_id: str, target_path: Path) -> Path:
        ...


class Fetcher:
    """
    Restores a versioned bucket, as it was at a given time, to a local directory.

    The optional observer passed to :meth:`fetch` is called once per restored
    revision. Calls are serialized under their own lock, so the observer may
    keep unsynchronized state (a running byte total, a progress bar). Workers
    only hold that lock while notifying, never while downloading.
    """

    def __init__(self,
                 store: VersionStore,
                 bucket: str,
                 destination: Union[str, Path],
                 restore_time: Union[str, datetime, None],
                 prefix: Optional[str] = None,
                 concurrency: int = DEFAULT_CONCURRENCY,
                 verbose: bool = False):
        """
        Initialize the fetcher.

        Args:
            store: Backend providing version listing and version download
            bucket: Versioned bucket name
            destination: Local directory for restored files
            restore_time: Point in time to restore (datetime or ISO-8601 text)
            prefix: Restore only keys under this prefix
            concurrency: Number of download workers
            verbose: Log each directory and copy at INFO level

        Raises:
            ConfigurationError: If any input is unusable
        """
        ok, self.bucket, error = validate_bucket_name(bucket)
        if not ok:
            raise ConfigurationError(error)
        ok, self.restore_time, error = parse_restore_time(restore_time)
        if not ok:
            raise ConfigurationError(error)

        self.store = store
        self.prefix = normalize_prefix(prefix)
        self.concurrency = validate_concurrency(concurrency)
        self.verbose = verbose
        self.files = FileManager(destination)
        self.resolver = VersionResolver(store, self.bucket, self.restore_time, self.prefix)
        self.logger = logging.getLogger(__name__)
        self._observer_lock = threading.Lock()
        self.failed_key: Optional[str] = None

    def object_versions(self, stop: Optional[threading.Event] = None) -> Iterator[ObjectVersion]:
        """Revisions to restore, one per key, produced while the listing paginates."""
        return self.resolver.resolve(stop)

    def total_size(self) -> int:
        """Sum of the sizes of all revisions to restore. Nothing is downloaded."""
        return sum(revision.size for revision in self.object_versions())

    def fetch(self, observer: Optional[Observer] = None) -> None:
        """
        Download every resolved revision into the destination.

        Blocks until the listing is exhausted and all workers have finished.
        A failed revision does not stop its worker: the remaining revisions
        already listed are still attempted, but no further listing pages are
        requested. The first error is re-raised once every worker is done;
        files already written stay on disk. The key being restored when it
        happened is left in :attr:`failed_key`.

        Args:
            observer: Called with each revision after it is written
        """
        channel: "queue.Queue[object]" = queue.Queue(maxsize=self.concurrency)
        failure = _FirstFailure()
        self.failed_key = None

        with ThreadPoolExecutor(max_workers=self.concurrency,
                                thread_name_prefix="s3rewind-fetch") as executor:
            workers = [executor.submit(self._drain, channel, observer, failure)
                       for _ in range(self.concurrency)]
            try:
                for revision in self.object_versions(stop=failure.occurred):
                    channel.put(revision)
            except Exception as e:
                self.logger.error(f"Listing s3://{self.bucket}/{self.prefix} failed: {e}")
                failure.record(e)
            finally:
                for _ in workers:
                    channel.put(_CLOSED)

            for future in workers:
                future.result()

        if failure.error is not None:
            self.failed_key = failure.key
            raise failure.error

    def _drain(self, channel: "queue.Queue[object]", observer: Optional[Observer],
               failure: "_FirstFailure") -> None:
        while True:
            item = channel.get()
            if item is _CLOSED:
                return
            try:
                self._fetch_object(item, observer)
            except Exception as e:
                self.logger.error(f"Failed to restore {item.key} ({item.version_id}): {e}")
                failure.record(e, item.key)

    def _fetch_object(self, revision: ObjectVersion, observer: Optional[Observer]) -> None:
        log = self.logger.info if self.verbose else self.logger.debug

        if revision.is_directory:
            log(f"Creating s3 subdirectory {revision.key}")
            self.files.create_directory(revision.key)
        else:
            target = self.files.prepare_file(revision.key)
            log(f"Copying from s3 {revision.key} ({revision.version_id})")
            self.store.download_version(self.bucket, revision.key, revision.version_id, target)

        if observer is not None:
            with self._observer_lock:
                observer(revision)
