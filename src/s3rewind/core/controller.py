"""
s3rewind Orchestrator: restores a versioned bucket as of a point in time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional, Union

from .fetcher import Fetcher, VersionStore
from .logger import create_error_tracker
from .s3_backend import S3VersionStore
from .versions import ObjectVersion
from s3rewind.utils.validators import DEFAULT_CONCURRENCY


@dataclass
class RestoreConfig:
    bucket: str
    restore_time: Union[str, datetime]
    destination: str = "."
    prefix: Optional[str] = None
    region: Optional[str] = None
    profile: Optional[str] = None
    concurrency: int = DEFAULT_CONCURRENCY
    verbose: bool = False


class RestoreController:
    def __init__(self, config: RestoreConfig, store: Optional[VersionStore] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.store = store or S3VersionStore(region=config.region, profile=config.profile)
        self.fetcher = Fetcher(
            self.store,
            bucket=config.bucket,
            destination=config.destination,
            restore_time=config.restore_time,
            prefix=config.prefix,
            concurrency=config.concurrency,
            verbose=config.verbose,
        )
        self.errors = create_error_tracker('controller')

    def total_size(self) -> int:
        try:
            return self.fetcher.total_size()
        except Exception as e:
            self.errors.log_error(e, context="listing versions")
            raise

    def run(self, progress: Optional[Callable[[ObjectVersion], None]] = None) -> Dict[str, int]:
        """Restore every revision and return counters for the run."""
        stats = {"restored": 0, "directories": 0, "files": 0, "bytes": 0}

        # Called under the fetcher's observer lock
        def observe(revision: ObjectVersion) -> None:
            stats["restored"] += 1
            if revision.is_directory:
                stats["directories"] += 1
            else:
                stats["files"] += 1
                stats["bytes"] += revision.size
            if progress:
                progress(revision)

        self.logger.info(
            f"Restoring s3://{self.fetcher.bucket}/{self.fetcher.prefix} as of "
            f"{self.fetcher.restore_time.isoformat()} into {self.config.destination} "
            f"with {self.fetcher.concurrency} workers"
        )
        try:
            self.fetcher.fetch(observe)
        except Exception as e:
            self.errors.log_error(e, context=f"restore stopped after {stats['restored']} revisions",
                                  key=self.fetcher.failed_key)
            raise

        self.logger.info(f"Restored {stats['files']} files and {stats['directories']} directories "
                         f"({stats['bytes']} bytes)")
        return stats
