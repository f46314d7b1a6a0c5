"""
Version records for a versioned S3 bucket.

Listing pages are made of object versions and delete markers, ordered by key
and then newest first within a key. These dataclasses are the shapes the
resolver and fetcher exchange; they carry no boto3 types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


DIRECTORY_SUFFIX = "/"


@dataclass(frozen=True)
class ObjectVersion:
    key: str
    version_id: str
    last_modified: datetime
    size: int = 0

    @property
    def is_directory(self) -> bool:
        """True when the key is a directory marker (ends with '/')."""
        return self.key.endswith(DIRECTORY_SUFFIX)


@dataclass(frozen=True)
class DeleteMarker:
    key: str
    last_modified: datetime


# The revision chosen for a key as of the restore time.
ResolvedRevision = ObjectVersion


@dataclass
class VersionPage:
    """
    One response page of a version listing.

    next_key_marker names the key whose records may continue on the following
    page. It is None on the last page.
    """
    versions: List[ObjectVersion] = field(default_factory=list)
    delete_markers: List[DeleteMarker] = field(default_factory=list)
    next_key_marker: Optional[str] = None


@dataclass(frozen=True)
class CarriedRecords:
    """Records of the boundary key held over from the previous page."""
    key: Optional[str] = None
    versions: Tuple[ObjectVersion, ...] = ()
    delete_markers: Tuple[DeleteMarker, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.versions and not self.delete_markers
