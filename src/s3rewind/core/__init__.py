from .fetcher import Fetcher
from .resolver import VersionResolver, resolve_key, resolve_page, resolve_versions
from .s3_backend import S3VersionStore
from .versions import CarriedRecords, DeleteMarker, ObjectVersion, ResolvedRevision, VersionPage

__all__ = [
    "CarriedRecords",
    "DeleteMarker",
    "Fetcher",
    "ObjectVersion",
    "ResolvedRevision",
    "S3VersionStore",
    "VersionPage",
    "VersionResolver",
    "resolve_key",
    "resolve_page",
    "resolve_versions",
]
