"""
S3 Version Store

This module talks to S3 for the two calls the restore needs: the paginated
version listing of a bucket and the download of one specific object version.
Listing responses are converted into VersionPage records so nothing past this
module depends on boto3 response shapes.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import boto3

from .versions import DeleteMarker, ObjectVersion, VersionPage


class S3VersionStore:
    """
    Client for listing and downloading object versions in a versioned bucket.

    The boto3 client is created on first use unless one is supplied. The region
    falls back to the AWS_REGION environment variable; credentials come from
    the standard boto3 chain or from a named profile.

    Attributes:
        region: AWS region used when creating the client
        profile: Named AWS profile, if any
    """

    def __init__(self, client=None, region: Optional[str] = None, profile: Optional[str] = None):
        """
        Initialize the store.

        Args:
            client: An existing boto3 S3 client
            region: AWS region name
            profile: AWS shared-config profile name
        """
        self.region = region or os.environ.get("AWS_REGION")
        self.profile = profile
        self.logger = logging.getLogger(__name__)
        self._client = client

    @property
    def client(self):
        """The boto3 S3 client, created lazily."""
        if self._client is None:
            session = boto3.Session(profile_name=self.profile) if self.profile else boto3.Session()
            self._client = session.client("s3", region_name=self.region)
            self.logger.debug(f"Created S3 client (region={self.region}, profile={self.profile})")
        return self._client

    def list_versions(self, bucket: str, prefix: str = "") -> Iterator[VersionPage]:
        """
        List all versions and delete markers in a bucket, one page at a time.

        Args:
            bucket: Versioned bucket name
            prefix: Only list keys starting with this prefix

        Yields:
            VersionPage for each listing response, in the order S3 returns them

        Raises:
            botocore.exceptions.ClientError: If the listing request fails
        """
        params: Dict[str, Any] = {"Bucket": bucket}
        if prefix:
            params["Prefix"] = prefix

        paginator = self.client.get_paginator("list_object_versions")
        for page_count, response in enumerate(paginator.paginate(**params), 1):
            page = self._parse_page(response)
            self.logger.debug(
                f"Listed page {page_count} of s3://{bucket}/{prefix}: "
                f"{len(page.versions)} versions, {len(page.delete_markers)} delete markers"
            )
            yield page

    @staticmethod
    def _parse_page(response: Dict[str, Any]) -> VersionPage:
        versions = [
            ObjectVersion(
                key=item["Key"],
                version_id=item["VersionId"],
                last_modified=item["LastModified"],
                size=item.get("Size", 0),
            )
            for item in response.get("Versions", [])
        ]
        delete_markers = [
            DeleteMarker(key=item["Key"], last_modified=item["LastModified"])
            for item in response.get("DeleteMarkers", [])
        ]
        next_key_marker = response.get("NextKeyMarker") if response.get("IsTruncated") else None
        return VersionPage(
            versions=versions,
            delete_markers=delete_markers,
            next_key_marker=next_key_marker or None,
        )

    def download_version(self, bucket: str, key: str, version_id: str, target_path: Path) -> Path:
        """
        Download one object version to a local file.

        Args:
            bucket: Versioned bucket name
            key: Object key
            version_id: Version to download
            target_path: Local file to write; its directory must exist

        Returns:
            *target_path* after the download completes

        Raises:
            botocore.exceptions.ClientError: If the object cannot be fetched
        """
        self.client.download_file(
            bucket, key, str(target_path), ExtraArgs={"VersionId": version_id}
        )
        return target_path
