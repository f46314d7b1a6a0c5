"""
Input Validation Utilities

This module validates and normalizes the restore inputs (bucket name, key
prefix, restore time, worker count) before any request is made.
"""

import re
from datetime import datetime, timezone
from typing import Optional, Tuple, Union
import logging


DEFAULT_CONCURRENCY = 20


class ConfigurationError(ValueError):
    """Raised when a restore is configured with unusable inputs."""


class UnsafeKeyError(ValueError):
    """Raised when an object key would be written outside the destination."""


class RestoreValidator:
    """
    Validates and normalizes restore inputs.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

        # S3 bucket naming rules: 3-63 chars, lowercase, digits, dots, hyphens
        self.bucket_pattern = re.compile(r'^[a-z0-9][a-z0-9.\-]{1,61}[a-z0-9]$')
        self.ip_pattern = re.compile(r'^\d{1,3}(\.\d{1,3}){3}$')

    def validate_bucket_name(self, name: str) -> Tuple[bool, str, str]:
        """
        Validate an S3 bucket name.

        Args:
            name: The bucket name to validate

        Returns:
            Tuple of (is_valid, normalized_name, error_message)
        """
        if not name or not isinstance(name, str):
            return False, "", "Bucket name cannot be empty"

        name = name.strip()
        if name.startswith("s3://"):
            name = name[5:].rstrip("/")

        if not self.bucket_pattern.match(name):
            return False, "", f"Invalid bucket name: {name}"
        if ".." in name:
            return False, "", "Bucket name cannot contain consecutive dots"
        if self.ip_pattern.match(name):
            return False, "", "Bucket name cannot be formatted as an IP address"

        return True, name, ""

    def parse_restore_time(self, value: Union[str, datetime, None]) -> Tuple[bool, Optional[datetime], str]:
        """
        Parse the restore time.

        Accepts a datetime or ISO-8601 text such as "2016-11-04T15:00:00Z".
        Values without a timezone are taken as UTC.

        Args:
            value: Restore time to parse

        Returns:
            Tuple of (is_valid, aware_datetime, error_message)
        """
        if value is None or value == "":
            return False, None, "The from time is required"

        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str):
            text = value.strip()
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                return False, None, (f"The from time was not parseable: {value!r} "
                                     "(expected ISO-8601, e.g. 2016-11-04T15:00:00Z)")
        else:
            return False, None, f"Unsupported from time type: {type(value).__name__}"

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return True, parsed, ""


_validator_instance: Optional[RestoreValidator] = None


def get_validator() -> RestoreValidator:
    """Return the shared RestoreValidator instance."""
    global _validator_instance
    if _validator_instance is None:
        _validator_instance = RestoreValidator()
    return _validator_instance


def validate_bucket_name(name: str) -> Tuple[bool, str, str]:
    return get_validator().validate_bucket_name(name)


def parse_restore_time(value: Union[str, datetime, None]) -> Tuple[bool, Optional[datetime], str]:
    return get_validator().parse_restore_time(value)


def normalize_prefix(prefix: Optional[str]) -> str:
    """Key prefix to list under; None means the whole bucket."""
    return prefix or ""


def validate_concurrency(value: Optional[int]) -> int:
    """
    Check the worker count.

    Raises:
        ConfigurationError: If the value is not a positive integer
    """
    if value is None:
        return DEFAULT_CONCURRENCY
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigurationError(f"Concurrency must be a positive integer, got {value!r}")
    return value
