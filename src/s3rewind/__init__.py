"""
s3rewind: point-in-time restore for versioned S3 buckets

Finds the revision of every object in a versioned bucket as it stood at a
given time and downloads those revisions to a local directory.
"""

__version__ = "0.1.0"
__author__ = "s3rewind Project"
__description__ = "Point-in-time restore for versioned S3 buckets"
