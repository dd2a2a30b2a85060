"""
Blob store backends.

Each backend implements the same versioned get/put/delete/list interface,
allowing the document layer to run against GitHub, a generic REST service,
or a local directory.
"""

from .base import Blob, BlobEntry, BlobStore, join_path
from .github import GitHubBlobStore
from .http import HttpBlobStore
from .local import LocalBlobStore

__all__ = [
    "Blob",
    "BlobEntry",
    "BlobStore",
    "join_path",
    "GitHubBlobStore",
    "HttpBlobStore",
    "LocalBlobStore",
]
