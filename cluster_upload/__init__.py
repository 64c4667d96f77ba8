"""Cluster Upload Library

Client for the storage cluster's resumable upload protocol: discovers a data
node through a rotating set of masters, opens an upload session there and
streams videos or model bundles in chunks, following the server's offset and
chunk size corrections.
"""

__version__ = "0.1.0"

from cluster_upload.client import (
    ChunkedTransferEngine,
    RetryPolicy,
    SessionNegotiator,
    UploadClient,
    UploadResult,
    UploadSession,
    UploadState,
    UploadStats,
)
from cluster_upload.config import UploaderConfig
from cluster_upload.exceptions import (
    IncompleteUploadError,
    LocalFileError,
    MasterUnreachable,
    SessionInitFailed,
    TransportError,
    UploadError,
    UploadFailed,
)
from cluster_upload.manifest import ManifestEntry, TransferManifest
from cluster_upload.masters import MasterPool

__all__ = [
    "UploadClient",
    "UploadResult",
    "UploadState",
    "UploadStats",
    "RetryPolicy",
    "SessionNegotiator",
    "UploadSession",
    "ChunkedTransferEngine",
    "MasterPool",
    "TransferManifest",
    "ManifestEntry",
    "UploaderConfig",
    "UploadError",
    "MasterUnreachable",
    "SessionInitFailed",
    "TransportError",
    "IncompleteUploadError",
    "LocalFileError",
    "UploadFailed",
]
