"""Storage cluster upload client implementations."""

from cluster_upload.client.engine import ChunkedTransferEngine, TransferState
from cluster_upload.client.negotiator import SessionNegotiator, UploadSession
from cluster_upload.client.retry import RetryPolicy, UploadClient, UploadResult, UploadState
from cluster_upload.client.stats import UploadStats

__all__ = [
    "ChunkedTransferEngine",
    "TransferState",
    "SessionNegotiator",
    "UploadSession",
    "RetryPolicy",
    "UploadClient",
    "UploadResult",
    "UploadState",
    "UploadStats",
]
