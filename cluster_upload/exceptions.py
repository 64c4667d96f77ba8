"""
Global cluster_upload exception classes.

Every failure surfaced by the client derives from UploadError so callers can
catch the whole family, while the retry loop distinguishes the subclasses.
"""

from typing import Optional


class UploadError(Exception):
    """
    Base exception for communication with the storage cluster.

    Attributes:
        message (str): Main message of the exception
        status_code (int): HTTP status code of response indicating an error
        response_content (bytes): Content of response indicating an error
    """

    def __init__(self, message, status_code=None, response_content=None):
        default_message = f"Communication with storage cluster failed with status {status_code}"
        message = message or default_message
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_content = response_content


class MasterUnreachable(UploadError):
    """Exception raised when a master cannot hand out an upload address."""

    pass


class SessionInitFailed(UploadError):
    """Exception raised when the data node refuses to open an upload session."""

    pass


class TransportError(UploadError):
    """Exception raised on a network or protocol failure while appending."""

    pass


class IncompleteUploadError(UploadError):
    """Exception raised when the last file ends without a completion ack."""

    pass


class UploadFailed(UploadError):
    """Exception raised when every trial of an upload has failed."""

    pass


class LocalFileError(UploadError):
    """
    Exception raised when a local file cannot be stat'ed, opened or read.

    Attributes:
        path (str): Path of the offending file
    """

    def __init__(self, message, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ProtocolOffsetMismatch(UploadError):
    """Server rejected a chunk and reported the offset it expects instead."""

    def __init__(self, offset: int, status_code=None):
        super().__init__(f"Server expects offset {offset}", status_code=status_code)
        self.offset = offset


class ProtocolChunkSizeMismatch(UploadError):
    """Server rejected a chunk and reported the largest request it accepts."""

    def __init__(self, chunk_size: int, status_code=None):
        super().__init__(f"Server accepts at most {chunk_size} bytes", status_code=status_code)
        self.chunk_size = chunk_size
