"""Chunked transfer of manifest files to an open upload session."""

import logging
from dataclasses import dataclass
from http.client import HTTPException
from typing import IO, Callable, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from cluster_upload.client.negotiator import UploadSession, parse_int_header
from cluster_upload.client.stats import UploadStats
from cluster_upload.constants import (
    DEFAULT_TIMEOUT,
    HEADER_ID,
    HEADER_MAX_REQUEST_SIZE,
    HEADER_OFFSET,
    HEADER_REQUEST_TYPE,
    REQUEST_TYPE_APPEND,
    STATUS_CREATED,
    STATUS_OK,
)
from cluster_upload.exceptions import (
    IncompleteUploadError,
    LocalFileError,
    ProtocolChunkSizeMismatch,
    ProtocolOffsetMismatch,
    TransportError,
)
from cluster_upload.manifest import ManifestEntry, TransferManifest

logger = logging.getLogger(__name__)


@dataclass
class TransferState:
    """Progress of one transfer trial.

    Attributes:
        file_index: Manifest position of the file being sent
        offset: Bytes of the whole session acknowledged by the data node
        completed: Whether the data node acknowledged the final chunk
        corrections: Consecutive server corrections since the last ack
    """

    file_index: int = 0
    offset: int = 0
    completed: bool = False
    corrections: int = 0


class ChunkedTransferEngine:
    """Streams the files of a manifest, in order, into an upload session.

    The ``Offset`` header of every append request is the number of bytes the
    data node has acknowledged for the whole session, so it keeps growing
    from one manifest file to the next. Each file is read from the position
    that offset maps to inside it.

    The data node may answer a chunk with a correction instead of an ack:
    any status other than 200 or 201 carrying ``Offset`` moves the transfer
    to that offset, one carrying ``Max-Request-Size`` shrinks the chunks.
    Both are applied here and the chunk is sent again. Status 201 on any chunk means
    the whole upload is complete.

    Example:
        >>> engine = ChunkedTransferEngine()
        >>> state = engine.transfer(session, TransferManifest.for_video("clip.mp4"))
        >>> state.completed
        True
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[dict[str, str]] = None,
        max_corrections: int = 32,
    ):
        """Initialize the engine.

        Args:
            timeout: Socket timeout for every append request in seconds
            headers: Optional custom headers to include in all requests
            max_corrections: Consecutive corrections tolerated without an ack
        """
        self.timeout = timeout
        self.headers = headers or {}
        self.max_corrections = max_corrections

    def transfer(
        self,
        session: UploadSession,
        manifest: TransferManifest,
        progress_callback: Optional[Callable[[UploadStats], None]] = None,
        stats: Optional[UploadStats] = None,
    ) -> TransferState:
        """Send every file of the manifest until the data node reports completion.

        Args:
            session: Open upload session; its chunk_size follows server corrections
            manifest: Files to send, in order
            progress_callback: Optional callback receiving UploadStats after each ack
            stats: Optional statistics object to update in place

        Returns:
            Final transfer state with ``completed`` set

        Raises:
            IncompleteUploadError: If the last file ends without a completion ack
            LocalFileError: If a file cannot be opened or read
            TransportError: On network failure or an unrecoverable response
        """
        sizes = manifest.file_sizes()
        starts = [sum(sizes[:i]) for i in range(len(sizes))]
        if stats is None:
            stats = UploadStats(total_bytes=sum(sizes))

        state = TransferState()
        while not state.completed:
            entry = manifest.entries[state.file_index]
            logger.info(f"Uploading {entry.label} {entry.path}")
            with self._open(entry) as fs:
                next_index = self._send_file(
                    fs, entry, session, state, starts, sizes, stats, progress_callback
                )
            if state.completed:
                break
            if next_index >= len(manifest.entries):
                # reached the end of the last file without a completion ack
                raise IncompleteUploadError(
                    f"Sent all {state.offset} bytes of session {session.session_id} "
                    "but the server never acknowledged completion"
                )
            state.file_index = next_index

        return state

    def _send_file(
        self,
        fs: IO[bytes],
        entry: ManifestEntry,
        session: UploadSession,
        state: TransferState,
        starts: list[int],
        sizes: list[int],
        stats: UploadStats,
        progress_callback: Optional[Callable[[UploadStats], None]],
    ) -> int:
        """Send one open file; return the manifest index to continue with."""
        start = starts[state.file_index]
        size = sizes[state.file_index]
        self._seek(fs, entry, state.offset - start)

        while True:
            position = state.offset - start
            chunk = self._read(fs, entry, min(session.chunk_size, size - position))
            if not chunk:
                return state.file_index + 1

            try:
                status = self._append(session, state.offset, chunk)
            except ProtocolOffsetMismatch as e:
                self._count_correction(state, e)
                logger.warning(f"Offset error: changing from {state.offset} to {e.offset}")
                stats.offset_resyncs += 1
                target = self._locate(e.offset, starts, sizes)
                state.offset = e.offset
                stats.uploaded_bytes = state.offset
                if target != state.file_index:
                    return target
                self._seek(fs, entry, state.offset - start)
                continue
            except ProtocolChunkSizeMismatch as e:
                self._count_correction(state, e)
                logger.warning(
                    f"Chunk size error: changing from {session.chunk_size} to {e.chunk_size}"
                )
                stats.chunk_resizes += 1
                session.chunk_size = e.chunk_size
                self._seek(fs, entry, state.offset - start)
                continue

            state.corrections = 0
            state.offset += len(chunk)
            stats.uploaded_bytes = state.offset
            stats.chunks_completed += 1
            logger.debug(f"Chunk of {len(chunk)} bytes acknowledged, offset {state.offset}")

            if progress_callback:
                progress_callback(stats.snapshot())

            if status == STATUS_CREATED:
                state.completed = True
                return state.file_index

    def _count_correction(self, state: TransferState, error: Exception) -> None:
        state.corrections += 1
        if state.corrections > self.max_corrections:
            raise TransportError(
                f"Gave up after {self.max_corrections} corrections without progress: {error}",
                status_code=getattr(error, "status_code", None),
            ) from error

    @staticmethod
    def _locate(offset: int, starts: list[int], sizes: list[int]) -> int:
        """Return the manifest index holding a session offset."""
        for index, (start, size) in enumerate(zip(starts, sizes)):
            if offset < start + size:
                return index
        if offset == starts[-1] + sizes[-1]:
            return len(sizes) - 1
        raise TransportError(
            f"Server reported offset {offset} beyond the {starts[-1] + sizes[-1]} bytes announced"
        )

    @staticmethod
    def _open(entry: ManifestEntry) -> IO[bytes]:
        try:
            return open(entry.path, "rb")
        except OSError as e:
            raise LocalFileError(
                f"Cannot open {entry.label} file {entry.path}: {e}", path=entry.path
            ) from e

    @staticmethod
    def _seek(fs: IO[bytes], entry: ManifestEntry, position: int) -> None:
        try:
            fs.seek(position)
        except OSError as e:
            raise LocalFileError(
                f"Cannot seek {entry.label} file {entry.path} to {position}: {e}",
                path=entry.path,
            ) from e

    @staticmethod
    def _read(fs: IO[bytes], entry: ManifestEntry, size: int) -> bytes:
        if size <= 0:
            return b""
        try:
            return fs.read(size)
        except OSError as e:
            raise LocalFileError(
                f"Cannot read {entry.label} file {entry.path}: {e}", path=entry.path
            ) from e

    def _append(self, session: UploadSession, offset: int, data: bytes) -> int:
        """Send one chunk and return 200 or 201.

        Any other status is a correction when it carries ``Offset`` or
        ``Max-Request-Size``, and a failure otherwise.

        Raises:
            ProtocolOffsetMismatch: If the server asks for another offset
            ProtocolChunkSizeMismatch: If the server asks for smaller chunks
            TransportError: On any other failure
        """
        headers = {
            HEADER_REQUEST_TYPE: REQUEST_TYPE_APPEND,
            HEADER_ID: session.session_id,
            HEADER_OFFSET: str(offset),
            "Content-Type": "application/octet-stream",
            **self.headers,
        }

        try:
            req = Request(session.upload_url, data=data, headers=headers, method="POST")
            with urlopen(req, timeout=self.timeout) as response:
                status = response.status
                response_headers = response.headers
                content = response.read()
        except HTTPError as e:
            raise self._rejection(offset, e.code, e.headers or {}, e.read(), e.reason) from e
        except (URLError, OSError, HTTPException, ValueError) as e:
            raise TransportError(f"Failed to upload chunk at offset {offset}: {e}") from e

        if status in (STATUS_OK, STATUS_CREATED):
            return status
        raise self._rejection(
            offset, status, response_headers, content, f"unexpected status {status}"
        )

    @staticmethod
    def _rejection(offset, status, response_headers, content, reason) -> Exception:
        """Build the error for a chunk the server did not acknowledge."""
        try:
            new_offset = parse_int_header(response_headers.get(HEADER_OFFSET), minimum=0)
            new_chunk_size = parse_int_header(
                response_headers.get(HEADER_MAX_REQUEST_SIZE), minimum=1
            )
        except ValueError as e:
            return TransportError(
                f"Invalid correction header in response to chunk at offset {offset}: {e}",
                status_code=status,
                response_content=content,
            )

        if new_offset is not None:
            return ProtocolOffsetMismatch(new_offset, status_code=status)
        if new_chunk_size is not None:
            return ProtocolChunkSizeMismatch(new_chunk_size, status_code=status)
        return TransportError(
            f"Failed to upload chunk at offset {offset}: {reason}",
            status_code=status,
            response_content=content,
        )
