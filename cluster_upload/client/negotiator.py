"""Upload session negotiation with masters and data nodes."""

import logging
from dataclasses import dataclass
from http.client import HTTPException
from typing import Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from cluster_upload.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_TIMEOUT,
    HEADER_FILENAME,
    HEADER_FILETYPE,
    HEADER_ID,
    HEADER_MAX_REQUEST_SIZE,
    HEADER_REQUEST_TYPE,
    REQUEST_TYPE_INIT,
    STATUS_CREATED,
    STATUS_OK,
)
from cluster_upload.exceptions import MasterUnreachable, SessionInitFailed, TransportError
from cluster_upload.manifest import TransferManifest

logger = logging.getLogger(__name__)


def parse_int_header(value: Optional[str], minimum: int = 0) -> Optional[int]:
    """Parse a decimal header value.

    Returns:
        The parsed value, or None when the header is absent

    Raises:
        ValueError: If the value is not an integer >= minimum
    """
    if value is None or value == "":
        return None
    number = int(value.strip())
    if number < minimum:
        raise ValueError(f"{number} is below {minimum}")
    return number


@dataclass
class UploadSession:
    """Server-side upload context opened for one trial.

    Attributes:
        session_id: Opaque identifier returned by the data node
        upload_url: Data node address receiving the append requests
        chunk_size: Maximum bytes per append request; the server may lower it
    """

    session_id: str
    upload_url: str
    chunk_size: int = DEFAULT_CHUNK_SIZE


class SessionNegotiator:
    """Asks a master for a data node and opens an upload session on it.

    Example:
        >>> negotiator = SessionNegotiator(chunk_size=1024 * 1024)
        >>> upload_url = negotiator.discover_upload_address("http://master:8000")
        >>> session = negotiator.open_session(
        ...     upload_url, TransferManifest.for_video("clip.mp4")
        ... )
        >>> session.session_id
        's1'
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[dict[str, str]] = None,
    ):
        """Initialize the negotiator.

        Args:
            chunk_size: Chunk size used when the data node suggests none
            timeout: Socket timeout for every request in seconds
            headers: Optional custom headers to include in all requests

        Raises:
            ValueError: If chunk_size is less than 1
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1 byte, got {chunk_size}")
        self.chunk_size = int(chunk_size)
        self.timeout = timeout
        self.headers = headers or {}

    def discover_upload_address(self, master_url: str) -> str:
        """Ask a master for the address of a data node.

        Args:
            master_url: Address of the master to query

        Returns:
            Upload address of the data node

        Raises:
            MasterUnreachable: On transport failure, non-200 status or empty answer
        """
        try:
            req = Request(master_url, headers=dict(self.headers), method="GET")
            with urlopen(req, timeout=self.timeout) as response:
                status = response.status
                body = response.read()
        except HTTPError as e:
            content = e.read()
            raise MasterUnreachable(
                content.decode("utf-8", "replace").strip() or f"Master returned {e.code}",
                status_code=e.code,
                response_content=content,
            ) from e
        except (URLError, OSError, HTTPException, ValueError) as e:
            raise MasterUnreachable(f"Cannot contact master {master_url}: {e}") from e

        detail = body.decode("utf-8", "replace").strip()
        if status != STATUS_OK:
            raise MasterUnreachable(
                detail or f"Master returned {status}", status_code=status, response_content=body
            )
        if not detail:
            raise MasterUnreachable(
                f"Master {master_url} returned an empty upload address",
                status_code=status,
                response_content=body,
            )

        logger.info(f"Updated upload url to {detail}")
        return detail

    def open_session(self, upload_url: str, manifest: TransferManifest) -> UploadSession:
        """Open an upload session for a manifest on a data node.

        Args:
            upload_url: Data node address obtained from a master
            manifest: Files that will be sent in this session

        Returns:
            The opened session

        Raises:
            LocalFileError: If a manifest file cannot be stat'ed
            SessionInitFailed: If the data node does not answer 201 with an ID
            TransportError: If the data node cannot be reached
        """
        headers = {
            HEADER_REQUEST_TYPE: REQUEST_TYPE_INIT,
            HEADER_FILENAME: manifest.filename,
            HEADER_FILETYPE: manifest.kind,
            **manifest.size_headers(),
            **self.headers,
        }

        try:
            req = Request(upload_url, headers=headers, method="POST")
            with urlopen(req, timeout=self.timeout) as response:
                status = response.status
                session_id = response.headers.get(HEADER_ID)
                max_request_size = response.headers.get(HEADER_MAX_REQUEST_SIZE)
                body = response.read()
        except HTTPError as e:
            raise SessionInitFailed(
                f"Failed to open session: {e.reason}",
                status_code=e.code,
                response_content=e.read(),
            ) from e
        except (URLError, OSError, HTTPException, ValueError) as e:
            raise TransportError(f"Cannot connect to node {upload_url}: {e}") from e

        if status != STATUS_CREATED:
            raise SessionInitFailed(
                f"Expected status {STATUS_CREATED} when opening session, got {status}",
                status_code=status,
                response_content=body,
            )
        if not session_id:
            raise SessionInitFailed(
                "Server did not return ID header", status_code=status, response_content=body
            )

        try:
            chunk_size = parse_int_header(max_request_size, minimum=1)
        except ValueError as e:
            raise SessionInitFailed(
                f"Invalid {HEADER_MAX_REQUEST_SIZE} header: {max_request_size!r}",
                status_code=status,
            ) from e

        if chunk_size is None:
            chunk_size = self.chunk_size
        else:
            logger.info(f"Chunk size {chunk_size}")

        return UploadSession(session_id=session_id, upload_url=upload_url, chunk_size=chunk_size)
