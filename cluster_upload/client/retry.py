"""Upload client with a bounded retry loop over master discovery and transfer."""

import enum
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from cluster_upload.client.engine import ChunkedTransferEngine
from cluster_upload.client.negotiator import SessionNegotiator
from cluster_upload.client.stats import UploadStats
from cluster_upload.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
)
from cluster_upload.exceptions import (
    LocalFileError,
    MasterUnreachable,
    SessionInitFailed,
    UploadError,
    UploadFailed,
)
from cluster_upload.manifest import TransferManifest
from cluster_upload.masters import MasterPool


class UploadState(enum.Enum):
    IDLE = "idle"
    SELECTING_MASTER = "selecting_master"
    NEGOTIATING = "negotiating"
    TRANSFERRING = "transferring"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class RetryPolicy:
    """How many trials an upload gets and how long to wait between them.

    Attributes:
        max_retries: Trials after the first one
        retry_delay: Delay before the second trial in seconds
        backoff_factor: Multiplier applied to the delay after each trial (1.0 = fixed)
        retry_session_init: Retry when the data node refuses to open a session
        retry_local_file_errors: Retry when a local file cannot be read
        sleep: Function used to wait, replaceable in tests
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY
    backoff_factor: float = 1.0
    retry_session_init: bool = False
    retry_local_file_errors: bool = False
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {self.max_retries}")
        if self.retry_delay < 0:
            raise ValueError(f"retry_delay must be non-negative, got {self.retry_delay}")
        if self.backoff_factor < 1:
            raise ValueError(f"backoff_factor must be at least 1, got {self.backoff_factor}")

    @property
    def attempts(self) -> int:
        """Total number of trials, the first one included."""
        return self.max_retries + 1

    def delay_for(self, trial: int) -> float:
        """Delay to wait after the given (zero-based) failed trial."""
        return self.retry_delay * (self.backoff_factor**trial)

    def wait(self, trial: int) -> None:
        self.sleep(self.delay_for(trial))

    def is_fatal(self, error: UploadError) -> bool:
        """Whether an error must stop the upload without further trials."""
        if isinstance(error, LocalFileError):
            return not self.retry_local_file_errors
        if isinstance(error, SessionInitFailed):
            return not self.retry_session_init
        return False


@dataclass
class UploadResult:
    """Outcome of a successful upload.

    Attributes:
        session_id: Identifier of the session that completed
        upload_url: Data node that received the files
        bytes_sent: Session offset acknowledged when the upload completed
        trials: Number of trials used, the successful one included
        stats: Statistics of the successful trial
    """

    session_id: str
    upload_url: str
    bytes_sent: int
    trials: int
    stats: UploadStats


class UploadClient:
    """Uploads videos and model bundles to the storage cluster.

    Each trial selects a master, asks it for a data node, opens a session
    there and streams the manifest. A master that cannot be contacted is
    rotated out before the next trial; other failures are retried against a
    freshly discovered data node. Trials are separated by the retry policy's
    delay.

    Example:
        >>> client = UploadClient(
        ...     ["http://master-1:8000", "http://master-2:8000"],
        ...     retry_policy=RetryPolicy(max_retries=3, retry_delay=10.0),
        ... )
        >>> result = client.upload_video("clip.mp4")
        >>> result.session_id
        's1'
    """

    def __init__(
        self,
        masters: Union[MasterPool, Iterable[str]],
        chunk_size: Union[int, float] = DEFAULT_CHUNK_SIZE,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[dict[str, str]] = None,
    ):
        """Initialize the upload client.

        Args:
            masters: Master pool, or master addresses in the order to try them
            chunk_size: Chunk size used when the data node suggests none (default: 4MB)
            retry_policy: Trials and delays (default: 3 retries, 10s apart)
            timeout: Socket timeout for every request in seconds
            headers: Optional custom headers to include in all requests

        Raises:
            ValueError: If no master is given or chunk_size is less than 1
        """
        self.masters = masters if isinstance(masters, MasterPool) else MasterPool(masters)
        self.retry_policy = retry_policy or RetryPolicy()
        self.headers = headers or {}
        self.negotiator = SessionNegotiator(
            chunk_size=int(chunk_size), timeout=timeout, headers=self.headers
        )
        self.engine = ChunkedTransferEngine(timeout=timeout, headers=self.headers)
        self.state = UploadState.IDLE
        self.logger = logging.getLogger(__name__)

    def upload_video(
        self,
        video_path: str,
        progress_callback: Optional[Callable[[UploadStats], None]] = None,
    ) -> UploadResult:
        """Upload a single video file."""
        return self.upload(TransferManifest.for_video(video_path), progress_callback)

    def upload_model(
        self,
        model_path: str,
        config_path: str,
        code_path: str,
        progress_callback: Optional[Callable[[UploadStats], None]] = None,
    ) -> UploadResult:
        """Upload a model bundle: model artifact, configuration and code, in that order."""
        return self.upload(
            TransferManifest.for_model(model_path, config_path, code_path), progress_callback
        )

    def upload(
        self,
        manifest: TransferManifest,
        progress_callback: Optional[Callable[[UploadStats], None]] = None,
    ) -> UploadResult:
        """Upload the files of a manifest, retrying failed trials.

        Args:
            manifest: Files to upload, in order
            progress_callback: Optional callback for progress updates with UploadStats

        Returns:
            Result of the successful trial

        Raises:
            LocalFileError: If a local file is unreadable and the policy makes it fatal
            SessionInitFailed: If a session is refused and the policy makes it fatal
            UploadFailed: If every trial failed
        """
        policy = self.retry_policy
        last_error: Optional[Exception] = None
        self.state = UploadState.IDLE

        for trial in range(policy.attempts):
            if trial > 0:
                delay = policy.delay_for(trial - 1)
                self.logger.info(f"Retrying in {delay:.1f}s (trial {trial + 1}/{policy.attempts})")
                policy.wait(trial - 1)

            try:
                return self._run_trial(manifest, trial, progress_callback)
            except MasterUnreachable as e:
                last_error = e
                self.logger.warning(f"Can't contact master {self.masters.select()}: {e}")
                new_master = self.masters.rotate()
                self.logger.info(f"Switched to master {new_master}")
            except UploadError as e:
                last_error = e
                if policy.is_fatal(e):
                    self.state = UploadState.FAILED
                    self.logger.error(f"Upload aborted: {e}")
                    raise
                self.logger.warning(
                    f"Trial {trial + 1}/{policy.attempts} failed while "
                    f"{self.state.value}: {e}"
                )

        self.state = UploadState.FAILED
        self.logger.error(f"Upload failed after {policy.attempts} trials")
        raise UploadFailed(
            f"Upload failed after {policy.attempts} trials: {last_error}",
            status_code=getattr(last_error, "status_code", None),
        ) from last_error

    def _run_trial(
        self,
        manifest: TransferManifest,
        trial: int,
        progress_callback: Optional[Callable[[UploadStats], None]],
    ) -> UploadResult:
        self.state = UploadState.SELECTING_MASTER
        master_url = self.masters.select()
        self.logger.info(
            f"Trial {trial + 1}/{self.retry_policy.attempts} using master {master_url}"
        )

        self.state = UploadState.NEGOTIATING
        upload_url = self.negotiator.discover_upload_address(master_url)
        session = self.negotiator.open_session(upload_url, manifest)
        self.logger.info(f"Sent initial request for {manifest.kind} with ID = {session.session_id}")

        self.state = UploadState.TRANSFERRING
        stats = UploadStats(total_bytes=manifest.total_size())
        transfer_state = self.engine.transfer(
            session, manifest, progress_callback=progress_callback, stats=stats
        )

        self.state = UploadState.SUCCESS
        self.logger.info(
            f"Upload successful in {stats.elapsed_time:.2f}s ({stats.upload_speed_mbps:.2f} MB/s, "
            f"{stats.corrections} corrections)"
        )
        return UploadResult(
            session_id=session.session_id,
            upload_url=session.upload_url,
            bytes_sent=transfer_state.offset,
            trials=trial + 1,
            stats=stats,
        )
