"""Progress counters for one upload trial."""

import time
from dataclasses import dataclass, replace


@dataclass
class UploadStats:
    """Progress of the bytes a data node has acknowledged.

    ``uploaded_bytes`` follows the session offset, so it can move backwards
    when the data node resyncs the transfer to an earlier offset.

    Attributes:
        total_bytes: Combined size of every manifest file
        uploaded_bytes: Session offset last acknowledged or corrected to
        chunks_completed: Append requests answered with 200 or 201
        offset_resyncs: Offset corrections applied
        chunk_resizes: Chunk size corrections applied
        start_time: Timestamp when the trial started transferring
    """

    total_bytes: int
    uploaded_bytes: int = 0
    chunks_completed: int = 0
    offset_resyncs: int = 0
    chunk_resizes: int = 0
    start_time: float = 0.0

    def __post_init__(self):
        if self.start_time == 0.0:
            self.start_time = time.time()

    def snapshot(self) -> "UploadStats":
        """Return a copy safe to hand to callbacks."""
        return replace(self)

    @property
    def corrections(self) -> int:
        return self.offset_resyncs + self.chunk_resizes

    @property
    def elapsed_time(self) -> float:
        """Seconds since the transfer started."""
        return time.time() - self.start_time

    @property
    def upload_speed_mbps(self) -> float:
        """Acknowledged megabytes per second."""
        elapsed = self.elapsed_time
        if elapsed <= 0:
            return 0.0
        return self.uploaded_bytes / elapsed / (1024 * 1024)

    @property
    def progress_percent(self) -> float:
        """Share of the manifest acknowledged, capped at 100."""
        if self.total_bytes <= 0:
            return 0.0
        return min(self.uploaded_bytes, self.total_bytes) * 100 / self.total_bytes
