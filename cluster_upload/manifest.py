"""
Transfer manifests: which local files make up one logical upload.

A video upload sends a single file; a model upload sends the model artifact,
its configuration and its code, always in that order, inside one session.
"""

import os
from dataclasses import dataclass

from cluster_upload.exceptions import LocalFileError

VIDEO_KIND = "video"
MODEL_KIND = "model"

MODEL_UPLOAD_ORDER = ("model", "config", "code")

# Per-part size headers sent with a model session, keyed by manifest label
MODEL_SIZE_HEADERS = {
    "model": "Model-Size",
    "config": "Config-Size",
    "code": "Code-Size",
}


@dataclass(frozen=True)
class ManifestEntry:
    """One file of a manifest.

    Attributes:
        label: Role of the file inside the upload ("video", "model", ...)
        path: Local path of the file
    """

    label: str
    path: str


@dataclass(frozen=True)
class TransferManifest:
    """Ordered list of files sent in one upload session.

    Attributes:
        kind: Content kind tag sent as the ``Filetype`` header
        entries: Files in the order they are streamed
    """

    kind: str
    entries: tuple[ManifestEntry, ...]

    def __post_init__(self):
        if not self.entries:
            raise ValueError("A manifest needs at least one file")

    @classmethod
    def for_video(cls, video_path: str) -> "TransferManifest":
        """Build the manifest of a video upload."""
        return cls(kind=VIDEO_KIND, entries=(ManifestEntry("video", video_path),))

    @classmethod
    def for_model(cls, model_path: str, config_path: str, code_path: str) -> "TransferManifest":
        """Build the manifest of a model upload (model, config, code)."""
        paths = {"model": model_path, "config": config_path, "code": code_path}
        return cls(
            kind=MODEL_KIND,
            entries=tuple(ManifestEntry(label, paths[label]) for label in MODEL_UPLOAD_ORDER),
        )

    @property
    def filename(self) -> str:
        """Base name of the first file, announced when the session opens."""
        return os.path.basename(self.entries[0].path)

    @property
    def labels(self) -> list[str]:
        return [entry.label for entry in self.entries]

    def file_sizes(self) -> list[int]:
        """Stat every file of the manifest.

        Returns:
            Sizes in bytes, in manifest order

        Raises:
            LocalFileError: If a file cannot be stat'ed
        """
        sizes = []
        for entry in self.entries:
            try:
                sizes.append(os.path.getsize(entry.path))
            except OSError as e:
                raise LocalFileError(
                    f"Cannot stat {entry.label} file {entry.path}: {e}", path=entry.path
                ) from e
        return sizes

    def total_size(self) -> int:
        return sum(self.file_sizes())

    def size_headers(self) -> dict[str, str]:
        """Size headers announced when opening a session.

        Video uploads only carry ``Filesize``; model uploads also carry the
        size of each part.
        """
        sizes = self.file_sizes()
        headers = {"Filesize": str(sum(sizes))}
        if self.kind == MODEL_KIND:
            for entry, size in zip(self.entries, sizes):
                header = MODEL_SIZE_HEADERS.get(entry.label)
                if header:
                    headers[header] = str(size)
        return headers
