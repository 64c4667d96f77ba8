"""Tests for the exception classes."""

from cluster_upload.exceptions import (
    IncompleteUploadError,
    LocalFileError,
    MasterUnreachable,
    ProtocolChunkSizeMismatch,
    ProtocolOffsetMismatch,
    SessionInitFailed,
    TransportError,
    UploadError,
    UploadFailed,
)


class TestExceptions:
    """Test custom exception classes."""

    def test_upload_error_basic(self):
        """Test UploadError with a message."""
        error = UploadError("Test error")
        assert str(error) == "Test error"
        assert error.message == "Test error"
        assert error.status_code is None
        assert error.response_content is None

    def test_upload_error_full(self):
        """Test UploadError with status and content."""
        error = UploadError("Test error", status_code=500, response_content=b"Server error")
        assert error.status_code == 500
        assert error.response_content == b"Server error"

    def test_upload_error_default_message(self):
        """Test UploadError default message."""
        error = UploadError(None, status_code=404)
        assert "404" in str(error)

    def test_hierarchy(self):
        """Test exception hierarchy."""
        for cls in (
            MasterUnreachable,
            SessionInitFailed,
            TransportError,
            IncompleteUploadError,
            UploadFailed,
        ):
            assert issubclass(cls, UploadError)

    def test_local_file_error_keeps_path(self):
        """Test LocalFileError path attribute."""
        error = LocalFileError("Cannot open", path="/tmp/clip.mp4")
        assert error.path == "/tmp/clip.mp4"
        assert isinstance(error, UploadError)

    def test_protocol_corrections(self):
        """Test correction exceptions carry their values."""
        offset_error = ProtocolOffsetMismatch(1024, status_code=409)
        assert offset_error.offset == 1024
        assert offset_error.status_code == 409
        assert "1024" in str(offset_error)

        size_error = ProtocolChunkSizeMismatch(1048576, status_code=413)
        assert size_error.chunk_size == 1048576
        assert size_error.status_code == 413
