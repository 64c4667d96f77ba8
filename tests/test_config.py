"""Tests for uploader configuration."""

import json
import os

import pytest

from cluster_upload import UploadClient
from cluster_upload.config import UploaderConfig


class TestUploaderConfig:
    """Tests for UploaderConfig."""

    def test_defaults(self):
        """Test default configuration values."""
        config = UploaderConfig()
        assert config.masters == []
        assert config.chunk_size == 4 * 1024 * 1024
        assert config.max_retries == 3
        assert config.retry_delay == 10.0
        assert config.retry_session_init is False
        assert config.retry_local_file_errors is False

    def test_from_dict_ignores_unknown_keys(self):
        """Test unknown keys are ignored."""
        config = UploaderConfig.from_dict(
            {"masters": ["http://m1"], "chunk_size": "1024", "log_level": "debug"}
        )
        assert config.masters == ["http://m1"]
        assert config.chunk_size == 1024

    def test_single_master_string(self):
        """Test a single master given as a string."""
        assert UploaderConfig(masters="http://m1").masters == ["http://m1"]

    def test_from_file(self, temp_dir, monkeypatch):
        """Test loading a JSON file with environment variables."""
        monkeypatch.setenv("CLUSTER_TOKEN", "secret")
        path = os.path.join(temp_dir, "uploader.json")
        with open(path, "w") as f:
            json.dump(
                {
                    "masters": ["http://m1:8000", "http://m2:8000"],
                    "max_retries": 5,
                    "retry_delay": 0.5,
                    "headers": {"Authorization": "Bearer $CLUSTER_TOKEN"},
                },
                f,
            )

        config = UploaderConfig.from_file(path)

        assert config.masters == ["http://m1:8000", "http://m2:8000"]
        assert config.max_retries == 5
        assert config.retry_delay == 0.5
        assert config.headers == {"Authorization": "Bearer secret"}

    def test_from_file_rejects_non_object(self, temp_dir):
        """Test a JSON file that is not an object."""
        path = os.path.join(temp_dir, "uploader.json")
        with open(path, "w") as f:
            json.dump(["http://m1"], f)

        with pytest.raises(ValueError):
            UploaderConfig.from_file(path)

    @pytest.mark.parametrize(
        "kwargs",
        [{"chunk_size": 0}, {"max_retries": -1}, {"retry_delay": -1}, {"timeout": 0}],
    )
    def test_invalid_values(self, kwargs):
        """Test validation of configuration values."""
        with pytest.raises(ValueError):
            UploaderConfig(**kwargs)

    def test_merged_skips_none(self):
        """Test overrides left as None keep the file value."""
        config = UploaderConfig(masters=["http://m1"], max_retries=5)
        merged = config.merged(masters=None, max_retries=1, chunk_size=None)

        assert merged.masters == ["http://m1"]
        assert merged.max_retries == 1
        assert config.max_retries == 5

    def test_create_client(self):
        """Test building a client from the configuration."""
        config = UploaderConfig(
            masters=["http://m1", "http://m2"],
            chunk_size=2048,
            max_retries=1,
            retry_delay=2.0,
            backoff_factor=2.0,
            headers={"X-API-Key": "key"},
            retry_local_file_errors=True,
        )

        client = config.create_client()

        assert isinstance(client, UploadClient)
        assert client.masters.masters == ("http://m1", "http://m2")
        assert client.negotiator.chunk_size == 2048
        assert client.headers == {"X-API-Key": "key"}
        assert client.retry_policy.attempts == 2
        assert client.retry_policy.delay_for(1) == 4.0
        assert client.retry_policy.retry_local_file_errors is True

    def test_create_client_without_masters(self):
        """Test a client needs at least one master."""
        with pytest.raises(ValueError):
            UploaderConfig().create_client()
