#!/usr/bin/env python3
"""Example upload of a video or a model bundle to the storage cluster."""

import json
import logging
import sys

from cluster_upload import RetryPolicy, UploadClient, UploadError, UploadStats


def progress_callback(stats: UploadStats):
    """Display upload progress."""
    bar_length = 50
    filled = int(bar_length * stats.progress_percent / 100)
    bar = "=" * filled + "-" * (bar_length - filled)
    print(
        f"\rProgress: [{bar}] {stats.progress_percent:.1f}% "
        f"({stats.uploaded_bytes}/{stats.total_bytes} bytes, "
        f"{stats.upload_speed_mbps:.2f} MB/s)",
        end="",
    )

    if stats.uploaded_bytes >= stats.total_bytes:
        print()


def main():
    """Run the upload example."""
    if len(sys.argv) < 3:
        print("Usage: python upload_example.py <masters_json> <video> | <model> <config> <code>")
        print(
            'Example: python upload_example.py \'["http://10.0.0.1:8000", "http://10.0.0.2:8000"]\' '
            "/path/to/video.mp4"
        )
        sys.exit(1)

    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    masters = json.loads(sys.argv[1])
    files = sys.argv[2:]

    client = UploadClient(
        masters,
        chunk_size=4 * 1024 * 1024,  # the data node may lower it
        retry_policy=RetryPolicy(max_retries=3, retry_delay=5.0, backoff_factor=2.0),
    )

    try:
        if len(files) == 3:
            result = client.upload_model(*files, progress_callback=progress_callback)
        else:
            result = client.upload_video(files[0], progress_callback=progress_callback)
    except UploadError as e:
        print(f"\nUpload failed: {e}")
        sys.exit(1)

    print("Upload complete!")
    print(f"Session ID: {result.session_id}")
    print(f"Data node: {result.upload_url}")
    print(f"Bytes sent: {result.bytes_sent} in {result.trials} trial(s)")
    print(f"Offset corrections: {result.stats.offset_resyncs}")
    print(f"Chunk size corrections: {result.stats.chunk_resizes}")


if __name__ == "__main__":
    main()
