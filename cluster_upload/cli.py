"""Command line entry point: upload a video or a model bundle to the cluster."""

import argparse
import logging
from typing import Optional

from cluster_upload.client.stats import UploadStats
from cluster_upload.config import UploaderConfig
from cluster_upload.exceptions import LocalFileError, SessionInitFailed, UploadFailed

logger = logging.getLogger("cluster_upload")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="cluster-upload",
        description="Upload a video or a model bundle to the storage cluster.",
    )
    p.add_argument("--mode", choices=["video", "model"], required=True, help="Mode of operation")
    p.add_argument("--video", help="Path to video file")
    p.add_argument("--model", help="Path to model file")
    p.add_argument("--config", help="Path to model config file")
    p.add_argument("--code", help="Path to model code file")
    p.add_argument("--config-file", help="JSON file with uploader settings")
    p.add_argument("--chunk-size", type=int, help="Chunk size in bytes")
    p.add_argument("--max-retries", type=int, help="Trials after the first one")
    p.add_argument("--retry-delay", type=float, help="Seconds between trials")
    p.add_argument("--timeout", type=float, help="Request timeout in seconds")
    p.add_argument("--progress", action="store_true", help="Print a progress bar")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("masters", nargs="*", metavar="MASTER", help="Master node addresses")
    return p


def progress_bar(stats: UploadStats) -> None:
    """Display upload progress."""
    bar_length = 50
    filled = int(bar_length * stats.progress_percent / 100)
    bar = "=" * filled + "-" * (bar_length - filled)
    print(
        f"\rProgress: [{bar}] {stats.progress_percent:.1f}% "
        f"({stats.uploaded_bytes}/{stats.total_bytes} bytes)",
        end="",
        flush=True,
    )
    if stats.uploaded_bytes >= stats.total_bytes:
        print()


def load_config(args: argparse.Namespace, parser: argparse.ArgumentParser) -> UploaderConfig:
    try:
        config = (
            UploaderConfig.from_file(args.config_file) if args.config_file else UploaderConfig()
        )
        config = config.merged(
            masters=args.masters or None,
            chunk_size=args.chunk_size,
            max_retries=args.max_retries,
            retry_delay=args.retry_delay,
            timeout=args.timeout,
        )
    except (OSError, ValueError) as e:
        parser.error(f"invalid configuration: {e}")

    if not config.masters:
        parser.error("No masters ip provided")
    return config


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.mode == "model":
        for flag in ("model", "config", "code"):
            if not getattr(args, flag):
                parser.error(f"{flag} flag wasn't provided")
    elif not args.video:
        parser.error("video flag wasn't provided")

    config = load_config(args, parser)
    client = config.create_client()
    callback = progress_bar if args.progress else None

    try:
        if args.mode == "model":
            result = client.upload_model(args.model, args.config, args.code, callback)
        else:
            result = client.upload_video(args.video, callback)
    except (UploadFailed, SessionInitFailed, LocalFileError) as e:
        logger.error(f"Upload failed: {e}")
        return 1

    logger.info(
        f"Uploaded {result.bytes_sent} bytes in session {result.session_id} "
        f"after {result.trials} trial(s)"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
