from __future__ import annotations

import argparse
import logging
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.logging import RichHandler

from .connect import AuthenticationError, StaticCredentials, connect_from_inputs
from .download import DownloadError, S3Downloader, download

LOGGER_NAME = "s3pull"


def _parse_keys(values: list[str]) -> list[str]:
    keys: list[str] = []
    for value in values:
        for part in value.split(","):
            key = part.strip()
            if key:
                keys.append(key)
    return keys


def _log_level(verbose: int, quiet: bool) -> int:
    if quiet:
        return logging.ERROR
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING


def _setup_logging(level: int, console: Console) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.addHandler(
        RichHandler(console=console, show_path=False, rich_tracebacks=True)
    )
    logger.propagate = False
    return logger


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3pull",
        description="Download objects or whole prefixes from an S3 bucket",
    )
    parser.add_argument("bucket", help="Bucket to download from")
    parser.add_argument(
        "keys",
        nargs="+",
        help="Object keys or prefixes (space or comma separated)",
    )
    parser.add_argument(
        "-d",
        "--download-path",
        help="Local file (single object) or directory (prefixes) to write to",
    )
    parser.add_argument("--region", help="AWS region of the bucket")
    parser.add_argument(
        "--endpoint",
        help="Custom S3 endpoint URL; the region is then only used for signing",
    )
    style = parser.add_mutually_exclusive_group()
    style.add_argument(
        "--path-style",
        dest="path_style",
        action="store_const",
        const=True,
        default=None,
        help="Use path-style addressing (bucket in the URL path)",
    )
    style.add_argument(
        "--virtual-style",
        dest="path_style",
        action="store_const",
        const=False,
        help="Use virtual-hosted addressing (bucket as subdomain)",
    )
    parser.add_argument(
        "--strip-prefix",
        action="store_true",
        help="Drop the requested prefix from local paths",
    )
    parser.add_argument("-p", "--profile", help="AWS profile to use")
    parser.add_argument("--access-key", help="Static access key id")
    parser.add_argument("--secret-key", help="Static secret access key")
    parser.add_argument(
        "--list",
        action="store_true",
        help="Print the keys under the given prefixes instead of downloading",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log progress (-vv for debug output)",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    return parser


def _run_list_command(
    args: argparse.Namespace,
    keys: list[str],
    credentials: Optional[StaticCredentials],
    logger: logging.Logger,
) -> int:
    client = connect_from_inputs(
        auth=credentials,
        region=args.region,
        endpoint=args.endpoint,
        path_style=args.path_style,
        profile=args.profile,
        logger=logger,
    )
    downloader = S3Downloader(client, args.bucket, args.download_path or ".", logger=logger)
    for key in downloader.list_keys(keys):
        print(key)
    return 0


def _run_download_command(
    args: argparse.Namespace,
    keys: list[str],
    credentials: Optional[StaticCredentials],
    logger: logging.Logger,
    console: Console,
) -> int:
    report = download(
        args.bucket,
        keys,
        args.download_path,
        region=args.region,
        endpoint=args.endpoint,
        path_style=args.path_style,
        strip_prefix=args.strip_prefix,
        profile=args.profile,
        credentials=credentials,
        logger=logger,
    )
    style = "red" if report.failed else "green"
    console.print(f"[{style}]{report.summary()}[/{style}]")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    keys = _parse_keys(args.keys)
    if not keys:
        parser.error("at least one non-empty key is required")
    if bool(args.access_key) != bool(args.secret_key):
        parser.error("--access-key and --secret-key must be given together")
    if not args.list and not args.download_path:
        parser.error("--download-path is required unless --list is given")

    credentials: Optional[StaticCredentials] = None
    if args.access_key:
        credentials = StaticCredentials(args.access_key, args.secret_key)

    console = Console(stderr=True)
    logger = _setup_logging(_log_level(args.verbose, args.quiet), console)
    try:
        if args.list:
            return _run_list_command(args, keys, credentials, logger)
        return _run_download_command(args, keys, credentials, logger, console)
    except (AuthenticationError, DownloadError) as exc:
        logger.error("%s", exc)
        return 1
    except (ClientError, BotoCoreError) as exc:
        logger.error("S3 request failed: %s", exc)
        return 1
    except ValueError as exc:
        logger.error("Invalid connection settings: %s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
