from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Optional, Sequence, Union

import boto3

from .connect import AuthenticationError, StaticCredentials, connect_from_inputs
from .keys import DEFAULT_PAGE_SIZE, chain_prefix_keys, iter_prefix_keys
from .transfer import (
    OUTCOME_SKIPPED,
    OUTCOME_SUCCESS,
    TransferOutcome,
    transfer_object,
)

MODE_SINGLE = "single"
MODE_PREFIX = "prefix"

SEPARATOR = "/"

LOG = logging.getLogger(__name__)


class DownloadError(Exception):
    pass


@dataclass(frozen=True)
class DownloadTask:
    source_key: str
    destination: str


@dataclass
class DownloadReport:
    """Running tally of a download; only failed keys are kept."""

    succeeded: int = 0
    skipped: int = 0
    bytes_written: int = 0
    failed: list[str] = field(default_factory=list)

    def add(self, outcome: TransferOutcome) -> None:
        if outcome.status == OUTCOME_SUCCESS:
            self.succeeded += 1
            self.bytes_written += outcome.bytes_written
        elif outcome.status == OUTCOME_SKIPPED:
            self.skipped += 1
        else:
            self.failed.append(outcome.key)

    def summary(self) -> str:
        return (
            f"{self.succeeded} downloaded, {self.skipped} skipped, "
            f"{len(self.failed)} failed ({self.bytes_written} bytes)"
        )


def select_mode(keys: Sequence[str], strip_prefix: bool) -> str:
    """Return MODE_SINGLE when the only key is fetched as a literal object."""
    if not keys:
        raise ValueError("at least one key is required")
    if len(keys) > 1:
        return MODE_PREFIX
    key = keys[0]
    if key.endswith(SEPARATOR) or strip_prefix:
        return MODE_PREFIX
    return MODE_SINGLE


def destination_for(
    download_path: str, prefix: str, key: str, strip_prefix: bool
) -> str:
    relative = key[len(prefix) :] if strip_prefix else key
    return f"{download_path}{SEPARATOR}{relative}"


class S3Downloader:
    def __init__(
        self,
        client,
        bucket: str,
        download_path: str,
        strip_prefix: bool = False,
        logger: Optional[logging.Logger] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.client = client
        self.bucket = bucket
        self.download_path = download_path
        self.strip_prefix = strip_prefix
        self._log = logger or LOG
        self._page_size = page_size

    def _prefix_tasks(self, prefix: str) -> Iterator[DownloadTask]:
        for key in iter_prefix_keys(
            self.client, self.bucket, prefix, self._page_size
        ):
            yield DownloadTask(
                source_key=key,
                destination=destination_for(
                    self.download_path, prefix, key, self.strip_prefix
                ),
            )

    def plan(self, keys: Sequence[str]) -> Iterator[DownloadTask]:
        """Lazily yield the tasks for ``keys``, expanding prefixes in order."""
        if select_mode(keys, self.strip_prefix) == MODE_SINGLE:
            yield DownloadTask(source_key=keys[0], destination=self.download_path)
            return
        for prefix in keys:
            yield from self._prefix_tasks(prefix)

    def download_key(self, key: str, destination: str) -> TransferOutcome:
        return transfer_object(
            self.client, self.bucket, key, destination, logger=self._log
        )

    def download_prefix(self, prefix: str) -> Iterator[TransferOutcome]:
        for task in self._prefix_tasks(prefix):
            yield self.download_key(task.source_key, task.destination)

    def list_keys(self, keys: Iterable[str]) -> Iterator[str]:
        return chain_prefix_keys(self.client, self.bucket, keys, self._page_size)

    def run(self, keys: Sequence[str]) -> DownloadReport:
        keys = list(keys)
        report = DownloadReport()
        for task in self.plan(keys):
            report.add(self.download_key(task.source_key, task.destination))
        for key in report.failed:
            self._log.warning("Failed: s3://%s/%s", self.bucket, key)
        self._log.info("Finished s3://%s: %s", self.bucket, report.summary())
        return report


def download(
    bucket: str,
    keys: Sequence[str],
    download_path: str,
    region: Optional[str] = None,
    endpoint: Optional[str] = None,
    path_style: Optional[bool] = None,
    strip_prefix: bool = False,
    profile: Optional[str] = None,
    credentials: Union[tuple[str, str], StaticCredentials, None] = None,
    logger: Optional[logging.Logger] = None,
    session_factory: Callable[..., object] = boto3.session.Session,
) -> DownloadReport:
    """Connect once and download ``keys`` from ``bucket`` below ``download_path``."""
    log = logger or LOG
    select_mode(keys, strip_prefix)
    try:
        client = connect_from_inputs(
            auth=credentials,
            region=region,
            endpoint=endpoint,
            path_style=path_style,
            profile=profile,
            session_factory=session_factory,
            logger=log,
        )
    except AuthenticationError as exc:
        raise DownloadError(
            "Unable to authenticate to S3 with the available credentials. Make sure "
            "to either pass credentials or a profile, or define them in the "
            "environment variables or shared AWS config files read by boto3.\n"
            f"Detail: {exc}"
        ) from exc
    downloader = S3Downloader(
        client, bucket, download_path, strip_prefix=strip_prefix, logger=log
    )
    return downloader.run(keys)
