from __future__ import annotations

import logging
import shutil
from contextlib import closing
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from botocore.exceptions import BotoCoreError, ClientError

DIRECTORY_CONTENT_TYPE = "application/x-directory"
CHUNK_SIZE = 1024 * 1024

OUTCOME_SUCCESS = "success"
OUTCOME_SKIPPED = "skipped"
OUTCOME_FAILED = "failed"

SKIP_DIRECTORY_MARKER = "directory_marker"

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferOutcome:
    key: str
    destination: str
    status: str
    reason: Optional[str] = None
    error: Optional[BaseException] = None
    bytes_written: int = 0

    @property
    def ok(self) -> bool:
        return self.status != OUTCOME_FAILED


def is_directory_marker(key: str, response: dict) -> bool:
    content_type = response.get("ContentType") or ""
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type == DIRECTORY_CONTENT_TYPE:
        return True
    # Console-created "folders" are empty keys ending in a slash.
    return key.endswith("/") and response.get("ContentLength") == 0


def _remove_partial(path: str, log: logging.Logger) -> None:
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as exc:
        log.warning("Could not remove partial download %s: %s", path, exc)


def transfer_object(
    client,
    bucket: str,
    key: str,
    destination: Union[str, Path],
    logger: Optional[logging.Logger] = None,
    chunk_size: int = CHUNK_SIZE,
) -> TransferOutcome:
    """Stream one object to ``destination``.

    Directory markers are skipped without touching the filesystem. Local
    write and remote read errors are logged and reported as a failed outcome
    instead of being raised; a partially written destination is removed.
    """
    log = logger or LOG
    dest_path = str(destination)
    try:
        response = client.get_object(Bucket=bucket, Key=key)
    except (ClientError, BotoCoreError) as exc:
        log.error("Could not download s3://%s/%s: %s", bucket, key, exc, exc_info=True)
        return TransferOutcome(key, dest_path, OUTCOME_FAILED, error=exc)

    body = response.get("Body")
    if is_directory_marker(key, response):
        if body is not None:
            body.close()
        log.debug("Skipping directory marker s3://%s/%s", bucket, key)
        return TransferOutcome(
            key, dest_path, OUTCOME_SKIPPED, reason=SKIP_DIRECTORY_MARKER
        )

    if body is None:
        error = OSError(f"no content returned for s3://{bucket}/{key}")
        log.error("Could not download s3://%s/%s: %s", bucket, key, error)
        return TransferOutcome(key, dest_path, OUTCOME_FAILED, error=error)

    opened = False
    try:
        with closing(body) as stream:
            parent = Path(dest_path).parent
            parent.mkdir(parents=True, exist_ok=True)
            with open(dest_path, "wb") as handle:
                opened = True
                shutil.copyfileobj(stream, handle, chunk_size)
                written = handle.tell()
    except (OSError, ClientError, BotoCoreError) as exc:
        log.error(
            "Could not download s3://%s/%s to %s: %s",
            bucket,
            key,
            dest_path,
            exc,
            exc_info=True,
        )
        if opened:
            _remove_partial(dest_path, log)
        return TransferOutcome(key, dest_path, OUTCOME_FAILED, error=exc)

    log.debug("Downloaded s3://%s/%s to %s (%d bytes)", bucket, key, dest_path, written)
    return TransferOutcome(key, dest_path, OUTCOME_SUCCESS, bytes_written=written)
