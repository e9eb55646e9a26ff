from __future__ import annotations

from itertools import chain
from typing import Iterable, Iterator, Optional

DEFAULT_PAGE_SIZE = 1000


def iter_prefix_pages(
    client, bucket: str, prefix: str, page_size: int = DEFAULT_PAGE_SIZE
) -> Iterator[list[str]]:
    """Yield the keys under ``prefix`` one listing page at a time."""
    continuation: Optional[str] = None
    while True:
        kwargs = {
            "Bucket": bucket,
            "Prefix": prefix,
            "MaxKeys": page_size,
        }
        if continuation:
            kwargs["ContinuationToken"] = continuation
        response = client.list_objects_v2(**kwargs)
        keys: list[str] = []
        for entry in response.get("Contents", []):
            key = entry.get("Key")
            if not key:
                continue
            # Some S3-compatible stores ignore Prefix on continuation requests.
            if prefix and not key.startswith(prefix):
                continue
            keys.append(key)
        yield keys
        if not response.get("IsTruncated"):
            break
        continuation = response.get("NextContinuationToken")
        if not continuation:
            break


def iter_prefix_keys(
    client, bucket: str, prefix: str, page_size: int = DEFAULT_PAGE_SIZE
) -> Iterator[str]:
    """Lazily yield every key under ``prefix`` in listing order.

    Pagination is followed transparently. The generator is single pass: the
    first request is sent on the first ``next()`` and a new call is needed to
    list the prefix again.
    """
    for keys in iter_prefix_pages(client, bucket, prefix, page_size):
        yield from keys


def chain_prefix_keys(
    client,
    bucket: str,
    prefixes: Iterable[str],
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Iterator[str]:
    """Concatenate the listings of several prefixes.

    A prefix is only listed once the previous one is exhausted.
    """
    return chain.from_iterable(
        iter_prefix_keys(client, bucket, prefix, page_size) for prefix in prefixes
    )
