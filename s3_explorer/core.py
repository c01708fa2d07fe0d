from __future__ import annotations
from typing import Iterable, List, Optional
import logging
import xml.etree.ElementTree as ET

import requests

from .errors import ListingError, diagnostics_logger

DEFAULT_USER_AGENT = "s3explorer/0.1"
DEFAULT_TIMEOUT = 30.0
DEFAULT_LIMIT = 50


def get_http_session(user_agent: str = DEFAULT_USER_AGENT) -> requests.Session:
    """
    Create the requests session shared by listings and object fetches.
    Requests are unsigned; no credentials are attached.
    """
    session = requests.Session()
    session.headers.update({"User-Agent": user_agent})
    return session


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_listing(payload: bytes | str) -> List[str]:
    """
    Return the Contents/Key values of a ListBucketResult document, in order.
    Tags are matched by local name so namespaced and bare documents both work.
    """
    try:
        root = ET.fromstring(payload)
    except ET.ParseError as e:
        raise ListingError(f"invalid listing XML: {e}") from e

    keys: List[str] = []
    for elem in root.iter():
        if _local(elem.tag) != "Contents":
            continue
        for child in elem:
            if _local(child.tag) == "Key" and child.text:
                keys.append(child.text)
                break
    return keys


def list_keys(
    session,
    bucket_url: str,
    limit: int = DEFAULT_LIMIT,
    prefix_with_source: bool = False,
    timeout: float = DEFAULT_TIMEOUT,
    log: Optional[logging.Logger] = None,
) -> List[str]:
    """
    GET one bucket listing and return up to `limit` keys.
    Any failure is reported to `log` and yields an empty list.
    """
    log = log or diagnostics_logger(__name__)
    try:
        with session.get(bucket_url, timeout=timeout) as resp:
            status = resp.status_code
            payload = resp.content
    except requests.RequestException as e:
        log.warning("Failed to retrieve keys from %s: %s", bucket_url, e)
        return []

    if status != 200:
        log.warning("Failed to retrieve keys from %s, status code: %d", bucket_url, status)
        return []

    try:
        keys = parse_listing(payload)
    except ListingError as e:
        log.warning("Error parsing XML from %s: %s. Skipping.", bucket_url, e)
        return []

    keys = keys[: max(limit, 0)]
    if prefix_with_source:
        keys = [f"{bucket_url}/{k}" for k in keys]
    log.debug("Listed %d keys from %s", len(keys), bucket_url)
    return keys


def collect_keys(
    session,
    bucket_urls: Iterable[str],
    limit: int = DEFAULT_LIMIT,
    prefix_with_source: bool = True,
    timeout: float = DEFAULT_TIMEOUT,
    log: Optional[logging.Logger] = None,
) -> List[str]:
    """Concatenate the listings of several buckets; a bad source contributes nothing."""
    keys: List[str] = []
    for url in bucket_urls:
        keys.extend(
            list_keys(
                session,
                url,
                limit=limit,
                prefix_with_source=prefix_with_source,
                timeout=timeout,
                log=log,
            )
        )
    return keys
