from __future__ import annotations
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from dataclasses import dataclass
from pathlib import Path
from concurrent.futures import ThreadPoolExecutor, as_completed
import logging
import threading

import requests

from .core import DEFAULT_TIMEOUT
from .errors import diagnostics_logger
from .utils import ensure_dir, local_name_for, object_url

DEFAULT_CONCURRENCY = 30
CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class FetchOutcome:
    key: str
    url: str
    ok: bool
    path: Optional[Path] = None
    size: int = 0
    error: Optional[str] = None


class ProgressCounter:
    """
    Completion counter shared by the tasks of one bulk run.

    `reset` starts a run; after that `increment` is the only mutator.
    `on_tick` (e.g. a tqdm bar's update) is called under the same lock, so
    the display never runs ahead of the count.
    """

    def __init__(self, total: int = 0, on_tick: Optional[Callable[[int], object]] = None):
        self.total = total
        self._completed = 0
        self._on_tick = on_tick
        self._lock = threading.Lock()

    def reset(self, total: int) -> None:
        with self._lock:
            self.total = total
            self._completed = 0

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    def increment(self) -> int:
        with self._lock:
            self._completed += 1
            if self._on_tick is not None:
                self._on_tick(1)
            return self._completed


def save_stream(key: str, chunks: Iterable[bytes], dst_root: str | Path = ".") -> Tuple[Path, int]:
    """
    Write chunks to dst_root/<basename of key>, overwriting any existing file.
    Not atomic: a failure mid-write leaves a partial file behind.
    """
    dst = Path(dst_root) / local_name_for(key)
    ensure_dir(dst.parent)
    written = 0
    with open(dst, "wb") as f:
        for chunk in chunks:
            if chunk:
                f.write(chunk)
                written += len(chunk)
    return dst, written


def fetch_one(
    session,
    base_url: str,
    key: str,
    dst_root: str | Path = ".",
    timeout: float = DEFAULT_TIMEOUT,
    log: Optional[logging.Logger] = None,
) -> FetchOutcome:
    """
    GET base_url/key and store the body under the key's basename.
    Never raises for network, HTTP or local write failures; the outcome says what happened.
    """
    log = log or diagnostics_logger(__name__)
    url = object_url(base_url, key)
    try:
        with session.get(url, stream=True, timeout=timeout) as r:
            if r.status_code != 200:
                log.warning("Failed to download key %s, status code: %d", key, r.status_code)
                return FetchOutcome(key, url, ok=False, error=f"HTTP {r.status_code}")
            path, size = save_stream(key, r.iter_content(CHUNK_SIZE), dst_root)
    except requests.RequestException as e:
        log.warning("Failed to download key %s: %s", key, e)
        return FetchOutcome(key, url, ok=False, error=str(e))
    except OSError as e:
        log.warning("Failed to save content for key %s: %s", key, e)
        return FetchOutcome(key, url, ok=False, error=str(e))
    log.debug("Saved %s -> %s (%d bytes)", url, path, size)
    return FetchOutcome(key, url, ok=True, path=path, size=size)


def fetch_all(
    session,
    base_url: str,
    keys: Sequence[str],
    concurrency: int = DEFAULT_CONCURRENCY,
    dst_root: str | Path = ".",
    counter: Optional[ProgressCounter] = None,
    timeout: float = DEFAULT_TIMEOUT,
    log: Optional[logging.Logger] = None,
) -> Dict[str, object]:
    """
    Fetch every key with at most `concurrency` requests in flight.

    The submitting loop takes a permit before each task and blocks while all
    permits are held; a task gives its permit back only after its file is
    written (or the attempt failed). Every task ticks `counter` exactly once.
    Returns once all tasks have finished.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    log = log or diagnostics_logger(__name__)
    keys = list(keys)
    counter = counter if counter is not None else ProgressCounter()
    counter.reset(len(keys))

    downloaded: List[Tuple[str, Path]] = []
    errors: List[str] = []
    total_bytes = 0

    if keys:
        permits = threading.BoundedSemaphore(concurrency)

        def _do(key: str) -> FetchOutcome:
            try:
                return fetch_one(session, base_url, key, dst_root=dst_root, timeout=timeout, log=log)
            finally:
                try:
                    counter.increment()
                finally:
                    permits.release()

        with ThreadPoolExecutor(max_workers=concurrency) as ex:
            futs = {}
            for key in keys:
                permits.acquire()
                try:
                    futs[ex.submit(_do, key)] = key
                except Exception:
                    permits.release()
                    raise
            for f in as_completed(futs):
                try:
                    outcome = f.result()
                except Exception as e:
                    log.error("Unexpected failure for key %s: %s", futs[f], e)
                    errors.append(f"{futs[f]}: {e}")
                    continue
                if outcome.ok:
                    downloaded.append((outcome.key, outcome.path))
                    total_bytes += outcome.size
                else:
                    errors.append(f"{outcome.key}: {outcome.error}")

    downloaded.sort(key=lambda x: x[0])
    return {
        "downloaded": [(k, str(p)) for (k, p) in downloaded],
        "errors": errors,
        "stats": {
            "base_url": base_url,
            "dst_root": str(dst_root),
            "concurrency": concurrency,
            "total": len(keys),
            "completed": counter.completed,
            "downloaded": len(downloaded),
            "errors_count": len(errors),
            "bytes": total_bytes,
        },
    }


def fetch_single(
    session,
    base_url: str,
    key: str,
    dst_root: str | Path = ".",
    timeout: float = DEFAULT_TIMEOUT,
    log: Optional[logging.Logger] = None,
    echo: Callable[[str], object] = print,
) -> FetchOutcome:
    outcome = fetch_one(session, base_url, key, dst_root=dst_root, timeout=timeout, log=log)
    if outcome.ok:
        echo(f"Downloaded {key}")
    else:
        echo(f"Failed to download {key}")
    return outcome
