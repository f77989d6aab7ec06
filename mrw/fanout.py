"""Bounded parallel fan-out of independent per-item remote fetches.

Every batch of per-ID lookups (users, approvals, projects) goes through
:func:`fetch_all`, which runs the fetches on a thread pool (the calls are
I/O bound) and merges the results into one dict keyed by the input IDs.

Two failure policies:

- ``STRICT``: the first failing item aborts the batch and its exception is
  re-raised unchanged. Queued items are cancelled and running ones are waited
  for, so no sibling work continues after the caller sees the error.
- ``LENIENT``: a failing item is dropped from the result. Exceptions listed
  in ``fatal`` (auth failures, cancellation) still abort the batch.
"""

import logging
import threading
from collections.abc import Callable, Hashable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import TypeVar

from mrw.errors import AuthError, BatchCancelled

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

DEFAULT_MAX_WORKERS = 8
DEFAULT_FATAL: tuple[type[BaseException], ...] = (AuthError, BatchCancelled)
CANCEL_POLL_SECONDS = 0.1


class FetchPolicy(str, Enum):
    STRICT = "strict"
    LENIENT = "lenient"


def fetch_all(
    keys: Iterable[K],
    fetch: Callable[[K], V],
    *,
    policy: FetchPolicy = FetchPolicy.STRICT,
    max_workers: int = DEFAULT_MAX_WORKERS,
    cancel: threading.Event | None = None,
    fatal: tuple[type[BaseException], ...] = DEFAULT_FATAL,
) -> dict[K, V]:
    """Run ``fetch`` for every distinct key and return ``{key: result}``.

    Under STRICT the returned keys are exactly the distinct input keys; under
    LENIENT they are a subset. ``cancel`` lets the caller abort the whole batch;
    a set token raises :class:`BatchCancelled` under either policy. The token is
    polled every CANCEL_POLL_SECONDS even while every fetch is blocked; queued
    keys are then never fetched, but running fetches cannot be interrupted and
    are waited for before the error is raised.
    """
    unique = list(dict.fromkeys(keys))
    if not unique:
        return {}
    if cancel is not None and cancel.is_set():
        raise BatchCancelled("batch cancelled before start")

    results: dict[K, V] = {}
    lock = threading.Lock()
    stop = threading.Event()

    def _run(key: K) -> None:
        if stop.is_set() or (cancel is not None and cancel.is_set()):
            raise BatchCancelled(f"batch cancelled before fetching {key!r}")
        value = fetch(key)
        with lock:
            results[key] = value

    pool = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(unique))), thread_name_prefix="mrw-fetch")
    futures: dict[Future[None], K] = {}
    try:
        futures = {pool.submit(_run, key): key for key in unique}
        pending = set(futures)
        while pending:
            done, pending = wait(pending, timeout=CANCEL_POLL_SECONDS, return_when=FIRST_COMPLETED)
            for future in done:
                key = futures[future]
                try:
                    future.result()
                except Exception as exc:
                    if policy is FetchPolicy.STRICT or isinstance(exc, fatal):
                        stop.set()
                        logger.debug("fetch of %r failed, aborting batch of %d: %s", key, len(unique), exc)
                        raise
                    logger.debug("fetch of %r failed, dropped from batch: %s", key, exc)
            if cancel is not None and cancel.is_set():
                stop.set()
                logger.debug("batch cancelled by caller, %d fetches unfinished", len(pending))
                raise BatchCancelled("batch cancelled by caller")
    finally:
        for future in futures:
            future.cancel()
        pool.shutdown(wait=True, cancel_futures=True)

    return results
