"""Wall-clock bound for blocking calls to the oracle and job providers.

HTTP client timeouts apply per connect and per read, so a server that keeps
trickling bytes can hold a call open far longer. The call runs on a worker
thread and the caller stops waiting once the deadline passes; the abandoned
thread finishes on its own client timeout.
"""
from __future__ import annotations

import concurrent.futures
from typing import Callable, TypeVar

from placement_engine.exceptions import UpstreamUnavailable
from placement_engine.log import get_logger

log = get_logger(__name__)

T = TypeVar("T")

MAX_PENDING_CALLS = 32

_pool = concurrent.futures.ThreadPoolExecutor(
    max_workers=MAX_PENDING_CALLS, thread_name_prefix="external-call",
)


def call_with_deadline(fn: Callable[[], T], seconds: float, what: str) -> T:
    """Run ``fn`` and return its result, or raise UpstreamUnavailable after ``seconds``.

    Exceptions raised by ``fn`` propagate unchanged.
    """
    future = _pool.submit(fn)
    try:
        return future.result(timeout=seconds)
    except concurrent.futures.TimeoutError:
        future.cancel()
        log.warning("%s exceeded %.1fs, abandoning", what, seconds)
        raise UpstreamUnavailable(f"{what} exceeded {seconds:.1f}s") from None
