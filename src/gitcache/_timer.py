"""Named duration timers for long-running operations."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager

logger = logging.getLogger("gitcache.timer")


@contextmanager
def timed(name: str) -> Iterator[None]:
    """Log how long the ``with`` block took.

    The closing log line is emitted exactly once, whether the block
    returns or raises.
    """
    start = time.perf_counter()
    logger.debug("%s: started", name)
    try:
        yield
    except BaseException:
        elapsed = (time.perf_counter() - start) * 1000
        logger.warning("%s: failed after %.1f ms", name, elapsed)
        raise
    else:
        elapsed = (time.perf_counter() - start) * 1000
        logger.debug("%s: %.1f ms", name, elapsed)
