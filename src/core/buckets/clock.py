"""
Clock skew compensation for signed URL expirations.

Signed URLs carry an absolute expiry timestamp that the storage service
checks against its own clock. If the local clock drifts, URLs expire
early or late. ClockSynchronizer asks the service for its time once
(via the Date header of a cheap bucket request), remembers the offset
and applies it to every later reading.

A failed or slow probe is not an error: the offset falls back to 0,
which is correct for any host whose clock is already in sync.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0

# A probe returns the remote Date header (RFC 7231 string) or a datetime
RemoteTime = Union[str, datetime]
ClockProbe = Callable[[], RemoteTime]


def parse_remote_time(value: RemoteTime) -> int:
    """Convert a Date header or datetime into epoch seconds."""
    if isinstance(value, datetime):
        return int(value.timestamp())
    if not value:
        raise ValueError("Empty Date header")
    return int(parsedate_to_datetime(value).timestamp())


class ClockSynchronizer:
    """
    Local wall-clock adjusted by a lazily computed remote offset.

    The offset is computed at most once until invalidate() is called.
    Two threads may race through the first probe; whichever finishes
    first stores its offset and the other result is discarded, so the
    stored value is always one complete measurement.
    """

    def __init__(
        self,
        probe: ClockProbe,
        timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._probe = probe
        self._timeout_seconds = timeout_seconds
        self._wall_clock = wall_clock
        self._offset: Optional[int] = None
        self._lock = threading.Lock()

    @property
    def offset(self) -> Optional[int]:
        """Seconds to add to local time, or None before the first probe."""
        with self._lock:
            return self._offset

    def now(self) -> int:
        """Current epoch seconds as the remote service sees them."""
        offset = self.offset
        if offset is None:
            offset = self._synchronize()
        return int(self._wall_clock()) + offset

    def invalidate(self) -> None:
        """Forget the offset so the next now() probes again."""
        with self._lock:
            self._offset = None

    def _synchronize(self) -> int:
        measured = self._measure_offset()
        with self._lock:
            if self._offset is None:
                self._offset = measured
            return self._offset

    def _measure_offset(self) -> int:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="clock-probe")
        try:
            local_before = int(self._wall_clock())
            future = executor.submit(self._probe)
            remote = parse_remote_time(future.result(timeout=self._timeout_seconds))
        except FutureTimeoutError:
            logger.warning(
                "Remote time probe timed out, using local clock",
                extra={"timeout_seconds": self._timeout_seconds},
            )
            return 0
        except Exception as e:
            logger.warning(
                "Remote time probe failed, using local clock",
                extra={"error": str(e)},
            )
            return 0
        finally:
            # don't wait for a probe stuck on the network
            executor.shutdown(wait=False)

        offset = remote - local_before
        logger.debug("Computed clock offset", extra={"offset_seconds": offset})
        return offset
