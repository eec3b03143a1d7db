import logging
import time
from typing import Any, Callable, Iterable, Optional, Tuple

from .errors import NotFoundError, WaitTimeoutError

log = logging.getLogger(__name__)


class ActivationPoller:
    """
    Bounded polling on a fixed interval.

    fetch() returns (entity, status). An entity of None, or a NotFoundError
    raised by fetch, means the resource is gone: poll() returns None at once.
    Polling stops as soon as status leaves `pending`; the (entity, status)
    pair is returned even when status is not in `target`, so the caller can
    decide what an unexpected state means.
    """
    def __init__(self, interval: float = 5.0, sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.interval = interval
        self.sleep = sleep
        self.clock = clock

    def poll(self, fetch: Callable[[], Tuple[Any, Any]], pending: Iterable, target: Iterable,
             timeout: float, resource_id: str = None) -> Optional[Tuple[Any, Any]]:
        pending = frozenset(pending)
        target = frozenset(target)
        started = self.clock()
        attempt = 0
        while True:
            attempt += 1
            try:
                entity, status = fetch()
            except NotFoundError:
                log.warning("%s not found while polling", resource_id)
                return None
            if entity is None:
                return None

            if status not in pending:
                if status not in target:
                    log.warning("%s left pending state as %r", resource_id, status)
                log.debug("%s reached %r after %d attempt(s)", resource_id, status, attempt)
                return entity, status

            elapsed = self.clock() - started
            if elapsed >= timeout:
                raise WaitTimeoutError(
                    f"still {status!r} after {elapsed:.1f}s (timeout {timeout}s)",
                    elapsed=elapsed, operation="wait", resource_id=resource_id,
                )
            log.debug("%s is %r, polling again in %ss", resource_id, status, self.interval)
            self.sleep(min(self.interval, timeout - elapsed))
