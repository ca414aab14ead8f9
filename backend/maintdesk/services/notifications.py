"""Fire-and-forget notification dispatch.

Services call dispatch() only after their transaction commits. Notifiers run on
a small thread pool; an exception in a notifier is logged and dropped, never
retried and never propagated back into the state change that triggered it.

Delivery (push, e-mail) is plugged in with register_notifier(fn) where
fn(event: str, payload: dict) -> None.
"""
from __future__ import annotations
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

EVENT_REQUEST_CREATED = 'request.created'
EVENT_STATUS_CHANGED = 'request.status_changed'
EVENT_ASSIGNED = 'request.assigned'
EVENT_COMMENTED = 'request.commented'

Notifier = Callable[[str, Dict[str, Any]], None]

_lock = threading.Lock()
_executor: Optional[ThreadPoolExecutor] = None
_max_workers = 2
_enabled = True
_notifiers: List[Notifier] = []
_pending: Set[Future] = set()


def log_notifier(event: str, payload: Dict[str, Any]) -> None:
    logger.info('notify event=%s payload=%s', event, payload)


def configure(enabled: bool = True, max_workers: int = 2):
    """(Re)configure dispatch; an existing pool is shut down after its queued work."""
    global _executor, _enabled, _max_workers
    with _lock:
        old = _executor
        _executor = None
        _enabled = enabled
        _max_workers = max(1, int(max_workers))
        if log_notifier not in _notifiers:
            _notifiers.append(log_notifier)
    if old is not None:
        old.shutdown(wait=True)


def register_notifier(fn: Notifier) -> Notifier:
    with _lock:
        if fn not in _notifiers:
            _notifiers.append(fn)
    return fn


def unregister_notifier(fn: Notifier):
    with _lock:
        if fn in _notifiers:
            _notifiers.remove(fn)


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    with _lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=_max_workers, thread_name_prefix='notify')
        return _executor


def _run(fn: Notifier, event: str, payload: Dict[str, Any]):
    try:
        fn(event, payload)
    except Exception:
        logger.exception('notify.failed event=%s notifier=%s request_id=%s',
                         event, getattr(fn, '__name__', fn), payload.get('request_id'))


def _forget(future: Future):
    with _lock:
        _pending.discard(future)


def dispatch(event: str, **payload: Any) -> List[Future]:
    """Queue event for every registered notifier and return immediately."""
    if not _enabled:
        return []
    with _lock:
        notifiers = list(_notifiers)
    executor = _get_executor()
    futures = []
    for fn in notifiers:
        future = executor.submit(_run, fn, event, dict(payload))
        with _lock:
            _pending.add(future)
        future.add_done_callback(_forget)
        futures.append(future)
    return futures


def drain(timeout: Optional[float] = 5.0) -> bool:
    """Block until queued notifications finish; True when nothing is left pending."""
    with _lock:
        pending = list(_pending)
    if not pending:
        return True
    _, not_done = wait(pending, timeout=timeout)
    return not not_done


def shutdown():
    global _executor
    with _lock:
        executor = _executor
        _executor = None
    if executor is not None:
        executor.shutdown(wait=True)


__all__ = [
    'EVENT_REQUEST_CREATED', 'EVENT_STATUS_CHANGED', 'EVENT_ASSIGNED', 'EVENT_COMMENTED', 'configure', 'register_notifier',
    'unregister_notifier', 'dispatch', 'drain', 'shutdown', 'log_notifier',
]
