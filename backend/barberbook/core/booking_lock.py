"""
Exclusive booking sections.

Every collision check + insert runs while holding the section for the
(barbershop, barber, day) timelines it touches. Keys are always taken in
sorted order. Three layers, outermost first:

- an in-process keyed mutex (always on);
- a Redis ``SET NX EX`` lock shared across workers when
  ``BOOKING_LOCK_REDIS_URL`` is configured;
- ``pg_advisory_xact_lock`` inside the transaction on PostgreSQL
  (see ``BookingRepository.lock_timelines``).
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
import logging
import threading
import time
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
import uuid

from redis import Redis

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings
from .exceptions import BookingLockTimeout

logger = logging.getLogger(__name__)

ANY_BARBER = "*"
_POLL_INTERVAL_S = 0.05

_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()


def timeline_lock_key(barbershop_id: str, barber_id: Optional[str], day: date) -> str:
    return f"timeline:{barbershop_id}:{barber_id or ANY_BARBER}:{day.isoformat()}"


def timeline_lock_keys(
    barbershop_id: str,
    barber_id: Optional[str],
    day: date,
    shop_barber_ids: Iterable[str] = (),
) -> List[str]:
    """
    Keys an operation must hold.

    A barber-pinned operation holds its barber's timeline. A barber-less
    one holds every barber timeline of the shop plus the shop-wide key.
    """
    if barber_id:
        return [timeline_lock_key(barbershop_id, barber_id, day)]
    keys = {timeline_lock_key(barbershop_id, other, day) for other in shop_barber_ids}
    keys.add(timeline_lock_key(barbershop_id, None, day))
    return sorted(keys)


def _lock_key(booking_id: str) -> str:
    return f"booking:{booking_id}:mutex"


def _namespaced_key(key: str) -> str:
    return f"{settings.booking_lock_namespace}:lock:{key}"


class KeyedLockRegistry:
    """Process-local mutexes created on demand and dropped when unused."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, Tuple[threading.Lock, int]] = {}

    def acquire(self, key: str, timeout: float) -> bool:
        with self._guard:
            lock, waiters = self._locks.get(key, (threading.Lock(), 0))
            self._locks[key] = (lock, waiters + 1)
        acquired = lock.acquire(timeout=max(timeout, 0.0))
        if not acquired:
            self._forget(key)
        return acquired

    def release(self, key: str) -> None:
        with self._guard:
            lock, _ = self._locks[key]
        lock.release()
        self._forget(key)

    def _forget(self, key: str) -> None:
        with self._guard:
            lock, waiters = self._locks[key]
            if waiters <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, waiters - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_LOCAL_LOCKS = KeyedLockRegistry()


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if not settings.booking_lock_redis_url:
        return None
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.booking_lock_redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("booking_lock_sync_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def _acquire_redis_lock(client: Redis, key: str, ttl_s: int, deadline: float) -> Optional[str]:
    """
    Poll ``SET NX`` until acquired or the deadline passes.

    Returns the ownership token, ``""`` when Redis failed (degrade to the
    in-process lock), or None on timeout.
    """
    token = uuid.uuid4().hex
    namespaced = _namespaced_key(key)
    while True:
        try:
            if client.set(namespaced, token, nx=True, ex=ttl_s):
                prometheus_metrics.record_booking_lock("acquire", "success")
                return token
        except Exception as exc:
            prometheus_metrics.record_booking_lock("acquire", "error")
            logger.warning(
                "booking_lock_sync_failed",
                extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
            )
            return ""
        if time.monotonic() >= deadline:
            prometheus_metrics.record_booking_lock("acquire", "blocked")
            return None
        time.sleep(_POLL_INTERVAL_S)


def _release_redis_lock(client: Redis, key: str, token: str) -> None:
    try:
        deleted = client.eval(_RELEASE_SCRIPT, 1, _namespaced_key(key), token)
        if deleted:
            prometheus_metrics.record_booking_lock("release", "success")
        else:
            prometheus_metrics.record_booking_lock("release", "not_found")
    except Exception as exc:
        prometheus_metrics.record_booking_lock("release", "error")
        logger.warning(
            "booking_lock_sync_release_failed",
            extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
        )


@contextmanager
def booking_section(
    keys: Iterable[str],
    *,
    wait_s: Optional[float] = None,
    ttl_s: Optional[int] = None,
) -> Iterator[List[str]]:
    """
    Hold every key for the duration of the block.

    Raises BookingLockTimeout when a key cannot be taken within ``wait_s``.
    """
    ordered = sorted(set(keys))
    wait = settings.booking_lock_wait_seconds if wait_s is None else wait_s
    ttl = ttl_s or settings.booking_lock_ttl_seconds
    deadline = time.monotonic() + wait
    held_local: List[str] = []
    held_remote: List[Tuple[str, str]] = []
    client = _get_sync_redis()

    try:
        for key in ordered:
            if not _LOCAL_LOCKS.acquire(key, deadline - time.monotonic()):
                prometheus_metrics.record_booking_lock("acquire", "blocked")
                logger.info("booking_section_timeout", extra={"lock_key": key})
                raise BookingLockTimeout(ordered)
            held_local.append(key)

        if client is not None:
            for key in ordered:
                token = _acquire_redis_lock(client, key, ttl, deadline)
                if token is None:
                    raise BookingLockTimeout(ordered)
                if token:
                    held_remote.append((key, token))

        yield ordered
    finally:
        for key, token in reversed(held_remote):
            if client is not None:
                _release_redis_lock(client, key, token)
        for key in reversed(held_local):
            _LOCAL_LOCKS.release(key)


@contextmanager
def booking_lock_sync(booking_id: str, wait_s: Optional[float] = None) -> Iterator[bool]:
    """Per-booking mutex; serializes cancellations of the same booking."""
    with booking_section([_lock_key(booking_id)], wait_s=wait_s):
        yield True
