"""
Concurrency control utilities for billing operations.

This module provides two complementary concurrency mechanisms:

1. **Row Locks** (lock_user)
   - SELECT ... FOR UPDATE on the user row inside a transaction
   - Serializes every read-then-write on a user's billing records
   - Use for: "cancel the active subscription then create one",
     "clear the default payment method then set another"

2. **Distributed Locks** (DistributedLock)
   - Redis-based mutual exclusion across processes/servers
   - TTL prevents deadlocks from crashed processes
   - Use for: work that includes an external call and must not hold a
     database transaction open meanwhile (creating a Stripe customer)

Usage:

    from payments.locks import DistributedLock, lock_user

    with transaction.atomic():
        user = lock_user(user.pk)
        Subscription.objects.active().filter(user=user).update(...)

    with DistributedLock(f"customer:create:{user.pk}", ttl=30):
        create_customer_once(user)
"""

from __future__ import annotations

import time
import uuid as uuid_module
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import transaction

from django_redis import get_redis_connection

from core.exceptions import NotFoundError
from payments.exceptions import LockAcquisitionError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis


# =============================================================================
# Row Locks
# =============================================================================


def lock_user(user_id: Any):
    """
    Lock a user row for the rest of the current transaction.

    All writers of a user's subscriptions and payment methods take this
    lock first, so two concurrent webhooks for the same user apply their
    check-then-write sequences one after the other.

    Raises:
        NotFoundError: If the user doesn't exist
        TransactionManagementError: If called outside a transaction
    """
    if not transaction.get_connection().in_atomic_block:
        raise transaction.TransactionManagementError(
            "lock_user() must be called inside transaction.atomic()"
        )

    user = get_user_model().objects.select_for_update().filter(pk=user_id).first()
    if user is None:
        raise NotFoundError(
            f"User {user_id} not found",
            error_code="USER_NOT_FOUND",
            details={"user_id": str(user_id)},
        )
    return user


# =============================================================================
# Distributed Locks
# =============================================================================


class DistributedLock:
    """
    Redis-based distributed lock with TTL.

    Features:
        - Automatic TTL prevents deadlocks from crashed processes
        - Token-based ownership prevents accidental release by other processes
        - Blocking and non-blocking acquisition modes
        - Context manager support for clean usage

    Example:
        lock = DistributedLock("customer:create:42", ttl=30, timeout=5.0)
        try:
            with lock:
                create_customer()
        except LockAcquisitionError:
            # Another process holds the lock
            handle_contention()

    Args:
        key: Lock identifier (will be prefixed with "lock:")
        ttl: Lock TTL in seconds (auto-releases after this time)
        blocking: If True, acquire() waits until lock is available
        timeout: Maximum wait time in seconds (only if blocking=True)

    Note:
        The TTL should be longer than the expected operation duration,
        including Stripe's network retries.
    """

    # Lua script for atomic check-and-delete (release)
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        key: str,
        ttl: int = 30,
        blocking: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.key = f"lock:{key}"
        self.ttl = ttl
        self.blocking = blocking
        self.timeout = timeout
        self._token: str | None = None
        self._redis: Redis | None = None

    def _get_redis(self) -> Redis:
        """Get Redis connection (lazy initialization)."""
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    def acquire(self) -> bool:
        """
        Attempt to acquire the lock.

        Returns:
            True if lock was acquired

        Raises:
            LockAcquisitionError: If lock couldn't be acquired
        """
        self._token = str(uuid_module.uuid4())
        redis = self._get_redis()

        if self.blocking:
            end_time = time.time() + self.timeout
            while time.time() < end_time:
                if self._try_acquire(redis):
                    return True
                time.sleep(0.05)  # 50ms between retries

            self._token = None
            raise LockAcquisitionError(
                f"Failed to acquire lock '{self.key}' within {self.timeout}s",
                details={"key": self.key, "timeout": self.timeout},
            )

        if not self._try_acquire(redis):
            self._token = None
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )
        return True

    def _try_acquire(self, redis: Redis) -> bool:
        """Try once to acquire the lock."""
        return bool(redis.set(self.key, self._token, nx=True, ex=self.ttl))

    def release(self) -> bool:
        """
        Release the lock if we hold it.

        Safe to call multiple times; only the owner's token deletes the key.
        """
        if self._token is None:
            return False

        redis = self._get_redis()
        result = redis.eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(result)

    @property
    def is_held(self) -> bool:
        """Check if we currently hold the lock."""
        return self._token is not None

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> bool:
        self.release()
        return False  # Don't suppress exceptions


__all__ = [
    "DistributedLock",
    "lock_user",
]
