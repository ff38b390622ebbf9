# mines/redis_lock.py
import time
import uuid

import redis
from django.conf import settings


def get_redis():
    return redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)


class SchedulerLock:
    """
    Deployment-wide guard so exactly one `run_mines_rounds` process rotates
    rounds. The value is a per-process token; only its holder may renew or
    delete the key, and the TTL frees it if the holder dies.
    """

    def __init__(self, key: str, ttl_seconds: int, client=None):
        self.key = key
        self.ttl_ms = int(ttl_seconds * 1000)
        self.token = uuid.uuid4().hex
        self.r = client or get_redis()

    def acquire(self) -> bool:
        return bool(self.r.set(self.key, self.token, nx=True, px=self.ttl_ms))

    def renew(self) -> bool:
        if self.r.get(self.key) != self.token:
            return False
        return bool(self.r.set(self.key, self.token, xx=True, px=self.ttl_ms))

    def release(self) -> bool:
        # WATCH so a takeover between GET and DEL aborts the delete
        pipe = self.r.pipeline()
        try:
            pipe.watch(self.key)
            if pipe.get(self.key) != self.token:
                pipe.unwatch()
                return False
            pipe.multi()
            pipe.delete(self.key)
            pipe.execute()
            return True
        except redis.WatchError:
            return False
        finally:
            pipe.reset()


class LockLost(RuntimeError):
    """The scheduler no longer owns the rotation lock."""


class LockHeartbeat:
    """Renews the scheduler lock every `every_seconds` from the command loop."""

    def __init__(self, lock: SchedulerLock, every_seconds: float = 5.0):
        self.lock = lock
        self.every = every_seconds
        self._due = time.monotonic() + self.every

    def tick(self):
        now = time.monotonic()
        if now < self._due:
            return
        if not self.lock.renew():
            raise LockLost(f"Rotation lock {self.lock.key} was taken over or expired")
        self._due = now + self.every
