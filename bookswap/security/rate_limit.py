import threading
import time
from collections import defaultdict, deque

# key -> deque[timestamps]
_BUCKETS: dict[str, deque[float]] = defaultdict(deque)
_LOCK = threading.Lock()

# endpoint -> (limit, window_sec)
AUTH_LIMITS = {
    "auth.login": (10, 60),
    "auth.signup": (5, 60),
    "auth.verify_otp": (10, 60),
}
DEFAULT_AUTH_LIMIT = (20, 60)


def limits_for(endpoint: str) -> tuple[int, int]:
    return AUTH_LIMITS.get(endpoint, DEFAULT_AUTH_LIMIT)


def hit(key: str, limit: int, window_sec: int) -> bool:
    """
    Returns True if allowed, False if rate-limited.
    """
    now = time.time()
    with _LOCK:
        q = _BUCKETS[key]

        # drop old
        cutoff = now - window_sec
        while q and q[0] < cutoff:
            q.popleft()

        if len(q) >= limit:
            return False

        q.append(now)
        return True


def reset() -> None:
    with _LOCK:
        _BUCKETS.clear()
