"""
Circuit breakers for upstream services, with state kept in Redis.

Shared by the web process and the RQ workers so every process sees the same
state for 'openai' and 'resend':
  - CLOSED    → calls pass through
  - OPEN      → calls fail fast with CircuitOpenError
  - HALF_OPEN → after reset_timeout, the next call is a probe

Redis trouble never blocks a call: the breaker fails open and logs at DEBUG.
"""
import logging
import time
from functools import wraps

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'


class CircuitOpenError(Exception):
    """Raised instead of calling a service whose breaker is open."""
    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is open; {name} calls are suspended")


class CircuitBreaker:
    """
    Usage:
        breaker = CircuitBreaker('resend', redis_client, failure_threshold=5, reset_timeout=120)
        response = breaker.call(requests.post, url, json=payload, timeout=15)
    """

    PREFIX = 'breaker'

    def __init__(self, name, redis_client, failure_threshold=5, reset_timeout=60):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout

    def _key(self, suffix):
        return f'{self.PREFIX}:{self.name}:{suffix}'

    @property
    def _state_key(self):
        return self._key('state')

    @property
    def _failures_key(self):
        return self._key('failures')

    @property
    def _opened_at_key(self):
        return self._key('opened_at')

    @property
    def _stats_key(self):
        return self._key('stats')

    def _redis(self, op, *args, default=None):
        """Run one Redis command; Redis being down must not take the caller down."""
        try:
            return getattr(self.redis, op)(*args)
        except Exception as e:
            logger.debug("Breaker '%s' Redis %s failed: %s", self.name, op, e)
            return default

    # ── State ─────────────────────────────────────────────────────────

    @property
    def state(self):
        current = self._redis('get', self._state_key)
        if current is None:
            return CLOSED
        if current == OPEN and self._seconds_since_open() > self.reset_timeout:
            self._redis('set', self._state_key, HALF_OPEN)
            return HALF_OPEN
        return current

    def _seconds_since_open(self):
        opened_at = self._redis('get', self._opened_at_key)
        if not opened_at:
            return 0.0
        return time.time() - float(opened_at)

    @property
    def failure_count(self):
        value = self._redis('get', self._failures_key)
        return int(value) if value else 0

    # ── Calls ─────────────────────────────────────────────────────────

    def call(self, func, *args, **kwargs):
        """Run ``func`` unless the breaker is open; failures count toward opening it."""
        if self.state == OPEN:
            retry_after = max(0.0, self.reset_timeout - self._seconds_since_open())
            raise CircuitOpenError(self.name, retry_after=retry_after)

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def protect(self, func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            return self.call(func, *args, **kwargs)
        return wrapper

    def _on_success(self):
        self._redis('set', self._state_key, CLOSED)
        self._redis('set', self._failures_key, 0)
        self._redis('hincrby', self._stats_key, 'success', 1)
        self._redis('hset', self._stats_key, 'last_success', str(time.time()))

    def _on_failure(self, error):
        count = self._redis('incr', self._failures_key, default=0) or 0
        self._redis('hincrby', self._stats_key, 'failure', 1)
        self._redis('hset', self._stats_key, 'last_failure', str(time.time()))
        self._redis('hset', self._stats_key, 'last_error', str(error)[:200])

        probing = self._redis('get', self._state_key) == HALF_OPEN
        if probing or count >= self.failure_threshold:
            self._redis('set', self._state_key, OPEN)
            self._redis('set', self._opened_at_key, str(time.time()))
            logger.warning("Breaker '%s' opened after %d failures: %s", self.name, count, error)
        else:
            logger.info("Breaker '%s' failure %d/%d: %s",
                        self.name, count, self.failure_threshold, error)

    def reset(self):
        """Force the breaker closed (ops endpoint)."""
        self._redis('set', self._state_key, CLOSED)
        self._redis('set', self._failures_key, 0)
        self._redis('delete', self._opened_at_key)
        logger.info("Breaker '%s' reset to closed", self.name)

    def get_health(self):
        stats = self._redis('hgetall', self._stats_key, default=None)
        if stats is None:
            return {
                'name': self.name,
                'state': 'unknown',
                'failure_count': 0,
                'failure_threshold': self.failure_threshold,
                'reset_timeout': self.reset_timeout,
                'total_success': 0,
                'total_failure': 0,
                'last_success': None,
                'last_failure': None,
                'last_error': '',
            }
        return {
            'name': self.name,
            'state': self.state,
            'failure_count': self.failure_count,
            'failure_threshold': self.failure_threshold,
            'reset_timeout': self.reset_timeout,
            'total_success': int(stats.get('success', 0)),
            'total_failure': int(stats.get('failure', 0)),
            'last_success': float(stats['last_success']) if stats.get('last_success') else None,
            'last_failure': float(stats['last_failure']) if stats.get('last_failure') else None,
            'last_error': stats.get('last_error', ''),
        }


# ── Registry ──────────────────────────────────────────────────────────────

_registry = {}

# name → (failure_threshold, reset_timeout seconds)
BREAKER_SETTINGS = {
    'openai': (5, 60),
    'resend': (5, 120),
}


def get_breaker(name, redis_client=None, **kwargs):
    """Named breaker, created on first use."""
    if name not in _registry:
        if redis_client is None:
            from app.extensions import redis_client as default_client
            redis_client = default_client
        threshold, timeout = BREAKER_SETTINGS.get(name, (5, 60))
        kwargs.setdefault('failure_threshold', threshold)
        kwargs.setdefault('reset_timeout', timeout)
        _registry[name] = CircuitBreaker(name, redis_client, **kwargs)
    return _registry[name]


def get_all_breakers():
    return dict(_registry)


def init_breakers(redis_client):
    """Register the breaker for every upstream service."""
    breakers = {
        name: CircuitBreaker(name, redis_client, failure_threshold=threshold, reset_timeout=timeout)
        for name, (threshold, timeout) in BREAKER_SETTINGS.items()
    }
    _registry.update(breakers)
    return breakers
