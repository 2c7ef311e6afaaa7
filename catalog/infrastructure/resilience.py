"""
Circuit breaker policy for outbound calls.

States:
- CLOSED: calls pass through; outcomes are recorded in a count-based window
- OPEN: calls are rejected with CircuitOpenError until the wait duration elapses
- HALF_OPEN: a limited number of trial calls decide whether to close or reopen

Transitions:
- CLOSED -> OPEN: failure rate over the window >= threshold, once the minimum
  number of calls has been recorded
- OPEN -> HALF_OPEN: wait_duration_in_open_state has elapsed
- HALF_OPEN -> CLOSED: trial failure rate below threshold
- HALF_OPEN -> OPEN: trial failure rate at or above threshold

Nothing in the service wraps itself in a breaker; callers opt in through
CircuitBreakerFactory.create(...).call(...) or the protected decorator.
"""
import functools
import inspect
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Deque, Dict, Optional

from catalog.core_settings import get_settings
from shared.core import get_logger

logger = get_logger(__name__)

class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"

@dataclass(frozen=True)
class CircuitBreakerConfig:
    failure_rate_threshold: float = 50.0  # percent
    wait_duration_in_open_state: timedelta = timedelta(seconds=60)
    sliding_window_size: int = 100
    minimum_number_of_calls: int = 100
    permitted_calls_in_half_open_state: int = 10

    def __post_init__(self):
        if not 0 < self.failure_rate_threshold <= 100:
            raise ValueError("failure_rate_threshold must be in (0, 100]")
        if self.sliding_window_size < 1 or self.minimum_number_of_calls < 1:
            raise ValueError("window size and minimum calls must be positive")
        if self.permitted_calls_in_half_open_state < 1:
            raise ValueError("permitted_calls_in_half_open_state must be positive")
        # The window never buffers more than its size, so a larger minimum would never be reached
        if self.minimum_number_of_calls > self.sliding_window_size:
            object.__setattr__(self, "minimum_number_of_calls", self.sliding_window_size)

class CircuitOpenError(Exception):
    """Raised when a call is attempted while the breaker does not permit it."""

    def __init__(self, name: str, retry_after: Optional[float] = None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is open")

class CircuitBreaker:
    """
    Failure-rate circuit breaker for one named dependency.

    Usage:
        breaker = factory.create("pricing-api")
        result = breaker.call(client.get_price, sku)

        @breaker.protected
        async def fetch():
            ...
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._lock = threading.RLock()
        self._state = CircuitState.CLOSED
        self._outcomes: Deque[bool] = deque(maxlen=self.config.sliding_window_size)
        self._opened_at: Optional[float] = None
        self._half_open_calls = 0
        self._half_open_outcomes: list = []

    @property
    def state(self) -> CircuitState:
        with self._lock:
            if self._state == CircuitState.OPEN and self._wait_elapsed():
                self._transition(CircuitState.HALF_OPEN)
            return self._state

    def _wait_elapsed(self) -> bool:
        wait = self.config.wait_duration_in_open_state.total_seconds()
        return self._opened_at is not None and self._clock() - self._opened_at >= wait

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
            logger.warning(f"Circuit breaker '{self.name}' {old_state.value} -> OPEN")
        else:
            self._opened_at = None
            logger.info(f"Circuit breaker '{self.name}' {old_state.value} -> {new_state.value}")
        if new_state == CircuitState.CLOSED:
            self._outcomes.clear()
        self._half_open_calls = 0
        self._half_open_outcomes = []

    def failure_rate(self) -> float:
        """Failure percentage over the current window, or -1 when too few calls were recorded."""
        with self._lock:
            if len(self._outcomes) < self.config.minimum_number_of_calls:
                return -1.0
            failures = sum(1 for ok in self._outcomes if not ok)
            return failures * 100.0 / len(self._outcomes)

    def acquire_permission(self) -> None:
        """Raise CircuitOpenError unless a call may proceed now."""
        with self._lock:
            current = self.state
            if current == CircuitState.CLOSED:
                return
            if current == CircuitState.HALF_OPEN:
                if self._half_open_calls < self.config.permitted_calls_in_half_open_state:
                    self._half_open_calls += 1
                    return
                raise CircuitOpenError(self.name)
            raise CircuitOpenError(self.name, retry_after=self.time_until_half_open())

    def record_success(self) -> None:
        self._record(True)

    def record_failure(self) -> None:
        self._record(False)

    def _record(self, ok: bool) -> None:
        with self._lock:
            current = self.state
            if current == CircuitState.HALF_OPEN:
                self._half_open_outcomes.append(ok)
                if len(self._half_open_outcomes) >= self.config.permitted_calls_in_half_open_state:
                    failures = self._half_open_outcomes.count(False)
                    rate = failures * 100.0 / len(self._half_open_outcomes)
                    if rate >= self.config.failure_rate_threshold:
                        self._transition(CircuitState.OPEN)
                    else:
                        self._transition(CircuitState.CLOSED)
            elif current == CircuitState.CLOSED:
                self._outcomes.append(ok)
                rate = self.failure_rate()
                if rate >= self.config.failure_rate_threshold:
                    self._transition(CircuitState.OPEN)

    def call(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Run func under the breaker; any exception it raises counts as a failure."""
        self.acquire_permission()
        try:
            result = func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result

    async def call_async(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        self.acquire_permission()
        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result

    def protected(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Decorator form of call()/call_async()."""
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                return await self.call_async(func, *args, **kwargs)
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return self.call(func, *args, **kwargs)
        return wrapper

    def time_until_half_open(self) -> Optional[float]:
        with self._lock:
            if self._state != CircuitState.OPEN or self._opened_at is None:
                return None
            wait = self.config.wait_duration_in_open_state.total_seconds()
            return max(0.0, self._opened_at + wait - self._clock())

    def reset(self) -> None:
        with self._lock:
            self._transition(CircuitState.CLOSED)

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "name": self.name,
                "state": self.state.value,
                "failure_rate": self.failure_rate(),
                "buffered_calls": len(self._outcomes),
                "time_until_half_open": self.time_until_half_open(),
            }

ConfigBuilder = Callable[[str], CircuitBreakerConfig]

@dataclass
class CircuitBreakerFactory:
    """Registry of named breakers sharing a default configuration builder."""

    default_builder: ConfigBuilder = field(default=lambda name: CircuitBreakerConfig())
    clock: Callable[[], float] = time.monotonic
    _breakers: Dict[str, CircuitBreaker] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def configure_default(self, builder: ConfigBuilder) -> None:
        """Install the id -> config function used for breakers created from now on."""
        self.default_builder = builder

    def create(self, name: str, config: Optional[CircuitBreakerConfig] = None) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(name, config or self.default_builder(name), clock=self.clock)
                self._breakers[name] = breaker
            return breaker

    def all_status(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            breakers = list(self._breakers.values())
        return {b.name: b.status() for b in breakers}

def default_config_from_settings() -> CircuitBreakerConfig:
    settings = get_settings()
    return CircuitBreakerConfig(
        failure_rate_threshold=settings.CB_FAILURE_RATE_THRESHOLD,
        wait_duration_in_open_state=timedelta(seconds=settings.CB_WAIT_DURATION_SECONDS),
        sliding_window_size=settings.CB_SLIDING_WINDOW_SIZE,
        minimum_number_of_calls=settings.CB_MINIMUM_NUMBER_OF_CALLS,
        permitted_calls_in_half_open_state=settings.CB_PERMITTED_CALLS_IN_HALF_OPEN,
    )

@lru_cache
def default_circuit_breaker_factory() -> CircuitBreakerFactory:
    factory = CircuitBreakerFactory()
    default_config = default_config_from_settings()
    factory.configure_default(lambda name: default_config)
    return factory
