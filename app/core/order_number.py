# app/core/order_number.py
import threading
import time
from typing import Callable


class OrderNumberGenerator:
    """
    Short, phone-friendly order numbers: prefix + last N digits of the
    epoch millisecond, e.g. "NVS482913".

    Within one process the millisecond is forced strictly increasing, so
    two orders created in the same millisecond still get distinct numbers.
    Across processes collisions are possible; the repository checks the
    number before insert and the column carries a unique index.
    """

    def __init__(
        self,
        prefix: str = "NVS",
        digits: int = 6,
        clock: Callable[[], float] = time.time,
    ):
        if digits <= 0:
            raise ValueError("digits must be positive")
        self.prefix = prefix
        self.digits = digits
        self._clock = clock
        self._lock = threading.Lock()
        self._last_ms = 0

    @property
    def length(self) -> int:
        return len(self.prefix) + self.digits

    def __call__(self) -> str:
        with self._lock:
            ms = int(self._clock() * 1000)
            if ms <= self._last_ms:
                ms = self._last_ms + 1
            self._last_ms = ms

        suffix = ms % (10**self.digits)
        return f"{self.prefix}{suffix:0{self.digits}d}"
