"""
Processing workloads for the EchoProbe responder.

In processing mode the responder burns a bounded amount of CPU between
stamping T2 and T3, so the measured `proc` term is non-trivial. Each
step is only started while time remains in the budget.
"""

import math
import random
import threading
import time
from bisect import bisect_left
from typing import Callable, Dict, List, Optional

import numpy as np

from ..core.logger import get_logger


logger = get_logger("responder.workloads")


def fibonacci(n: int) -> int:
    """Iterative Fibonacci."""
    if n <= 1:
        return n
    a, b = 1, 1
    for _ in range(3, n + 1):
        a, b = b, a + b
    return b


def primes_up_to(limit: int) -> List[int]:
    """Sieve of Eratosthenes."""
    if limit < 2:
        return []
    is_prime = [True] * (limit + 1)
    is_prime[0] = is_prime[1] = False
    for i in range(2, math.isqrt(limit) + 1):
        if is_prime[i]:
            for j in range(i * i, limit + 1, i):
                is_prime[j] = False
    return [i for i, flag in enumerate(is_prime) if flag]


def math_operations() -> float:
    primes = primes_up_to(1000)
    factorial = math.factorial(20)
    size = 50
    product = np.random.rand(size, size) @ np.random.rand(size, size)
    trig = sum(math.sin(i * 0.1) + math.cos(i * 0.1) + math.tan(i * 0.1) for i in range(100))
    return len(primes) + float(factorial % 997) + float(product[0, 0]) + trig


def string_processing(text: str) -> int:
    if not text:
        return 0
    accumulator = text[::-1] + text.upper() + text.lower()
    words = text.split()
    accumulator += "-".join(words) + str(len(text)) + str(len(words))
    vowels = sum(1 for ch in text if ch in "aeiouAEIOU")
    consonants = sum(1 for ch in text if ch.isalpha() and ch not in "aeiouAEIOU")
    text_hash = 0
    for ch in text:
        text_hash = ((text_hash << 5) - text_hash + ord(ch)) & 0xFFFFFFFF
    return len(accumulator) + vowels + consonants + text_hash


def array_operations() -> int:
    numbers = [random.randrange(1000) for _ in range(1000)]
    strings = sorted(f"item_{i}_{random.random()}" for i in range(500))
    ordered = sorted(numbers)
    target = random.choice(numbers)
    found = bisect_left(ordered, target)
    return found + numbers.index(target) + len(strings)


class WorkloadStore:
    """Small thread-safe key/value store used by the storage workload."""

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def put(self, key: str, value: str) -> None:
        with self._lock:
            if len(self._data) >= self.max_entries and key not in self._data:
                self._data.pop(next(iter(self._data)))
            self._data[key] = value

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


def run_workloads(blob: str, max_duration_ms: float, store: WorkloadStore) -> List[str]:
    """Run the workload steps within the time budget; returns the steps that ran."""
    start = time.monotonic()

    def storage_operations() -> None:
        store.put(f"echo:{blob}", str(time.time_ns()))
        store.get(f"echo:{blob}")

    steps: List[tuple] = [
        ("fibonacci", lambda: fibonacci(35)),
        ("math", math_operations),
        ("string", lambda: string_processing(blob)),
        ("array", array_operations),
        ("storage", storage_operations),
    ]

    completed = []
    for name, step in steps:
        remaining = max_duration_ms - (time.monotonic() - start) * 1000
        if remaining <= 0:
            logger.debug(f"Workload budget exhausted before {name}")
            break
        if _run_step(name, step):
            completed.append(name)

    logger.debug(
        f"Workloads {completed} finished in {(time.monotonic() - start) * 1000:.1f}ms"
    )
    return completed


def _run_step(name: str, step: Callable[[], object]) -> bool:
    try:
        step()
        return True
    except Exception as e:
        logger.warning(f"Workload {name} failed: {e}")
        return False
