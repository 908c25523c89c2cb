"""
Bloom filter used to remember which URLs the crawler has already seen.

Uses double hashing: the i-th probe is derived from two base hashes as
``(primary + i * secondary) mod m``, so only two hash functions are needed
regardless of the number of rounds.
"""

import logging
import math
import threading
from typing import Callable, Generic, Optional, TypeVar

from ..errors import ConfigurationError

T = TypeVar('T')

HashFunction = Callable[[T], int]

MASK_32 = 0xFFFFFFFF
MAX_BITS = 2 ** 31 - 1


def hash_string(value: str) -> int:
    """Jenkins one-at-a-time hash, 32 bit."""
    h = 0
    if value is None:
        return h
    for ch in value:
        h = (h + ord(ch)) & MASK_32
        h = (h + (h << 10)) & MASK_32
        h ^= h >> 6
    h = (h + (h << 3)) & MASK_32
    h ^= h >> 11
    h = (h + (h << 15)) & MASK_32
    return h


def hash_int(value: int) -> int:
    """32 bit integer mix."""
    x = value & MASK_32
    x = (~x + (x << 15)) & MASK_32
    x ^= x >> 12
    x = (x + (x << 2)) & MASK_32
    x ^= x >> 4
    x = (x * 2057) & MASK_32
    x ^= x >> 16
    return x


def best_error_rate(capacity: int) -> float:
    """Default error rate for a capacity: 1/capacity, or an asymptotic value when that underflows."""
    c = 1.0 / capacity
    if abs(c) > 0:
        return c
    y = MAX_BITS / float(capacity)
    return math.pow(0.6185, y)


def best_m(capacity: int, error_rate: float) -> int:
    """Number of bits for the given capacity and false-positive rate."""
    return int(math.ceil(capacity * math.log(error_rate) / math.log(1.0 / math.pow(2, math.log(2.0)))))


def best_k(capacity: int, error_rate: float) -> int:
    """Number of hash rounds for the given capacity and false-positive rate."""
    return max(1, int(round(math.log(2.0) * best_m(capacity, error_rate) / capacity)))


class BloomFilter(Generic[T]):
    """
    Probabilistic set with no false negatives.

    ``add`` marks an item as seen and ``contains`` (or ``in``) tests it.
    Items can never be removed. Safe to share between worker tasks and
    threads: bit writes are serialized, reads are not.
    """

    def __init__(self, capacity: int, error_rate: Optional[float] = None,
                 hash_function: Optional[HashFunction] = None, element_type: type = str):
        if capacity < 1:
            raise ConfigurationError(f"capacity must be > 0, was {capacity}")

        if error_rate is None:
            error_rate = best_error_rate(capacity)

        if error_rate >= 1 or error_rate <= 0:
            raise ConfigurationError(f"error_rate must be between 0 and 1, exclusive. Was {error_rate}")

        m = best_m(capacity, error_rate)
        if m < 1 or m > MAX_BITS:
            raise ConfigurationError(
                "The provided capacity and error_rate values would result in a bit array "
                f"longer than {MAX_BITS}. Please reduce either of these values. "
                f"Capacity: {capacity}, Error rate: {error_rate}"
            )

        if hash_function is None:
            if element_type is str:
                hash_function = hash_string
            elif element_type is int:
                hash_function = hash_int
            else:
                raise ConfigurationError(
                    f"Please provide a hash function for {element_type.__name__}, "
                    "when the element type is not str or int."
                )

        self.capacity = capacity
        self.error_rate = error_rate
        self._get_hash_secondary = hash_function
        self._bit_count = m
        self._hash_function_count = best_k(capacity, error_rate)
        self._bits = bytearray((m + 7) // 8)
        self._lock = threading.Lock()

        logging.getLogger(__name__).debug(
            f"Bloom filter sized: capacity={capacity}, error_rate={error_rate:.3g}, "
            f"bits={m}, hash_rounds={self._hash_function_count}"
        )

    @property
    def size(self) -> int:
        """Number of bits in the filter."""
        return self._bit_count

    @property
    def hash_count(self) -> int:
        """Number of probes per item."""
        return self._hash_function_count

    @property
    def truthiness(self) -> float:
        """Fraction of bits currently set."""
        return self._true_bits() / self._bit_count

    def add(self, item: T) -> None:
        indexes = list(self._probes(item))
        with self._lock:
            for index in indexes:
                self._bits[index >> 3] |= 1 << (index & 7)

    def contains(self, item: T) -> bool:
        for index in self._probes(item):
            if not self._bits[index >> 3] & (1 << (index & 7)):
                return False
        return True

    def __contains__(self, item: T) -> bool:
        return self.contains(item)

    def _probes(self, item: T):
        primary_hash = hash(item)
        secondary_hash = self._get_hash_secondary(item)
        for i in range(self._hash_function_count):
            yield self._compute_hash(primary_hash, secondary_hash, i)

    def _compute_hash(self, primary_hash: int, secondary_hash: int, i: int) -> int:
        return abs((primary_hash + i * secondary_hash) % self._bit_count)

    def _true_bits(self) -> int:
        return bin(int.from_bytes(bytes(self._bits), 'little')).count('1')
