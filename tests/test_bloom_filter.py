import random
import string
from concurrent.futures import ThreadPoolExecutor

import pytest

from simple_crawler.crawler.bloom_filter import BloomFilter, best_error_rate, hash_int, hash_string
from simple_crawler.errors import ConfigurationError


def random_strings(count, rng):
    return {''.join(rng.choices(string.ascii_letters + string.digits, k=24)) for _ in range(count)}


def test_sizing_follows_standard_formulas():
    bloom = BloomFilter(1000, 0.01)

    assert bloom.size == 9586
    assert bloom.hash_count == 7


def test_default_error_rate_is_inverse_capacity():
    assert BloomFilter(100).error_rate == pytest.approx(0.01)
    assert best_error_rate(4) == pytest.approx(0.25)


@pytest.mark.parametrize("capacity, error_rate", [
    (0, 0.01),
    (-5, 0.01),
    (100, 0.0),
    (100, 1.0),
    (100, 1.5),
    (10 ** 9, 1e-9),  # would need more than 2**31 bits
])
def test_invalid_sizing_is_rejected(capacity, error_rate):
    with pytest.raises(ConfigurationError):
        BloomFilter(capacity, error_rate)


def test_missing_hash_function_for_other_types():
    with pytest.raises(ConfigurationError):
        BloomFilter(100, element_type=float)


def test_custom_hash_function():
    bloom = BloomFilter(100, 0.01, hash_function=lambda item: hash_string(repr(item)), element_type=tuple)
    bloom.add(('a', 1))

    assert ('a', 1) in bloom


def test_no_false_negatives_for_strings():
    rng = random.Random(7)
    items = random_strings(2000, rng)
    bloom = BloomFilter(2000, 0.01)

    for item in items:
        bloom.add(item)

    assert all(bloom.contains(item) for item in items)


def test_no_false_negatives_for_integers():
    rng = random.Random(11)
    items = rng.sample(range(10 ** 9), 2000)
    bloom = BloomFilter(2000, 0.01, element_type=int)

    for item in items:
        bloom.add(item)

    assert all(item in bloom for item in items)


def test_false_positive_rate_for_strings():
    rng = random.Random(3)
    added = random_strings(5000, rng)
    others = random_strings(20000, rng) - added
    bloom = BloomFilter(5000, 0.01)
    for item in added:
        bloom.add(item)

    false_positives = sum(1 for item in others if item in bloom)

    assert false_positives / len(others) < 0.03


def test_false_positive_rate_for_integers():
    rng = random.Random(5)
    values = rng.sample(range(10 ** 9), 25000)
    added, others = values[:5000], values[5000:]
    bloom = BloomFilter(5000, 0.01, element_type=int)
    for item in added:
        bloom.add(item)

    false_positives = sum(1 for item in others if item in bloom)

    assert false_positives / len(others) < 0.05


def test_truthiness_grows_with_items():
    bloom = BloomFilter(100, 0.01)
    assert bloom.truthiness == 0.0

    bloom.add("https://www.example.com/")
    first = bloom.truthiness
    for i in range(50):
        bloom.add(f"https://www.example.com/{i}")

    assert 0.0 < first < bloom.truthiness <= 1.0


def test_concurrent_adds_lose_no_bits():
    bloom = BloomFilter(8000, 0.01)
    chunks = [[f"https://site-{n}.test/{i}" for i in range(1000)] for n in range(8)]

    def add_all(chunk):
        for item in chunk:
            bloom.add(item)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(add_all, chunks))

    assert all(item in bloom for chunk in chunks for item in chunk)


def test_secondary_hashes_are_32_bit():
    assert 0 <= hash_string("https://www.example.com/") <= 0xFFFFFFFF
    assert 0 <= hash_int(-42) <= 0xFFFFFFFF
    assert hash_string("") == 0
