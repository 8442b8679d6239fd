"""Order number generation."""

import re

import pytest

from app.core.order_number import OrderNumberGenerator


def test_prefix_plus_last_six_digits_of_millis() -> None:
    generate = OrderNumberGenerator(clock=lambda: 1767258123.5)

    assert generate() == "NVS123500"


def test_fixed_shape() -> None:
    generate = OrderNumberGenerator(prefix="NVS", digits=6)

    number = generate()

    assert re.fullmatch(r"NVS\d{6}", number)
    assert len(number) == generate.length == 9


def test_suffix_is_zero_padded() -> None:
    generate = OrderNumberGenerator(clock=lambda: 1767258000.0625)

    assert generate() == "NVS000062"


def test_same_millisecond_still_yields_distinct_numbers() -> None:
    generate = OrderNumberGenerator(clock=lambda: 1767258123.5)

    numbers = [generate() for _ in range(3)]

    assert numbers == ["NVS123500", "NVS123501", "NVS123502"]


def test_rejects_non_positive_digits() -> None:
    with pytest.raises(ValueError):
        OrderNumberGenerator(digits=0)
