"""Tests for stamps.py."""

from datetime import datetime

import pytest

from serial_spy.stamps import SharedClock, format_elapsed, format_wall_clock, make_stamp


class FakeTime:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


# ---------------------------------------------------------------------------
# format_elapsed
# ---------------------------------------------------------------------------

def test_normal_width_and_leading_spaces():
    assert format_elapsed(12.25, 6) == "     12.250"


def test_thousands_are_grouped():
    assert format_elapsed(1234.5, 6) == "  1,234.500"


def test_large_values_fill_the_field():
    assert format_elapsed(123456.789, 6) == "123,456.789"


def test_sub_second_value_has_no_visible_zeros():
    assert format_elapsed(0.5, 6) == "       .500"


def test_diff_width():
    assert format_elapsed(1.25, 5) == "     1.250"
    assert len(format_elapsed(1.25, 5)) == 10


# ---------------------------------------------------------------------------
# make_stamp
# ---------------------------------------------------------------------------

def test_none_moves_baseline():
    assert make_stamp("none", 5.0, 2.0) == (None, 5.0)


def test_normal_moves_baseline():
    assert make_stamp("normal", 12.25, None) == ("     12.250", 12.25)


def test_first_diff_equals_normal():
    assert make_stamp("diff", 12.25, None) == make_stamp("normal", 12.25, None)


def test_diff_against_baseline():
    text, last = make_stamp("diff", 3.5, 1.25)
    assert text == "+     2.250"
    assert last == 3.5


def test_diff_never_negative():
    text, _ = make_stamp("diff", 1.0, 2.0)
    assert text == "+      .000"


def test_time_mode():
    moment = datetime(2024, 3, 7, 9, 5, 4, 123456)
    text, last = make_stamp("time", 8.0, None, moment)
    assert text == "03/07-09:05:04.1234"
    assert last == 8.0
    assert format_wall_clock(moment) == text


def test_unknown_mode():
    with pytest.raises(ValueError):
        make_stamp("weekly", 1.0, None)


# ---------------------------------------------------------------------------
# SharedClock
# ---------------------------------------------------------------------------

def test_shared_clock_baseline_spans_modes():
    fake = FakeTime(100.0)
    clock = SharedClock(monotonic=fake, wall=lambda: datetime(2024, 1, 1))

    fake.now = 101.0
    assert clock.stamp("normal") == "      1.000"
    fake.now = 101.5
    assert clock.stamp("none") is None
    assert clock.last == 1.5
    fake.now = 103.0
    assert clock.stamp("diff") == "+     1.500"
    assert clock.last == 3.0
