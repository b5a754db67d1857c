"""Timestamp rendering against a single clock shared by every channel."""

from __future__ import annotations

from datetime import datetime
import re
import time
from typing import Callable

from .const import STAMP_DIFF, STAMP_NONE, STAMP_NORMAL, STAMP_TIME

_LEADING_FILL = re.compile(r"^[0,]*")

NORMAL_DIGITS = 6
DIFF_DIGITS = 5


def format_elapsed(seconds: float, digits: int) -> str:
    """Format seconds as a comma-grouped, zero-padded number whose leading zeros show as spaces.

    >>> format_elapsed(1234.5, 6)
    '  1,234.500'
    """
    width = digits + (digits - 1) // 3 + 4
    text = f"{seconds:0{width},.3f}"
    return _LEADING_FILL.sub(lambda match: " " * len(match.group()), text, count=1)


def format_wall_clock(moment: datetime) -> str:
    return f"{moment:%m/%d-%H:%M:%S}.{moment.microsecond // 100:04d}"


def make_stamp(
    mode: str,
    elapsed: float,
    last: float | None,
    wall: datetime | None = None,
) -> tuple[str | None, float | None]:
    """Return the stamp text for one shown line and the new shared baseline.

    Every shown line moves the baseline, stamped or not.
    """
    if mode == STAMP_NONE:
        return None, elapsed

    if mode == STAMP_DIFF and last is not None:
        text = "+" + format_elapsed(max(0.0, elapsed - last), DIFF_DIGITS)
    elif mode == STAMP_TIME:
        text = format_wall_clock(wall or datetime.now())
    elif mode in (STAMP_NORMAL, STAMP_DIFF):
        text = format_elapsed(elapsed, NORMAL_DIGITS)
    else:
        raise ValueError(f"Unknown stamp mode '{mode}'")
    return text, elapsed


class SharedClock:
    """Process start reference plus the time of the last shown line, shared by all channels."""

    def __init__(
        self,
        monotonic: Callable[[], float] = time.monotonic,
        wall: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._monotonic = monotonic
        self._wall = wall
        self.start = monotonic()
        self.last: float | None = None

    def elapsed(self) -> float:
        return self._monotonic() - self.start

    def stamp(self, mode: str) -> str | None:
        text, self.last = make_stamp(mode, self.elapsed(), self.last, self._wall())
        return text
