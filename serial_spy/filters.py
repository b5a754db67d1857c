"""Frame filtering with a remanence window."""

from __future__ import annotations

from dataclasses import dataclass

from .config import ChannelConfig


@dataclass(slots=True)
class ChannelState:
    """Mutable per-channel pipeline state."""

    remanence_left: int = 0


def should_show(text: str, config: ChannelConfig, state: ChannelState) -> bool:
    """Return True when a rendered frame passes the channel filters.

    A match rearms the remanence counter. After the filters stop matching, the
    next ``config.remanence`` frames are still shown, one per call, before
    frames are suppressed again.
    """
    if not config.filters:
        return True

    if any(pattern.search(text) for pattern in config.filters):
        state.remanence_left = config.remanence
        return True

    if state.remanence_left > 0:
        state.remanence_left -= 1
        return True
    return False
