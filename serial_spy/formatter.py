"""Frame rendering: hex/text decoding, replacements and control-character expansion."""

from __future__ import annotations

from typing import Iterable

from .config import ChannelConfig, Replacement
from .const import CTRL_MNEMONICS, FORMAT_HEX

CTRL_TRANSLATION: dict[int, str] = dict(enumerate(CTRL_MNEMONICS))


def to_hex(frame: bytes) -> str:
    return " ".join(f"{b:02X}" for b in frame)


def apply_replacements(text: str, replacements: Iterable[Replacement]) -> str:
    """Apply each replacement to the result of the previous one."""
    for replacement in replacements:
        text = replacement.what.sub(replacement.with_text, text)
    return text


def translate_ctrl(text: str) -> str:
    """Expand code points below 32 into mnemonics such as \\r or ^A."""
    return text.translate(CTRL_TRANSLATION)


def format_frame(frame: bytes, config: ChannelConfig) -> str:
    if config.render_format == FORMAT_HEX:
        text = to_hex(frame)
    else:
        text = frame.decode(config.encoding, errors="replace")

    text = apply_replacements(text, config.replacements)

    if config.translate_ctrl and config.render_format != FORMAT_HEX:
        text = translate_ctrl(text)
    return text
