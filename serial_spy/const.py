"""Constants for serial-spy."""

from __future__ import annotations

NAME = "serial-spy"

CONFIG_ENV_VAR = "SERIAL_SPY_CONFIG"

DEFAULT_CHUNK_SIZE = 4096
DEFAULT_READ_TIMEOUT = 0.1
DEFAULT_STOP_BITS = 1
DEFAULT_REMANENCE = 0

FORMAT_HEX = "hex"
FORMAT_ASCII = "ascii"
FORMAT_UTF8 = "utf8"
FORMATS: tuple[str, ...] = (FORMAT_HEX, FORMAT_ASCII, FORMAT_UTF8)

# Text codec used by each non-hex format unless the channel names its own.
DEFAULT_ENCODINGS: dict[str, str] = {
    FORMAT_HEX: "latin-1",
    FORMAT_ASCII: "ascii",
    FORMAT_UTF8: "utf-8",
}

STAMP_NORMAL = "normal"
STAMP_DIFF = "diff"
STAMP_TIME = "time"
STAMP_NONE = "none"
STAMP_MODES: tuple[str, ...] = (STAMP_NORMAL, STAMP_DIFF, STAMP_TIME, STAMP_NONE)

PARITIES: tuple[str, ...] = ("none", "even", "odd", "mark", "space")
DATA_BITS: tuple[int, ...] = (5, 6, 7, 8)
STOP_BITS: tuple[float, ...] = (1, 1.5, 2)

# Foreground colors by name, with the CSS value used in HTML logs.
COLORS: dict[str, str] = {
    "black": "#000000",
    "red": "#cd0000",
    "green": "#00cd00",
    "yellow": "#cdcd00",
    "blue": "#0000ee",
    "magenta": "#cd00cd",
    "cyan": "#00cdcd",
    "white": "#e5e5e5",
    "blackbright": "#7f7f7f",
    "gray": "#7f7f7f",
    "grey": "#7f7f7f",
    "redbright": "#ff0000",
    "greenbright": "#00ff00",
    "yellowbright": "#ffff00",
    "bluebright": "#5c5cff",
    "magentabright": "#ff00ff",
    "cyanbright": "#00ffff",
    "whitebright": "#ffffff",
}

BG_COLORS: dict[str, str] = {f"bg{name}": css for name, css in COLORS.items()}

# Mnemonics for code points 0..31, indexed by code point.
CTRL_MNEMONICS: tuple[str, ...] = (
    "\\0", "^A", "^B", "^C", "^D", "^E", "^F", "\\a",
    "\\b", "\\t", "\\n", "\\v", "\\f", "\\r", "^N", "^O",
    "^P", "^Q", "^R", "^S", "^T", "^U", "^V", "^W",
    "^X", "^Y", "^Z", "^[", "^\\", "^]", "^^", "^_",
)

PROMPT_LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
