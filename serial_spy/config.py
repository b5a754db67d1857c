"""Channel settings validation and compilation."""

from __future__ import annotations

import codecs
from dataclasses import dataclass
import json
from pathlib import Path
import re
from typing import Any

import voluptuous as vol

from .const import (
    BG_COLORS,
    COLORS,
    DATA_BITS,
    DEFAULT_ENCODINGS,
    DEFAULT_REMANENCE,
    DEFAULT_STOP_BITS,
    FORMATS,
    PARITIES,
    PROMPT_LETTERS,
    STAMP_MODES,
    STOP_BITS,
)


class ConfigError(Exception):
    """Base error for a channel set that cannot be used."""

    def __init__(self, message: str, index: int | None = None) -> None:
        super().__init__(message)
        self.index = index


class ConfigFileError(ConfigError):
    """Raised when the channel set file cannot be read or parsed."""


class ConfigStructureError(ConfigError):
    """Raised when a channel lacks required fields or holds invalid values."""

    def __init__(self, index: int, missing: list[str], invalid: list[str]) -> None:
        parts = []
        if missing:
            parts.append(f"missing key{'s' if len(missing) != 1 else ''}: {', '.join(missing)}")
        if invalid:
            parts.append(f"invalid value{'s' if len(invalid) != 1 else ''}: {', '.join(invalid)}")
        super().__init__(f"channel index {index}, {'; '.join(parts)}", index)
        self.missing = missing
        self.invalid = invalid


class PatternCompileError(ConfigError):
    """Raised when a delimiter, filter or replacement pattern does not compile."""

    def __init__(self, index: int, field: str, detail: str) -> None:
        super().__init__(f"channel index {index}, {field} is not valid => {detail}", index)
        self.field = field
        self.detail = detail


def _lower(value: Any) -> str:
    if not isinstance(value, str):
        raise vol.Invalid("expected a string")
    return value.strip().lower()


def _encoding(value: Any) -> str:
    if not isinstance(value, str):
        raise vol.Invalid("expected a string")
    try:
        return codecs.lookup(value).name
    except LookupError as err:
        raise vol.Invalid(f"unknown encoding '{value}'") from err


OPEN_OPTIONS_SCHEMA = vol.Schema(
    {
        vol.Required("baudRate"): vol.All(vol.Coerce(int), vol.Range(min=1)),
        vol.Required("dataBits"): vol.All(vol.Coerce(int), vol.In(DATA_BITS)),
        vol.Required("parity"): vol.All(_lower, vol.In(PARITIES)),
        vol.Optional("stopBits", default=DEFAULT_STOP_BITS): vol.All(vol.Coerce(float), vol.In(STOP_BITS)),
    },
    extra=vol.ALLOW_EXTRA,
)

REPLACEMENT_SCHEMA = vol.Schema(
    {
        vol.Required("what"): str,
        vol.Required("with"): str,
    },
    extra=vol.ALLOW_EXTRA,
)

CHANNEL_SCHEMA = vol.Schema(
    {
        vol.Required("comPort"): vol.All(str, vol.Length(min=1)),
        vol.Required("openOptions"): OPEN_OPTIONS_SCHEMA,
        vol.Required("color"): vol.All(_lower, vol.In(COLORS)),
        vol.Required("bgColor"): vol.All(_lower, vol.In(BG_COLORS)),
        vol.Required("delimiter"): vol.All(str, vol.Length(min=1)),
        vol.Required("format"): vol.All(_lower, vol.In(FORMATS)),
        vol.Required("stamp"): vol.All(_lower, vol.In(STAMP_MODES)),
        vol.Required("translateCtrl"): vol.Boolean(),
        vol.Optional("filters"): [str],
        vol.Optional("replacements"): list,
        vol.Optional("remanence", default=DEFAULT_REMANENCE): vol.All(vol.Coerce(int), vol.Range(min=0)),
        vol.Optional("encoding"): _encoding,
    },
    extra=vol.ALLOW_EXTRA,
)


@dataclass(frozen=True, slots=True)
class OpenOptions:
    baud_rate: int
    data_bits: int
    parity: str
    stop_bits: float = DEFAULT_STOP_BITS


@dataclass(frozen=True, slots=True)
class Replacement:
    what: re.Pattern[str]
    with_text: str


@dataclass(frozen=True, slots=True)
class ChannelConfig:
    """One compiled channel, ready for the frame pipeline."""

    index: int
    port: str
    open_options: OpenOptions
    color: str
    bg_color: str
    delimiter: re.Pattern[bytes]
    render_format: str
    stamp_mode: str
    translate_ctrl: bool
    encoding: str
    filters: tuple[re.Pattern[str], ...] = ()
    replacements: tuple[Replacement, ...] = ()
    remanence: int = DEFAULT_REMANENCE

    @property
    def prompt(self) -> str:
        return PROMPT_LETTERS[self.index % len(PROMPT_LETTERS)]

    @property
    def display_index(self) -> int:
        return self.index + 1

    @property
    def css_class(self) -> str:
        return f"ch{self.display_index}"


def format_path(path: list[Any]) -> str:
    """Render a voluptuous error path as openOptions.baudRate or replacements[0].what."""
    text = ""
    for part in path:
        if isinstance(part, int):
            text += f"[{part}]"
        else:
            text += f".{part}" if text else str(part)
    return text or "<channel>"


_FIELD_ORDER: dict[str, list[str]] = {
    "": [str(key) for key in CHANNEL_SCHEMA.schema],
    "openOptions": [str(key) for key in OPEN_OPTIONS_SCHEMA.schema],
    "replacements": [str(key) for key in REPLACEMENT_SCHEMA.schema],
}


def _field_rank(path: list[Any]) -> tuple[int, int, int, int]:
    """Order fields as declared: channel keys, then openOptions.*, then replacements[i].*."""
    top = _FIELD_ORDER[""]
    parent = str(path[0]) if len(path) > 1 else ""
    keys = _FIELD_ORDER.get(parent, [])
    leaf = str(path[-1]) if path else ""
    return (
        len(path),
        top.index(parent) if parent in top else len(top),
        path[1] if len(path) > 2 and isinstance(path[1], int) else 0,
        keys.index(leaf) if leaf in keys else len(keys),
    )


def _split_errors(errors: list[vol.Invalid]) -> tuple[list[str], list[str]]:
    missing: list[str] = []
    invalid: list[str] = []
    for error in sorted(errors, key=lambda error: _field_rank(error.path)):
        path = format_path(error.path)
        if isinstance(error, vol.RequiredFieldInvalid):
            missing.append(path)
        else:
            invalid.append(f"{path} ({error.msg})")
    return missing, invalid


def validate_channel(settings: Any, index: int) -> dict[str, Any]:
    """Check one channel's raw settings and return them with defaults and coercions applied."""
    errors: list[vol.Invalid] = []
    validated: dict[str, Any] = {}
    try:
        validated = CHANNEL_SCHEMA(settings)
    except vol.MultipleInvalid as err:
        errors.extend(err.errors)

    replacements: list[dict[str, Any]] = []
    raw_replacements = settings.get("replacements") if isinstance(settings, dict) else None
    if isinstance(raw_replacements, list):
        for position, item in enumerate(raw_replacements):
            try:
                replacements.append(REPLACEMENT_SCHEMA(item))
            except vol.MultipleInvalid as err:
                err.prepend(["replacements", position])
                errors.extend(err.errors)

    if errors:
        missing, invalid = _split_errors(errors)
        raise ConfigStructureError(index, missing, invalid)

    validated["replacements"] = replacements
    return validated


def _compile(index: int, field: str, pattern: str | bytes) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as err:
        raise PatternCompileError(index, field, str(err)) from err


def compile_channel(settings: Any, index: int) -> ChannelConfig:
    """Validate and compile one channel's settings."""
    data = validate_channel(settings, index)
    options = data["openOptions"]

    delimiter = _compile(index, "delimiter", data["delimiter"].encode("utf-8"))
    filters = tuple(
        _compile(index, f"filters[{position}]", text) for position, text in enumerate(data.get("filters", []))
    )

    replacements = []
    for position, item in enumerate(data["replacements"]):
        what = _compile(index, f"replacements[{position}].what", item["what"])
        try:
            # The template is parsed up front, so bad group references fail here.
            what.sub(item["with"], "")
        except (re.error, IndexError) as err:
            raise PatternCompileError(index, f"replacements[{position}].with", str(err)) from err
        replacements.append(Replacement(what=what, with_text=item["with"]))

    render_format = data["format"]
    stop_bits = float(options["stopBits"])
    return ChannelConfig(
        index=index,
        port=data["comPort"],
        open_options=OpenOptions(
            baud_rate=options["baudRate"],
            data_bits=options["dataBits"],
            parity=options["parity"],
            stop_bits=int(stop_bits) if stop_bits.is_integer() else stop_bits,
        ),
        color=data["color"],
        bg_color=data["bgColor"],
        delimiter=delimiter,
        render_format=render_format,
        stamp_mode=data["stamp"],
        translate_ctrl=data["translateCtrl"],
        encoding=data.get("encoding") or DEFAULT_ENCODINGS[render_format],
        filters=filters,
        replacements=tuple(replacements),
        remanence=data["remanence"],
    )


def compile_channel_set(settings_list: list[Any]) -> list[ChannelConfig]:
    """Compile every channel, or raise the first failure without returning any."""
    return [compile_channel(settings, index) for index, settings in enumerate(settings_list)]


def load_channel_settings(path: str | Path) -> list[Any]:
    """Read a JSON channel set file (an array of channel objects)."""
    config_path = Path(path)
    try:
        content = json.loads(config_path.read_text(encoding="utf-8"))
    except OSError as err:
        raise ConfigFileError(f'Unable to read "{config_path}": {err}') from err
    except json.JSONDecodeError as err:
        raise ConfigFileError(f'Invalid JSON in "{config_path}": {err}') from err

    if not isinstance(content, list):
        raise ConfigFileError(f'"{config_path}" must contain an array of channel objects')
    return content
