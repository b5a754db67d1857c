"""Output sinks: colorized console, plain text log and HTML log."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import html
import logging
from pathlib import Path
import sys
from typing import Any, Iterable, TextIO

from colorama import Back, Fore, Style

from .const import BG_COLORS, COLORS, NAME
from .transport import EventKind

_LOGGER = logging.getLogger(__name__)

ANSI_COLORS: dict[str, str] = {
    "black": Fore.BLACK,
    "red": Fore.RED,
    "green": Fore.GREEN,
    "yellow": Fore.YELLOW,
    "blue": Fore.BLUE,
    "magenta": Fore.MAGENTA,
    "cyan": Fore.CYAN,
    "white": Fore.WHITE,
    "blackbright": Fore.LIGHTBLACK_EX,
    "gray": Fore.LIGHTBLACK_EX,
    "grey": Fore.LIGHTBLACK_EX,
    "redbright": Fore.LIGHTRED_EX,
    "greenbright": Fore.LIGHTGREEN_EX,
    "yellowbright": Fore.LIGHTYELLOW_EX,
    "bluebright": Fore.LIGHTBLUE_EX,
    "magentabright": Fore.LIGHTMAGENTA_EX,
    "cyanbright": Fore.LIGHTCYAN_EX,
    "whitebright": Fore.LIGHTWHITE_EX,
}

ANSI_BG_COLORS: dict[str, str] = {
    "bgblack": Back.BLACK,
    "bgred": Back.RED,
    "bggreen": Back.GREEN,
    "bgyellow": Back.YELLOW,
    "bgblue": Back.BLUE,
    "bgmagenta": Back.MAGENTA,
    "bgcyan": Back.CYAN,
    "bgwhite": Back.WHITE,
    "bgblackbright": Back.LIGHTBLACK_EX,
    "bggray": Back.LIGHTBLACK_EX,
    "bggrey": Back.LIGHTBLACK_EX,
    "bgredbright": Back.LIGHTRED_EX,
    "bggreenbright": Back.LIGHTGREEN_EX,
    "bgyellowbright": Back.LIGHTYELLOW_EX,
    "bgbluebright": Back.LIGHTBLUE_EX,
    "bgmagentabright": Back.LIGHTMAGENTA_EX,
    "bgcyanbright": Back.LIGHTCYAN_EX,
    "bgwhitebright": Back.LIGHTWHITE_EX,
}

PORT_EVENT_LABELS: dict[EventKind, str] = {
    EventKind.OPEN: "open",
    EventKind.CLOSE: "closed",
    EventKind.ERROR: "in error",
}

PORT_EVENT_CLASSES: dict[EventKind, str] = {
    EventKind.OPEN: "open",
    EventKind.CLOSE: "closed",
    EventKind.ERROR: "error",
}

PORT_EVENT_ANSI: dict[EventKind, str] = {
    EventKind.OPEN: Style.BRIGHT + Fore.CYAN,
    EventKind.CLOSE: Style.BRIGHT + Fore.MAGENTA,
    EventKind.ERROR: Style.BRIGHT + Fore.RED,
}

STAMP_ANSI = Style.RESET_ALL + Fore.BLACK + Back.WHITE

HTML_STYLE = """\
body { background-color: #000000; color: #e5e5e5; font-family: monospace; white-space: pre; }
.stamp { color: #000000; background-color: #e5e5e5; }
.open { color: #00cdcd; font-weight: bold; }
.closed { color: #cd00cd; font-weight: bold; }
.error { color: #ff0000; font-weight: bold; }
.panic { color: #ff0000; }
.banner { color: #ffffff; font-style: italic; }
"""


class SinkOpenError(Exception):
    """Raised when a file sink cannot be created."""


@dataclass(frozen=True, slots=True)
class RenderedLine:
    prompt: str
    text: str
    stamp: str | None
    color: str
    bg_color: str
    css_class: str

    @property
    def head(self) -> str:
        """Prompt and optional stamp, e.g. 'B      1.234>' or 'A>'."""
        if self.stamp is None:
            return f"{self.prompt}>"
        return f"{self.prompt} {self.stamp}>"


def port_event_text(port: str, kind: EventKind, detail: str | None = None) -> str:
    text = f"[port {port} {PORT_EVENT_LABELS[kind]}]"
    if detail:
        text += f" {detail}"
    return text


def channel_styles(settings_list: Iterable[Any]) -> dict[str, tuple[str, str]]:
    """Map ch<N> classes to CSS (color, background) for every channel whose colors are known.

    Works on raw settings so the HTML prelude can be written before validation.
    """
    styles: dict[str, tuple[str, str]] = {}
    for index, settings in enumerate(settings_list):
        if not isinstance(settings, dict):
            continue
        color = str(settings.get("color", "")).strip().lower()
        bg_color = str(settings.get("bgColor", "")).strip().lower()
        if color in COLORS and bg_color in BG_COLORS:
            styles[f"ch{index + 1}"] = (COLORS[color], BG_COLORS[bg_color])
    return styles


class ConsoleSink:
    """Colorized terminal output; no open/close lifecycle."""

    def __init__(self, stream: TextIO | None = None, use_color: bool = True) -> None:
        self.stream = stream if stream is not None else sys.stdout
        self.use_color = use_color

    def _paint(self, text: str, ansi: str) -> str:
        if not self.use_color:
            return text
        return f"{ansi}{text}{Style.RESET_ALL}"

    def _print(self, text: str) -> None:
        encoding = getattr(self.stream, "encoding", None)
        if encoding:
            # Characters the terminal cannot show are written as escapes.
            text = text.encode(encoding, "backslashreplace").decode(encoding)
        self.stream.write(text + "\n")
        self.stream.flush()

    def write_line(self, line: RenderedLine) -> None:
        body_ansi = Style.RESET_ALL + ANSI_COLORS[line.color] + ANSI_BG_COLORS[line.bg_color]
        self._print(f"{self._paint(line.head, STAMP_ANSI)} {self._paint(line.text, body_ansi)}")

    def write_port_event(self, port: str, kind: EventKind, detail: str | None = None) -> None:
        self._print(self._paint(port_event_text(port, kind, detail), PORT_EVENT_ANSI[kind]))

    def write_banner(self, text: str) -> None:
        self._print(self._paint(text, Style.BRIGHT))

    def write_panic(self, text: str) -> None:
        self._print(self._paint(text, Fore.RED))


class FileSink:
    """A log file opened once, written line by line and closed exactly once with a trailer."""

    kind = "file"

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._file: TextIO | None = None
        self._closing = False

    @property
    def is_open(self) -> bool:
        return self._file is not None and not self._closing

    def open(self) -> None:
        try:
            self._file = self.path.open("w", encoding="utf-8", buffering=1)
        except OSError as err:
            raise SinkOpenError(f"Unable to open {self.kind} log {self.path}: {err}") from err
        self._write(self.prelude())

    def prelude(self) -> str:
        return ""

    def epilogue(self, trailer: str) -> str:
        return trailer + "\n"

    def render_line(self, line: RenderedLine) -> str:
        raise NotImplementedError

    def render_port_event(self, port: str, kind: EventKind, detail: str | None) -> str:
        raise NotImplementedError

    def render_banner(self, text: str) -> str:
        raise NotImplementedError

    def render_panic(self, text: str) -> str:
        raise NotImplementedError

    def write_line(self, line: RenderedLine) -> None:
        self._write(self.render_line(line))

    def write_port_event(self, port: str, kind: EventKind, detail: str | None = None) -> None:
        self._write(self.render_port_event(port, kind, detail))

    def write_banner(self, text: str) -> None:
        self._write(self.render_banner(text))

    def write_panic(self, text: str) -> None:
        self._write(self.render_panic(text))

    def _write(self, text: str) -> None:
        if not self.is_open or not text:
            return
        try:
            self._file.write(text)
        except OSError as err:
            _LOGGER.error("Write to %s failed, %s log disabled: %s", self.path, self.kind, err)
            self._drop()

    def _drop(self) -> None:
        file_handle, self._file = self._file, None
        if file_handle is not None:
            try:
                file_handle.close()
            except OSError:
                pass

    def _finish(self, trailer: str) -> None:
        file_handle, self._file = self._file, None
        try:
            file_handle.write(self.epilogue(trailer))
            file_handle.flush()
        finally:
            file_handle.close()

    async def async_close(self, trailer: str) -> None:
        """Append the trailer and close; returns at once when not open or already closing."""
        if not self.is_open:
            return
        self._closing = True
        try:
            await asyncio.to_thread(self._finish, trailer)
        except OSError as err:
            _LOGGER.error("Unable to finalize %s log %s: %s", self.kind, self.path, err)
        _LOGGER.debug("Closed %s log %s", self.kind, self.path)


class TextSink(FileSink):
    kind = "text"

    def render_line(self, line: RenderedLine) -> str:
        return f"{line.head} {line.text}\n"

    def render_port_event(self, port: str, kind: EventKind, detail: str | None) -> str:
        return port_event_text(port, kind, detail) + "\n"

    def render_banner(self, text: str) -> str:
        return text + "\n"

    def render_panic(self, text: str) -> str:
        return text + "\n"


class HtmlSink(FileSink):
    kind = "html"

    def __init__(self, path: str | Path, styles: dict[str, tuple[str, str]], title: str) -> None:
        super().__init__(path)
        self.styles = styles
        self.title = title

    def prelude(self) -> str:
        rules = "".join(
            f".{css_class} {{ color: {color}; background-color: {background}; }}\n"
            for css_class, (color, background) in self.styles.items()
        )
        return (
            "<!doctype html>\n"
            '<html lang="en">\n'
            "<head>\n"
            '<meta charset="utf-8">\n'
            f"<title>{html.escape(self.title)}</title>\n"
            f"<style>\n{HTML_STYLE}{rules}</style>\n"
            "</head>\n"
            "<body>\n"
        )

    def epilogue(self, trailer: str) -> str:
        return f'<span class="banner">{html.escape(trailer)}</span>\n</body>\n</html>\n'

    def render_line(self, line: RenderedLine) -> str:
        return (
            f'<span class="stamp">{html.escape(line.head)}</span> '
            f'<span class="{line.css_class}">{html.escape(line.text)}</span>\n'
        )

    def render_port_event(self, port: str, kind: EventKind, detail: str | None) -> str:
        text = html.escape(port_event_text(port, kind, detail))
        return f'<span class="{PORT_EVENT_CLASSES[kind]}">{text}</span>\n'

    def render_banner(self, text: str) -> str:
        return f'<span class="banner">{html.escape(text)}</span>\n'

    def render_panic(self, text: str) -> str:
        return f'<span class="panic">{html.escape(text)}</span>\n'


class SinkFanout:
    """Writes every entry to the console and to whichever file sinks are open."""

    def __init__(
        self,
        console: ConsoleSink,
        text: TextSink | None = None,
        html_sink: HtmlSink | None = None,
    ) -> None:
        self.console = console
        self.text = text
        self.html = html_sink

    @classmethod
    def open(
        cls,
        console: ConsoleSink,
        *,
        text_path: str | Path | None = None,
        html_path: str | Path | None = None,
        styles: dict[str, tuple[str, str]] | None = None,
        title: str = NAME,
    ) -> SinkFanout:
        """Open the requested file sinks; one that fails is logged and left out."""
        text = _open_or_none(TextSink(text_path)) if text_path else None
        html_sink = _open_or_none(HtmlSink(html_path, styles or {}, title)) if html_path else None
        return cls(console, text, html_sink)

    @property
    def file_sinks(self) -> list[FileSink]:
        return [sink for sink in (self.text, self.html) if sink is not None]

    def _targets(self) -> list[ConsoleSink | FileSink]:
        return [self.console, *self.file_sinks]

    def emit_line(self, line: RenderedLine) -> None:
        for sink in self._targets():
            sink.write_line(line)

    def emit_port_event(self, port: str, kind: EventKind, detail: str | None = None) -> None:
        for sink in self._targets():
            sink.write_port_event(port, kind, detail)

    def emit_banner(self, text: str) -> None:
        for sink in self._targets():
            sink.write_banner(text)

    def emit_panic(self, text: str) -> None:
        for sink in self._targets():
            sink.write_panic(text)

    async def async_close(self, trailer: str) -> None:
        """Finalize every file sink with the same trailer and wait for all of them."""
        await asyncio.gather(*(sink.async_close(trailer) for sink in self.file_sinks))


def _open_or_none(sink: FileSink) -> FileSink | None:
    try:
        sink.open()
    except SinkOpenError as err:
        _LOGGER.warning("%s", err)
        return None
    return sink
