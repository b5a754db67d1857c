"""Channel lifecycle: all-or-nothing startup, event handling and coordinated shutdown."""

from __future__ import annotations

import asyncio
from datetime import datetime
from enum import Enum
import logging
from typing import Any, Callable

from . import __version__
from .config import ChannelConfig, ConfigError, OpenOptions, compile_channel_set
from .const import NAME
from .filters import ChannelState, should_show
from .formatter import format_frame
from .sinks import RenderedLine, SinkFanout
from .stamps import SharedClock
from .transport import ChannelEvent, EventCallback, EventKind, FrameSplitter, SerialTransport

_LOGGER = logging.getLogger(__name__)

TransportFactory = Callable[[str, OpenOptions, EventCallback], Any]


class RunState(Enum):
    VALIDATING = "validating"
    OPENING = "opening"
    RUNNING = "running"
    PANICKED = "panicked"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class SpyChannel:
    """Pipeline for one configured port: split, format, filter, stamp, emit."""

    def __init__(
        self,
        config: ChannelConfig,
        fanout: SinkFanout,
        clock: SharedClock,
        transport_factory: TransportFactory,
    ) -> None:
        self.config = config
        self.fanout = fanout
        self.clock = clock
        self.state = ChannelState()
        self.splitter = FrameSplitter(config.delimiter)
        self.transport = transport_factory(config.port, config.open_options, self.handle_event)

    def handle_event(self, event: ChannelEvent) -> None:
        port = self.config.port
        if event.kind is EventKind.DATA:
            for frame in self.splitter.feed(event.data):
                self.handle_frame(frame)
        elif event.kind is EventKind.OPEN:
            self.fanout.emit_port_event(port, EventKind.OPEN)
        elif event.kind is EventKind.CLOSE:
            for frame in self.splitter.flush():
                self.handle_frame(frame)
            self.fanout.emit_port_event(port, EventKind.CLOSE)
        elif event.kind is EventKind.ERROR:
            detail = str(event.error) if event.error is not None else None
            self.fanout.emit_port_event(port, EventKind.ERROR, detail)

    def handle_frame(self, frame: bytes) -> RenderedLine | None:
        """Run one frame through the pipeline; return the emitted line, or None if filtered out."""
        config = self.config
        text = format_frame(frame, config)
        if not should_show(text, config, self.state):
            return None
        line = RenderedLine(
            prompt=config.prompt,
            text=text,
            stamp=self.clock.stamp(config.stamp_mode),
            color=config.color,
            bg_color=config.bg_color,
            css_class=config.css_class,
        )
        self.fanout.emit_line(line)
        return line

    async def async_open(self) -> None:
        await self.transport.async_open()

    async def async_close(self) -> None:
        await self.transport.async_close()


class SpyCoordinator:
    """Owns every channel of a run and the sinks they share."""

    def __init__(
        self,
        settings: list[Any],
        fanout: SinkFanout,
        *,
        source: str = "",
        transport_factory: TransportFactory = SerialTransport,
        clock: SharedClock | None = None,
    ) -> None:
        self.settings = settings
        self.fanout = fanout
        self.source = source
        self.transport_factory = transport_factory
        self.clock = clock if clock is not None else SharedClock()
        self.channels: list[SpyChannel] = []
        self.state = RunState.VALIDATING
        self._shutdown_task: asyncio.Task | None = None

    def _banner(self, verb: str) -> str:
        return f"{NAME} {__version__} {verb} {datetime.now():%Y-%m-%d %H:%M:%S}"

    async def async_start(self) -> bool:
        """Validate every channel, then open every transport. Returns False on a panic."""
        banner = self._banner("started")
        if self.source:
            banner += f' with "{self.source}"'
        self.fanout.emit_banner(banner)

        self.state = RunState.VALIDATING
        try:
            configs = compile_channel_set(self.settings)
        except ConfigError as err:
            self.state = RunState.PANICKED
            where = f' of config. file "{self.source}"' if self.source else ""
            self.fanout.emit_panic(f"Panic{where}: {err}")
            _LOGGER.debug("Channel set rejected: %s", err)
            return False

        self.state = RunState.OPENING
        self.channels = [
            SpyChannel(config, self.fanout, self.clock, self.transport_factory) for config in configs
        ]
        for channel in self.channels:
            await channel.async_open()
        self.state = RunState.RUNNING
        _LOGGER.debug("Running %d channel(s)", len(self.channels))
        return True

    async def async_shutdown(self) -> None:
        """Close every channel, then every file sink; runs at most once."""
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.get_running_loop().create_task(self._async_do_shutdown())
        await asyncio.shield(self._shutdown_task)

    async def _async_do_shutdown(self) -> None:
        self.state = RunState.SHUTTING_DOWN
        for channel in self.channels:
            try:
                await channel.async_close()
            except Exception:  # noqa: BLE001 - one bad port must not block the others
                _LOGGER.exception("Failure closing %s", channel.config.port)

        trailer = self._banner("stopped")
        self.fanout.console.write_banner(trailer)
        await self.fanout.async_close(trailer)
        self.state = RunState.TERMINATED

    async def async_run(self, stop_event: asyncio.Event) -> int:
        """Start, wait for the stop event and always shut down. Returns the exit code."""
        try:
            if not await self.async_start():
                return 1
            await stop_event.wait()
            return 0
        finally:
            await self.async_shutdown()
