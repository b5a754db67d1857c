"""Serial transport and delimiter-based frame splitting."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
import logging
import re
from typing import Callable

import serial

from .config import OpenOptions
from .const import DEFAULT_CHUNK_SIZE, DEFAULT_READ_TIMEOUT

_LOGGER = logging.getLogger(__name__)

PARITY_MAP = {
    "none": serial.PARITY_NONE,
    "even": serial.PARITY_EVEN,
    "odd": serial.PARITY_ODD,
    "mark": serial.PARITY_MARK,
    "space": serial.PARITY_SPACE,
}

BYTESIZE_MAP = {
    5: serial.FIVEBITS,
    6: serial.SIXBITS,
    7: serial.SEVENBITS,
    8: serial.EIGHTBITS,
}

STOPBITS_MAP = {
    1: serial.STOPBITS_ONE,
    1.5: serial.STOPBITS_ONE_POINT_FIVE,
    2: serial.STOPBITS_TWO,
}


class TransportError(Exception):
    """Runtime failure on a serial channel."""


class EventKind(Enum):
    OPEN = "open"
    DATA = "data"
    CLOSE = "close"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ChannelEvent:
    kind: EventKind
    data: bytes = b""
    error: Exception | None = None


EventCallback = Callable[[ChannelEvent], None]


class FrameSplitter:
    """Cut a byte stream into frames at every delimiter match.

    The delimiter itself is dropped. Bytes after the last match are kept until
    more data arrives or ``flush`` is called.
    """

    def __init__(self, delimiter: re.Pattern[bytes]) -> None:
        self.delimiter = delimiter
        self._buffer = b""

    @property
    def pending(self) -> bytes:
        return self._buffer

    def feed(self, data: bytes) -> list[bytes]:
        buffer = self._buffer + data
        frames: list[bytes] = []
        pos = 0
        for match in self.delimiter.finditer(buffer):
            frame = buffer[pos : match.start()]
            if frame:
                frames.append(frame)
            pos = max(pos, match.end())
        self._buffer = buffer[pos:]
        return frames

    def flush(self) -> list[bytes]:
        frame, self._buffer = self._buffer, b""
        return [frame] if frame else []


class SerialTransport:
    """One serial port read in the background, reporting everything as ChannelEvents."""

    def __init__(
        self,
        port: str,
        options: OpenOptions,
        on_event: EventCallback,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
    ) -> None:
        self.port = port
        self.options = options
        self._on_event = on_event
        self._chunk_size = chunk_size
        self._read_timeout = read_timeout
        self._serial: serial.SerialBase | None = None
        self._reader_task: asyncio.Task | None = None
        self._running = False

    @property
    def is_open(self) -> bool:
        return self._serial is not None

    def _open_serial(self) -> serial.SerialBase:
        return serial.serial_for_url(
            self.port,
            baudrate=self.options.baud_rate,
            bytesize=BYTESIZE_MAP[self.options.data_bits],
            parity=PARITY_MAP[self.options.parity],
            stopbits=STOPBITS_MAP[self.options.stop_bits],
            timeout=self._read_timeout,
        )

    def _read_chunk(self) -> bytes:
        ser = self._serial
        if ser is None:
            return b""
        # Wait for one byte at most read_timeout, then take whatever is queued.
        data = ser.read(1)
        if data:
            waiting = min(ser.in_waiting, self._chunk_size - 1)
            if waiting > 0:
                data += ser.read(waiting)
        return data

    async def async_open(self) -> None:
        """Open the port and start reading; failures are reported as an ERROR event."""
        if self._serial is not None:
            return
        try:
            self._serial = await asyncio.to_thread(self._open_serial)
        except (serial.SerialException, ValueError, OSError) as err:
            _LOGGER.debug("Unable to open %s: %s", self.port, err)
            self._emit(ChannelEvent(EventKind.ERROR, error=TransportError(f"unable to open {self.port}: {err}")))
            return

        _LOGGER.debug("Opened %s at %s baud", self.port, self.options.baud_rate)
        self._running = True
        self._emit(ChannelEvent(EventKind.OPEN))
        self._reader_task = asyncio.get_running_loop().create_task(self._async_read_loop())

    async def async_close(self) -> None:
        """Stop reading after the read in flight, close the port and emit CLOSE."""
        self._running = False
        task, self._reader_task = self._reader_task, None
        try:
            if task is not None and task is not asyncio.current_task():
                await task
        finally:
            await self._async_release()

    async def _async_read_loop(self) -> None:
        while self._running:
            try:
                data = await asyncio.to_thread(self._read_chunk)
            except (serial.SerialException, OSError) as err:
                if not self._running:
                    break
                _LOGGER.debug("Read failure on %s: %s", self.port, err)
                self._running = False
                self._emit(ChannelEvent(EventKind.ERROR, error=TransportError(f"{self.port}: {err}")))
                await self._async_release()
                break
            if data:
                self._emit(ChannelEvent(EventKind.DATA, data=data))

    async def _async_release(self) -> None:
        ser, self._serial = self._serial, None
        if ser is None:
            return
        await asyncio.to_thread(ser.close)
        _LOGGER.debug("Closed %s", self.port)
        self._emit(ChannelEvent(EventKind.CLOSE))

    def _emit(self, event: ChannelEvent) -> None:
        try:
            self._on_event(event)
        except Exception:  # noqa: BLE001 - a listener failure must not stop the port
            _LOGGER.exception("Error handling %s event from %s", event.kind.value, self.port)
