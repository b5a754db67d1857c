"""Shared fixtures for serial-spy tests."""

import io

import pytest

from serial_spy.config import compile_channel
from serial_spy.sinks import ConsoleSink
from serial_spy.transport import ChannelEvent, EventKind


def make_settings(**overrides):
    """Return valid raw channel settings with selected fields replaced."""
    settings = {
        "comPort": "loop://",
        "openOptions": {"baudRate": 9600, "dataBits": 8, "parity": "none"},
        "color": "green",
        "bgColor": "bgBlack",
        "delimiter": "\\n",
        "format": "ascii",
        "stamp": "none",
        "translateCtrl": "no",
    }
    settings.update(overrides)
    return settings


def make_config(index=0, **overrides):
    return compile_channel(make_settings(**overrides), index)


class FakeTransport:
    """Records open/close requests and lets tests push events."""

    instances = []

    def __init__(self, port, options, on_event):
        self.port = port
        self.options = options
        self.on_event = on_event
        self.is_open = False
        self.open_calls = 0
        self.close_calls = 0
        FakeTransport.instances.append(self)

    async def async_open(self):
        self.open_calls += 1
        self.is_open = True
        self.on_event(ChannelEvent(EventKind.OPEN))

    async def async_close(self):
        self.close_calls += 1
        if self.is_open:
            self.is_open = False
            self.on_event(ChannelEvent(EventKind.CLOSE))

    def push(self, data):
        self.on_event(ChannelEvent(EventKind.DATA, data=data))


@pytest.fixture
def fake_transport():
    FakeTransport.instances = []
    yield FakeTransport
    FakeTransport.instances = []


@pytest.fixture
def console_buffer():
    return io.StringIO()


@pytest.fixture
def console(console_buffer):
    return ConsoleSink(console_buffer, use_color=False)
