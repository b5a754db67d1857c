"""serial-spy: log frames from several serial ports to the console, a text file and an HTML file."""

from __future__ import annotations

__version__ = "1.0.0"
