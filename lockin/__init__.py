"""Lock-in amplifier TCP query client plus small acquisition/plotting tools."""

from lockin.devices.lockin_tcp import read_lockin

__version__ = "0.1.0"
