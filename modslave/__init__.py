"""A Modbus slave stack: RTU and TCP framing, function handlers and an in-memory register bank."""

__version__ = "0.1.0"