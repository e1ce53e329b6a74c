"""Reader18 UHF RFID protocol, TCP client, inventory loop and helpers."""

__version__ = "0.1.0"
__all__ = [
    "botsync",
    "client",
    "config",
    "panel",
    "planning",
    "protocol",
    "regions",
    "textutil",
    "transport",
]