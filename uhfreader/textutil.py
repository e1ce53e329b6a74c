"""Small text helpers: hex parsing/formatting, trimming, list windows, labels."""

from __future__ import annotations

import re
from typing import Optional

_SEPARATORS = re.compile(r"[,:\n\r\t]")
_HEX_DIGITS = re.compile(r"[0-9a-f]*")

_TARGET_LABELS = {0: "A", 1: "B"}
_ON_OFF_LABELS = {True: "ON", False: "OFF"}


def parse_hex_input(text: str) -> bytes:
    """Parse user-entered hex bytes.

    Tokens may be separated by whitespace, commas or colons, may carry a
    ``0x`` prefix, and an odd-length token gets a leading zero.
    Raises ValueError when nothing parses or a token is not hex.
    """
    stripped = text.strip()
    if not stripped:
        raise ValueError("empty input")

    tokens = _SEPARATORS.sub(" ", stripped).split()
    if not tokens:
        raise ValueError("no hex bytes found")

    out = bytearray()
    for token in tokens:
        norm = token.strip().lower()
        if norm.startswith("0x"):
            norm = norm[2:]
        if not norm:
            continue
        if len(norm) % 2:
            norm = "0" + norm
        if not _HEX_DIGITS.fullmatch(norm):
            raise ValueError(f"invalid token {token!r}")
        out += bytes.fromhex(norm)

    if not out:
        raise ValueError("no hex bytes parsed")
    return bytes(out)


def format_hex(data: bytes, max_bytes: int) -> str:
    """Upper-case, space-separated hex of at most ``max_bytes`` bytes; ``...`` marks truncation."""
    if not data:
        return ""
    truncated = len(data) > max_bytes
    shown = bytes(data[:max_bytes]) if truncated else bytes(data)
    out = shown.hex(" ").upper()
    if truncated:
        out += " ..."
    return out


def parse_digit(key: str) -> Optional[int]:
    """Zero-based index for a key ``"1"``..``"9"``, or None for anything else."""
    if len(key) != 1 or not ("1" <= key <= "9"):
        return None
    return int(key) - 1


def trim_text(text: str, limit: int) -> str:
    """Shorten ``text`` to ``limit`` characters, ending in ``...`` when there is room."""
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    if limit <= 3:
        return text[:limit]
    return text[:limit - 3] + "..."


def list_window(cursor: int, total: int, window: int) -> tuple[int, int]:
    """Start and end indices of a window of ``window`` rows centred on ``cursor``."""
    if total <= 0:
        return 0, 0
    if window <= 0 or window >= total:
        return 0, total
    start = max(cursor - window // 2, 0)
    end = start + window
    if end > total:
        end = total
        start = max(end - window, 0)
    return start, end


def status_tag(status: str) -> str:
    """Severity tag shown before a status message."""
    text = status.lower()
    if any(word in text for word in ("failed", "error", "timeout", "disconnected", "closed")):
        return "[ERR]"
    if any(word in text for word in ("no tag", "stopped", "idle", "antenna check")):
        return "[WARN]"
    if any(word in text for word in ("connected", "running", "started", "new tag", "received")):
        return "[OK]"
    return "[INFO ]"


def target_label(target: int) -> str:
    """Inventory target name: ``A`` for an even value, ``B`` for odd."""
    session_bit = int(target) & 0x01
    return _TARGET_LABELS[session_bit]


def on_off(value: bool) -> str:
    """``ON`` or ``OFF``."""
    state = bool(value)
    return _ON_OFF_LABELS[state]


def mask_bits(mask: int) -> str:
    """Names of the antennas set in an 8-bit mask, e.g. ``ANT1,ANT3``, or ``none``."""
    parts = [f"ANT{bit + 1}" for bit in range(8) if mask & (1 << bit)]
    return ",".join(parts) if parts else "none"


def pad_right(text: str, width: int) -> str:
    """Pad ``text`` with spaces up to ``width`` characters."""
    return text.ljust(width)