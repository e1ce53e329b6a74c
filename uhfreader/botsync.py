"""Client for the companion bot's newline-delimited JSON control socket."""

from __future__ import annotations

import json
import logging
import os
import queue
import re
import socket
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from uhfreader.textutil import trim_text

logger = logging.getLogger(__name__)

DEFAULT_SOCKET = "/tmp/rfid-go-bot.sock"
DEFAULT_SOURCE = "st8508-tui"
DEFAULT_TIMEOUT_MS = 1200
MIN_TIMEOUT_MS = 200
DEFAULT_QUEUE_SIZE = 4096
MIN_QUEUE_SIZE = 128
_ERROR_LOG_INTERVAL = 3.0

_TRUE_WORDS = frozenset({"1", "true", "yes", "on"})
_FALSE_WORDS = frozenset({"0", "false", "no", "off"})
_INT_PATTERN = re.compile(r"[+-]?\d+")
_TIME_PATTERN = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|[+-]\d{2}:\d{2})?$"
)


class BotSyncError(Exception):
    """Raised when the bot cannot be reached or rejects a request."""


def env_or(key: str, fallback: str) -> str:
    """Stripped value of environment variable ``key``, or ``fallback`` when empty."""
    value = os.environ.get(key, "").strip()
    return value or fallback


def env_int(key: str, fallback: int) -> int:
    """Integer value of environment variable ``key``, or ``fallback`` when unset or invalid."""
    raw = os.environ.get(key, "").strip()
    if not raw or not _INT_PATTERN.fullmatch(raw):
        return fallback
    return int(raw)


def env_bool(key: str, fallback: bool) -> bool:
    """Boolean value of environment variable ``key``, or ``fallback`` when unrecognised."""
    raw = os.environ.get(key, "").strip().lower()
    if raw in _TRUE_WORDS:
        return True
    if raw in _FALSE_WORDS:
        return False
    return fallback


def _parse_time(value: Any) -> Optional[datetime]:
    """RFC 3339 timestamp to datetime; None for missing or zero times."""
    if not value:
        return None
    match = _TIME_PATTERN.match(str(value))
    if match is None:
        raise BotSyncError(f"invalid timestamp {value!r}")
    text = match["base"]
    if match["frac"]:
        text += "." + match["frac"][:6].ljust(6, "0")
    tz = match["tz"]
    if tz:
        text += "+00:00" if tz == "Z" else tz
    parsed = datetime.fromisoformat(text)
    if parsed.year == 1 and parsed.month == 1 and parsed.day == 1:
        return None
    return parsed


@dataclass(frozen=True)
class BotRuntimeStats:
    """Counters reported by the bot's status request."""

    cache_size: int = 0
    draft_count: int = 0
    last_refresh_at: Optional[datetime] = None
    last_refresh_ok: bool = False
    scan_active: bool = False
    scan_since: Optional[datetime] = None
    seen_total: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    submitted_ok: int = 0
    submit_not_found: int = 0
    submit_errors: int = 0
    queue_dropped: int = 0
    scan_inactive: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BotRuntimeStats":
        """Build stats from the ``stats`` object of a response."""
        counters = (
            "cache_size",
            "draft_count",
            "seen_total",
            "cache_hits",
            "cache_misses",
            "submitted_ok",
            "submit_not_found",
            "submit_errors",
            "queue_dropped",
            "scan_inactive",
        )
        return cls(
            last_refresh_at=_parse_time(data.get("last_refresh_at")),
            last_refresh_ok=bool(data.get("last_refresh_ok", False)),
            scan_active=bool(data.get("scan_active", False)),
            scan_since=_parse_time(data.get("scan_since")),
            **{name: int(data.get(name) or 0) for name in counters},
        )


def _frame(kind: str, source: str = "", epc: str = "") -> dict:
    frame = {"type": kind}
    if source:
        frame["source"] = source
    if epc:
        frame["epc"] = epc
    return frame


class BotSyncClient:
    """Forwards reading events and newly seen EPCs to the bot over a Unix socket.

    Each request opens a connection, writes one JSON line and reads one JSON
    line back. New EPCs are queued and sent by a background worker; they are
    dropped when the queue is full.
    """

    def __init__(
        self,
        socket_path: str = DEFAULT_SOCKET,
        *,
        source: str = DEFAULT_SOURCE,
        timeout: float = DEFAULT_TIMEOUT_MS / 1000,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        enabled: bool = True,
    ) -> None:
        self.enabled = enabled
        self.source = source
        self.socket_path = socket_path
        self.timeout = timeout
        self.queue_size = queue_size
        self._err_lock = threading.Lock()
        self._last_err_at: Optional[float] = None
        self._closed = False
        self._queue: "Optional[queue.Queue[Optional[str]]]" = None
        self._worker: Optional[threading.Thread] = None
        if enabled:
            self._queue = queue.Queue(queue_size)
            self._worker = threading.Thread(
                target=self._ingest_worker, name="bot-sync-ingest", daemon=True
            )
            self._worker.start()

    @classmethod
    def from_env(cls) -> "BotSyncClient":
        """Client configured from the ``BOT_SYNC_*`` environment variables."""
        if not env_bool("BOT_SYNC_ENABLED", True):
            return cls(enabled=False)
        timeout_ms = max(env_int("BOT_SYNC_TIMEOUT_MS", DEFAULT_TIMEOUT_MS), MIN_TIMEOUT_MS)
        queue_size = max(env_int("BOT_SYNC_QUEUE_SIZE", DEFAULT_QUEUE_SIZE), MIN_QUEUE_SIZE)
        return cls(
            socket_path=env_or("BOT_SYNC_SOCKET", env_or("BOT_IPC_SOCKET", DEFAULT_SOCKET)),
            source=env_or("BOT_SYNC_SOURCE", DEFAULT_SOURCE),
            timeout=timeout_ms / 1000,
            queue_size=queue_size,
        )

    def __enter__(self) -> "BotSyncClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _ingest_worker(self) -> None:
        assert self._queue is not None
        while True:
            epc = self._queue.get()
            if epc is None:
                return
            try:
                self.round_trip(_frame("epc", self.source, epc))
            except BotSyncError as err:
                self._log_error_rate_limited("bot ingest failed", err)

    def _send_async(self, kind: str, prefix: str) -> None:
        def run() -> None:
            try:
                self.round_trip(_frame(kind, self.source))
            except BotSyncError as err:
                self._log_error_rate_limited(prefix, err)

        threading.Thread(target=run, name=f"bot-sync-{kind}", daemon=True).start()

    def on_start_reading(self) -> None:
        """Tell the bot that scanning started, without waiting for the reply."""
        if self.enabled:
            self._send_async("scan_start", "bot scan start failed")

    def on_stop_reading(self) -> None:
        """Tell the bot that scanning stopped, without waiting for the reply."""
        if self.enabled:
            self._send_async("scan_stop", "bot scan stop failed")

    def on_new_epc(self, epc: str) -> None:
        """Queue a newly seen EPC for delivery; dropped when the queue is full."""
        if not self.enabled or self._closed or self._queue is None:
            return
        epc = epc.strip()
        if not epc:
            return
        try:
            self._queue.put_nowait(epc)
        except queue.Full:
            self._log_error_rate_limited(
                "bot ingest queue full", BotSyncError(f"dropped epc={trim_text(epc, 16)}")
            )

    def status(self) -> BotRuntimeStats:
        """Ask the bot for its runtime counters."""
        if not self.enabled:
            raise BotSyncError("bot sync disabled")
        response = self.round_trip(_frame("status", self.source))
        stats = response.get("stats") or {}
        if not isinstance(stats, Mapping):
            raise BotSyncError("invalid stats in response")
        return BotRuntimeStats.from_dict(stats)

    def round_trip(self, frame: Mapping[str, Any]) -> dict:
        """Send one request frame and return the bot's successful response."""
        if not self.enabled:
            raise BotSyncError("bot sync disabled")
        body = json.dumps(dict(frame), separators=(",", ":")).encode() + b"\n"
        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as conn:
                conn.settimeout(self.timeout)
                conn.connect(self.socket_path)
                conn.sendall(body)
                with conn.makefile("rb") as reader:
                    line = reader.readline()
        except OSError as exc:
            raise BotSyncError(str(exc) or exc.__class__.__name__) from exc
        if not line.endswith(b"\n"):
            raise BotSyncError("unexpected end of response")
        try:
            response = json.loads(line)
        except ValueError as exc:
            raise BotSyncError(f"invalid response: {exc}") from exc
        if not isinstance(response, dict):
            raise BotSyncError("invalid response: not an object")

        if not response.get("ok"):
            message = str(response.get("error") or "").strip()
            raise BotSyncError(message or "ipc response not ok")
        warning = str(response.get("warning") or "").strip()
        if warning:
            self._log_error_rate_limited("bot ipc warning", BotSyncError(warning))
        return response

    def close(self) -> None:
        """Stop the ingest worker after it has sent what is already queued."""
        if self._closed:
            return
        self._closed = True
        if self._queue is not None and self._worker is not None:
            self._queue.put(None)
            self._worker.join(self.timeout * 2 + 1)

    def _log_error_rate_limited(self, prefix: str, err: BaseException) -> None:
        now = time.monotonic()
        with self._err_lock:
            if self._last_err_at is not None and now - self._last_err_at < _ERROR_LOG_INTERVAL:
                return
            self._last_err_at = now
        logger.warning("%s: %s", prefix, err)