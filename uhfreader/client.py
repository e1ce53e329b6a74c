"""High-level reader client: connection, configuration and continuous inventory."""

from __future__ import annotations

import queue
import threading
from dataclasses import replace
from typing import Optional

from uhfreader.config import Endpoint, InventoryConfig, Stats, StatusEvent, TagEvent
from uhfreader.planning import next_inventory_antenna
from uhfreader.protocol import (
    CMD_GET_READER_INFO,
    CMD_INVENTORY,
    CMD_INVENTORY_SINGLE,
    STATUS_NO_TAG,
    STATUS_NO_TAG_OR_TIMEOUT,
    STATUS_SUCCESS,
    Frame,
    ProtocolError,
    get_reader_info_command,
    inventory_g2_command,
    inventory_single_tag_command,
    inventory_tag_count,
    parse_frames,
    parse_inventory_g2_tags,
    parse_single_inventory_result,
    set_antenna_mux_command,
    set_frequency_range_command,
    set_output_power_by_ant_command,
    set_output_power_command,
    set_scan_time_command,
    set_work_mode_command,
)
from uhfreader.textutil import target_label
from uhfreader.transport import ReaderTransport, TransportError

_SEND_TIMEOUT = 2.0
_DEFAULT_CONNECT_TIMEOUT = 3.0
_POLL = 0.05
_BUFFER_LIMIT = 8192
_BUFFER_KEEP = 4096
_NO_TAG_STATUSES = frozenset({STATUS_NO_TAG, STATUS_NO_TAG_OR_TIMEOUT, 0x02, 0x03, 0x04})


class ReaderError(Exception):
    """Raised when the client cannot carry out a request."""


def _offer(q: queue.Queue, item) -> None:
    try:
        q.put_nowait(item)
    except queue.Full:
        pass


class Client:
    """Reader client that streams tag, status and error events through queues.

    Events are dropped rather than blocking when a queue is full.
    """

    def __init__(self) -> None:
        cfg = InventoryConfig.default().normalized()
        self._transport = ReaderTransport()
        self._lock = threading.RLock()
        self._cfg = cfg
        self._inventory_on = False
        self._inventory_done: Optional[threading.Event] = None
        self._cancel: Optional[threading.Event] = None
        self._seen: set[str] = set()
        self._parser_buffer = bytearray()
        self._rounds = 0
        self._unique_tags = 0
        self._no_tag_hit = 0
        self._ant_idx = 0
        self._reader_addr = cfg.reader_address
        self._target = cfg.target
        self._last_tag_epc = ""
        self._tags: "queue.Queue[TagEvent]" = queue.Queue(256)
        self._statuses: "queue.Queue[StatusEvent]" = queue.Queue(256)
        self._errors: "queue.Queue[BaseException]" = queue.Queue(64)

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Event streams

    def tags(self) -> "queue.Queue[TagEvent]":
        """Queue of decoded tag reads."""
        return self._tags

    def statuses(self) -> "queue.Queue[StatusEvent]":
        """Queue of progress messages."""
        return self._statuses

    def errors(self) -> "queue.Queue[BaseException]":
        """Queue of errors raised by background loops."""
        return self._errors

    def _emit_tag(self, event: TagEvent) -> None:
        _offer(self._tags, event)

    def _emit_status(self, message: str) -> None:
        _offer(self._statuses, StatusEvent(message=message))

    def _emit_err(self, err: Optional[BaseException]) -> None:
        if err is not None:
            _offer(self._errors, err)

    # State and configuration

    def is_connected(self) -> bool:
        """True while the reader connection is open."""
        return self._transport.is_connected()

    def endpoint(self) -> Optional[Endpoint]:
        """Endpoint of the open connection, or None."""
        return self._transport.endpoint()

    def inventory_config(self) -> InventoryConfig:
        """Current inventory configuration."""
        with self._lock:
            return self._cfg

    def set_inventory_config(self, cfg: InventoryConfig) -> None:
        """Replace the inventory configuration, normalising it first."""
        cfg = cfg.normalized()
        with self._lock:
            self._cfg = cfg
            if self._reader_addr == 0:
                self._reader_addr = cfg.reader_address
        self._emit_status("inventory config updated")

    def stats(self) -> Stats:
        """Snapshot of the inventory counters."""
        with self._lock:
            return Stats(
                running=self._inventory_on,
                rounds=self._rounds,
                unique_tags=self._unique_tags,
                last_tag_epc=self._last_tag_epc,
                reader_addr=self._reader_addr,
                target_value=self._target,
            )

    # Connection

    def connect(self, endpoint: Endpoint, timeout: float = _DEFAULT_CONNECT_TIMEOUT) -> None:
        """Open a connection to ``endpoint``."""
        if timeout <= 0:
            timeout = _DEFAULT_CONNECT_TIMEOUT
        self._transport.connect(Endpoint(endpoint.host, endpoint.port), timeout)
        self._emit_status("connected: " + endpoint.address())

    def reconnect(self, endpoint: Endpoint, timeout: float = _DEFAULT_CONNECT_TIMEOUT) -> None:
        """Stop inventory, drop any connection and connect to ``endpoint``."""
        self.stop_inventory()
        try:
            self._transport.disconnect()
        except OSError:
            pass
        self.connect(endpoint, timeout)

    def disconnect(self) -> None:
        """Stop inventory and close the connection."""
        self.stop_inventory()
        self._transport.disconnect()
        self._emit_status("disconnected")

    def close(self) -> None:
        """Same as :meth:`disconnect`."""
        self.disconnect()

    def _require_connection(self) -> None:
        if not self._transport.is_connected():
            raise ReaderError("not connected")

    def probe_info(self) -> None:
        """Send the GetReaderInfo command."""
        self._require_connection()
        self._transport.send_raw(get_reader_info_command(self._current_reader_address()), _SEND_TIMEOUT)

    def send_raw(self, payload: bytes) -> None:
        """Send raw bytes to the reader."""
        self._require_connection()
        self._transport.send_raw(payload, _SEND_TIMEOUT)

    # Inventory control

    def apply_inventory_config(self) -> None:
        """Send the inventory-related configuration commands to the reader."""
        self._apply_config(None)

    def _apply_config(self, cancel: Optional[threading.Event]) -> None:
        self._require_connection()
        with self._lock:
            cfg, addr = self._cfg, self._reader_addr

        commands = [set_work_mode_command(addr, b"\x00")]
        if cfg.region_set:
            commands.append(set_frequency_range_command(addr, cfg.region_high, cfg.region_low))
        commands.append(set_scan_time_command(addr, cfg.scan_time))
        commands.append(set_antenna_mux_command(addr, cfg.antenna_mask))
        if cfg.per_antenna_power:
            commands.append(set_output_power_by_ant_command(addr, cfg.per_antenna_power))
        # Global power goes last as a fallback after optional per-antenna settings.
        commands.append(set_output_power_command(addr, cfg.output_power))

        for command in commands:
            if cancel is not None and cancel.is_set():
                raise ReaderError("inventory canceled")
            self._transport.send_raw(command, _SEND_TIMEOUT)

    def start_inventory(self) -> None:
        """Configure the reader and start the continuous inventory loops."""
        self._require_connection()
        with self._lock:
            if self._inventory_on:
                raise ReaderError("inventory already running")
            self._inventory_on = True
            done = threading.Event()
            cancel = threading.Event()
            self._inventory_done = done
            self._cancel = cancel
            self._seen = set()
            self._parser_buffer = bytearray()
            self._rounds = 0
            self._unique_tags = 0
            self._no_tag_hit = 0
            self._ant_idx = 0
            self._last_tag_epc = ""
            self._target = self._cfg.target
            if self._reader_addr == 0:
                self._reader_addr = self._cfg.reader_address

        try:
            self._apply_config(cancel)
        except BaseException:
            with self._lock:
                cancel.set()
                self._cancel = None
                self._inventory_on = False
            done.set()
            raise

        self._emit_status("inventory started")
        threading.Thread(
            target=self._inventory_run, args=(cancel,), name="inventory-rx", daemon=True
        ).start()

    def stop_inventory(self) -> None:
        """Stop the inventory loops and wait for them to finish."""
        with self._lock:
            if not self._inventory_on:
                return
            cancel, done = self._cancel, self._inventory_done
            self._cancel = None
            self._inventory_on = False
        if cancel is not None:
            cancel.set()
        if done is not None:
            done.wait()
        self._emit_status("inventory stopped")

    def _stop_inventory_async(self) -> None:
        with self._lock:
            cancel = self._cancel
            self._cancel = None
            self._inventory_on = False
        if cancel is not None:
            cancel.set()

    def _finish_inventory_run(self, cancel: threading.Event) -> None:
        with self._lock:
            done = self._inventory_done
            self._inventory_done = None
            self._cancel = None
            self._inventory_on = False
        cancel.set()
        if done is not None:
            done.set()

    # Inventory loops

    def _inventory_run(self, cancel: threading.Event) -> None:
        try:
            packets = self._transport.packets()
            errors = self._transport.errors()
            if packets is None:
                self._emit_err(ReaderError("packet channel unavailable"))
                return
            if errors is None:
                self._emit_err(ReaderError("error channel unavailable"))
                return

            threading.Thread(
                target=self._inventory_tx_loop, args=(cancel,), name="inventory-tx", daemon=True
            ).start()

            while not cancel.is_set():
                try:
                    err = errors.get_nowait()
                except queue.Empty:
                    pass
                else:
                    if err is None:
                        self._emit_err(ReaderError("reader error channel closed"))
                    else:
                        self._emit_err(err)
                    return
                try:
                    packet = packets.get(timeout=_POLL)
                except queue.Empty:
                    continue
                if packet is None:
                    self._emit_err(ReaderError("reader packet channel closed"))
                    return
                self.consume_packet(packet.data)
        finally:
            self._finish_inventory_run(cancel)

    def _inventory_tx_loop(self, cancel: threading.Event) -> None:
        while True:
            step = self._next_inventory_command()
            if step is None:
                return
            inventory, single, interval = step
            try:
                self._transport.send_raw(inventory, _SEND_TIMEOUT)
                if single is not None:
                    self._transport.send_raw(single, _SEND_TIMEOUT)
            except (OSError, TransportError) as exc:
                self._emit_err(exc)
                self._stop_inventory_async()
                return
            if cancel.wait(interval):
                return

    def _next_inventory_command(self) -> Optional[tuple[bytes, Optional[bytes], float]]:
        with self._lock:
            if not self._inventory_on:
                return None
            cfg = self._cfg.normalized()
            self._cfg = cfg
            self._rounds += 1
            antenna, self._ant_idx = next_inventory_antenna(cfg.antenna_mask, self._ant_idx)
            inventory = inventory_g2_command(
                self._reader_addr,
                cfg.q_value,
                cfg.session,
                0x00,
                0x00,
                self._target,
                antenna,
                cfg.scan_time,
            )
            single = None
            if cfg.single_fallback_each > 0 and self._rounds % cfg.single_fallback_each == 0:
                single = inventory_single_tag_command(self._reader_addr)
            return inventory, single, cfg.effective_interval().total_seconds()

    # Response handling

    def consume_packet(self, data: bytes) -> None:
        """Feed received bytes into the frame parser and handle complete frames."""
        with self._lock:
            self._parser_buffer += data
            if len(self._parser_buffer) > _BUFFER_LIMIT:
                self._parser_buffer = self._parser_buffer[-_BUFFER_KEEP:]
            frames, remaining = parse_frames(bytes(self._parser_buffer))
            self._parser_buffer = bytearray(remaining)
        for frame in frames:
            self._consume_frame(frame)

    def _consume_frame(self, frame: Frame) -> None:
        with self._lock:
            if self._cfg.auto_address:
                self._reader_addr = frame.address

        if frame.command == CMD_INVENTORY:
            self._handle_inventory_frame(frame)
        elif frame.command == CMD_INVENTORY_SINGLE:
            self._handle_inventory_single_frame(frame)
        elif frame.command == CMD_GET_READER_INFO:
            self._emit_status("reader info received")

    def _handle_inventory_frame(self, frame: Frame) -> None:
        try:
            tags = parse_inventory_g2_tags(frame)
        except ProtocolError as err:
            message = str(err)
            if "truncated" in message or "invalid" in message:
                self._emit_err(err)
            return
        if tags:
            for tag in tags:
                self._record_tag("inventory-g2", tag.antenna, tag.rssi, tag.epc)
            return

        if frame.status == STATUS_SUCCESS:
            try:
                count = inventory_tag_count(frame)
            except ProtocolError:
                return
            if count > 0:
                self._emit_status(f"count-only inventory response: {count}")
            return
        self._observe_no_tag(frame.status)

    def _handle_inventory_single_frame(self, frame: Frame) -> None:
        try:
            result = parse_single_inventory_result(frame)
        except ProtocolError:
            return
        if result.tag_count > 0 and result.epc:
            self._record_tag("inventory-single", result.antenna, 0, result.epc)
            return
        self._observe_no_tag(frame.status)

    def _observe_no_tag(self, status: int) -> None:
        if status not in _NO_TAG_STATUSES:
            return
        switched_to: Optional[int] = None
        with self._lock:
            self._no_tag_hit += 1
            cfg = self._cfg
            if (
                cfg.session > 1
                and cfg.no_tag_ab_switch > 0
                and self._no_tag_hit >= cfg.no_tag_ab_switch
            ):
                self._target ^= 0x01
                self._no_tag_hit = 0
                switched_to = self._target
        if switched_to is not None:
            self._emit_status("target switched to " + target_label(switched_to))

    def _record_tag(self, source: str, antenna: int, rssi: int, epc: bytes) -> None:
        epc_text = bytes(epc).hex().upper()
        if not epc_text:
            return
        with self._lock:
            self._no_tag_hit = 0
            is_new = epc_text not in self._seen
            if is_new:
                self._seen.add(epc_text)
                self._unique_tags += 1
            self._last_tag_epc = epc_text
            rounds, unique = self._rounds, self._unique_tags
        self._emit_tag(
            TagEvent(
                source=source,
                epc=epc_text,
                antenna=antenna,
                rssi=rssi,
                is_new=is_new,
                rounds=rounds,
                unique_tags=unique,
            )
        )

    def _current_reader_address(self) -> int:
        with self._lock:
            return self._reader_addr


__all__ = ["Client", "ReaderError", "replace"]