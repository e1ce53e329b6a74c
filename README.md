# uhfreader

A Python library for UHF RFID readers that use the Reader18 binary protocol
over TCP. It builds and parses protocol frames, runs continuous inventory
loops in background threads, and reports tag reads as events. It has no
third-party dependencies.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Building and parsing frames

`uhfreader.protocol` covers the wire format: a length byte, reader address,
command, payload and a CRC-16/MCRF4XX trailer (`crc16_mcrf4xx`).

```python
from uhfreader.protocol import (
    CMD_INVENTORY,
    get_reader_info_command,
    inventory_g2_command,
    parse_frames,
    parse_inventory_g2_tags,
)

packet = get_reader_info_command(0x00)   # b"\x04\x00\x21\xd9\x6a"

command = inventory_g2_command(0x00, 0x04, 0x01, 0x00, 0x00, 0x00, 0x80, 0x0A)

frames, remaining = parse_frames(received_bytes)
for frame in frames:
    if frame.command == CMD_INVENTORY:
        for tag in parse_inventory_g2_tags(frame):
            print(tag.antenna, tag.epc.hex().upper(), tag.rssi)
```

`parse_frames` skips bytes that cannot start a valid frame, returns trailing
incomplete data as `remaining`, and only returns frames whose CRC checks out.
Other builders include `inventory_single_tag_command`,
`set_scan_time_command`, `set_output_power_command`,
`set_output_power_by_ant_command`, `set_frequency_range_command`,
`set_work_mode_command` and `set_antenna_mux_command`. The decoders
`inventory_tag_count`, `parse_inventory_g2_tags` and
`parse_single_inventory_result` raise `ProtocolError` for a frame of the wrong
command or a malformed payload.

## Running an inventory

```python
from dataclasses import replace

from uhfreader.client import Client
from uhfreader.config import Endpoint, InventoryConfig

with Client() as client:
    client.connect(Endpoint("192.0.2.10", 6000), 3.0)

    cfg = replace(InventoryConfig.default(), antenna_mask=0x05)  # antennas 1 and 3
    client.set_inventory_config(cfg)

    client.start_inventory()
    try:
        while True:
            event = client.tags().get()
            print(event.epc, event.antenna, "new" if event.is_new else "seen")
    finally:
        client.stop_inventory()
```

`InventoryConfig` is immutable; `normalized()` returns a copy with safe
defaults and output powers clamped to 0x1E. `effective_interval()` gives the
real polling cycle: the configured poll interval, but never shorter than the
scan time (in 100 ms units) or 40 ms.

`Client.start_inventory()` sends the configuration commands, then polls the
reader with inventory commands, rotating over the antennas in the mask and
sending a single-tag inventory every `single_fallback_each` rounds. With a
session above 1, the target flips between A and B after `no_tag_ab_switch`
rounds without a tag. `Client.stats()` returns the round count, unique tag
count, last EPC, reader address and current target. Status messages and
errors from the background loops arrive on `client.statuses()` and
`client.errors()`; events are dropped when a queue is full. Methods that need
a connection raise `ReaderError` when there is none.

`uhfreader.transport.ReaderTransport` is the underlying TCP session: it
delivers received `Packet`s and read errors on queues that end with `None`
when the session closes, and raises `TransportError` for invalid requests.

## Connection planning

`uhfreader.planning.build_connect_plan` turns a list of `Candidate` endpoints
into an ordered, de-duplicated list of `Endpoint`s to try: the preferred
candidate first, each host on its own port, then the scan ports, then common
reader ports. `preferred_candidate_index` picks the first verified candidate,
or the first one.

## Regions

`uhfreader.regions.CATALOG` lists regulatory UHF band presets as `Region`
values; `default_index()` points at the United States entry.

## Text and layout helpers

`uhfreader.textutil` parses and formats hex bytes (`parse_hex_input`,
`format_hex`) and provides small labels and trimming helpers.
`uhfreader.panel` draws boxed text panels (`render_panel`) and fits page
bodies to a terminal height (`clamp_page_body`).

## Bot synchronisation

`uhfreader.botsync.BotSyncClient` sends newline-delimited JSON requests over a
Unix socket: scan start and stop notices, newly seen EPCs (queued and sent by a
background worker), and status requests returning `BotRuntimeStats`.
`BotSyncClient.from_env()` reads `BOT_SYNC_ENABLED`, `BOT_SYNC_SOCKET` (or
`BOT_IPC_SOCKET`), `BOT_SYNC_SOURCE`, `BOT_SYNC_TIMEOUT_MS` and
`BOT_SYNC_QUEUE_SIZE`. Failures raise `BotSyncError`.

## What it does not do

The package is a library only. It installs no commands and has no
interactive terminal application. It does not scan the local network for
readers: `Candidate` lists must come from elsewhere. It does not implement
the bot side of the synchronisation socket.