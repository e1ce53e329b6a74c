"""Public value types: endpoints, discovery candidates, inventory settings and events."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from uhfreader.protocol import DEFAULT_READER_ADDRESS

MAX_OUTPUT_POWER = 0x1E
MIN_CYCLE = timedelta(milliseconds=40)
SCAN_TIME_UNIT = timedelta(milliseconds=100)


@dataclass(frozen=True)
class Endpoint:
    """Network address of a reader."""

    host: str
    port: int

    def address(self) -> str:
        """``host:port``, with IPv6 hosts in brackets."""
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class Candidate:
    """One discovered endpoint with scoring and verification details."""

    host: str
    port: int
    score: int = 0
    banner: str = ""
    reason: str = ""
    verified: bool = False
    reader_address: int = 0
    protocol: str = ""


@dataclass(frozen=True)
class InventoryConfig:
    """How the reader performs inventory polling."""

    reader_address: int = 0
    auto_address: bool = False
    q_value: int = 0
    session: int = 0
    target: int = 0
    antenna_mask: int = 0
    scan_time: int = 0
    poll_interval: timedelta = timedelta(0)
    output_power: int = 0
    region_set: bool = False
    region_high: int = 0
    region_low: int = 0
    per_antenna_power: tuple[int, ...] = ()
    no_tag_ab_switch: int = 0
    single_fallback_each: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "per_antenna_power", tuple(self.per_antenna_power))

    @classmethod
    def default(cls) -> "InventoryConfig":
        """A balanced low-latency configuration."""
        return cls(
            reader_address=DEFAULT_READER_ADDRESS,
            auto_address=True,
            q_value=0x04,
            session=0x01,
            target=0x00,
            antenna_mask=0x01,
            scan_time=0x01,
            poll_interval=timedelta(milliseconds=40),
            output_power=0x1E,
            no_tag_ab_switch=4,
            single_fallback_each=6,
        )

    def effective_interval(self) -> timedelta:
        """Real inventory cycle; the firmware scan time is a hard lower bound."""
        floor = max(SCAN_TIME_UNIT * self.scan_time, MIN_CYCLE)
        return self.poll_interval if self.poll_interval > floor else floor

    def normalized(self) -> "InventoryConfig":
        """A copy with safe defaults filled in and powers clamped."""
        return replace(
            self,
            antenna_mask=self.antenna_mask or 0x01,
            scan_time=self.scan_time or 0x01,
            output_power=min(self.output_power, MAX_OUTPUT_POWER),
            poll_interval=(
                self.poll_interval if self.poll_interval > timedelta(0) else MIN_CYCLE
            ),
            single_fallback_each=max(self.single_fallback_each, 0),
            no_tag_ab_switch=max(self.no_tag_ab_switch, 0),
            per_antenna_power=tuple(
                min(power, MAX_OUTPUT_POWER) for power in self.per_antenna_power
            ),
        )


@dataclass(frozen=True)
class TagEvent:
    """One decoded EPC read."""

    source: str
    epc: str
    antenna: int = 0
    rssi: int = 0
    is_new: bool = False
    rounds: int = 0
    unique_tags: int = 0
    when: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class StatusEvent:
    """A lightweight progress signal."""

    message: str
    when: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class Stats:
    """Current inventory counters."""

    running: bool = False
    rounds: int = 0
    unique_tags: int = 0
    last_tag_epc: str = ""
    reader_addr: int = 0
    target_value: int = 0