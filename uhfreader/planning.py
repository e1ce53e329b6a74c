"""Connection planning and inventory cycling helpers."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from uhfreader.config import Candidate, Endpoint

PORT_FALLBACK: tuple[int, ...] = (2022, 5000, 27011, 6000, 4001, 10001)


def clamp_int(value: int, min_value: int, max_value: int) -> int:
    """``value`` limited to the range ``[min_value, max_value]``."""
    if value < min_value:
        return min_value
    if value > max_value:
        return max_value
    return value


def candidate_connect_order(total: int, preferred: int) -> list[int]:
    """Candidate indices to try: the preferred one first, then the rest in order."""
    if total <= 0:
        return []
    order = [preferred] if 0 <= preferred < total else []
    order.extend(i for i in range(total) if i != preferred)
    return order


def merge_port_order(primary: Iterable[int], fallback: Iterable[int]) -> list[int]:
    """Positive ports from ``primary`` then ``fallback``, first occurrence kept."""
    seen: set[int] = set()
    out: list[int] = []
    for port in (*primary, *fallback):
        if port <= 0 or port in seen:
            continue
        seen.add(port)
        out.append(port)
    return out


def build_connect_plan(
    candidates: Sequence[Candidate],
    preferred_index: int,
    scan_ports: Iterable[int],
) -> list[Endpoint]:
    """Ordered, de-duplicated endpoints to try when connecting."""
    if not candidates:
        return []
    scan_ports = list(scan_ports)
    seen: set[str] = set()
    plan: list[Endpoint] = []
    for idx in candidate_connect_order(len(candidates), preferred_index):
        candidate = candidates[idx]
        for port in merge_port_order([candidate.port, *scan_ports], PORT_FALLBACK):
            if not candidate.host.strip():
                continue
            endpoint = Endpoint(candidate.host, port)
            key = endpoint.address()
            if key in seen:
                continue
            seen.add(key)
            plan.append(endpoint)
    return plan


def next_inventory_antenna(mask: int, start: int) -> tuple[int, int]:
    """Antenna byte (``0x80 | index``) for the next set bit of ``mask`` and the index after it."""
    mask &= 0xFF
    if mask == 0:
        mask = 0x01
    start %= 8
    for offset in range(8):
        idx = (start + offset) % 8
        if mask & (1 << idx):
            return 0x80 | idx, (idx + 1) % 8
    return 0x80, start


def preferred_verified_candidate_index(candidates: Sequence[Candidate]) -> Optional[int]:
    """Index of the first verified candidate, or None."""
    return next((i for i, c in enumerate(candidates) if c.verified), None)


def preferred_candidate_index(candidates: Sequence[Candidate]) -> Optional[int]:
    """First verified candidate, else the first one; None when there are none."""
    if not candidates:
        return None
    idx = preferred_verified_candidate_index(candidates)
    return 0 if idx is None else idx


def count_verified_candidates(candidates: Iterable[Candidate]) -> int:
    """Number of verified candidates."""
    return sum(1 for candidate in candidates if candidate.verified)