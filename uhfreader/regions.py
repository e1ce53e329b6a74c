"""Catalog of UHF regulatory region presets."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Region:
    """One UHF regulatory preset."""

    code: str
    name: str
    band: str


CATALOG: tuple[Region, ...] = (
    Region("US", "United States", "902-928 MHz"),
    Region("EU", "Europe", "865-868 MHz"),
    Region("CN840", "China 840", "840-845 MHz"),
    Region("CN920", "China 920", "920-925 MHz"),
    Region("JP", "Japan", "916.8-923.4 MHz"),
    Region("KR", "Korea", "917-923.5 MHz"),
    Region("IN", "India", "865-867 MHz"),
    Region("AU", "Australia", "920-926 MHz"),
    Region("NZ", "New Zealand", "922-928 MHz"),
    Region("RU", "Russia", "866-868 MHz"),
    Region("BR", "Brazil", "902-907.5 MHz"),
    Region("ZA", "South Africa", "915-919 MHz"),
    Region("SG", "Singapore", "920-925 MHz"),
    Region("MY", "Malaysia", "919-923 MHz"),
    Region("TH", "Thailand", "920-925 MHz"),
    Region("VN", "Vietnam", "920-923 MHz"),
)


def default_index() -> int:
    """Index of the US preset in the catalog, or 0 if it is absent."""
    return next((i for i, region in enumerate(CATALOG) if region.code == "US"), 0)