import dataclasses

import pytest

from uhfreader.regions import CATALOG, Region, default_index


def test_default_index_points_to_us():
    assert CATALOG[default_index()].code == "US"
    assert CATALOG[default_index()].band == "902-928 MHz"


def test_default_index_is_in_range():
    assert 0 <= default_index() < len(CATALOG)


def test_codes_are_unique_and_default_is_first_us():
    codes = [region.code for region in CATALOG]
    assert len(codes) == len(set(codes))
    assert codes.index("US") == default_index()


def test_bands_are_mhz_ranges():
    for region in CATALOG:
        low, high = region.band.removesuffix(" MHz").split("-")
        assert float(low) < float(high)
    low, high = CATALOG[default_index()].band.removesuffix(" MHz").split("-")
    assert (float(low), float(high)) == (902.0, 928.0)


def test_catalog_size_and_europe_entry():
    assert len(CATALOG) == 16
    europe = next(region for region in CATALOG if region.code == "EU")
    assert europe.name == "Europe"
    assert europe.band == "865-868 MHz"
    assert CATALOG.index(europe) == default_index() + 1


def test_region_is_immutable():
    region = Region("XX", "Test", "900-901 MHz")
    with pytest.raises(dataclasses.FrozenInstanceError):
        region.code = "YY"
    assert region.code == "XX"