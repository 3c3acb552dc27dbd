from datetime import datetime, timezone

import pytest

from core_storage.artifact_names import (
    extract_trailing_timestamp,
    format_timestamp,
    next_versioned_name,
    strip_timestamps,
)

_NOW = datetime(2025, 3, 4, 5, 6, 7, tzinfo=timezone.utc)


def test_extract_trailing_timestamp_compact_form():
    assert extract_trailing_timestamp("m-20250101-010101.b64") == "20250101010101"


def test_extract_uses_stamp_nearest_extension():
    assert extract_trailing_timestamp("m-20240101-000000-20250202-020202.b64") == "20250202020202"


def test_extract_without_extension():
    assert extract_trailing_timestamp("snapshot-20250101-120000") == "20250101120000"


@pytest.mark.parametrize(
    "name",
    [
        "m.b64",
        "m-latest.b64",
        "m-20250101-010101-copy.b64",
        "m-20251301-010101.b64",   # month 13
        "m-20250101-250000.b64",   # hour 25
        "m-2025011-010101.b64",
        "",
        None,
    ],
)
def test_extract_returns_none_for_missing_or_impossible(name):
    assert extract_trailing_timestamp(name) is None


def test_format_timestamp_layout():
    assert format_timestamp(_NOW) == "20250304-050607"


def test_format_timestamp_defaults_to_utc_now():
    out = format_timestamp()
    assert len(out) == 15 and out[8] == "-"
    assert extract_trailing_timestamp(f"x-{out}.b64") is not None


def test_strip_single_and_chained_stamps():
    assert strip_timestamps("m-20250101-010101.b64") == "m.b64"
    assert strip_timestamps("m-20240101-000000-20250202-020202.b64") == "m.b64"
    assert strip_timestamps("initial-matrix.b64") == "initial-matrix.b64"


def test_strip_leaves_inner_stamps_alone():
    assert strip_timestamps("m-20250101-010101-copy.b64") == "m-20250101-010101-copy.b64"


def test_next_versioned_name_replaces_existing_stamps():
    assert next_versioned_name("m-20240101-000000-20250202-020202.b64", _NOW) == "m-20250304-050607.b64"


def test_next_versioned_name_uses_default_base_for_empty_stem():
    assert next_versioned_name("", _NOW, default_base="initial-matrix.b64") == "initial-matrix-20250304-050607.b64"
    assert next_versioned_name(".b64", _NOW, default_base="initial-matrix.b64") == "initial-matrix-20250304-050607.b64"
    assert next_versioned_name(None, _NOW, default_base="seed.b64") == "seed-20250304-050607.b64"


@pytest.mark.parametrize(
    "name",
    ["m.b64", "m-20250101-010101.b64", "a.b.c-20250101-010101-20250102-020202.b64", "plain"],
)
def test_versioning_preserves_normalized_name(name):
    assert strip_timestamps(next_versioned_name(strip_timestamps(name), _NOW)) == strip_timestamps(name)
