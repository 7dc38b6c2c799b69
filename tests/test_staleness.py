"""Tests for BuildNumber watermarks."""

import os
import stat

from regbrowse.staleness import WATERMARK_FILE, is_stale, read_watermark, record_watermark


def test_first_observation_is_stale_and_creates_slot(tmp_path):
    slot = str(tmp_path / "a" / "b" / "c")

    assert is_stale(slot, "42")
    assert os.path.isdir(slot)
    assert read_watermark(slot) is None


def test_stale_until_recorded(tmp_path):
    slot = str(tmp_path / "slot")

    assert is_stale(slot, "42")
    assert is_stale(slot, "42")
    record_watermark(slot, "42")
    assert not is_stale(slot, "42")


def test_exact_match_comparison(tmp_path):
    slot = str(tmp_path / "slot")
    record_watermark(slot, "10")

    assert not is_stale(slot, "10")
    assert not is_stale(slot, 10)
    assert is_stale(slot, "9")
    assert is_stale(slot, "11")
    assert is_stale(slot, "010")


def test_record_overwrites(tmp_path):
    slot = str(tmp_path / "slot")
    record_watermark(slot, "1")
    record_watermark(slot, "abc")

    with open(os.path.join(slot, WATERMARK_FILE), encoding="utf-8") as f:
        assert f.read() == "abc"
    assert sorted(os.listdir(slot)) == [WATERMARK_FILE]


def test_slot_dir_is_a_directory(tmp_path):
    slot = str(tmp_path / "slot")
    record_watermark(slot, "1")
    assert stat.S_ISDIR(os.stat(slot).st_mode)
