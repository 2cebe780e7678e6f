from __future__ import annotations

from pathlib import Path

import pytest

from herald_v1.errors import RecordIndexError
from herald_v1.records import FixedWidthRecordFile, MessageIdStore


def test_add_then_read_returns_payload(tmp_path: Path) -> None:
    records = FixedWidthRecordFile(tmp_path / "records.bin", 4)
    first = records.add(b"abcd")
    second = records.add(b"wxyz")
    assert (first, second) == (0, 1)
    assert records.read(0) == b"abcd"
    assert records.read(1) == b"wxyz"
    assert (tmp_path / "records.bin").stat().st_size == 10


def test_remove_then_add_reuses_slot(tmp_path: Path) -> None:
    path = tmp_path / "records.bin"
    records = FixedWidthRecordFile(path, 4)
    records.add(b"aaaa")
    records.add(b"bbbb")
    records.add(b"cccc")
    size_before = path.stat().st_size

    records.remove(1)
    assert records.is_live(1) is False
    assert path.stat().st_size == size_before

    reused = records.add(b"dddd")
    assert reused == 1
    assert path.stat().st_size == size_before
    assert records.read(1) == b"dddd"
    assert records.is_live(1) is True
    assert records.count() == 3


def test_read_out_of_range_raises_index_error(tmp_path: Path) -> None:
    records = FixedWidthRecordFile(tmp_path / "records.bin", 2)
    records.add(b"ok")
    with pytest.raises(RecordIndexError):
        records.read(1)
    with pytest.raises(IndexError):
        records.remove(5)


def test_misaligned_file_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "records.bin"
    path.write_bytes(b"12345")
    records = FixedWidthRecordFile(path, 3)
    with pytest.raises(ValueError):
        records.read(0)


def test_payload_width_is_enforced(tmp_path: Path) -> None:
    records = FixedWidthRecordFile(tmp_path / "records.bin", 8)
    with pytest.raises(ValueError):
        records.add(b"short")


def test_message_id_store_round_trip_and_absence(tmp_path: Path) -> None:
    store = MessageIdStore(tmp_path / "rolesdata.bin")
    assert store.read() == 0
    store.write(998877665544332211)
    assert (tmp_path / "rolesdata.bin").read_bytes() == (998877665544332211).to_bytes(8, "little")
    assert store.read() == 998877665544332211


def test_message_id_store_ignores_wrong_length(tmp_path: Path) -> None:
    path = tmp_path / "rolesdata.bin"
    path.write_bytes(b"\x01\x02\x03")
    assert MessageIdStore(path).read() == 0
