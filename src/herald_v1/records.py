from __future__ import annotations

from pathlib import Path

from herald_v1.errors import RecordIndexError
from herald_v1.utils.text_utils import decode_uint64, encode_uint64


class FixedWidthRecordFile:
    """
    Flat file of fixed-width records.

    Each slot is `width` payload bytes followed by one liveness byte (1 = used,
    0 = free). Removing a record only clears its liveness byte; the next `add`
    reuses the first free slot before growing the file.
    """

    def __init__(self, path: Path, width: int) -> None:
        if width <= 0:
            raise ValueError("width must be positive")
        self.path = path
        self.width = width
        self.slot_size = width + 1

    def _read_all(self) -> bytearray:
        data = bytearray(self.path.read_bytes())
        if len(data) % self.slot_size != 0:
            raise ValueError(f"{self.path}: file size is not a multiple of {self.slot_size}")
        return data

    def _check_index(self, data: bytearray, index: int) -> None:
        if index < 0 or len(data) < self.slot_size * (index + 1):
            raise RecordIndexError(f"{self.path}: slot {index} is out of range")

    def count(self) -> int:
        if not self.path.exists():
            return 0
        return len(self._read_all()) // self.slot_size

    def add(self, payload: bytes) -> int:
        if len(payload) != self.width:
            raise ValueError(f"payload must be exactly {self.width} bytes")
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_bytes(bytes(payload) + b"\x01")
            return 0
        data = self._read_all()
        slots = len(data) // self.slot_size
        for index in range(slots):
            offset = index * self.slot_size
            if data[offset + self.width] == 0:
                data[offset : offset + self.width] = payload
                data[offset + self.width] = 1
                self.path.write_bytes(bytes(data))
                return index
        with self.path.open("ab") as handle:
            handle.write(bytes(payload) + b"\x01")
        return slots

    def read(self, index: int) -> bytes:
        data = self._read_all()
        self._check_index(data, index)
        offset = index * self.slot_size
        return bytes(data[offset : offset + self.width])

    def is_live(self, index: int) -> bool:
        data = self._read_all()
        self._check_index(data, index)
        return data[index * self.slot_size + self.width] == 1

    def remove(self, index: int) -> None:
        data = self._read_all()
        self._check_index(data, index)
        data[index * self.slot_size + self.width] = 0
        self.path.write_bytes(bytes(data))


class MessageIdStore:
    """Single 8-byte little-endian message id persisted between restarts."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def read(self) -> int:
        if not self.path.exists():
            return 0
        data = self.path.read_bytes()
        if len(data) != 8:
            return 0
        return decode_uint64(data)

    def write(self, message_id: int) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_bytes(encode_uint64(message_id))
        tmp.replace(self.path)
