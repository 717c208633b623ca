"""
Firmware images and Intel HEX loading.

A `FlashImage` is the read-only program memory handed to both the static
analysis and every emulator session. Its size is elastic: the highest
address written by the HEX file (plus one), rounded up to a whole word.
"""

from __future__ import annotations

import binascii
from pathlib import Path
from typing import Dict, Iterable, Union

from tinyboy.exceptions import HexFormatError
from tinyboy.memory import Memory

_DATA = 0x00
_EOF = 0x01
_EXTENDED_SEGMENT = 0x02
_START_SEGMENT = 0x03
_EXTENDED_LINEAR = 0x04
_START_LINEAR = 0x05


class FlashImage:
    def __init__(self, data: Union[bytes, bytearray, Iterable[int]]):
        data = bytes(data)
        if len(data) % 2:
            data += b"\xff"
        self._data = data

    @property
    def data(self) -> bytes:
        return self._data

    def peek(self, address: int) -> int:
        return self._data[address]

    def word(self, address: int) -> int:
        return self._data[address] | (self._data[address + 1] << 8)

    def upload_to(self, memory: Memory) -> None:
        if len(memory) < len(self._data):
            raise ValueError(
                f"image of {len(self._data)} bytes does not fit in "
                f"{len(memory)} bytes of memory"
            )
        for address, byte in enumerate(self._data):
            memory.poke(address, byte)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other) -> bool:
        return isinstance(other, FlashImage) and self._data == other._data

    def __hash__(self) -> int:
        return hash(self._data)

    def __repr__(self) -> str:
        return f"FlashImage(size={len(self._data)})"

    @classmethod
    def from_hex(cls, text: str) -> FlashImage:
        return cls.from_chunks(parse_hex(text))

    @classmethod
    def from_hex_file(cls, path: Union[str, Path]) -> FlashImage:
        return cls.from_hex(Path(path).read_text(encoding="ascii"))

    @classmethod
    def from_chunks(cls, chunks: Dict[int, int], fill: int = 0xFF) -> FlashImage:
        if not chunks:
            return cls(b"")
        size = max(chunks) + 1
        image = bytearray([fill]) * size
        for address, byte in chunks.items():
            image[address] = byte
        return cls(image)


def parse_hex(text: str) -> Dict[int, int]:
    """
    Parse Intel HEX text into an address -> byte mapping.

    Supports data, end-of-file, extended segment and extended linear address
    records. Start address records are accepted and ignored.
    """
    memory: Dict[int, int] = {}
    base = 0
    saw_eof = False

    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        if saw_eof:
            raise HexFormatError("data after end-of-file record", line_number)
        if not line.startswith(":"):
            raise HexFormatError("record does not start with ':'", line_number)

        try:
            record = binascii.unhexlify(line[1:])
        except (binascii.Error, ValueError) as exc:
            raise HexFormatError(f"invalid hex digits: {exc}", line_number) from exc

        if len(record) < 5:
            raise HexFormatError("record too short", line_number)

        count = record[0]
        if len(record) != count + 5:
            raise HexFormatError(
                f"byte count {count} does not match record length", line_number
            )
        if sum(record) & 0xFF:
            raise HexFormatError("checksum mismatch", line_number)

        offset = (record[1] << 8) | record[2]
        kind = record[3]
        payload = record[4:-1]

        if kind == _DATA:
            for i, byte in enumerate(payload):
                memory[base + offset + i] = byte
        elif kind == _EOF:
            saw_eof = True
        elif kind == _EXTENDED_SEGMENT:
            base = int.from_bytes(payload, "big") << 4
        elif kind == _EXTENDED_LINEAR:
            base = int.from_bytes(payload, "big") << 16
        elif kind in (_START_SEGMENT, _START_LINEAR):
            continue
        else:
            raise HexFormatError(f"unknown record type 0x{kind:02x}", line_number)

    return memory
