"""
Byte-addressable memories and the instrumentation hooks used for coverage.

`read`/`write` model accesses made by the running firmware and are visible to
registered instruments. `peek`/`poke` are out-of-band accesses, such as image
uploads and snapshots, and are never observed.
"""

from __future__ import annotations

from typing import List, Protocol, Set, runtime_checkable


@runtime_checkable
class Memory(Protocol):
    def read(self, address: int) -> int: ...

    def peek(self, address: int) -> int: ...

    def write(self, address: int, data: int) -> None: ...

    def poke(self, address: int, data: int) -> None: ...

    def __len__(self) -> int: ...


class ByteMemory:
    def __init__(self, size: int):
        if size < 0:
            raise ValueError("memory size must be non-negative")
        self._data = bytearray(size)

    def read(self, address: int) -> int:
        return self._data[address]

    def peek(self, address: int) -> int:
        return self._data[address]

    def write(self, address: int, data: int) -> None:
        self._data[address] = data & 0xFF

    def poke(self, address: int, data: int) -> None:
        self._data[address] = data & 0xFF

    def clear(self) -> None:
        self._data[:] = bytes(len(self._data))

    def __len__(self) -> int:
        return len(self._data)


class Instrument:
    def on_read(self, address: int) -> None:
        pass

    def on_write(self, address: int, data: int) -> None:
        pass


class ReadWriteInstrument(Instrument):
    """Records every address read or written since registration."""

    def __init__(self):
        self.reads: Set[int] = set()
        self.writes: Set[int] = set()

    def on_read(self, address: int) -> None:
        self.reads.add(address)

    def on_write(self, address: int, data: int) -> None:
        self.writes.add(address)

    def was_read(self, address: int) -> bool:
        return address in self.reads


class InstrumentedMemory:
    def __init__(self, memory: Memory):
        self.memory = memory
        self._instruments: List[Instrument] = []

    @property
    def instruments(self) -> List[Instrument]:
        return list(self._instruments)

    def register(self, instrument: Instrument) -> None:
        if instrument in self._instruments:
            raise ValueError("instrument is already registered")
        self._instruments.append(instrument)

    def unregister(self, instrument: Instrument) -> None:
        self._instruments.remove(instrument)

    def read(self, address: int) -> int:
        for instrument in self._instruments:
            instrument.on_read(address)
        return self.memory.read(address)

    def peek(self, address: int) -> int:
        return self.memory.peek(address)

    def write(self, address: int, data: int) -> None:
        for instrument in self._instruments:
            instrument.on_write(address, data)
        self.memory.write(address, data)

    def poke(self, address: int, data: int) -> None:
        self.memory.poke(address, data)

    def __len__(self) -> int:
        return len(self.memory)


def snapshot(memory: Memory) -> bytes:
    return bytes(memory.peek(i) for i in range(len(memory)))
