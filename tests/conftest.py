from __future__ import annotations

import functools
import struct
from typing import Callable, Iterable, List, Optional

import pytest

from tinyboy.avr import FlowClass, decode
from tinyboy.exceptions import Halted
from tinyboy.flash import FlashImage
from tinyboy.inputs import PulseSequence
from tinyboy.memory import ByteMemory, InstrumentedMemory
from tinyfuzz.generator import InputGenerator

NOP = 0x0000
RET = 0x9508
IJMP = 0x9409


def assemble(*words: int, data: bytes = b"") -> FlashImage:
    """Little-endian flash image from instruction words, followed by raw data."""
    return FlashImage(struct.pack(f"<{len(words)}H", *words) + data)


# 0x0000 NOP
# 0x0002 BREQ +1      -> fallthrough 0x0004, taken 0x0006
# 0x0004 RJMP 0x0000
# 0x0006 RJMP 0x0000
BRANCH_FIRMWARE = assemble(NOP, 0xF009, 0xCFFD, 0xCFFC)

# 0x0000 NOP
# 0x0002 NOP
# 0x0004 RJMP 0x0004
STRAIGHT_FIRMWARE = assemble(NOP, NOP, 0xCFFF)


class ScriptedEmulator:
    """
    Walks the decoded firmware one instruction per clock.

    Every clock reads one bit from the UP wire; a high bit takes a conditional
    branch or skip, a low bit falls through. Calls are treated as jumps and
    returns go back to the reset vector. Fetches go through `code.read`, so
    they show up as coverage.
    """

    def __init__(
        self,
        lookup,
        code_size: int = 256,
        data_size: int = 16,
        halt_at: Optional[int] = None,
        extra_reads: Iterable[int] = (),
        fail_with: Optional[BaseException] = None,
    ):
        self.code = InstrumentedMemory(ByteMemory(code_size))
        self.data = ByteMemory(data_size)
        self.button = lookup(["PB1"])
        self.led = lookup(["PB0"])
        self.halt_at = halt_at
        self.extra_reads = tuple(extra_reads)
        self.fail_with = fail_with
        self.pc = 0
        self.resets = 0
        self.clocks = 0

    def reset(self) -> None:
        self.pc = 0
        self.resets += 1
        self.data.clear()
        self.data.poke(2, self.resets & 0xFF)

    def upload(self, image: FlashImage) -> None:
        image.upload_to(self.code)

    def clock(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        if self.pc == self.halt_at:
            raise Halted(f"halted at 0x{self.pc:04x}")

        self.clocks += 1
        bit = self.button.read()
        insn = decode(self.code, self.pc)
        for offset in range(insn.width):
            self.code.read(self.pc + offset)
        for address in self.extra_reads:
            self.code.read(address)

        if insn.flow is FlowClass.BRANCH:
            self.pc = insn.target if bit else insn.next_address
        elif insn.flow is FlowClass.SKIP:
            following = decode(self.code, insn.next_address)
            self.pc = following.next_address if bit else insn.next_address
        elif insn.flow in (FlowClass.JUMP, FlowClass.CALL):
            self.pc = insn.target
        elif insn.flow is FlowClass.RETURN:
            self.pc = 0
        else:
            self.pc = insn.next_address

        self.data.write(0, self.pc & 0xFF)
        self.data.write(1, self.clocks & 0xFF)


def scripted_factory(**options) -> Callable:
    created: List[ScriptedEmulator] = []

    def factory(lookup):
        emulator = ScriptedEmulator(lookup, **options)
        created.append(emulator)
        return emulator

    factory.created = created
    return factory


def worker_factory(**options) -> Callable:
    """Picklable factory for engines that run emulators in worker processes."""
    return functools.partial(ScriptedEmulator, **options)


class ListGenerator(InputGenerator):
    """Hands out a fixed list of inputs and keeps every feedback call."""

    def __init__(self, sequences: Iterable[PulseSequence]):
        self.pending = list(sequences)
        self.recorded: List[tuple] = []

    def has_more(self) -> bool:
        return bool(self.pending)

    def generate(self) -> Optional[PulseSequence]:
        if not self.pending:
            return None
        return self.pending.pop(0)

    def record(self, sequence, covered, state) -> None:
        self.recorded.append((sequence, covered, state))


@pytest.fixture
def branch_firmware() -> FlashImage:
    return BRANCH_FIRMWARE


@pytest.fixture
def straight_firmware() -> FlashImage:
    return STRAIGHT_FIRMWARE
