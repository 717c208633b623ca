"""
Mask/value decoder for the AVR instruction set.

Only what control-flow recovery needs is extracted: the opcode, the width in
bytes and, for direct transfers, the resolved byte address of the target.
Program memory is read through `peek` so decoding never shows up as runtime
coverage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

from tinyboy.avr.opcodes import (
    BRANCH_IF_CLEAR,
    BRANCH_IF_SET,
    WIDE_OPCODES,
    FlowClass,
    Opcode,
    flow_class,
)
from tinyboy.exceptions import DecodeError


class ProgramMemory(Protocol):
    def peek(self, address: int) -> int: ...

    def __len__(self) -> int: ...


@dataclass(frozen=True)
class Instruction:
    opcode: Opcode
    address: int
    width: int
    k: Optional[int] = None
    target: Optional[int] = None

    @property
    def next_address(self) -> int:
        return self.address + self.width

    @property
    def flow(self) -> FlowClass:
        return flow_class(self.opcode)

    def __str__(self) -> str:
        text = f"0x{self.address:04x}: {self.opcode.name}"
        if self.target is not None:
            text += f" -> 0x{self.target:04x}"
        return text


# Sentinel opcodes resolved through the status-flag alias tables.
_BRBS = "BRBS"
_BRBC = "BRBC"

_PATTERNS: List[Tuple[int, int, object]] = [
    (0xFFFF, 0x0000, Opcode.NOP),
    (0xFF00, 0x0100, Opcode.MOVW),
    (0xFF00, 0x0200, Opcode.MULS),
    (0xFF88, 0x0300, Opcode.MULSU),
    (0xFF88, 0x0308, Opcode.FMUL),
    (0xFF88, 0x0380, Opcode.FMULS),
    (0xFF88, 0x0388, Opcode.FMULSU),
    (0xFC00, 0x0400, Opcode.CPC),
    (0xFC00, 0x0800, Opcode.SBC),
    (0xFC00, 0x0C00, Opcode.ADD),
    (0xFC00, 0x1000, Opcode.CPSE),
    (0xFC00, 0x1400, Opcode.CP),
    (0xFC00, 0x1800, Opcode.SUB),
    (0xFC00, 0x1C00, Opcode.ADC),
    (0xFC00, 0x2000, Opcode.AND),
    (0xFC00, 0x2400, Opcode.EOR),
    (0xFC00, 0x2800, Opcode.OR),
    (0xFC00, 0x2C00, Opcode.MOV),
    (0xF000, 0x3000, Opcode.CPI),
    (0xF000, 0x4000, Opcode.SBCI),
    (0xF000, 0x5000, Opcode.SUBI),
    (0xF000, 0x6000, Opcode.ORI),
    (0xF000, 0x7000, Opcode.ANDI),
    (0xD208, 0x8000, Opcode.LDD_Z),
    (0xD208, 0x8008, Opcode.LDD_Y),
    (0xD208, 0x8200, Opcode.STD_Z),
    (0xD208, 0x8208, Opcode.STD_Y),
    (0xFE0F, 0x9000, Opcode.LDS),
    (0xFE0F, 0x9001, Opcode.LD_ZINC),
    (0xFE0F, 0x9002, Opcode.LD_DECZ),
    (0xFE0F, 0x9004, Opcode.LPM_Z),
    (0xFE0F, 0x9005, Opcode.LPM_ZINC),
    (0xFE0F, 0x9006, Opcode.ELPM_Z),
    (0xFE0F, 0x9007, Opcode.ELPM_ZINC),
    (0xFE0F, 0x9009, Opcode.LD_YINC),
    (0xFE0F, 0x900A, Opcode.LD_DECY),
    (0xFE0F, 0x900C, Opcode.LD_X),
    (0xFE0F, 0x900D, Opcode.LD_XINC),
    (0xFE0F, 0x900E, Opcode.LD_DECX),
    (0xFE0F, 0x900F, Opcode.POP),
    (0xFE0F, 0x9200, Opcode.STS),
    (0xFE0F, 0x9201, Opcode.ST_ZINC),
    (0xFE0F, 0x9202, Opcode.ST_DECZ),
    (0xFE0F, 0x9204, Opcode.XCH),
    (0xFE0F, 0x9205, Opcode.LAS),
    (0xFE0F, 0x9206, Opcode.LAC),
    (0xFE0F, 0x9207, Opcode.LAT),
    (0xFE0F, 0x9209, Opcode.ST_YINC),
    (0xFE0F, 0x920A, Opcode.ST_DECY),
    (0xFE0F, 0x920C, Opcode.ST_X),
    (0xFE0F, 0x920D, Opcode.ST_XINC),
    (0xFE0F, 0x920E, Opcode.ST_DECX),
    (0xFE0F, 0x920F, Opcode.PUSH),
    (0xFE0F, 0x9400, Opcode.COM),
    (0xFE0F, 0x9401, Opcode.NEG),
    (0xFE0F, 0x9402, Opcode.SWAP),
    (0xFE0F, 0x9403, Opcode.INC),
    (0xFE0F, 0x9405, Opcode.ASR),
    (0xFE0F, 0x9406, Opcode.LSR),
    (0xFE0F, 0x9407, Opcode.ROR),
    (0xFE0F, 0x940A, Opcode.DEC),
    (0xFF8F, 0x9408, Opcode.BSET),
    (0xFF8F, 0x9488, Opcode.BCLR),
    (0xFFFF, 0x9409, Opcode.IJMP),
    (0xFFFF, 0x9419, Opcode.EIJMP),
    (0xFF0F, 0x940B, Opcode.DES),
    (0xFE0E, 0x940C, Opcode.JMP),
    (0xFE0E, 0x940E, Opcode.CALL),
    (0xFFFF, 0x9508, Opcode.RET),
    (0xFFFF, 0x9509, Opcode.ICALL),
    (0xFFFF, 0x9518, Opcode.RETI),
    (0xFFFF, 0x9519, Opcode.EICALL),
    (0xFFFF, 0x9588, Opcode.SLEEP),
    (0xFFFF, 0x9598, Opcode.BREAK),
    (0xFFFF, 0x95A8, Opcode.WDR),
    (0xFFFF, 0x95C8, Opcode.LPM),
    (0xFFFF, 0x95D8, Opcode.ELPM),
    (0xFFFF, 0x95E8, Opcode.SPM),
    (0xFFFF, 0x95F8, Opcode.SPM_ZINC),
    (0xFF00, 0x9600, Opcode.ADIW),
    (0xFF00, 0x9700, Opcode.SBIW),
    (0xFF00, 0x9800, Opcode.CBI),
    (0xFF00, 0x9900, Opcode.SBIC),
    (0xFF00, 0x9A00, Opcode.SBI),
    (0xFF00, 0x9B00, Opcode.SBIS),
    (0xFC00, 0x9C00, Opcode.MUL),
    (0xF800, 0xB000, Opcode.IN),
    (0xF800, 0xB800, Opcode.OUT),
    (0xF000, 0xC000, Opcode.RJMP),
    (0xF000, 0xD000, Opcode.RCALL),
    (0xF000, 0xE000, Opcode.LDI),
    (0xFC00, 0xF000, _BRBS),
    (0xFC00, 0xF400, _BRBC),
    (0xFE08, 0xF800, Opcode.BLD),
    (0xFE08, 0xFA00, Opcode.BST),
    (0xFE08, 0xFC00, Opcode.SBRC),
    (0xFE08, 0xFE00, Opcode.SBRS),
]

# most specific mask first so exact encodings win over operand-carrying ones
_PATTERNS.sort(key=lambda entry: bin(entry[0]).count("1"), reverse=True)


def _signed(value: int, bits: int) -> int:
    if value & (1 << (bits - 1)):
        return value - (1 << bits)
    return value


def _match(word: int) -> Optional[object]:
    for mask, value, opcode in _PATTERNS:
        if word & mask == value:
            return opcode
    return None


def read_word(memory: ProgramMemory, address: int) -> int:
    if address < 0 or address + 1 >= len(memory):
        raise DecodeError(address, "address outside program memory")
    return memory.peek(address) | (memory.peek(address + 1) << 8)


def decode(memory: ProgramMemory, address: int) -> Instruction:
    word = read_word(memory, address)
    opcode = _match(word)
    if opcode is None:
        raise DecodeError(address, word=word)

    if opcode is _BRBS or opcode is _BRBC:
        aliases = BRANCH_IF_SET if opcode is _BRBS else BRANCH_IF_CLEAR
        k = _signed((word >> 3) & 0x7F, 7)
        return Instruction(
            aliases[word & 0x7], address, 2, k=k, target=address + 2 + 2 * k
        )

    assert isinstance(opcode, Opcode)

    if opcode in WIDE_OPCODES:
        if address + 3 >= len(memory):
            raise DecodeError(address, "truncated 32-bit instruction", word=word)
        operand = read_word(memory, address + 2)
        if opcode in (Opcode.JMP, Opcode.CALL):
            high = (((word >> 4) & 0x1F) << 1) | (word & 0x1)
            k = (high << 16) | operand
            return Instruction(opcode, address, 4, k=k, target=2 * k)
        return Instruction(opcode, address, 4, k=operand)

    if opcode in (Opcode.RJMP, Opcode.RCALL):
        k = _signed(word & 0xFFF, 12)
        return Instruction(opcode, address, 2, k=k, target=address + 2 + 2 * k)

    return Instruction(opcode, address, 2)
