from __future__ import annotations

from enum import Enum, auto
from typing import Dict, Tuple


class Opcode(Enum):
    # Arithmetic and logic
    ADC = auto()
    ADD = auto()
    ADIW = auto()
    AND = auto()
    ANDI = auto()
    ASR = auto()
    COM = auto()
    CP = auto()
    CPC = auto()
    CPI = auto()
    DEC = auto()
    DES = auto()
    EOR = auto()
    FMUL = auto()
    FMULS = auto()
    FMULSU = auto()
    INC = auto()
    LSR = auto()
    MUL = auto()
    MULS = auto()
    MULSU = auto()
    NEG = auto()
    OR = auto()
    ORI = auto()
    ROR = auto()
    SBC = auto()
    SBCI = auto()
    SBIW = auto()
    SUB = auto()
    SUBI = auto()
    SWAP = auto()
    # Bit and flag manipulation
    BCLR = auto()
    BLD = auto()
    BSET = auto()
    BST = auto()
    CBI = auto()
    SBI = auto()
    # Data transfer
    ELPM = auto()
    ELPM_Z = auto()
    ELPM_ZINC = auto()
    IN = auto()
    LAC = auto()
    LAS = auto()
    LAT = auto()
    LD_X = auto()
    LD_XINC = auto()
    LD_DECX = auto()
    LD_YINC = auto()
    LD_DECY = auto()
    LD_ZINC = auto()
    LD_DECZ = auto()
    LDD_Y = auto()
    LDD_Z = auto()
    LDI = auto()
    LDS = auto()
    LPM = auto()
    LPM_Z = auto()
    LPM_ZINC = auto()
    MOV = auto()
    MOVW = auto()
    OUT = auto()
    POP = auto()
    PUSH = auto()
    SPM = auto()
    SPM_ZINC = auto()
    ST_X = auto()
    ST_XINC = auto()
    ST_DECX = auto()
    ST_YINC = auto()
    ST_DECY = auto()
    ST_ZINC = auto()
    ST_DECZ = auto()
    STD_Y = auto()
    STD_Z = auto()
    STS = auto()
    XCH = auto()
    # MCU control
    BREAK = auto()
    NOP = auto()
    SLEEP = auto()
    WDR = auto()
    # Unconditional transfers
    JMP = auto()
    RJMP = auto()
    CALL = auto()
    RCALL = auto()
    RET = auto()
    RETI = auto()
    IJMP = auto()
    EIJMP = auto()
    ICALL = auto()
    EICALL = auto()
    # Conditional branches (BRBS/BRBC by status flag)
    BRCS = auto()
    BREQ = auto()
    BRMI = auto()
    BRVS = auto()
    BRLT = auto()
    BRHS = auto()
    BRTS = auto()
    BRIE = auto()
    BRCC = auto()
    BRNE = auto()
    BRPL = auto()
    BRVC = auto()
    BRGE = auto()
    BRHC = auto()
    BRTC = auto()
    BRID = auto()
    # Skips
    CPSE = auto()
    SBIC = auto()
    SBIS = auto()
    SBRC = auto()
    SBRS = auto()


class FlowClass(Enum):
    SEQUENTIAL = auto()
    JUMP = auto()
    CALL = auto()
    BRANCH = auto()
    SKIP = auto()
    RETURN = auto()
    INDIRECT = auto()


# BRBS s / BRBC s indexed by status register bit (C, Z, N, V, S, H, T, I)
BRANCH_IF_SET: Tuple[Opcode, ...] = (
    Opcode.BRCS,
    Opcode.BREQ,
    Opcode.BRMI,
    Opcode.BRVS,
    Opcode.BRLT,
    Opcode.BRHS,
    Opcode.BRTS,
    Opcode.BRIE,
)
BRANCH_IF_CLEAR: Tuple[Opcode, ...] = (
    Opcode.BRCC,
    Opcode.BRNE,
    Opcode.BRPL,
    Opcode.BRVC,
    Opcode.BRGE,
    Opcode.BRHC,
    Opcode.BRTC,
    Opcode.BRID,
)

_NON_SEQUENTIAL: Dict[Opcode, FlowClass] = {
    Opcode.JMP: FlowClass.JUMP,
    Opcode.RJMP: FlowClass.JUMP,
    Opcode.CALL: FlowClass.CALL,
    Opcode.RCALL: FlowClass.CALL,
    Opcode.RET: FlowClass.RETURN,
    Opcode.RETI: FlowClass.RETURN,
    Opcode.IJMP: FlowClass.INDIRECT,
    Opcode.EIJMP: FlowClass.INDIRECT,
    Opcode.ICALL: FlowClass.INDIRECT,
    Opcode.EICALL: FlowClass.INDIRECT,
    Opcode.CPSE: FlowClass.SKIP,
    Opcode.SBIC: FlowClass.SKIP,
    Opcode.SBIS: FlowClass.SKIP,
    Opcode.SBRC: FlowClass.SKIP,
    Opcode.SBRS: FlowClass.SKIP,
    **{op: FlowClass.BRANCH for op in BRANCH_IF_SET + BRANCH_IF_CLEAR},
}

FLOW_CLASSES: Dict[Opcode, FlowClass] = {
    op: _NON_SEQUENTIAL.get(op, FlowClass.SEQUENTIAL) for op in Opcode
}

WIDE_OPCODES = frozenset({Opcode.LDS, Opcode.STS, Opcode.JMP, Opcode.CALL})


def flow_class(opcode: Opcode) -> FlowClass:
    return FLOW_CLASSES[opcode]


def is_conditional(opcode: Opcode) -> bool:
    return FLOW_CLASSES[opcode] in (FlowClass.BRANCH, FlowClass.SKIP)
