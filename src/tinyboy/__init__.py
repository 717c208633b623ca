"""
TinyBoy device model: firmware images, pin wiring, pulse input encoding and
the session wrapper around a pluggable AVR emulator.
"""

from tinyboy.exceptions import (
    AnalysisError,
    DecodeError,
    Halted,
    HexFormatError,
    IndirectControlFlowError,
    TinyBoyException,
)
from tinyboy.flash import FlashImage, parse_hex
from tinyboy.inputs import Button, PulseSequence, PulseStream
from tinyboy.session import EmulatorSession, RunResult
from tinyboy.wires import ControlPadWiring

__all__ = [
    "AnalysisError",
    "DecodeError",
    "Halted",
    "HexFormatError",
    "IndirectControlFlowError",
    "TinyBoyException",
    "FlashImage",
    "parse_hex",
    "Button",
    "PulseSequence",
    "PulseStream",
    "EmulatorSession",
    "RunResult",
    "ControlPadWiring",
]
