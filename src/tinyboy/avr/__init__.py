"""
AVR instruction decoding for control-flow recovery.
"""

from tinyboy.avr.decoder import Instruction, decode, read_word
from tinyboy.avr.opcodes import FlowClass, Opcode, flow_class, is_conditional

__all__ = [
    "Instruction",
    "decode",
    "read_word",
    "FlowClass",
    "Opcode",
    "flow_class",
    "is_conditional",
]
