"""
Static control-flow recovery over a flash image.

The graph is rebuilt from the reset vector by following every direct
control transfer. Code reachable only through interrupt vectors or indirect
jumps is not discovered, and indirect jumps themselves abort the analysis:
the result is only meaningful if it is complete with respect to direct flow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Mapping, Tuple

from tinyboy.avr import FlowClass, Instruction, decode
from tinyboy.exceptions import DecodeError, IndirectControlFlowError
from tinyboy.flash import FlashImage

logger = logging.getLogger(__name__)

RESET_VECTOR = 0

Decoder = Callable[[FlashImage, int], Instruction]


@dataclass(frozen=True)
class ConditionalBranch:
    address: int
    fallthrough: int
    taken: int


@dataclass(frozen=True)
class ControlFlowGraph:
    instructions: Mapping[int, Instruction]
    # every byte occupied by a reachable instruction
    reachable: FrozenSet[int]
    branches: Tuple[ConditionalBranch, ...]

    @property
    def instruction_count(self) -> int:
        return len(self.instructions)


class InstructionGraphBuilder:
    def __init__(self, decoder: Decoder = decode):
        self._decoder = decoder

    def build(self, flash: FlashImage) -> ControlFlowGraph:
        decoded: Dict[int, Instruction] = {}
        visited: Dict[int, Instruction] = {}
        branches: List[ConditionalBranch] = []

        def decode_at(address: int) -> Instruction:
            if address < 0 or address >= len(flash):
                raise DecodeError(address, "control transfer outside flash")
            insn = decoded.get(address)
            if insn is None:
                insn = self._decoder(flash, address)
                decoded[address] = insn
            return insn

        stack = [RESET_VECTOR]
        while stack:
            address = stack.pop()
            if address in visited:
                continue
            insn = decode_at(address)
            visited[address] = insn

            successors = _SUCCESSOR_RULES[insn.flow](insn, decode_at)
            if insn.flow in _FALLS_THROUGH and insn.next_address == len(flash):
                # execution runs off the end of flash, this path ends here
                successors = tuple(s for s in successors if s != insn.next_address)
            for successor in successors:
                if successor < 0 or successor >= len(flash):
                    raise DecodeError(successor, "control transfer outside flash")

            if insn.flow in (FlowClass.BRANCH, FlowClass.SKIP):
                fallthrough, taken = successors
                branches.append(ConditionalBranch(address, fallthrough, taken))

            # reversed so the first successor is explored first
            stack.extend(reversed(successors))

        reachable = frozenset(
            insn.address + offset
            for insn in visited.values()
            for offset in range(insn.width)
        )
        branches.sort(key=lambda b: b.address)

        logger.debug(
            f"recovered {len(visited)} instructions, {len(branches)} conditional "
            f"branches from {len(flash)} bytes of flash"
        )
        return ControlFlowGraph(
            instructions=dict(sorted(visited.items())),
            reachable=reachable,
            branches=tuple(branches),
        )


def _sequential(insn: Instruction, decode_at) -> Tuple[int, ...]:
    return (insn.next_address,)


def _jump(insn: Instruction, decode_at) -> Tuple[int, ...]:
    assert insn.target is not None
    return (insn.target,)


def _call(insn: Instruction, decode_at) -> Tuple[int, ...]:
    # the callee eventually returns to the following instruction
    assert insn.target is not None
    return (insn.target, insn.next_address)


def _branch(insn: Instruction, decode_at) -> Tuple[int, ...]:
    assert insn.target is not None
    return (insn.next_address, insn.target)


def _skip(insn: Instruction, decode_at) -> Tuple[int, ...]:
    following = decode_at(insn.next_address)
    return (insn.next_address, following.next_address)


def _return(insn: Instruction, decode_at) -> Tuple[int, ...]:
    return ()


def _indirect(insn: Instruction, decode_at) -> Tuple[int, ...]:
    raise IndirectControlFlowError(insn.address, insn.opcode)


_SUCCESSOR_RULES = {
    FlowClass.SEQUENTIAL: _sequential,
    FlowClass.JUMP: _jump,
    FlowClass.CALL: _call,
    FlowClass.BRANCH: _branch,
    FlowClass.SKIP: _skip,
    FlowClass.RETURN: _return,
    FlowClass.INDIRECT: _indirect,
}

_FALLS_THROUGH = (FlowClass.SEQUENTIAL, FlowClass.CALL)
