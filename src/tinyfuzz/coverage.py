from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set

from tinyboy.flash import FlashImage
from tinyfuzz.cfg import ConditionalBranch, ControlFlowGraph, InstructionGraphBuilder

logger = logging.getLogger(__name__)


def percentage(covered: int, total: int) -> Optional[float]:
    """`covered / total` as a percentage, or None when nothing can be covered."""
    if total == 0:
        return None
    return covered * 100.0 / total


def format_percentage(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.2f}%"


@dataclass
class CoverageReport:
    reachable_instructions: int
    covered_instructions: int
    branches: int
    covered_branches: int
    instruction_coverage: Optional[float]
    branch_coverage: Optional[float]
    uncovered_branches: List[int] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"instructions {self.covered_instructions}/{self.reachable_instructions} "
            f"({format_percentage(self.instruction_coverage)}) | "
            f"branches {self.covered_branches}/{self.branches} "
            f"({format_percentage(self.branch_coverage)})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reachable_instructions": self.reachable_instructions,
            "covered_instructions": self.covered_instructions,
            "branches": self.branches,
            "covered_branches": self.covered_branches,
            "instruction_coverage": self.instruction_coverage,
            "branch_coverage": self.branch_coverage,
            "uncovered_branches": [f"0x{a:04x}" for a in self.uncovered_branches],
        }


class CoverageTracker:
    """
    Accumulated code coverage of one firmware image.

    Construction runs the static analysis, so a firmware that cannot be
    fully enumerated fails here and never reaches an emulator. Recorded
    addresses only ever grow; percentages are computed against the
    statically reachable code.
    """

    def __init__(
        self,
        firmware: FlashImage,
        builder: Optional[InstructionGraphBuilder] = None,
    ):
        self.firmware = firmware
        builder = builder if builder is not None else InstructionGraphBuilder()
        self.graph: ControlFlowGraph = builder.build(firmware)
        self._covered: Set[int] = set()

    def record(self, observed: Iterable[int]) -> int:
        """Union `observed` into the accumulated coverage; returns new address count."""
        before = len(self._covered)
        self._covered.update(observed)
        return len(self._covered) - before

    @property
    def covered(self) -> FrozenSet[int]:
        return frozenset(self._covered)

    def reachable_addresses(self) -> FrozenSet[int]:
        return self.graph.reachable

    def mask(self, observed: Iterable[int]) -> FrozenSet[int]:
        """Drop addresses that do not belong to a reachable instruction."""
        return self.graph.reachable.intersection(observed)

    def was_covered(self, address: int) -> bool:
        return address in self._covered

    def is_branch_covered(self, branch: ConditionalBranch) -> bool:
        return self.was_covered(branch.fallthrough) and self.was_covered(branch.taken)

    def _covered_instruction_count(self) -> int:
        return sum(1 for address in self.graph.instructions if address in self._covered)

    def _covered_branch_count(self) -> int:
        return sum(1 for b in self.graph.branches if self.is_branch_covered(b))

    def instruction_coverage(self) -> Optional[float]:
        return percentage(
            self._covered_instruction_count(), self.graph.instruction_count
        )

    def branch_coverage(self) -> Optional[float]:
        return percentage(self._covered_branch_count(), len(self.graph.branches))

    def uncovered_branches(self) -> List[ConditionalBranch]:
        return [b for b in self.graph.branches if not self.is_branch_covered(b)]

    def report(self) -> CoverageReport:
        return CoverageReport(
            reachable_instructions=self.graph.instruction_count,
            covered_instructions=self._covered_instruction_count(),
            branches=len(self.graph.branches),
            covered_branches=self._covered_branch_count(),
            instruction_coverage=self.instruction_coverage(),
            branch_coverage=self.branch_coverage(),
            uncovered_branches=[b.address for b in self.uncovered_branches()],
        )
