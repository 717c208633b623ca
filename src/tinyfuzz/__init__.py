"""
Coverage-guided fuzzing of TinyBoy firmware: static control-flow recovery,
coverage accounting and the parallel round-based engine.
"""

from tinyfuzz.cfg import (
    ConditionalBranch,
    ControlFlowGraph,
    InstructionGraphBuilder,
)
from tinyfuzz.config import FuzzConfig
from tinyfuzz.coverage import CoverageReport, CoverageTracker
from tinyfuzz.engine import EngineState, FuzzEngine, WorkerError
from tinyfuzz.generator import (
    CoverageGuidedGenerator,
    InputGenerator,
    PulseCorpus,
    RandomInputGenerator,
)
from tinyfuzz.statistics import FuzzStatistics

__all__ = [
    "ConditionalBranch",
    "ControlFlowGraph",
    "InstructionGraphBuilder",
    "FuzzConfig",
    "CoverageReport",
    "CoverageTracker",
    "EngineState",
    "FuzzEngine",
    "WorkerError",
    "CoverageGuidedGenerator",
    "InputGenerator",
    "PulseCorpus",
    "RandomInputGenerator",
    "FuzzStatistics",
]
