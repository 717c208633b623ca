from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional

from tinyboy.inputs import NUM_LINES
from tinyfuzz.generator import (
    CoverageGuidedGenerator,
    InputGenerator,
    RandomInputGenerator,
)

GENERATOR_KINDS = ("random", "guided")


@dataclass
class FuzzConfig:
    # Worker pool
    workers: int = 4
    batch_size: int = 8

    # Stop condition, percent of branches (or instructions when branch-free)
    target: float = 100.0

    # Input shape
    pulse_width: int = 1
    lines: int = NUM_LINES
    pulses: int = 16
    extend_pulses: int = 4

    # Generation
    generator: str = "guided"
    inputs: int = 10_000
    seed: Optional[int] = None

    # Corpus settings
    max_evolved: int = 1_000
    seed_selection_prob: float = 0.3

    def __post_init__(self):
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if not 0.0 <= self.target <= 100.0:
            raise ValueError("target must be a percentage in [0, 100]")
        if self.generator not in GENERATOR_KINDS:
            raise ValueError(
                f"unknown generator {self.generator!r}, expected one of {GENERATOR_KINDS}"
            )

    def build_generator(self) -> InputGenerator:
        rng = random.Random(self.seed)
        if self.generator == "random":
            return RandomInputGenerator(
                self.inputs, self.pulses, self.pulse_width, self.lines, rng=rng
            )
        return CoverageGuidedGenerator(
            self.inputs,
            initial_pulses=self.pulses,
            extend_pulses=self.extend_pulses,
            width=self.pulse_width,
            lines=self.lines,
            rng=rng,
            max_evolved=self.max_evolved,
            seed_selection_prob=self.seed_selection_prob,
        )
