"""
Input generation strategies.

A generator is only ever called from the orchestrating process, so
implementations keep plain mutable state without locking.
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from typing import FrozenSet, Iterable, List, Optional, Set

from tinyboy.inputs import NUM_LINES, Button, Pulse, PulseSequence

logger = logging.getLogger(__name__)

_PULSE_CHOICES: List[Pulse] = [None, *Button]


class InputGenerator(ABC):
    @abstractmethod
    def has_more(self) -> bool:
        """Whether `generate` can still produce an input."""

    @abstractmethod
    def generate(self) -> Optional[PulseSequence]:
        """Next input, or None once the generator is exhausted."""

    def record(
        self,
        sequence: PulseSequence,
        covered: FrozenSet[int],
        state: bytes,
    ) -> None:
        """Feedback for one completed run; `covered` is already masked."""


def random_pulses(rng: random.Random, count: int) -> List[Pulse]:
    return [rng.choice(_PULSE_CHOICES) for _ in range(count)]


class RandomInputGenerator(InputGenerator):
    """A fixed budget of independent uniformly random sequences."""

    def __init__(
        self,
        budget: int,
        pulses: int,
        width: int = 1,
        lines: int = NUM_LINES,
        rng: Optional[random.Random] = None,
    ):
        if budget < 0:
            raise ValueError("budget must not be negative")
        self.remaining = budget
        self.pulses = pulses
        self.width = width
        self.lines = lines
        self.rng = rng if rng is not None else random.Random()

    def has_more(self) -> bool:
        return self.remaining > 0

    def generate(self) -> Optional[PulseSequence]:
        if not self.has_more():
            return None
        self.remaining -= 1
        return PulseSequence(
            random_pulses(self.rng, self.pulses), self.width, self.lines
        )


class PulseCorpus:
    """
    Two-tier corpus of pulse sequences: immutable seeds + bounded evolved pool.

    Seeds are never removed. Equal sequences are stored once, and sequences
    longer than `max_pulses` are not admitted. Both picking and eviction
    favour short sequences: a parent is the shorter of two random entries,
    and a full pool evicts the longer of two.
    """

    def __init__(
        self,
        rng: random.Random,
        max_evolved: int = 1_000,
        seed_selection_prob: float = 0.3,
        max_pulses: Optional[int] = None,
    ):
        self.rng = rng
        self.max_evolved = max_evolved
        self.seed_selection_prob = seed_selection_prob
        self.max_pulses = max_pulses

        self._seeds: List[PulseSequence] = []
        self._evolved: List[PulseSequence] = []
        self._members: Set[PulseSequence] = set()

    def _admissible(self, item: PulseSequence) -> bool:
        if item in self._members:
            return False
        return self.max_pulses is None or item.length() <= self.max_pulses

    def add_seed(self, item: PulseSequence) -> bool:
        if not self._admissible(item):
            return False
        self._seeds.append(item)
        self._members.add(item)
        return True

    def add_evolved(self, item: PulseSequence) -> bool:
        if not self._admissible(item):
            return False
        if len(self._evolved) < self.max_evolved:
            self._evolved.append(item)
        else:
            idx = self._tournament(longest=True)
            self._members.discard(self._evolved[idx])
            self._evolved[idx] = item
        self._members.add(item)
        return True

    def _tournament(self, longest: bool) -> int:
        a = self.rng.randrange(len(self._evolved))
        b = self.rng.randrange(len(self._evolved))
        la, lb = self._evolved[a].length(), self._evolved[b].length()
        if longest:
            return a if la >= lb else b
        return a if la <= lb else b

    def pick(self) -> Optional[PulseSequence]:
        if not self._seeds and not self._evolved:
            return None

        use_seed = self.rng.random() < self.seed_selection_prob or not self._evolved

        if use_seed and self._seeds:
            return self.rng.choice(self._seeds)
        elif self._evolved:
            return self._evolved[self._tournament(longest=False)]
        return None

    @property
    def seeds(self) -> List[PulseSequence]:
        return self._seeds

    @property
    def evolved(self) -> List[PulseSequence]:
        return self._evolved

    def __contains__(self, item: PulseSequence) -> bool:
        return item in self._members

    def __len__(self) -> int:
        return len(self._seeds) + len(self._evolved)


class CoverageGuidedGenerator(InputGenerator):
    """
    Grows inputs that reached new code.

    Each child is a corpus entry extended by a few random pulses, so an
    input that got the firmware into a new state is used as a prefix to
    explore further from that state.
    """

    def __init__(
        self,
        budget: int,
        initial_pulses: int = 8,
        extend_pulses: int = 4,
        width: int = 1,
        lines: int = NUM_LINES,
        rng: Optional[random.Random] = None,
        seeds: Iterable[PulseSequence] = (),
        max_evolved: int = 1_000,
        seed_selection_prob: float = 0.3,
        max_pulses: Optional[int] = None,
    ):
        if budget < 0:
            raise ValueError("budget must not be negative")
        self.remaining = budget
        self.initial_pulses = initial_pulses
        self.extend_pulses = extend_pulses
        self.width = width
        self.lines = lines
        self.rng = rng if rng is not None else random.Random()
        self.corpus = PulseCorpus(
            self.rng, max_evolved, seed_selection_prob, max_pulses=max_pulses
        )
        for seed in seeds:
            self.corpus.add_seed(seed)
        self._seen: Set[int] = set()
        self.admitted = 0

    def has_more(self) -> bool:
        return self.remaining > 0

    def generate(self) -> Optional[PulseSequence]:
        if not self.has_more():
            return None
        self.remaining -= 1

        parent = self.corpus.pick()
        if parent is None:
            return PulseSequence(
                random_pulses(self.rng, self.initial_pulses), self.width, self.lines
            )
        count = self.rng.randint(1, max(1, self.extend_pulses))
        return parent.append(random_pulses(self.rng, count))

    def record(
        self,
        sequence: PulseSequence,
        covered: FrozenSet[int],
        state: bytes,
    ) -> None:
        new = covered - self._seen
        if not new:
            return
        self._seen.update(new)
        if not self.corpus.add_evolved(sequence):
            return
        self.admitted += 1
        logger.debug(
            f"corpus += {sequence} | new_addrs={len(new)} | corpus={len(self.corpus)}"
        )
