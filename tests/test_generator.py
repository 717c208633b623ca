import random

import pytest

from tinyboy.inputs import PulseSequence
from tinyfuzz.config import FuzzConfig
from tinyfuzz.generator import (
    CoverageGuidedGenerator,
    PulseCorpus,
    RandomInputGenerator,
)


def drain(generator):
    out = []
    while generator.has_more():
        out.append(generator.generate())
    return out


def test_random_generator_budget():
    generator = RandomInputGenerator(3, pulses=5, width=2, rng=random.Random(1))
    sequences = drain(generator)

    assert len(sequences) == 3
    assert all(s.length() == 5 and s.width == 2 for s in sequences)
    assert generator.generate() is None


def test_random_generator_is_seeded():
    a = drain(RandomInputGenerator(4, pulses=6, rng=random.Random(7)))
    b = drain(RandomInputGenerator(4, pulses=6, rng=random.Random(7)))
    assert a == b


def test_negative_budget():
    with pytest.raises(ValueError):
        RandomInputGenerator(-1, pulses=1)


def test_corpus_replaces_when_full():
    corpus = PulseCorpus(random.Random(0), max_evolved=2)
    items = [PulseSequence.parse(s) for s in ("U", "D", "L", "R")]
    for item in items:
        corpus.add_evolved(item)

    assert len(corpus.evolved) == 2
    assert len(corpus) == 2
    assert items[3] in corpus.evolved


def test_corpus_stores_equal_sequences_once():
    corpus = PulseCorpus(random.Random(0))
    assert corpus.add_seed(PulseSequence.parse("UL"))
    assert not corpus.add_evolved(PulseSequence.parse("UL"))
    assert corpus.add_evolved(PulseSequence.parse("UR"))
    assert not corpus.add_evolved(PulseSequence.parse("UR"))

    assert len(corpus) == 2
    # same pulses at another width are a different input
    assert corpus.add_evolved(PulseSequence.parse("UL", width=2))


def test_corpus_forgets_evicted_sequences():
    corpus = PulseCorpus(random.Random(0), max_evolved=1)
    first = PulseSequence.parse("U")
    corpus.add_evolved(first)
    corpus.add_evolved(PulseSequence.parse("D"))

    assert first not in corpus
    assert corpus.add_evolved(first)


def test_corpus_rejects_long_sequences():
    corpus = PulseCorpus(random.Random(0), max_pulses=3)
    assert not corpus.add_evolved(PulseSequence.parse("UUUU"))
    assert not corpus.add_seed(PulseSequence.parse("UUUU"))
    assert corpus.add_evolved(PulseSequence.parse("UUU"))


def test_corpus_prefers_shorter_parents():
    corpus = PulseCorpus(random.Random(5), seed_selection_prob=0.0)
    long = PulseSequence.parse("UDLRUDLR")
    short = PulseSequence.parse("U")
    corpus.add_evolved(long)
    corpus.add_evolved(short)

    picks = [corpus.pick() for _ in range(200)]
    assert picks.count(short) > 120


def test_guided_generator_does_not_count_duplicates():
    generator = CoverageGuidedGenerator(4, rng=random.Random(0))
    sequence = PulseSequence.parse("UD")

    generator.record(sequence, frozenset({0}), b"")
    generator.record(sequence, frozenset({2}), b"")

    assert generator.admitted == 1
    assert len(generator.corpus) == 1


def test_corpus_pick():
    corpus = PulseCorpus(random.Random(0))
    assert corpus.pick() is None

    seed = PulseSequence.parse("UU")
    corpus.add_seed(seed)
    assert corpus.pick() == seed


def test_guided_generator_starts_from_random():
    generator = CoverageGuidedGenerator(1, initial_pulses=3, rng=random.Random(0))
    (first,) = drain(generator)
    assert first.length() == 3


def test_guided_generator_extends_admitted_inputs():
    generator = CoverageGuidedGenerator(
        10, initial_pulses=2, extend_pulses=3, rng=random.Random(3)
    )
    parent = PulseSequence.parse("UR")

    generator.record(parent, frozenset({0, 1}), b"")
    assert generator.admitted == 1
    # nothing new
    generator.record(PulseSequence.parse("DD"), frozenset({0}), b"")
    assert generator.admitted == 1

    child = generator.generate()
    assert child.pulses[:2] == parent.pulses
    assert 3 <= child.length() <= 5


def test_guided_generator_uses_seeds():
    seed = PulseSequence.parse("LL", width=2)
    generator = CoverageGuidedGenerator(2, rng=random.Random(0), seeds=[seed])
    child = generator.generate()
    assert child.pulses[:2] == seed.pulses
    assert child.width == 2


def test_config_builds_generators():
    guided = FuzzConfig(inputs=3, seed=1).build_generator()
    assert isinstance(guided, CoverageGuidedGenerator)
    plain = FuzzConfig(generator="random", inputs=3, pulses=4, seed=1)
    assert isinstance(plain.build_generator(), RandomInputGenerator)
    assert drain(plain.build_generator()) == drain(plain.build_generator())


@pytest.mark.parametrize(
    "kwargs",
    [{"workers": 0}, {"batch_size": 0}, {"target": 101.0}, {"generator": "smart"}],
)
def test_config_validation(kwargs):
    with pytest.raises(ValueError):
        FuzzConfig(**kwargs)
