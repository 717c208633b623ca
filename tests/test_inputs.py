import pytest

from tinyboy.inputs import Button, PulseSequence


def test_pulse_encoding_law():
    seq = PulseSequence([Button.UP, None, Button.LEFT], width=2, lines=4)

    assert seq.length() == 3
    assert seq.size() == 24

    # pulse 0: UP held for two cycles
    assert [i for i in range(8) if seq.get(i)] == [0, 4]
    # pulse 1: nothing held
    assert not any(seq.get(i) for i in range(8, 16))
    # pulse 2: LEFT held for two cycles
    assert [i for i in range(16, 24) if seq.get(i)] == [18, 22]


def test_bit_string_matches_get():
    seq = PulseSequence([Button.DOWN, Button.RIGHT], width=1, lines=4)
    assert seq.to_bit_string() == "01000001"


def test_get_out_of_range():
    seq = PulseSequence([Button.UP], width=1, lines=4)
    with pytest.raises(IndexError):
        seq.get(4)
    with pytest.raises(IndexError):
        seq.get(-1)


def test_append_returns_new_sequence():
    base = PulseSequence.parse("UD", width=3)
    longer = base.append(Button.LEFT)
    both = base.append([None, Button.RIGHT])

    assert str(base) == "UD"
    assert str(longer) == "UDL"
    assert str(both) == "UD_R"
    assert longer.width == 3
    assert both.size() == 4 * 3 * 4


def test_parse_and_str():
    seq = PulseSequence.parse("LLRR_")
    assert list(seq) == [Button.LEFT, Button.LEFT, Button.RIGHT, Button.RIGHT, None]
    assert str(seq) == "LLRR_"
    assert seq == PulseSequence.parse("LLRR_")
    assert hash(seq) == hash(PulseSequence.parse("LLRR_"))
    assert seq != PulseSequence.parse("LLRR_", width=2)


def test_parse_rejects_unknown_symbol():
    with pytest.raises(ValueError):
        PulseSequence.parse("UX")


def test_button_needs_a_line():
    with pytest.raises(ValueError):
        PulseSequence([Button.RIGHT], lines=2)


def test_invalid_width():
    with pytest.raises(ValueError):
        PulseSequence([], width=0)


def test_stream_reads_every_bit_once():
    seq = PulseSequence([None, Button.UP], width=1, lines=4)
    stream = seq.stream()

    assert len(stream) == 8
    bits = [stream.next_bit() for _ in range(8)]
    assert bits == [False, False, False, False, True, False, False, False]
    assert stream.exhausted
    assert not stream.has_next()
    # pulled down past the end
    assert stream.next_bit() is False
    assert stream.position == 8


def test_stream_iterates():
    stream = PulseSequence.parse("R", lines=4).stream()
    assert list(stream) == [False, False, False, True]
    assert stream.remaining == 0
