"""
Pulse-encoded button input for the TinyBoy control pad.

An input is a sequence of pulses, each either a single button held down or
nothing, lasting a fixed number of cycles. The sequence is exposed to the
hardware as a flat bit stream: for every cycle of a pulse there is one bit
per line, and only the line of the pressed button reads high.

For example `"LLRR_"` is two pulses of LEFT, two of RIGHT and one with no
button down.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Iterator, Optional, Sequence, Tuple, Union


class Button(Enum):
    UP = 0
    DOWN = 1
    LEFT = 2
    RIGHT = 3

    @property
    def line(self) -> int:
        return self.value

    @property
    def symbol(self) -> str:
        return self.name[0]


NUM_LINES = len(Button)
NO_PULSE = "_"

Pulse = Optional[Button]

_BY_SYMBOL = {button.symbol: button for button in Button}


class PulseSequence:
    """
    An immutable sequence of pulses.

    `append` never modifies the receiver, so generators can grow several
    children from a shared prefix.
    """

    __slots__ = ("_pulses", "_width", "_lines")

    def __init__(
        self,
        pulses: Iterable[Pulse] = (),
        width: int = 1,
        lines: int = NUM_LINES,
    ):
        if width < 1:
            raise ValueError("pulse width must be at least one cycle")
        if lines < 1:
            raise ValueError("need at least one input line")
        self._pulses: Tuple[Pulse, ...] = tuple(pulses)
        self._width = width
        self._lines = lines
        for pulse in self._pulses:
            if pulse is not None and pulse.line >= lines:
                raise ValueError(f"{pulse.name} has no line among {lines} lines")

    @classmethod
    def parse(cls, text: str, width: int = 1, lines: int = NUM_LINES) -> PulseSequence:
        pulses = []
        for symbol in text:
            if symbol == NO_PULSE:
                pulses.append(None)
            elif symbol in _BY_SYMBOL:
                pulses.append(_BY_SYMBOL[symbol])
            else:
                raise ValueError(f"unknown pulse symbol {symbol!r}")
        return cls(pulses, width, lines)

    @property
    def pulses(self) -> Tuple[Pulse, ...]:
        return self._pulses

    @property
    def width(self) -> int:
        return self._width

    @property
    def lines(self) -> int:
        return self._lines

    def length(self) -> int:
        """Number of pulses."""
        return len(self._pulses)

    def size(self) -> int:
        """Number of addressable bits: one per line per cycle of every pulse."""
        return len(self._pulses) * self._width * self._lines

    def get(self, index: int) -> bool:
        if index < 0 or index >= self.size():
            raise IndexError(f"bit {index} outside sequence of {self.size()} bits")
        pulse = self._pulses[index // (self._width * self._lines)]
        return pulse is not None and pulse.line == index % self._lines

    def append(self, pulse: Union[Pulse, Sequence[Pulse]]) -> PulseSequence:
        if pulse is None or isinstance(pulse, Button):
            extra: Tuple[Pulse, ...] = (pulse,)
        else:
            extra = tuple(pulse)
        return PulseSequence(self._pulses + extra, self._width, self._lines)

    def stream(self) -> PulseStream:
        return PulseStream(self)

    def to_bit_string(self) -> str:
        return "".join("1" if self.get(i) else "0" for i in range(self.size()))

    def __len__(self) -> int:
        return len(self._pulses)

    def __iter__(self) -> Iterator[Pulse]:
        return iter(self._pulses)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PulseSequence):
            return NotImplemented
        return (self._pulses, self._width, self._lines) == (
            other._pulses,
            other._width,
            other._lines,
        )

    def __hash__(self) -> int:
        return hash((self._pulses, self._width, self._lines))

    def __reduce__(self):
        return (PulseSequence, (self._pulses, self._width, self._lines))

    def __str__(self) -> str:
        return "".join(NO_PULSE if p is None else p.symbol for p in self._pulses)

    def __repr__(self) -> str:
        return f"PulseSequence({str(self)!r}, width={self._width}, lines={self._lines})"


class PulseStream:
    """
    Single-use reader over the bits of a PulseSequence.

    Reading past the end yields False, like a pulled-down input pin.
    """

    def __init__(self, sequence: PulseSequence):
        self.sequence = sequence
        self._size = sequence.size()
        self._position = 0

    @property
    def position(self) -> int:
        return self._position

    @property
    def remaining(self) -> int:
        return self._size - self._position

    @property
    def exhausted(self) -> bool:
        return self._position >= self._size

    def has_next(self) -> bool:
        return not self.exhausted

    def next_bit(self) -> bool:
        if self.exhausted:
            return False
        bit = self.sequence.get(self._position)
        self._position += 1
        return bit

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[bool]:
        return self

    def __next__(self) -> bool:
        if self.exhausted:
            raise StopIteration
        return self.next_bit()
