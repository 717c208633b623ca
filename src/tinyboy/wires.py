"""
Pin wiring between the control pad and the MCU.

Each emulator is built with a wire lookup: given the labels of an MCU pin it
returns the wire attached to it. The button pins are served by symbolic wires
that pull their value from the input stream of the current run; every other
pin gets an ideal wire holding whatever was last written.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional, Protocol, Tuple

from tinyboy.inputs import Button, PulseStream


class Wire(Protocol):
    labels: Tuple[str, ...]

    def read(self) -> bool: ...

    def write(self, value: bool) -> None: ...


def _has_label(wire: Wire, label: str) -> bool:
    return label in wire.labels


class IdealWire:
    def __init__(self, *labels: str):
        self.labels = tuple(labels)
        self._value = False

    def read(self) -> bool:
        return self._value

    def write(self, value: bool) -> None:
        self._value = bool(value)

    def has_label(self, label: str) -> bool:
        return _has_label(self, label)


class SymbolicPullWire:
    """Reads its value from the bound stream; each read consumes one bit."""

    def __init__(self, *labels: str):
        self.labels = tuple(labels)
        self._stream: Optional[PulseStream] = None

    def bind(self, stream: Optional[PulseStream]) -> None:
        self._stream = stream

    def read(self) -> bool:
        if self._stream is None:
            return False
        return self._stream.next_bit()

    def write(self, value: bool) -> None:
        # driven by the input stream only
        pass

    def has_label(self, label: str) -> bool:
        return _has_label(self, label)


# ATtiny85 pin functions; the first label is the port pin used for lookup.
BUTTON_PINS: Dict[Button, Tuple[str, ...]] = {
    Button.UP: ("PB1", "MISO", "DO", "AIN1", "OC0B", "OC1A", "PCINT1"),
    Button.DOWN: ("PB3", "PCINT3", "XTAL1", "CLK1", "!OC1B", "ADC3"),
    Button.LEFT: ("PB4", "PCINT4", "XTAL2", "CLK0", "OC1B", "ADC2"),
    Button.RIGHT: ("PB5", "PCINT5", "!RESET", "ADC0", "dW"),
}


class ControlPadWiring:
    """
    The wiring table owned by a single emulator session.

    Never shared: each session builds its own so that binding an input stream
    only affects the emulator that session drives.
    """

    def __init__(self, pins: Optional[Dict[Button, Tuple[str, ...]]] = None):
        pins = pins if pins is not None else BUTTON_PINS
        self.wires: Dict[Button, SymbolicPullWire] = {
            button: SymbolicPullWire(*labels) for button, labels in pins.items()
        }
        self._by_pin = {wire.labels[0]: wire for wire in self.wires.values()}

    def lookup(self, labels: Iterable[str]):
        labels = tuple(labels)
        if not labels:
            raise ValueError("a wire needs at least one label")
        wire = self._by_pin.get(labels[0])
        if wire is not None:
            return wire
        return IdealWire(*labels)

    def bind(self, stream: Optional[PulseStream]) -> None:
        for wire in self.wires.values():
            wire.bind(stream)

    def __getitem__(self, button: Button) -> SymbolicPullWire:
        return self.wires[button]
