"""
The contract an AVR emulation engine has to satisfy to be fuzzed.

Instruction execution is not implemented here. An engine is plugged in
through a factory that receives the session's wire lookup and returns an
object following `Emulator`.
"""

from __future__ import annotations

import importlib
from typing import Callable, Iterable, Protocol

from tinyboy.flash import FlashImage
from tinyboy.memory import InstrumentedMemory, Memory
from tinyboy.wires import Wire

WireLookup = Callable[[Iterable[str]], Wire]


class Emulator(Protocol):
    # program memory; fetches and LPM go through `read`
    code: InstrumentedMemory
    # SRAM and I/O space, snapshotted at the end of each run
    data: Memory

    def reset(self) -> None: ...

    def upload(self, image: FlashImage) -> None: ...

    def clock(self) -> None:
        """Advance one cycle. Raises `tinyboy.exceptions.Halted` when stuck."""
        ...


EmulatorFactory = Callable[[WireLookup], Emulator]


def load_emulator_factory(path: str) -> EmulatorFactory:
    """Resolve `"package.module:attribute"` to an emulator factory."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(
            f"emulator factory must look like 'package.module:factory', got {path!r}"
        )

    module = importlib.import_module(module_name)
    factory = module
    for part in attr.split("."):
        factory = getattr(factory, part)

    if not callable(factory):
        raise TypeError(f"{path} is not callable")
    return factory
