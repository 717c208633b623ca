from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Sequence

from tinyboy.emulator import EmulatorFactory
from tinyboy.exceptions import Halted
from tinyboy.flash import FlashImage
from tinyboy.inputs import PulseSequence, PulseStream
from tinyboy.memory import ReadWriteInstrument, snapshot
from tinyboy.wires import ControlPadWiring

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunResult:
    # code addresses read during the run, data included
    covered: FrozenSet[int]
    # data memory at the end of the run
    state: bytes
    halted: bool = False


class EmulatorSession:
    """
    One emulator instance and the wiring it was built with.

    A session is owned by exactly one worker and runs one input at a time.
    """

    def __init__(
        self,
        emulator_factory: EmulatorFactory,
        wiring: Optional[ControlPadWiring] = None,
        *,
        session_id: int = 0,
    ):
        self.session_id = session_id
        self.wiring = wiring if wiring is not None else ControlPadWiring()
        self.emulator = emulator_factory(self.wiring.lookup)

    def reset(self) -> None:
        self.emulator.reset()

    def upload(self, firmware: FlashImage) -> None:
        self.emulator.upload(firmware)

    def bind(self, stream: PulseStream) -> None:
        if stream.position:
            raise ValueError("input stream was already consumed")
        self.wiring.bind(stream)

    def run_until_exhausted(self, stream: PulseStream) -> RunResult:
        """
        Clock once per available input bit until the stream runs dry or the
        emulator halts.

        Read instrumentation is attached to code memory for exactly this
        run and removed on every exit path.
        """
        code = self.emulator.code
        instrument = ReadWriteInstrument()
        halted = False

        code.register(instrument)
        try:
            for _ in range(len(stream)):
                if stream.exhausted:
                    break
                try:
                    self.emulator.clock()
                except Halted:
                    halted = True
                    break
        finally:
            code.unregister(instrument)
            self.wiring.bind(None)

        if halted:
            logger.debug(
                f"[w{self.session_id}] halted after {stream.position}/{len(stream)} bits"
            )

        return RunResult(
            covered=frozenset(instrument.reads),
            state=snapshot(self.emulator.data),
            halted=halted,
        )

    def execute(self, firmware: FlashImage, sequence: PulseSequence) -> RunResult:
        self.reset()
        self.upload(firmware)
        stream = sequence.stream()
        self.bind(stream)
        return self.run_until_exhausted(stream)

    def run_batch(
        self,
        firmware: FlashImage,
        batch: Sequence[Optional[PulseSequence]],
    ) -> List[Optional[RunResult]]:
        # None slots are padding and yield no result
        return [
            None if sequence is None else self.execute(firmware, sequence)
            for sequence in batch
        ]
