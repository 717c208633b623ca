"""
Parallel fuzzing orchestrator.

Work proceeds in synchronous rounds. The orchestrating process draws one
batch per worker from the generator, every worker process runs its batch on
the emulator session it owns, and only after all of them have answered are
the results fed back to the generator and folded into the coverage tracker.
Generator, tracker and statistics never leave the orchestrating process.
"""

from __future__ import annotations

import logging
import multiprocessing
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from tinyboy.emulator import EmulatorFactory
from tinyboy.flash import FlashImage
from tinyboy.inputs import PulseSequence
from tinyboy.session import RunResult
from tinyboy.wires import ControlPadWiring
from tinyfuzz.coverage import CoverageTracker, format_percentage
from tinyfuzz.generator import InputGenerator
from tinyfuzz.statistics import FuzzStatistics
from tinyfuzz.worker import WorkerError, WorkerProcess

logger = logging.getLogger(__name__)

_LOG_INTERVAL = 10

WorkerBatch = List[Optional[PulseSequence]]


class EngineState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    TARGET_MET = "target_met"
    EXHAUSTED = "exhausted"


class FuzzEngine:
    """
    Drives `workers` emulator processes through fork-join rounds.

    Worker processes are started on the first run and kept until `close`;
    worker i always runs its batches on session i. `emulator_factory` and
    `wiring_factory` are sent to the workers, so they must be picklable.
    """

    def __init__(
        self,
        firmware: FlashImage,
        emulator_factory: EmulatorFactory,
        generator: InputGenerator,
        *,
        workers: int = 4,
        batch_size: int = 8,
        wiring_factory: Callable[[], ControlPadWiring] = ControlPadWiring,
        log_interval: int = _LOG_INTERVAL,
    ):
        if workers < 1:
            raise ValueError("need at least one worker")
        if batch_size < 1:
            raise ValueError("batch size must be at least 1")

        self.firmware = firmware
        self.emulator_factory = emulator_factory
        self.wiring_factory = wiring_factory
        self.generator = generator
        self.num_workers = workers
        self.batch_size = batch_size
        self.log_interval = log_interval

        self.ctx = multiprocessing.get_context("spawn")
        self._workers: List[Optional[WorkerProcess]] = [None] * workers

        self.state = EngineState.IDLE
        self.last_outcome: Optional[EngineState] = None
        self.statistics = FuzzStatistics()

    def run(self, target: float) -> CoverageTracker:
        """
        Fuzz until coverage reaches `target` percent or the generator is
        exhausted, and return the accumulated coverage.
        """
        if self.state is not EngineState.IDLE:
            raise RuntimeError(f"engine is {self.state.value}, cannot start a run")

        # analysis failures surface here, before any emulator runs
        tracker = CoverageTracker(self.firmware)
        self.statistics = FuzzStatistics()
        self.statistics.start_timer()
        self.state = EngineState.RUNNING
        logger.info(
            f"starting {self.num_workers} workers, batch={self.batch_size}, "
            f"target={target:.1f}% | {tracker.report().summary()}"
        )

        outcome = EngineState.EXHAUSTED
        try:
            while True:
                if self._target_met(tracker, target):
                    outcome = EngineState.TARGET_MET
                    break
                if not self.generator.has_more():
                    break

                batches = self._draw_batches()
                if not any(batches):
                    break
                self._run_round(tracker, batches)

                if self.statistics.rounds % self.log_interval == 0:
                    self._log_progress(tracker)
        finally:
            self.statistics.stop_timer()
            self.state = EngineState.IDLE

        self.last_outcome = outcome
        self._log_progress(tracker)
        logger.info(f"stopped: {outcome.value} after {self.statistics.rounds} rounds")
        return tracker

    @staticmethod
    def coverage_metric(tracker: CoverageTracker) -> Optional[float]:
        """Branch coverage, or instruction coverage for branch-free firmware."""
        branch = tracker.branch_coverage()
        if branch is not None:
            return branch
        return tracker.instruction_coverage()

    def _target_met(self, tracker: CoverageTracker, target: float) -> bool:
        metric = self.coverage_metric(tracker)
        # nothing to cover
        if metric is None:
            return True
        return metric >= target

    def _draw_batches(self) -> List[WorkerBatch]:
        """
        One batch per worker, filled in worker order. Slots the generator
        could not fill are None; a batch that is all None is returned empty.
        """
        batches: List[WorkerBatch] = []
        exhausted = False
        for _ in range(self.num_workers):
            batch: WorkerBatch = []
            for _ in range(self.batch_size):
                sequence = None
                if not exhausted and self.generator.has_more():
                    sequence = self.generator.generate()
                if sequence is None:
                    exhausted = True
                batch.append(sequence)
            if all(slot is None for slot in batch):
                batch = []
            batches.append(batch)
        return batches

    def _worker(self, worker_id: int) -> WorkerProcess:
        worker = self._workers[worker_id]
        if worker is not None and not worker.is_alive():
            logger.warning(f"[w{worker_id}] worker died, respawning")
            worker.stop()
            worker = None
        if worker is None:
            worker = WorkerProcess(
                self.ctx,
                worker_id,
                self.emulator_factory,
                self.wiring_factory,
                self.firmware,
            )
            self._workers[worker_id] = worker
        return worker

    def _run_round(self, tracker: CoverageTracker, batches: Sequence[WorkerBatch]):
        dispatched: List[Tuple[WorkerProcess, WorkerBatch]] = []
        errors: List[WorkerError] = []
        for worker_id, batch in enumerate(batches):
            if not batch:
                continue
            worker = self._worker(worker_id)
            try:
                worker.submit(batch)
            except WorkerError as exc:
                errors.append(exc)
                continue
            dispatched.append((worker, batch))

        # barrier: every dispatched worker answers before anything is folded in
        collected: List[Tuple[WorkerBatch, List[Optional[RunResult]]]] = []
        for worker, batch in dispatched:
            try:
                collected.append((batch, worker.collect()))
            except WorkerError as exc:
                errors.append(exc)
        if errors:
            raise min(errors, key=lambda e: e.worker_id)

        padding = 0
        for batch, results in collected:
            for sequence, result in zip(batch, results):
                if sequence is None or result is None:
                    padding += 1
                    continue
                covered = tracker.mask(result.covered)
                self.generator.record(sequence, covered, result.state)
                new = tracker.record(covered)
                self.statistics.record_run(result.halted, new)
        self.statistics.record_round(padding)

    def _log_progress(self, tracker: CoverageTracker):
        stats = self.statistics
        logger.info(
            f"round={stats.rounds} | "
            f"runs={stats.runs} | "
            f"halts={stats.halted_runs} | "
            f"insn={format_percentage(tracker.instruction_coverage())} | "
            f"branch={format_percentage(tracker.branch_coverage())} | "
            f"rate={stats.get_runs_per_second():.1f}/s"
        )

    def close(self):
        for worker_id, worker in enumerate(self._workers):
            if worker is not None:
                worker.stop()
                self._workers[worker_id] = None

    def __enter__(self) -> FuzzEngine:
        return self

    def __exit__(self, *exc_info):
        self.close()
