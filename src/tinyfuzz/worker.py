"""
Long-lived worker processes.

Each worker owns one `EmulatorSession` for its whole lifetime and serves
batches sent over a pipe, one at a time. The emulator factory and wiring
factory are pickled into the child, so they must be importable module-level
callables.
"""

from __future__ import annotations

import logging
import pickle
from typing import Any, Callable, List, Optional

from tinyboy.emulator import EmulatorFactory
from tinyboy.flash import FlashImage
from tinyboy.inputs import PulseSequence
from tinyboy.session import EmulatorSession, RunResult
from tinyboy.wires import ControlPadWiring

logger = logging.getLogger(__name__)

_JOIN_TIMEOUT_S = 5.0


class WorkerError(Exception):
    """A worker failed with something other than an emulator halt."""

    def __init__(self, worker_id: int, cause: BaseException):
        self.worker_id = worker_id
        self.cause = cause
        super().__init__(f"worker {worker_id} failed: {cause!r}")


def _portable(exc: BaseException) -> BaseException:
    try:
        pickle.loads(pickle.dumps(exc))
    except Exception:
        return RuntimeError(f"{type(exc).__name__}: {exc}")
    return exc


def _worker_main(
    worker_id: int,
    conn: Any,
    emulator_factory: EmulatorFactory,
    wiring_factory: Callable[[], ControlPadWiring],
    firmware: FlashImage,
) -> None:
    session: Optional[EmulatorSession] = None
    startup_error: Optional[BaseException] = None
    try:
        session = EmulatorSession(
            emulator_factory, wiring_factory(), session_id=worker_id
        )
    except Exception as exc:
        startup_error = exc

    while True:
        try:
            batch = conn.recv()
        except EOFError:
            break
        if batch is None:
            break

        if session is None:
            assert startup_error is not None
            conn.send((False, _portable(startup_error)))
            continue
        try:
            results = session.run_batch(firmware, batch)
        except Exception as exc:
            logger.warning(f"[w{worker_id}] batch failed: {exc!r}")
            conn.send((False, _portable(exc)))
            continue
        conn.send((True, results))


class WorkerProcess:
    """Parent-side handle of one worker process."""

    def __init__(
        self,
        ctx: Any,
        worker_id: int,
        emulator_factory: EmulatorFactory,
        wiring_factory: Callable[[], ControlPadWiring],
        firmware: FlashImage,
    ):
        self.worker_id = worker_id
        self.conn, child_conn = ctx.Pipe()
        self.process = ctx.Process(
            target=_worker_main,
            kwargs={
                "worker_id": worker_id,
                "conn": child_conn,
                "emulator_factory": emulator_factory,
                "wiring_factory": wiring_factory,
                "firmware": firmware,
            },
            name=f"tinyfuzz-w{worker_id}",
            daemon=True,
        )
        self.process.start()
        child_conn.close()
        logger.debug(f"[w{worker_id}] started pid={self.process.pid}")

    def is_alive(self) -> bool:
        return self.process.is_alive()

    def submit(self, batch: List[Optional[PulseSequence]]) -> None:
        try:
            self.conn.send(batch)
        except (OSError, ValueError) as exc:
            raise WorkerError(self.worker_id, exc) from exc

    def collect(self) -> List[Optional[RunResult]]:
        try:
            ok, payload = self.conn.recv()
        except (EOFError, OSError) as exc:
            raise WorkerError(self.worker_id, exc) from exc
        if not ok:
            raise WorkerError(self.worker_id, payload) from payload
        return payload

    def stop(self) -> None:
        try:
            self.conn.send(None)
        except (OSError, ValueError) as exc:
            logger.debug(f"[w{self.worker_id}] pipe already closed: {exc}")
        self.process.join(timeout=_JOIN_TIMEOUT_S)
        if self.process.is_alive():
            logger.warning(f"[w{self.worker_id}] did not stop, terminating")
            self.process.terminate()
            self.process.join(timeout=_JOIN_TIMEOUT_S)
        self.conn.close()
