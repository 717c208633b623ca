from dataclasses import dataclass
from typing import Any, Dict, Optional
import time


@dataclass
class FuzzStatistics:
    rounds: int = 0
    runs: int = 0
    halted_runs: int = 0
    # batch slots left empty because the generator ran dry
    padding_slots: int = 0
    new_coverage_runs: int = 0

    start_time: Optional[float] = None
    end_time: Optional[float] = None

    def record_round(self, padding: int):
        self.rounds += 1
        self.padding_slots += padding

    def record_run(self, halted: bool, new_addresses: int):
        self.runs += 1
        if halted:
            self.halted_runs += 1
        if new_addresses:
            self.new_coverage_runs += 1

    def start_timer(self):
        self.start_time = time.time()
        self.end_time = None

    def stop_timer(self):
        self.end_time = time.time()

    def get_elapsed_time(self) -> float:
        if self.start_time is None:
            return 0.0
        if self.end_time is None:
            return time.time() - self.start_time
        return self.end_time - self.start_time

    def get_runs_per_second(self) -> float:
        elapsed = self.get_elapsed_time()
        if elapsed == 0:
            return 0.0
        return self.runs / elapsed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rounds": self.rounds,
            "runs": self.runs,
            "halted_runs": self.halted_runs,
            "padding_slots": self.padding_slots,
            "new_coverage_runs": self.new_coverage_runs,
            "elapsed_seconds": round(self.get_elapsed_time(), 3),
            "runs_per_second": round(self.get_runs_per_second(), 2),
        }
