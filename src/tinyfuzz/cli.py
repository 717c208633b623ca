from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tinyboy.emulator import load_emulator_factory
from tinyboy.exceptions import AnalysisError, HexFormatError
from tinyboy.flash import FlashImage
from tinyfuzz.config import GENERATOR_KINDS, FuzzConfig
from tinyfuzz.coverage import CoverageTracker
from tinyfuzz.engine import FuzzEngine

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def load_firmware(path: Path) -> FlashImage:
    """Intel HEX for `.hex`/`.ihex` files, raw flash contents otherwise."""
    if path.suffix.lower() in (".hex", ".ihex"):
        return FlashImage.from_hex_file(path)
    return FlashImage(path.read_bytes())


def print_analysis(tracker: CoverageTracker) -> None:
    graph = tracker.graph
    print(f"reachable instructions: {graph.instruction_count}")
    print(f"reachable bytes:        {len(graph.reachable)}")
    print(f"conditional branches:   {len(graph.branches)}")
    for branch in graph.branches:
        insn = graph.instructions[branch.address]
        print(
            f"  0x{branch.address:04x} {insn.opcode.name:<6} "
            f"-> 0x{branch.fallthrough:04x} | 0x{branch.taken:04x}"
        )


def write_report(path: Path, tracker: CoverageTracker, engine: FuzzEngine) -> None:
    report = {
        "firmware_size": len(tracker.firmware),
        "outcome": engine.last_outcome.value if engine.last_outcome else None,
        "coverage": tracker.report().to_dict(),
        "statistics": engine.statistics.to_dict(),
    }
    path.write_text(json.dumps(report, indent=2))
    logger.info(f"report written to {path}")


def build_parser() -> argparse.ArgumentParser:
    defaults = FuzzConfig()
    parser = argparse.ArgumentParser(
        prog="tinyfuzz",
        description="Coverage-guided fuzzing of TinyBoy firmware.",
    )
    parser.add_argument("firmware", type=Path, help="firmware image (.hex or raw)")
    parser.add_argument(
        "--emulator",
        help="emulator factory as 'package.module:factory'",
    )
    parser.add_argument("--analyze-only", action="store_true")
    parser.add_argument("--workers", type=int, default=defaults.workers)
    parser.add_argument("--batch-size", type=int, default=defaults.batch_size)
    parser.add_argument("--target", type=float, default=defaults.target)
    parser.add_argument(
        "--generator", choices=GENERATOR_KINDS, default=defaults.generator
    )
    parser.add_argument("--inputs", type=int, default=defaults.inputs)
    parser.add_argument("--pulses", type=int, default=defaults.pulses)
    parser.add_argument("--extend-pulses", type=int, default=defaults.extend_pulses)
    parser.add_argument("--pulse-width", type=int, default=defaults.pulse_width)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--max-evolved", type=int, default=defaults.max_evolved)
    parser.add_argument("--report", type=Path, default=None)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        firmware = load_firmware(args.firmware)
    except (OSError, UnicodeDecodeError, HexFormatError) as exc:
        parser.error(f"cannot load firmware: {exc}")

    if args.analyze_only:
        try:
            tracker = CoverageTracker(firmware)
        except AnalysisError as exc:
            logger.error(f"static analysis failed: {exc}")
            return 1
        print_analysis(tracker)
        return 0

    if not args.emulator:
        parser.error("--emulator is required unless --analyze-only is given")

    try:
        config = FuzzConfig(
            workers=args.workers,
            batch_size=args.batch_size,
            target=args.target,
            pulse_width=args.pulse_width,
            pulses=args.pulses,
            extend_pulses=args.extend_pulses,
            generator=args.generator,
            inputs=args.inputs,
            seed=args.seed,
            max_evolved=args.max_evolved,
        )
    except ValueError as exc:
        parser.error(str(exc))

    factory = load_emulator_factory(args.emulator)

    with FuzzEngine(
        firmware,
        factory,
        config.build_generator(),
        workers=config.workers,
        batch_size=config.batch_size,
    ) as engine:
        try:
            tracker = engine.run(config.target)
        except AnalysisError as exc:
            logger.error(f"static analysis failed: {exc}")
            return 1

        print(tracker.report().summary())
        if args.report is not None:
            write_report(args.report, tracker, engine)
    return 0


if __name__ == "__main__":
    sys.exit(main())
