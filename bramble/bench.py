"""Command-line benchmark and self-check for the priority forest.

Fills a forest with uniform random floats, tracks the true minimum on the
side, then drains the forest and compares the result against ``sorted``.
Exits non-zero when the forest disagrees with the reference.
"""

import logging
import random
import sys
import time
from argparse import ArgumentParser
from dataclasses import dataclass
from typing import List, Optional

from bramble.forest import PriorityForest

DEFAULT_COUNT = 1000
DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s %(levelname)s %(filename)s:%(lineno)d -- %(message)s"


@dataclass(frozen=True)
class BenchResult:
    """Outcome of one benchmark run.

    Attributes:
        count: Number of values inserted.
        insert_secs: Wall time spent inserting (and merging).
        drain_secs: Wall time spent draining.
        min_ok: Whether peek matched the tracked minimum.
        order_ok: Whether the drain matched the sorted reference.
    """

    count: int
    insert_secs: float
    drain_secs: float
    min_ok: bool
    order_ok: bool

    @property
    def ok(self) -> bool:
        return self.min_ok and self.order_ok


def run_bench(
    count: int,
    seed: Optional[int] = None,
    merge_split: bool = False,
    verify: bool = False,
) -> BenchResult:
    """Insert ``count`` random floats, then check peek and the full drain.

    Args:
        count: Number of values to insert (must be > 0).
        seed: Seed for the random generator, for reproducible runs.
        merge_split: Fill two forests with alternating values and merge them.
        verify: Run the structural invariant check after the first pop.

    Raises:
        ValueError: If count is not positive.
    """
    if count <= 0:
        raise ValueError("count must be positive")
    rng = random.Random(seed)
    values = [rng.random() for _ in range(count)]
    minimum = 1.0
    for value in values:
        minimum = min(minimum, value)

    start = time.perf_counter()
    if merge_split:
        left: PriorityForest[float] = PriorityForest.mk(values[0::2])
        right: PriorityForest[float] = PriorityForest.mk(values[1::2])
        forest = left.merge(right)
    else:
        forest = PriorityForest.mk(values)
    insert_secs = time.perf_counter() - start
    logging.info("inserted %d values in %.6fs", count, insert_secs)

    min_ok = forest.peek() == minimum and forest.size() == count
    if not min_ok:
        logging.error(
            "peek %r does not match tracked minimum %r", forest.peek(), minimum
        )

    start = time.perf_counter()
    drained: List[float] = [forest.pop()]
    if verify:
        forest.verify()
        logging.info("invariants hold after first pop")
    drained.extend(forest.drain())
    drain_secs = time.perf_counter() - start
    logging.info("drained %d values in %.6fs", len(drained), drain_secs)

    order_ok = drained == sorted(values)
    if not order_ok:
        logging.error("drain order disagrees with sorted reference")
    forest.close()
    return BenchResult(count, insert_secs, drain_secs, min_ok, order_ok)


def make_parser() -> ArgumentParser:
    """Create the command-line argument parser.

    Returns:
        An ArgumentParser configured with all the benchmark options.
    """
    parser = ArgumentParser(prog="bramble.bench")
    parser.add_argument("--log-level", default=DEFAULT_LOG_LEVEL)
    parser.add_argument("--count", type=int, default=DEFAULT_COUNT)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--merge-split", action="store_true")
    parser.add_argument("--verify", action="store_true")
    return parser


def configure_logging(log_level: str) -> None:
    """Configure the logging system with the specified log level.

    Args:
        log_level: The logging level (e.g., 'DEBUG', 'INFO', 'WARNING').
    """
    logging.basicConfig(format=LOG_FORMAT, level=log_level)


def main(argv: Optional[List[str]] = None) -> int:
    """Run the benchmark from the command line.

    Returns:
        Process exit status: 0 when the forest agrees with the reference.
    """
    parser = make_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    result = run_bench(args.count, args.seed, args.merge_split, args.verify)
    logging.info("done (%s)", "ok" if result.ok else "MISMATCH")
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
