from __future__ import annotations

import logging
from collections import Counter, defaultdict


class InfbenchError(Exception):
    """Base class for recoverable data errors while building plots."""


class CacheError(InfbenchError):
    pass


class RunFileError(InfbenchError):
    pass


class OverheadComputationError(InfbenchError):
    pass


def error_reason(exc: BaseException | None) -> str:
    if exc is None:
        return "unknown"
    text = str(exc).strip()
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


class SkipReport:
    """Tally of runs, layers and panels omitted from a plotting pass."""

    def __init__(self, *, max_examples: int = 3) -> None:
        self.max_examples = int(max_examples)
        self.counts: dict[str, Counter] = defaultdict(Counter)
        self.examples: dict[tuple[str, str], list[str]] = defaultdict(list)

    def add(self, stage: str, item: str, reason: str) -> None:
        self.counts[stage][reason] += 1
        bucket = self.examples[(stage, reason)]
        if len(bucket) < self.max_examples:
            bucket.append(item)

    def total(self, stage: str | None = None) -> int:
        if stage is not None:
            return int(sum(self.counts[stage].values()))
        return int(sum(sum(c.values()) for c in self.counts.values()))

    def __bool__(self) -> bool:
        return self.total() > 0

    def to_dict(self) -> dict:
        payload: dict[str, dict] = {}
        for stage, counter in self.counts.items():
            payload[stage] = {
                reason: {
                    "count": int(count),
                    "examples": list(self.examples[(stage, reason)]),
                }
                for reason, count in counter.most_common()
            }
        return payload

    def log(self, logger: logging.Logger) -> None:
        for stage, counter in self.counts.items():
            for reason, count in counter.most_common():
                examples = ", ".join(self.examples[(stage, reason)])
                logger.warning(
                    "Skipped %s %s(s): %s [e.g. %s]", count, stage, reason, examples
                )
