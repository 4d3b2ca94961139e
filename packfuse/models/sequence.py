"""Deterministic identifier generation.

Each builder, planner or executor receives its own IdSequence, so two runs
over identical inputs produce identical ids and nothing depends on
process-wide counters.
"""

from collections import defaultdict
from typing import Dict


class IdSequence:
    """Produces ``prefix_N`` identifiers with an independent counter per prefix.

    Example:
        >>> seq = IdSequence()
        >>> seq.next("fusion")
        'fusion_1'
        >>> seq.next("fusion")
        'fusion_2'
        >>> seq.next("op")
        'op_1'
    """

    def __init__(self, start: int = 1) -> None:
        if start < 0:
            raise ValueError(f"start must be non-negative, got {start}")
        self._start = start
        self._counters: Dict[str, int] = defaultdict(int)

    def next(self, prefix: str) -> str:
        value = self._start + self._counters[prefix]
        self._counters[prefix] += 1
        return f"{prefix}_{value}"

    def reset(self) -> None:
        self._counters.clear()
