from __future__ import annotations

import collections.abc
import os
from typing import Callable, Hashable, Iterable, Optional

from .errors import InvariantViolation, UnknownKeyError
from .utils import env_int

real_print = print
null_print = lambda *args, **kwargs: None

dprint = real_print if os.getenv("PYDATAFLOW_DEBUG") else null_print


def sweep_bound(height: int, max_sweeps: Optional[int] = None) -> int:
    """
    Number of sweeps after which a monotone solver must have stopped.

    Every sweep except the last one moves at least one node a step along its
    lattice chain, so the total chain height plus the final quiet sweep bounds
    the count. An explicit or PYDATAFLOW_MAX_SWEEPS override wins.
    """
    if max_sweeps is not None:
        return max_sweeps
    env_max = env_int("PYDATAFLOW_MAX_SWEEPS")
    if env_max is not None:
        return env_max
    return height + 2


def run_to_fixpoint(sweep: Callable[[], bool], bound: int, what: str) -> int:
    num_sweeps = 0
    while True:
        if num_sweeps >= bound:
            raise InvariantViolation(
                f"{what}: no fixed point after {num_sweeps} sweeps (bound {bound})"
            )
        changed = sweep()
        num_sweeps += 1
        dprint(f"{what}: sweep {num_sweeps} changed: {changed}")
        if not changed:
            return num_sweeps


class ResultMap(collections.abc.Mapping):
    """Read-only ordered mapping from an analyzed node or instruction to a frozenset."""

    _m: dict[Hashable, frozenset]

    def __init__(self, items: Iterable[tuple[Hashable, Iterable]]):
        self._m = {k: frozenset(v) for k, v in items}

    def __getitem__(self, key) -> frozenset:
        try:
            return self._m[key]
        except KeyError:
            raise UnknownKeyError(key) from None

    def __iter__(self):
        return iter(self._m)

    def __len__(self):
        return len(self._m)

    def __eq__(self, other):
        if isinstance(other, ResultMap):
            return list(self._m.items()) == list(other._m.items())
        return super().__eq__(other)

    __hash__ = None

    def __repr__(self):
        return f"<{type(self).__name__} {self._m!r}>"
