"""
Dominator sets by forward iteration to a fixed point.

  dom(entry) = {entry}
  dom(n)     = all nodes, for n != entry
  dom(n)     = {n} | intersection of dom(p) over preds(n), until nothing changes

The lattice is the powerset of the nodes ordered by inclusion, meet is
intersection and sets only shrink, so the iteration ends after at most
N * N productive sweeps.
"""

from __future__ import annotations

import os
from collections import defaultdict
from typing import Optional

from .cfg import ControlFlowGraph, Node
from .fixpoint import ResultMap, run_to_fixpoint, sweep_bound

real_print = print
null_print = lambda *args, **kwargs: None

dprint = real_print if os.getenv("PYDATAFLOW_DEBUG") else null_print


class DominatorSet(ResultMap):
    def dominators_of(self, node: Node) -> frozenset[Node]:
        return self[node]

    def dominates(self, a: Node, b: Node) -> bool:
        return a in self[b]

    def strictly_dominates(self, a: Node, b: Node) -> bool:
        return a is not b and a in self[b]

    def immediate_dominator(self, node: Node) -> Optional[Node]:
        # the strict dominator that no other strict dominator is dominated by
        candidates = self[node] - {node}
        for c in self:
            if c not in candidates:
                continue
            if all(c is d or c not in self[d] for d in candidates):
                return c
        return None


class DominatorSolver:
    max_sweeps: Optional[int]

    def __init__(self, max_sweeps: Optional[int] = None):
        self.max_sweeps = max_sweeps

    def compute(self, cfg: ControlFlowGraph) -> DominatorSet:
        entry = cfg.entry
        all_nodes = frozenset(cfg.nodes)
        dom: dict[Node, set[Node]] = {}
        for node in cfg.nodes:
            if node is entry:
                dom[node] = {node}
            else:
                dom[node] = set(all_nodes)
        bound = sweep_bound(len(all_nodes) * len(all_nodes), self.max_sweeps)
        num_sweeps = run_to_fixpoint(
            lambda: self.sweep(cfg, dom), bound, f"dominators of {cfg.name}"
        )
        dprint(f"dominators of {cfg.name}: converged after {num_sweeps} sweeps")
        return DominatorSet(dom.items())

    def sweep(self, cfg: ControlFlowGraph, dom: dict[Node, set[Node]]) -> bool:
        changed = False
        for node in cfg.nodes:
            if node.is_entry:
                continue
            new_set = self.meet(dom, node)
            if new_set != dom[node]:
                dprint(f"dom({node.display_name}): {len(dom[node])} -> {len(new_set)}")
                dom[node] = new_set
                changed = True
        return changed

    @staticmethod
    def meet(dom: dict[Node, set[Node]], node: Node) -> set[Node]:
        new_set = set()
        npreds = len(node.preds)
        if npreds:
            # count occurrences, the intersection is whatever every pred set holds
            counts = defaultdict(int)
            for pred in node.preds:
                for d in dom[pred]:
                    counts[d] += 1
            new_set = {d for d, n in counts.items() if n == npreds}
        new_set.add(node)
        return new_set
