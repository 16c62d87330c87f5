from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .cfg import (
    ControlFlowGraph,
    Instruction,
    Node,
    Value,
    defining_node,
    tracked_operands,
)
from .fixpoint import ResultMap, run_to_fixpoint, sweep_bound

real_print = print
null_print = lambda *args, **kwargs: None

dprint = real_print if os.getenv("PYDATAFLOW_DEBUG") else null_print

ValueSets = dict[Node, set[Value]]


@dataclass(frozen=True)
class LivenessResult:
    live_out: ResultMap
    inst_live_out: ResultMap
    ue_var: ResultMap
    var_kill: ResultMap

    def live_out_of(self, node: Node) -> frozenset[Value]:
        return self.live_out[node]

    def live_after(self, inst: Instruction) -> frozenset[Value]:
        return self.inst_live_out[inst]


class LivenessSolver:
    """
    Backward liveness with block granularity use/kill summaries.

    1. UEVar/VarKill per block from one forward scan, phi operands skipped.
    2. LiveOut(n) = union over succs s of (LiveOut(s) - VarKill(s)) | UEVar(s),
       iterated from empty sets until nothing changes.
    3. Phi operands defined in the phi's own block are forced into that
       block's LiveOut (the self loop edge is invisible to step 2). Operands
       flowing in from other predecessors are not attributed to their edge.
    4. One backward scan per block records what is live after each
       instruction.
    """

    max_sweeps: Optional[int]

    def __init__(self, max_sweeps: Optional[int] = None):
        self.max_sweeps = max_sweeps

    def compute(self, cfg: ControlFlowGraph) -> LivenessResult:
        cfg.entry  # raises PreconditionError unless there is exactly one
        ue_var, var_kill = self.summarize(cfg)
        live_out: ValueSets = {node: set() for node in cfg.nodes}
        height = len(cfg.nodes) * len(cfg.tracked_values())
        bound = sweep_bound(height, self.max_sweeps)
        num_sweeps = run_to_fixpoint(
            lambda: self.sweep(cfg, ue_var, var_kill, live_out),
            bound,
            f"liveness of {cfg.name}",
        )
        dprint(f"liveness of {cfg.name}: converged after {num_sweeps} sweeps")
        self.add_phi_self_uses(cfg, live_out)
        inst_live_out = self.scan_instructions(cfg, live_out)
        return LivenessResult(
            live_out=ResultMap(live_out.items()),
            inst_live_out=ResultMap(inst_live_out.items()),
            ue_var=ResultMap(ue_var.items()),
            var_kill=ResultMap(var_kill.items()),
        )

    @staticmethod
    def summarize(cfg: ControlFlowGraph) -> tuple[ValueSets, ValueSets]:
        ue_var: ValueSets = {}
        var_kill: ValueSets = {}
        for node in cfg.nodes:
            ue = ue_var[node] = set()
            kill = var_kill[node] = set()
            for inst in node.instructions:
                if not inst.phi:
                    for v in tracked_operands(inst):
                        if v not in kill:
                            ue.add(v)
                if inst.has_uses:
                    kill.add(inst)
        return ue_var, var_kill

    @staticmethod
    def sweep(
        cfg: ControlFlowGraph,
        ue_var: ValueSets,
        var_kill: ValueSets,
        live_out: ValueSets,
    ) -> bool:
        changed = False
        for node in cfg.nodes:
            new_live_out = set()
            for succ in node.succs:
                new_live_out |= (live_out[succ] - var_kill[succ]) | ue_var[succ]
            if new_live_out != live_out[node]:
                dprint(
                    f"live_out({node.display_name}): {len(live_out[node])} -> {len(new_live_out)}"
                )
                live_out[node] = new_live_out
                changed = True
        return changed

    @staticmethod
    def add_phi_self_uses(cfg: ControlFlowGraph, live_out: ValueSets) -> None:
        for node in cfg.nodes:
            for inst in node.instructions:
                if not inst.phi:
                    continue
                for v in inst.operands:
                    if defining_node(v) is node:
                        live_out[node].add(v)

    @staticmethod
    def scan_instructions(
        cfg: ControlFlowGraph, live_out: ValueSets
    ) -> dict[Instruction, set[Value]]:
        inst_live_out = {}
        for node in cfg.nodes:
            live = set(live_out[node])
            for inst in reversed(node.instructions):
                inst_live_out[inst] = set(live)
                live.update(tracked_operands(inst))
                live.discard(inst)
        return inst_live_out
