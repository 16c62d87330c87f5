from __future__ import annotations

from typing import Iterable

from .cfg import ControlFlowGraph, Node, Value
from .dominators import DominatorSet
from .liveness import LivenessResult
from .term import colored_name, ir_str_pretty


def set_str(names: Iterable[str]) -> str:
    return "{ " + "".join(f"{n} " for n in names) + "}"


def ordered_names(cfg: ControlFlowGraph, values: Iterable[Value], color: bool = False):
    return [value_name(v, color) for v in sorted(values, key=cfg.value_order)]


def value_name(v: Value, color: bool = False) -> str:
    name = v.display_name
    if color and isinstance(v, Node):
        return colored_name(name)
    return name


def function_header(cfg: ControlFlowGraph) -> str:
    return f"=====Function: {cfg.name}====="


def dominators_str(cfg: ControlFlowGraph, dom: DominatorSet, color: bool = False) -> str:
    res = ""
    for node, dom_set in dom.items():
        names = ordered_names(cfg, dom_set, color=color)
        res += f"Basic Block {value_name(node, color)} {set_str(names)}\n"
    return res


def liveness_str(
    cfg: ControlFlowGraph,
    live: LivenessResult,
    pretty: bool = False,
    color: bool = False,
) -> str:
    res = ""
    for node in cfg.nodes:
        res += f"=====Basic block: {value_name(node, color)}=====\n"
        for inst in node.instructions:
            inst_str = str(inst)
            if pretty:
                inst_str = ir_str_pretty(inst_str)
            res += f"{inst_str}\n"
            res += f"{set_str(ordered_names(cfg, live.live_after(inst)))}\n"
    return res
