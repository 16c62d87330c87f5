from __future__ import annotations

import os
from typing import Union

from llvmlite import binding as llvm
from llvmlite import ir

from .cfg import Constant, ControlFlowGraph, GlobalValue, Node, Value
from .errors import IRReadError, PreconditionError

real_print = print
null_print = lambda *args, **kwargs: None

dprint = real_print if os.getenv("PYDATAFLOW_DEBUG") else null_print

BITCODE_MAGICS = (b"BC\xc0\xde", b"\xde\xc0\x17\x0b")

GLOBAL_KINDS = frozenset({"function", "global_alias", "global_ifunc", "global_variable"})
CONSTANT_KINDS = frozenset(
    {
        "block_address",
        "constant_expr",
        "constant_array",
        "constant_struct",
        "constant_vector",
        "undef_value",
        "constant_aggregate_zero",
        "constant_data_array",
        "constant_data_vector",
        "constant_int",
        "constant_fp",
        "constant_pointer_null",
        "constant_token_none",
        "poison_value",
    }
)

IRSource = Union[str, bytes, ir.Module]


def parse_module(src: IRSource) -> llvm.ModuleRef:
    try:
        if isinstance(src, ir.Module):
            return llvm.parse_assembly(str(src))
        if isinstance(src, bytes):
            if src.startswith(BITCODE_MAGICS):
                return llvm.parse_bitcode(src)
            src = src.decode("utf-8")
        return llvm.parse_assembly(src)
    except (RuntimeError, UnicodeDecodeError) as e:
        raise IRReadError(str(e)) from e


def read_functions(src: IRSource) -> list[ControlFlowGraph]:
    """Build one CFG per function with a body; declarations are skipped."""
    mod = parse_module(src)
    return [function_cfg(f) for f in mod.functions if not f.is_declaration]


def value_kind(v: llvm.ValueRef) -> str:
    return v.value_kind.name


def function_cfg(fn: llvm.ValueRef) -> ControlFlowGraph:
    cfg = ControlFlowGraph(fn.name)
    # ValueRefs hash and compare by the wrapped LLVM pointer
    values: dict[llvm.ValueRef, Value] = {}
    for arg in fn.arguments:
        values[arg] = cfg.add_argument(arg.name)
    blocks = list(fn.blocks)
    for bb in blocks:
        values[bb] = cfg.add_node(bb.name)

    # operands may refer forward (phis, non dominance ordered blocks)
    pending = []
    for bb in blocks:
        node = values[bb]
        for inst in bb.instructions:
            opcode = inst.opcode
            cinst = node.append(
                opcode,
                name=inst.name,
                phi=opcode == "phi",
                void=str(inst.type) == "void",
                text=str(inst).strip(),
            )
            values[inst] = cinst
            pending.append((inst, cinst))

    for inst, cinst in pending:
        operands = [convert_operand(op, values) for op in inst.operands]
        cinst.set_operands(operands)
        for op in operands:
            if isinstance(op, Node):
                cfg.add_edge(cinst.parent, op)

    dprint(f"read {cfg!r}: {len(pending)} instructions")
    return cfg


def convert_operand(op: llvm.ValueRef, values: dict[llvm.ValueRef, Value]) -> Value:
    if op in values:
        return values[op]
    kind = value_kind(op)
    if kind in GLOBAL_KINDS:
        v = GlobalValue(op.name)
    elif kind in CONSTANT_KINDS:
        v = Constant(str(op).strip())
    elif kind in ("argument", "basic_block", "instruction"):
        raise PreconditionError(f"operand {str(op).strip()} is local to another function")
    else:
        # metadata, inline asm, ...
        v = Value(op.name, text=str(op).strip())
    values[op] = v
    return v
