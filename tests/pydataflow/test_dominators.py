"""
Dominator solver tests.

Cases:
  - single block
  - diamond: entry -> A/B -> join
  - loop shape: entry -> header -> body -> header/exit
  - unreachable blocks and cycles
"""

import pytest

from pydataflow.cfg import ControlFlowGraph
from pydataflow.dominators import DominatorSolver
from pydataflow.errors import InvariantViolation, PreconditionError, UnknownKeyError


def single_block():
    cfg = ControlFlowGraph("single")
    entry = cfg.add_node("entry")
    entry.ret()
    return cfg


def diamond():
    cfg = ControlFlowGraph("diamond")
    c = cfg.add_argument("c")
    entry = cfg.add_node("entry")
    a = cfg.add_node("A")
    b = cfg.add_node("B")
    join = cfg.add_node("join")
    entry.cbr(c, a, b)
    a.br(join)
    b.br(join)
    join.ret()
    return cfg


def loop_shape():
    cfg = ControlFlowGraph("loop")
    c = cfg.add_argument("c")
    entry = cfg.add_node("entry")
    header = cfg.add_node("header")
    body = cfg.add_node("body")
    exit_bb = cfg.add_node("exit")
    entry.br(header)
    header.br(body)
    body.cbr(c, header, exit_bb)
    exit_bb.ret()
    return cfg


def check_properties(cfg, dom):
    entry = cfg.entry
    assert dom[entry] == {entry}
    for node in cfg.nodes:
        assert node in dom[node]
        assert dom[node] <= set(cfg.nodes)
        if node is entry:
            continue
        work = {n: set(s) for n, s in dom.items()}
        assert DominatorSolver.meet(work, node) == dom[node]


def test_single_block():
    cfg = single_block()
    dom = DominatorSolver().compute(cfg)
    (entry,) = cfg.nodes
    assert dict(dom) == {entry: frozenset({entry})}
    check_properties(cfg, dom)


def test_diamond():
    cfg = diamond()
    entry, a, b, join = cfg.nodes
    dom = DominatorSolver().compute(cfg)
    assert dom.dominators_of(entry) == {entry}
    assert dom.dominators_of(a) == {entry, a}
    assert dom.dominators_of(b) == {entry, b}
    assert dom.dominators_of(join) == {entry, join}
    assert list(dom) == [entry, a, b, join]
    check_properties(cfg, dom)


def test_loop_shape():
    cfg = loop_shape()
    entry, header, body, exit_bb = cfg.nodes
    dom = DominatorSolver().compute(cfg)
    assert dom[header] == {entry, header}
    assert dom[body] == {entry, header, body}
    assert dom[exit_bb] == {entry, header, body, exit_bb}
    check_properties(cfg, dom)


def test_immediate_dominators():
    cfg = loop_shape()
    entry, header, body, exit_bb = cfg.nodes
    dom = DominatorSolver().compute(cfg)
    assert dom.immediate_dominator(entry) is None
    assert dom.immediate_dominator(header) is entry
    assert dom.immediate_dominator(body) is header
    assert dom.immediate_dominator(exit_bb) is body
    assert dom.dominates(header, exit_bb)
    assert dom.dominates(exit_bb, exit_bb)
    assert not dom.strictly_dominates(exit_bb, exit_bb)
    assert not dom.dominates(body, header)

    cfg = diamond()
    entry, a, b, join = cfg.nodes
    dom = DominatorSolver().compute(cfg)
    assert dom.immediate_dominator(join) is entry


def test_entry_need_not_come_first():
    cfg = ControlFlowGraph("late_entry")
    tail = cfg.add_node("tail", entry=False)
    head = cfg.add_node("head", entry=True)
    head.br(tail)
    tail.ret()
    dom = DominatorSolver().compute(cfg)
    assert dom[head] == {head}
    assert dom[tail] == {head, tail}


def test_unreachable_block_converges():
    cfg = ControlFlowGraph("unreachable")
    entry = cfg.add_node("entry")
    a = cfg.add_node("A")
    dead = cfg.add_node("dead")
    entry.br(a)
    dead.br(a)
    a.ret()
    dom = DominatorSolver().compute(cfg)
    assert dom[dead] == {dead}
    # meaningless for code that never runs, but stable
    assert dom[a] == {a}


def test_unreachable_cycle_converges():
    cfg = ControlFlowGraph("dead_cycle")
    entry = cfg.add_node("entry")
    u1 = cfg.add_node("u1")
    u2 = cfg.add_node("u2")
    entry.ret()
    u1.br(u2)
    u2.br(u1)
    dom = DominatorSolver().compute(cfg)
    assert dom[u1] == set(cfg.nodes)
    assert dom[u2] == set(cfg.nodes)
    check_properties(cfg, dom)


def test_deterministic():
    cfg = loop_shape()
    first = DominatorSolver().compute(cfg)
    second = DominatorSolver().compute(cfg)
    assert first == second
    assert list(first.items()) == list(second.items())


def test_structurally_equal_cfgs_differ():
    assert DominatorSolver().compute(diamond()) != DominatorSolver().compute(diamond())


def test_idempotent_sweep():
    for cfg in (single_block(), diamond(), loop_shape()):
        dom = DominatorSolver().compute(cfg)
        work = {n: set(s) for n, s in dom.items()}
        assert not DominatorSolver().sweep(cfg, work)
        assert work == {n: set(s) for n, s in dom.items()}


def test_result_is_read_only():
    cfg = diamond()
    dom = DominatorSolver().compute(cfg)
    with pytest.raises(TypeError):
        dom[cfg.nodes[0]] = set()
    with pytest.raises(AttributeError):
        dom[cfg.nodes[1]].add(cfg.nodes[2])


def test_unknown_node():
    dom = DominatorSolver().compute(diamond())
    stranger = diamond().nodes[0]
    with pytest.raises(UnknownKeyError):
        dom.dominators_of(stranger)
    with pytest.raises(LookupError):
        dom[stranger]
    assert stranger not in dom


def test_bad_entry():
    cfg = ControlFlowGraph("no_entry")
    cfg.add_node("a", entry=False)
    with pytest.raises(PreconditionError):
        DominatorSolver().compute(cfg)

    cfg = ControlFlowGraph("two_entries")
    a = cfg.add_node("a")
    b = cfg.add_node("b", entry=True)
    a.br(b)
    with pytest.raises(PreconditionError):
        DominatorSolver().compute(cfg)


def test_sweep_bound_exceeded():
    with pytest.raises(InvariantViolation):
        DominatorSolver(max_sweeps=1).compute(diamond())
    assert DominatorSolver(max_sweeps=2).compute(diamond())


def test_sweep_bound_from_env(monkeypatch):
    monkeypatch.setenv("PYDATAFLOW_MAX_SWEEPS", "1")
    with pytest.raises(InvariantViolation):
        DominatorSolver().compute(loop_shape())
    monkeypatch.setenv("PYDATAFLOW_MAX_SWEEPS", "0x10")
    assert len(DominatorSolver().compute(loop_shape())) == 4
