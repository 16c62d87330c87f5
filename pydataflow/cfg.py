from __future__ import annotations

from typing import ClassVar, Iterator, Optional, Sequence

from bidict import bidict

from .errors import PreconditionError, UnknownKeyError
from .utils import first_where

TERMINATOR_OPCODES = frozenset(
    {
        "br",
        "switch",
        "indirectbr",
        "ret",
        "unreachable",
        "resume",
        "invoke",
        "callbr",
        "catchswitch",
        "catchret",
        "cleanupret",
    }
)


class Value:
    """
    Anything that can appear as an operand.

    Values compare by identity only: two distinct values are never equal, even
    when they carry the same name.
    """

    tracked: ClassVar[bool] = True
    name: str
    uses: list[Instruction]

    def __init__(self, name: str = "", text: Optional[str] = None):
        self.name = name
        self.text = text
        self.uses = []

    @property
    def has_uses(self) -> bool:
        return len(self.uses) != 0

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return self.text or "<anon>"

    @property
    def operand_str(self) -> str:
        return self.text or f"%{self.display_name}"

    def __repr__(self):
        return f"<{type(self).__name__} {self.display_name}>"


class Constant(Value):
    tracked = False

    def __init__(self, value, text: Optional[str] = None):
        super().__init__(text=text if text is not None else str(value))
        self.value = value

    @property
    def operand_str(self) -> str:
        return self.text


class GlobalValue(Value):
    tracked = False

    @property
    def operand_str(self) -> str:
        return f"@{self.name}"


class LocalValue(Value):
    """A function-local value; unnamed ones get LLVM style slot numbers."""

    @property
    def cfg(self) -> ControlFlowGraph:
        raise NotImplementedError

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        slot = self.cfg.slot_of(self)
        return "<anon>" if slot is None else f"%{slot}"

    @property
    def operand_str(self) -> str:
        if self.name:
            return f"%{self.name}"
        return self.display_name


class Argument(LocalValue):
    def __init__(self, cfg: ControlFlowGraph, index: int, name: str = ""):
        super().__init__(name)
        self._cfg = cfg
        self.index = index

    @property
    def cfg(self) -> ControlFlowGraph:
        return self._cfg


class Instruction(LocalValue):
    opcode: str
    operands: tuple[Value, ...]
    phi: bool
    incoming: tuple[Node, ...]
    parent: Node
    void: bool

    def __init__(
        self,
        parent: Node,
        opcode: str,
        name: str = "",
        phi: bool = False,
        void: bool = False,
        text: Optional[str] = None,
    ):
        super().__init__(name, text=text)
        self.parent = parent
        self.opcode = opcode
        self.phi = phi
        self.void = void
        self.operands = ()
        self.incoming = ()

    @property
    def cfg(self) -> ControlFlowGraph:
        return self.parent.cfg

    @property
    def is_terminator(self) -> bool:
        return self.opcode in TERMINATOR_OPCODES

    def set_operands(self, operands: Sequence[Value]) -> None:
        assert not self.operands, "operands already set"
        self.operands = tuple(operands)
        for v in self.operands:
            v.uses.append(self)

    def __str__(self):
        if self.text is not None:
            return self.text
        ops = ", ".join(v.operand_str for v in self.operands)
        if self.phi and self.incoming:
            ops = ", ".join(
                f"[ {v.operand_str}, {bb.label_str} ]"
                for v, bb in zip(self.operands, self.incoming)
            )
        body = f"{self.opcode} {ops}".rstrip()
        if self.void:
            return body
        return f"{self.operand_str} = {body}"


class Node(LocalValue):
    """A basic block. Usable as a branch operand, never tracked as a live value."""

    tracked = False
    instructions: list[Instruction]
    preds: list[Node]
    succs: list[Node]

    def __init__(self, cfg: ControlFlowGraph, index: int, name: str, is_entry: bool):
        super().__init__(name)
        self._cfg = cfg
        self.index = index
        self.is_entry = is_entry
        self.instructions = []
        self.preds = []
        self.succs = []

    @property
    def cfg(self) -> ControlFlowGraph:
        return self._cfg

    @property
    def label_str(self) -> str:
        return super().operand_str

    @property
    def operand_str(self) -> str:
        return f"label {self.label_str}"

    @property
    def terminator(self) -> Optional[Instruction]:
        return first_where(self.instructions, lambda i: i.is_terminator)

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self.instructions)

    def append(
        self,
        opcode: str,
        *operands: Value,
        name: str = "",
        phi: bool = False,
        void: bool = False,
        text: Optional[str] = None,
    ) -> Instruction:
        assert self.terminator is None, f"{self!r} already terminated"
        inst = Instruction(self, opcode, name=name, phi=phi, void=void, text=text)
        if operands:
            inst.set_operands(operands)
        self.instructions.append(inst)
        self.cfg.renumber()
        return inst

    def phi(self, incoming: Sequence[tuple[Value, Node]], name: str = "") -> Instruction:
        assert all(i.phi for i in self.instructions), "phi after non-phi"
        for _, bb in incoming:
            if bb.cfg is not self.cfg:
                raise PreconditionError(f"phi incoming block {bb!r} from another CFG")
        inst = self.append("phi", *(v for v, _ in incoming), name=name, phi=True)
        inst.incoming = tuple(bb for _, bb in incoming)
        return inst

    def br(self, target: Node) -> Instruction:
        self.cfg.add_edge(self, target)
        return self.append("br", target, void=True)

    def cbr(self, cond: Value, if_true: Node, if_false: Node) -> Instruction:
        self.cfg.add_edge(self, if_true)
        self.cfg.add_edge(self, if_false)
        return self.append("br", cond, if_true, if_false, void=True)

    def ret(self, value: Optional[Value] = None) -> Instruction:
        if value is None:
            return self.append("ret", void=True)
        return self.append("ret", value, void=True)


class ControlFlowGraph:
    name: str
    nodes: list[Node]
    arguments: list[Argument]
    node_names: bidict

    def __init__(self, name: str = ""):
        self.name = name
        self.nodes = []
        self.arguments = []
        self.node_names = bidict()
        self._slots = None
        self._order = None

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes)

    def __len__(self):
        return len(self.nodes)

    def __contains__(self, node) -> bool:
        return isinstance(node, Node) and node.cfg is self

    def __repr__(self):
        return f"<ControlFlowGraph {self.name} nodes: {len(self.nodes)}>"

    def add_argument(self, name: str = "") -> Argument:
        arg = Argument(self, len(self.arguments), name)
        self.arguments.append(arg)
        self.renumber()
        return arg

    def add_node(self, name: str = "", entry: Optional[bool] = None) -> Node:
        if name and name in self.node_names:
            raise PreconditionError(f"duplicate block name '{name}' in {self.name}")
        if entry is None:
            entry = not self.nodes
        node = Node(self, len(self.nodes), name, entry)
        self.nodes.append(node)
        if name:
            self.node_names[name] = node
        self.renumber()
        return node

    def add_edge(self, src: Node, dst: Node) -> None:
        if src not in self or dst not in self:
            raise PreconditionError(f"edge {src!r} -> {dst!r} leaves {self!r}")
        if dst not in src.succs:
            src.succs.append(dst)
        if src not in dst.preds:
            dst.preds.append(src)

    def node(self, name: str) -> Node:
        try:
            return self.node_names[name]
        except KeyError:
            raise UnknownKeyError(name) from None

    @property
    def entry(self) -> Node:
        entries = [n for n in self.nodes if n.is_entry]
        if len(entries) != 1:
            raise PreconditionError(
                f"{self!r} must have exactly one entry block, found {len(entries)}"
            )
        return entries[0]

    def instructions(self) -> Iterator[Instruction]:
        for node in self.nodes:
            yield from node.instructions

    def tracked_values(self) -> set[Value]:
        res = set(self.arguments)
        for inst in self.instructions():
            res.add(inst)
            res.update(tracked_operands(inst))
        return res

    def renumber(self) -> None:
        self._slots = None
        self._order = None

    def _number(self) -> None:
        # Same walk as LLVM's function-local slot tracker.
        slots = {}
        order = {}

        def visit(v: LocalValue, numbered: bool):
            order[v] = len(order)
            if numbered and not v.name:
                slots[v] = len(slots)

        for arg in self.arguments:
            visit(arg, True)
        for node in self.nodes:
            visit(node, True)
            for inst in node.instructions:
                visit(inst, not inst.void)
        self._slots = slots
        self._order = order

    def slot_of(self, value: LocalValue) -> Optional[int]:
        if self._slots is None:
            self._number()
        return self._slots.get(value)

    def value_order(self, value: Value) -> tuple[int, str]:
        """Sort key giving definition order, foreign values last by name."""
        if self._order is None:
            self._number()
        return self._order.get(value, len(self._order)), value.display_name


def is_tracked(value: Value) -> bool:
    return value.tracked


def tracked_operands(inst: Instruction) -> Iterator[Value]:
    return (v for v in inst.operands if is_tracked(v))


def defining_node(value: Value) -> Optional[Node]:
    if isinstance(value, Instruction):
        return value.parent
    return None
