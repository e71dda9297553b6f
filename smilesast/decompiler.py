"""
AST to Python code.

The decompiler turns a tree into a script of single assignments that
rebuilds it with the public constructors and transformation methods::

    v1 = Linear(['C'])
    v2 = Ring(atoms='c', size=6)
    v3 = v2.attach(1, v1)

Every sub-node gets a fresh variable, children before parents, and no name is
assigned twice. :func:`execute_code` runs such a script and returns the node
bound last.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from smilesast.elements import BondKind
from smilesast.exceptions import InvalidAST, InvalidPosition
from smilesast.layout import number_entries
from smilesast.types import (
    FusedRing,
    LayoutAtom,
    Linear,
    Molecule,
    Node,
    RawFragment,
    Ring,
    most_common_atom,
)


def _literal(value: Any) -> str:
    if isinstance(value, BondKind):
        return repr(value.value)
    return repr(value)


def _bond_list(bonds: Iterable[BondKind | None]) -> str:
    return "[" + ", ".join(_literal(bond) for bond in bonds) + "]"


class Decompiler:
    """Generate Python code that rebuilds an AST.

    Example:
        >>> from smilesast.types import Ring
        >>> print(Decompiler().decompile(Ring(atoms="c", size=6).substitute(1, "n")))
        v1 = Ring(atoms='c', size=6)
        v2 = v1.substitute(1, 'n')
    """

    def __init__(self, prefix: str = "v") -> None:
        if not prefix.isidentifier():
            raise ValueError(f"Variable prefix must be an identifier, got {prefix!r}")
        self._prefix = prefix
        self._lines: list[str] = []
        self._counter = 0

    def decompile(self, node: Node) -> str:
        """Code for ``node``; the last assignment binds the rebuilt node."""
        self._lines = []
        self._counter = 0
        self._emit(node)
        return "\n".join(self._lines)

    def _bind(self, expression: str) -> str:
        self._counter += 1
        name = f"{self._prefix}{self._counter}"
        self._lines.append(f"{name} = {expression}")
        return name

    def _emit(self, node: Node) -> str:
        if isinstance(node, Linear):
            return self._emit_linear(node)
        if isinstance(node, Ring):
            return self._emit_ring(node)
        if isinstance(node, FusedRing):
            return self._emit_fused(node)
        if isinstance(node, Molecule):
            names = [self._emit(component) for component in node.components]
            return self._bind(f"Molecule([{', '.join(names)}])")
        if isinstance(node, RawFragment):
            return self._bind(f"RawFragment({node.text!r})")
        raise InvalidAST(f"Cannot decompile {node!r}")

    def _emit_children(self, children: Iterable[tuple[int, tuple[Node, ...]]]) -> list[tuple[int, str]]:
        return [(position, self._emit(child)) for position, nodes in children for child in nodes]

    def _chain_attachments(
        self,
        name: str,
        attachments: list[tuple[int, str]],
        inline: list[tuple[int, str]],
    ) -> str:
        for position, child in attachments:
            name = self._bind(f"{name}.attach({position}, {child})")
        for position, child in inline:
            name = self._bind(f"{name}.attach({position}, {child}, sibling=False)")
        return name

    def _emit_linear(self, chain: Linear) -> str:
        attachments = self._emit_children(chain.attachments.items())
        inline = self._emit_children(chain.inline.items())

        args = [repr(list(chain.atoms))]
        if any(bond is not None for bond in chain.bonds):
            args.append(_bond_list(chain.bonds))
        if chain.leading_bond is not None:
            args.append(f"leading_bond={_literal(chain.leading_bond)}")
        name = self._bind(f"Linear({', '.join(args)})")
        return self._chain_attachments(name, attachments, inline)

    def _ring_arguments(self, ring: Ring) -> str:
        args = [f"atoms={ring.atoms!r}", f"size={ring.size}"]
        if ring.ring_number != 1:
            args.append(f"ring_number={ring.ring_number}")
        if ring.offset:
            args.append(f"offset={ring.offset}")
        if ring.bonds:
            args.append(f"bonds={_bond_list(ring.bonds)}")
        if ring.leading_bond is not None:
            args.append(f"leading_bond={_literal(ring.leading_bond)}")
        if ring.branch_depths:
            args.append(f"branch_depths={list(ring.branch_depths)!r}")
        if ring.closing_bond is not None:
            args.append(f"closing_bond={_literal(ring.closing_bond)}")
        return ", ".join(args)

    def _emit_ring(self, ring: Ring) -> str:
        attachments = self._emit_children(ring.attachments.items())
        inline = self._emit_children(ring.inline.items())

        name = self._bind(f"Ring({self._ring_arguments(ring)})")
        substitutions = dict(ring.substitutions)
        if len(substitutions) == 1:
            (position, atom), = substitutions.items()
            name = self._bind(f"{name}.substitute({position}, {atom!r})")
        elif substitutions:
            name = self._bind(f"{name}.substitute_multiple({substitutions!r})")
        return self._chain_attachments(name, attachments, inline)

    def _emit_fused(self, fused: FusedRing) -> str:
        if fused.layout is None:
            names = [self._emit_ring(ring) for ring in fused.rings]
            if len(names) == 2:
                return self._bind(f"{names[0]}.fuse({fused.rings[1].offset}, {names[1]})")
            return self._bind(f"FusedRing([{', '.join(names)}])")

        split = _sequential_split(fused.layout)
        if split is None:
            return self._emit_layout(fused.layout)

        head, rings, chain_atoms = split
        head_name = self._emit_layout(head)
        items = []
        for ring, depth, branch in rings:
            ring_name = self._emit_ring(ring)
            item = f"{{'ring': {ring_name}, 'depth': {depth}"
            if branch:
                item += ", 'branch': True"
            items.append(item + "}")
        args = f"[{', '.join(items)}]"
        if chain_atoms:
            args += f", chain_atoms=[{', '.join(self._layout_entry(a) for a in chain_atoms)}]"
        return self._bind(f"{head_name}.add_sequential_rings({args})")

    def _layout_entry(self, entry: LayoutAtom) -> str:
        attachments = [self._emit(child) for child in entry.attachments]
        fields = [
            f"'position': {entry.position}",
            f"'depth': {entry.depth}",
            f"'value': {entry.value!r}",
        ]
        if entry.bond is not None:
            fields.append(f"'bond': {_literal(entry.bond)}")
        if entry.branch:
            fields.append("'branch': True")
        if entry.rings:
            markers = [
                str(m.number) if m.bond is None else f"({m.number}, {_literal(m.bond)})"
                for m in entry.rings
            ]
            fields.append(f"'rings': [{', '.join(markers)}]")
        if attachments:
            fields.append(f"'attachments': [{', '.join(attachments)}]")
        return "{" + ", ".join(fields) + "}"

    def _emit_layout(self, layout: Sequence[LayoutAtom]) -> str:
        entries = [self._layout_entry(entry) for entry in layout]
        body = "".join(f"\n    {entry}," for entry in entries)
        return self._bind(f"FusedRing(layout=[{body}\n])")


def _whole_ring(entries: Sequence[LayoutAtom], start: int) -> tuple[Ring, bool, int] | None:
    """A ring written whole from ``entries[start]``, and the index after it."""
    opener = entries[start]
    if len(opener.rings) != 1:
        return None
    number = opener.rings[0].number
    for end in range(start + 1, len(entries)):
        entry = entries[end]
        if entry.branch or entry.depth != opener.depth:
            return None
        if entry.rings:
            if len(entry.rings) != 1 or entry.rings[0].number != number or end - start < 2:
                return None
            members = entries[start:end + 1]
            values = [e.value for e in members]
            base = most_common_atom(values)
            ring = Ring(
                atoms=base,
                size=len(members),
                ring_number=number,
                substitutions={p: v for p, v in enumerate(values, 1) if v != base},
                attachments={p: e.attachments for p, e in enumerate(members, 1) if e.attachments},
                bonds=[e.bond for e in members[1:]] + [opener.rings[0].bond],
                leading_bond=opener.bond,
                closing_bond=entry.rings[0].bond,
            )
            return ring, opener.branch, end + 1
    return None


def _closed(entries: Sequence[LayoutAtom]) -> bool:
    open_numbers: set[int] = set()
    for entry in entries:
        for marker in entry.rings:
            open_numbers ^= {marker.number}
    return not open_numbers


def _sequential_split(
    layout: Sequence[LayoutAtom],
) -> tuple[tuple[LayoutAtom, ...], list[tuple[Ring, int, bool]], list[LayoutAtom]] | None:
    """Split a layout into a head system plus whole rings written after it.

    Returns None when no prefix of the layout is followed only by whole
    rings and ring-free atoms, or when the split does not rebuild the
    layout exactly.
    """
    for m in range(1, len(layout)):
        head = layout[:m]
        if not any(entry.rings for entry in head) or not _closed(head):
            continue
        rings: list[tuple[Ring, int, bool]] = []
        chain_atoms: list[LayoutAtom] = []
        i = m
        while i < len(layout):
            entry = layout[i]
            if not entry.rings:
                chain_atoms.append(entry)
                i += 1
                continue
            try:
                found = _whole_ring(layout, i)
            except (InvalidAST, InvalidPosition):
                found = None
            if found is None:
                break
            ring, branch, i = found
            rings.append((ring, entry.depth, branch))
        if i < len(layout) or not rings:
            continue

        try:
            head_system = FusedRing(layout=number_entries(head))
            rebuilt = head_system.add_sequential_rings(
                [{"ring": ring, "depth": depth, "branch": branch} for ring, depth, branch in rings],
                chain_atoms,
            )
        except (InvalidAST, InvalidPosition):
            continue
        if rebuilt.layout == tuple(layout):
            return tuple(head), rings, chain_atoms
    return None


def to_code(node: Node, prefix: str = "v") -> str:
    """Generate Python code that rebuilds ``node``.

    This is a convenience function that creates a Decompiler and calls
    decompile().

    Args:
        node: Any AST node.
        prefix: Variable name prefix.

    Returns:
        Newline-separated assignments; the last one binds the rebuilt node.

    Example:
        >>> from smilesast.types import Linear
        >>> print(to_code(Linear(["C", "C", "O"])))
        v1 = Linear(['C', 'C', 'O'])
    """
    return Decompiler(prefix).decompile(node)


def execute_code(code: str) -> Node:
    """Run decompiler output and return the node bound last.

    The code runs with ``Linear``, ``Ring``, ``FusedRing``, ``Molecule``
    and ``RawFragment`` in scope.

    Warning:
        This calls ``exec`` on ``code``, which can run arbitrary Python with
        the caller's privileges. Only pass output of :func:`to_code` or code
        from a trusted source, never text received from users or over the
        network.

    Raises:
        InvalidAST: If the code binds no AST node.
    """
    namespace: dict[str, Any] = {
        "Linear": Linear,
        "Ring": Ring,
        "FusedRing": FusedRing,
        "Molecule": Molecule,
        "RawFragment": RawFragment,
    }
    exec(code, namespace)
    result = None
    for value in namespace.values():
        if isinstance(value, Node):
            result = value
    if result is None:
        raise InvalidAST("Code binds no AST node")
    return result
