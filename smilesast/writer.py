"""
SMILES string writer.

This module renders an AST back to SMILES text. Atom texts, bond symbols and
ring numbers are written exactly as stored, so a tree produced by the parser
writes back the string it was parsed from.

Nested structures may reuse ring numbers. A child whose numbers are still
open in the enclosing context is renumbered on the fly; reuse of a number
that has already closed (``C1CC1C1CC1``) is written as is.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from smilesast.elements import bond_text
from smilesast.exceptions import InvalidAST
from smilesast.rings import collision_mapping, ring_number_to_smiles

if TYPE_CHECKING:
    from smilesast.elements import BondKind
    from smilesast.types import FusedRing, Linear, Molecule, Node, RawFragment, Ring


class SmilesWriter:
    """Render an AST node to SMILES.

    The writer walks the tree once, appending text fragments and tracking
    which ring numbers are open.

    Example:
        >>> from smilesast.types import Linear, Ring
        >>> SmilesWriter(Ring(atoms="c", size=6).attach(1, Linear(["C"]))).to_smiles()
        'c1(C)ccccc1'
    """

    def __init__(self, node: Node) -> None:
        self._node = node
        self._parts: list[str] = []
        self._open: set[int] = set()

    def to_smiles(self) -> str:
        """Generate the SMILES string.

        Raises:
            InvalidAST: If the tree cannot be written.
        """
        self._parts = []
        self._open = set()
        self._write(self._node)
        return "".join(self._parts)

    def _write(self, node: Node) -> None:
        from smilesast.types import FusedRing, Linear, Molecule, RawFragment, Ring

        if isinstance(node, Linear):
            self._write_linear(node)
        elif isinstance(node, Ring):
            self._write_ring(node)
        elif isinstance(node, FusedRing):
            self._write_fused(node)
        elif isinstance(node, Molecule):
            for component in node.components:
                self._write_child(component)
        elif isinstance(node, RawFragment):
            self._write_raw(node)
        else:
            raise InvalidAST(f"Cannot write {node!r} as SMILES")

    def _write_child(self, node: Node) -> None:
        if self._open:
            from smilesast.algebra import renumber_rings, ring_numbers

            numbers = ring_numbers(node)
            if numbers & self._open:
                node = renumber_rings(node, collision_mapping(numbers, self._open))
        self._write(node)

    def _write_branches(self, children: tuple[Node, ...]) -> None:
        for child in children:
            self._parts.append("(")
            self._write_child(child)
            self._parts.append(")")

    def _write_inline(self, children: tuple[Node, ...]) -> None:
        for child in children:
            self._write_child(child)

    def _write_marker(self, number: int, bond: BondKind | None = None) -> None:
        self._parts.append(bond_text(bond))
        self._parts.append(ring_number_to_smiles(number))
        if number in self._open:
            self._open.remove(number)
        else:
            self._open.add(number)

    def _write_linear(self, chain: Linear) -> None:
        parts = self._parts
        parts.append(bond_text(chain.leading_bond))
        for position, atom in enumerate(chain.atoms, 1):
            if position > 1:
                parts.append(bond_text(chain.bonds[position - 2]))
            parts.append(atom)
            self._write_branches(chain.attachments.get(position, ()))
            self._write_inline(chain.inline.get(position, ()))

    def _write_ring(self, ring: Ring) -> None:
        parts = self._parts
        size = ring.size
        # (depth, continuations) written when the branch at that depth closes
        deferred: list[tuple[int, tuple[Node, ...]]] = []
        depth = 0

        parts.append(bond_text(ring.leading_bond))
        for position in range(1, size + 1):
            target = ring.depth_at(position)
            if target > depth:
                parts.append("(")
            elif target < depth:
                self._close_ring_branches(depth, target, deferred)
            if deferred and deferred[-1][0] == target and target < depth:
                raise InvalidAST(
                    f"Inline continuation at depth {target} is followed by ring atom {position}"
                )
            depth = target

            parts.append(bond_text(ring.bond_before(position)))
            parts.append(ring.atom_at(position))
            if position == 1:
                self._write_marker(ring.ring_number, ring.opener_bond)
            if position == size:
                self._write_marker(ring.ring_number, ring.closing_bond)
            self._write_branches(ring.attachments.get(position, ()))

            inline = ring.inline.get(position, ())
            if inline:
                if position < size and ring.depth_at(position + 1) > depth:
                    deferred.append((depth, inline))
                else:
                    self._write_inline(inline)

        self._close_ring_branches(depth, 0, deferred)
        while deferred:
            self._write_inline(deferred.pop()[1])

    def _close_ring_branches(
        self,
        depth: int,
        target: int,
        deferred: list[tuple[int, tuple[Node, ...]]],
    ) -> None:
        while depth > target:
            while deferred and deferred[-1][0] == depth:
                self._write_inline(deferred.pop()[1])
            self._parts.append(")")
            depth -= 1

    def _write_raw(self, fragment: RawFragment) -> None:
        from smilesast.tokenizer import TokenKind

        self._parts.append(fragment.text)
        for token in fragment.tokens():
            if token.kind == TokenKind.RING:
                self._open.symmetric_difference_update({token.ring_number})

    def _write_fused(self, fused: FusedRing) -> None:
        parts = self._parts
        depth = 0
        for index, entry in enumerate(fused.resolved_layout()):
            if index > 0:
                if entry.branch:
                    parts.append(")" * (depth - entry.depth + 1))
                    parts.append("(")
                else:
                    parts.append(")" * (depth - entry.depth))
            depth = entry.depth
            parts.append(bond_text(entry.bond))
            parts.append(entry.value)
            for marker in entry.rings:
                self._write_marker(marker.number, marker.bond)
            self._write_branches(entry.attachments)
        parts.append(")" * depth)


def build_smiles(node: Node) -> str:
    """Render an AST node as SMILES.

    This is a convenience function that creates a SmilesWriter and calls
    to_smiles().

    Args:
        node: Any AST node.

    Returns:
        SMILES string.

    Raises:
        InvalidAST: If the tree cannot be written.

    Example:
        >>> from smilesast.types import Ring
        >>> build_smiles(Ring(atoms="c", size=6))
        'c1ccccc1'
    """
    return SmilesWriter(node).to_smiles()
