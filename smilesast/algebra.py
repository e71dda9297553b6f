"""
Transformations of AST nodes.

Every function here is pure: it returns a new node and leaves its arguments
untouched. The node classes expose these as methods (``ring.fuse(...)``,
``chain.mirror()``); the functions are the implementation.

Ring-number bookkeeping follows one rule: when two structures are combined,
ring numbers of the incoming one that clash with numbers already used by the
other are moved to the lowest free numbers.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import replace
from typing import Any

from smilesast.elements import BondKind, bond_text, flip_bond
from smilesast.exceptions import InvalidAST, InvalidPosition
from smilesast.layout import insert_ring, layout_rings, number_entries, resolve_offsets, ring_entries
from smilesast.rings import (
    allocate_ring_numbers,
    collision_mapping,
    find_used_ring_numbers,
    next_ring_number,
    ring_number_to_smiles,
)
from smilesast.tokenizer import TokenKind
from smilesast.types import (
    FusedRing,
    LayoutAtom,
    Linear,
    Molecule,
    Node,
    RawFragment,
    Ring,
    RingMarker,
    atom_text,
    check_position,
)


# =============================================================================
# Traversal and ring numbers
# =============================================================================

def iter_children(node: Node) -> Iterator[Node]:
    """Direct child nodes: attachments, inline continuations, components."""
    if isinstance(node, (Linear, Ring)):
        for children in node.attachments.values():
            yield from children
        for children in node.inline.values():
            yield from children
    elif isinstance(node, FusedRing):
        if node.layout is not None:
            for entry in node.layout:
                yield from entry.attachments
        else:
            for ring in node.rings:
                yield from iter_children(ring)
    elif isinstance(node, Molecule):
        yield from node.components


def ring_numbers(node: Node) -> set[int]:
    """All ring-bond numbers used in ``node`` and its descendants."""
    numbers: set[int] = set()
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, Ring):
            numbers.add(current.ring_number)
        elif isinstance(current, FusedRing):
            numbers.update(ring.ring_number for ring in current.rings)
        elif isinstance(current, RawFragment):
            numbers.update(find_used_ring_numbers(current.text))
        stack.extend(iter_children(current))
    return numbers


def _renumber_children(
    children: Mapping[int, tuple[Node, ...]],
    mapping: Mapping[int, int],
) -> dict[int, list[Node]]:
    return {pos: [renumber_rings(c, mapping) for c in nodes] for pos, nodes in children.items()}


def renumber_rings(node: Node, mapping: Mapping[int, int]) -> Node:
    """Rebuild ``node`` with every ring number ``n`` replaced by ``mapping[n]``.

    Numbers missing from the mapping are kept. An empty mapping gives a deep
    copy.
    """
    if isinstance(node, Linear):
        return replace(
            node,
            attachments=_renumber_children(node.attachments, mapping),
            inline=_renumber_children(node.inline, mapping),
        )
    if isinstance(node, Ring):
        return replace(
            node,
            ring_number=mapping.get(node.ring_number, node.ring_number),
            attachments=_renumber_children(node.attachments, mapping),
            inline=_renumber_children(node.inline, mapping),
        )
    if isinstance(node, FusedRing):
        if node.layout is not None:
            return FusedRing(layout=[
                replace(
                    entry,
                    rings=[RingMarker(mapping.get(m.number, m.number), m.bond) for m in entry.rings],
                    attachments=[renumber_rings(c, mapping) for c in entry.attachments],
                )
                for entry in node.layout
            ])
        return FusedRing([renumber_rings(ring, mapping) for ring in node.rings])
    if isinstance(node, Molecule):
        return Molecule([renumber_rings(c, mapping) for c in node.components])
    if isinstance(node, RawFragment):
        return RawFragment("".join(
            ring_number_to_smiles(mapping[tok.ring_number])
            if tok.kind == TokenKind.RING and tok.ring_number in mapping else tok.text
            for tok in node.tokens()
        ))
    raise InvalidAST(f"Not an AST node: {node!r}")


def clone(node: Node) -> Node:
    """Deep copy of a node."""
    return renumber_rings(node, {})


def avoid_ring_numbers(node: Node, used: Iterable[int]) -> Node:
    """Copy of ``node`` whose ring numbers avoid ``used``."""
    mapping = collision_mapping(ring_numbers(node), set(used))
    return renumber_rings(node, mapping) if mapping else node


def with_leading_bond(node: Node, bond: BondKind | None) -> Node:
    """Copy of ``node`` with a different leading bond."""
    if isinstance(node, (Linear, Ring)):
        return replace(node, leading_bond=bond)
    if isinstance(node, FusedRing):
        if node.layout is not None:
            layout = list(node.layout)
            layout[0] = replace(layout[0], bond=bond)
            return FusedRing(layout=layout)
        rings = list(node.rings)
        rings[0] = replace(rings[0], leading_bond=bond)
        return FusedRing(rings)
    if isinstance(node, Molecule):
        components = list(node.components)
        components[0] = with_leading_bond(components[0], bond)
        return Molecule(components)
    if isinstance(node, RawFragment):
        text = node.text
        if node.leading_bond is not None:
            text = text[node.tokens()[0].end:]
        return RawFragment(bond_text(bond) + text)
    raise InvalidAST(f"Not an AST node: {node!r}")


# =============================================================================
# Attachments and substitutions
# =============================================================================

def attach(node: Linear | Ring, position: int, child: Node, sibling: bool = True) -> Linear | Ring:
    """Add ``child`` at a 1-based position of a chain or ring.

    Siblings are written as parenthesised branches; non-siblings are inline
    continuations written after them.
    """
    if not isinstance(child, Node):
        raise InvalidAST(f"Can only attach AST nodes, got {child!r}")
    bound = len(node.atoms) if isinstance(node, Linear) else node.size
    check_position(position, bound)
    if sibling:
        attachments = dict(node.attachments)
        attachments[position] = attachments.get(position, ()) + (child,)
        return replace(node, attachments=attachments)
    inline = dict(node.inline)
    inline[position] = inline.get(position, ()) + (child,)
    return replace(node, inline=inline)


def substitute(ring: Ring, position: int, atom: str) -> Ring:
    """Replace the atom at a ring position; the base atom clears it."""
    return substitute_multiple(ring, {position: atom})


def substitute_multiple(ring: Ring, mapping: Mapping[int, str]) -> Ring:
    """Apply several substitutions at once."""
    substitutions = dict(ring.substitutions)
    for position, atom in mapping.items():
        check_position(position, ring.size, "substitution position")
        if atom_text(atom) == ring.atoms:
            substitutions.pop(position, None)
        else:
            substitutions[position] = atom
    return replace(ring, substitutions=substitutions)


# =============================================================================
# Fused systems
# =============================================================================

def fuse(ring: Ring, offset: int, other: Ring) -> FusedRing:
    """Fuse ``other`` onto ``ring`` at a 0-based atom offset.

    The shared edge runs from atom ``offset`` to atom ``offset + 1`` of
    ``ring``. If both rings use the same number, ``other`` takes the lowest
    free one.
    """
    if not isinstance(other, Ring):
        raise InvalidAST(f"Can only fuse a Ring, got {type(other).__name__}")
    if not 0 <= offset <= ring.size - 2:
        raise InvalidPosition(offset, ring.size - 2, "offset", lower=0)
    if other.ring_number == ring.ring_number:
        other = other.with_ring_number(next_ring_number(ring_numbers(ring) | ring_numbers(other)))
    first = ring if ring.offset == 0 else replace(ring, offset=0)
    return FusedRing((first, replace(other, offset=offset)))


def add_ring(fused: FusedRing, offset: int, ring: Ring) -> FusedRing:
    """Fuse one more ring at a 0-based offset of the aggregate atom sequence."""
    if not isinstance(ring, Ring):
        raise InvalidAST(f"Can only add a Ring, got {type(ring).__name__}")
    length = len(fused.resolved_layout())
    if not 0 <= offset <= length - 2:
        raise InvalidPosition(offset, length - 2, "offset", lower=0)
    used = {r.ring_number for r in fused.rings}
    if ring.ring_number in used:
        ring = ring.with_ring_number(next_ring_number(used | ring_numbers(ring)))
    if fused.layout is not None:
        entries = list(fused.layout)
        insert_ring(entries, offset, ring)
        return FusedRing(layout=number_entries(entries))
    return FusedRing(fused.rings + (replace(ring, offset=offset),))


def _ring_index(fused: FusedRing, ring_number: int) -> int:
    target = fused.get_ring(ring_number)
    return fused.rings.index(target)


def _layout_slot(fused: FusedRing, ring_number: int, position: int) -> int:
    fused.get_ring(ring_number)
    for bond, path in layout_rings(fused.layout):
        if bond.number == ring_number:
            check_position(position, len(path))
            return path[position - 1]
    raise InvalidAST(f"Ring {ring_number} not found in layout")


def substitute_in_ring(fused: FusedRing, ring_number: int, position: int, atom: str) -> FusedRing:
    """Substitute the atom at ``position`` of ring ``ring_number``."""
    if fused.layout is None:
        rings = list(fused.rings)
        index = _ring_index(fused, ring_number)
        rings[index] = substitute(rings[index], position, atom)
        return FusedRing(rings)
    slot = _layout_slot(fused, ring_number, position)
    layout = list(fused.layout)
    layout[slot] = replace(layout[slot], value=atom)
    return FusedRing(layout=layout)


def attach_to_ring(fused: FusedRing, ring_number: int, position: int, child: Node) -> FusedRing:
    """Attach a branch at ``position`` of ring ``ring_number``."""
    if fused.layout is None:
        rings = list(fused.rings)
        index = _ring_index(fused, ring_number)
        rings[index] = attach(rings[index], position, child)
        return FusedRing(rings)
    if not isinstance(child, Node):
        raise InvalidAST(f"Can only attach AST nodes, got {child!r}")
    slot = _layout_slot(fused, ring_number, position)
    layout = list(fused.layout)
    layout[slot] = replace(layout[slot], attachments=layout[slot].attachments + (child,))
    return FusedRing(layout=layout)


def renumber_fused(fused: FusedRing, start: int = 1) -> FusedRing:
    """Number the rings of a system ``start``, ``start + 1``, ...

    Offset-form rings are numbered in ring order; layout rings in the
    order their numbers open.
    """
    if fused.layout is None:
        return FusedRing([r.with_ring_number(start + i) for i, r in enumerate(fused.rings)])
    open_numbers: dict[int, int] = {}
    counter = start
    layout = []
    for entry in fused.layout:
        markers = []
        for marker in entry.rings:
            if marker.number in open_numbers:
                number = open_numbers.pop(marker.number)
            else:
                number = counter
                counter += 1
                open_numbers[marker.number] = number
            markers.append(RingMarker(number, marker.bond))
        layout.append(replace(entry, rings=markers))
    return FusedRing(layout=layout)


def _sequential_item(item: Any) -> tuple[Ring, int, bool]:
    if isinstance(item, Mapping):
        ring, depth, branch = item.get("ring"), item.get("depth", 0), item.get("branch", False)
    else:
        ring, depth = item
        branch = False
    if not isinstance(ring, Ring):
        raise InvalidAST(f"Sequential rings must be Ring nodes, got {ring!r}")
    return ring, depth, branch


def add_sequential_rings(
    fused: FusedRing,
    rings: Iterable[Any],
    chain_atoms: Iterable[Any] = (),
) -> FusedRing:
    """Append whole rings, and standalone atoms, after the current layout.

    Chain atoms keep their explicit positions; ring atoms fill the other
    positions in order. The result is always in layout form.
    """
    entries = list(fused.resolved_layout())
    start = len(entries)
    ring_atoms: list[LayoutAtom] = []
    for item in rings:
        ring, depth, branch = _sequential_item(item)
        ring_atoms.extend(ring_entries(ring, depth, branch))

    chain = [LayoutAtom.coerce(atom) for atom in chain_atoms]
    total = start + len(ring_atoms) + len(chain)
    placed: dict[int, LayoutAtom] = {}
    for atom in chain:
        if not start < atom.position <= total:
            raise InvalidPosition(atom.position, total, "chain atom position", lower=start + 1)
        if atom.position in placed:
            raise InvalidAST(f"Two chain atoms at position {atom.position}")
        placed[atom.position] = atom

    fill = iter(ring_atoms)
    for position in range(start + 1, total + 1):
        entries.append(placed[position] if position in placed else next(fill))
    return FusedRing(layout=number_entries(entries))


# =============================================================================
# Concatenation
# =============================================================================

def _components(node: Node) -> tuple[Node, ...]:
    return node.components if isinstance(node, Molecule) else (node,)


def concat(left: Node, right: Node) -> Node:
    """Write ``right`` after ``left``.

    Two chains merge into a single Linear whose joining bond is the right
    chain's leading bond. Any other pair gives a flat Molecule.
    """
    if not isinstance(right, Node):
        raise InvalidAST(f"Can only concatenate AST nodes, got {right!r}")
    right = avoid_ring_numbers(right, ring_numbers(left))

    if isinstance(left, Linear) and isinstance(right, Linear) and not left.inline:
        shift = len(left.atoms)
        attachments = dict(left.attachments)
        for position, children in right.attachments.items():
            attachments[position + shift] = children
        return Linear(
            left.atoms + right.atoms,
            left.bonds + (right.leading_bond,) + right.bonds,
            attachments,
            left.leading_bond,
            {position + shift: children for position, children in right.inline.items()},
        )
    return Molecule(_components(left) + _components(right))


# =============================================================================
# Mirroring
# =============================================================================

def reverse_linear(chain: Linear) -> Linear:
    """The chain written backwards; inline continuations are dropped."""
    size = len(chain.atoms)
    return Linear(
        chain.atoms[::-1],
        tuple(flip_bond(b) for b in reversed(chain.bonds)),
        {size + 1 - pos: children for pos, children in chain.attachments.items()},
        chain.leading_bond,
    )


def _mirrored_copies(children: tuple[Node, ...], used: set[int]) -> list[Node]:
    copies = []
    for child in children:
        copy = avoid_ring_numbers(child, used)
        used |= ring_numbers(copy)
        copies.append(copy)
    return copies


def mirror_linear(chain: Linear, pivot: int | None = None) -> Linear:
    """Mirror a chain around the atom at ``pivot`` (1-based, default last).

    Atoms after the pivot are dropped and replaced by the reflection of the
    atoms before it. Branches are copied to the reflected positions with
    fresh ring numbers and directional bonds are flipped.

    Example:
        >>> Linear(["C", "C", "O"]).mirror().smiles
        'CCOCC'
    """
    size = len(chain.atoms)
    p = size if pivot is None else check_position(pivot, size, "pivot")
    atoms = chain.atoms[:p] + chain.atoms[:p - 1][::-1]
    bonds = chain.bonds[:p - 1] + tuple(flip_bond(b) for b in reversed(chain.bonds[:p - 1]))
    attachments = {pos: list(nodes) for pos, nodes in chain.attachments.items() if pos <= p}

    used = set()
    for nodes in attachments.values():
        for child in nodes:
            used |= ring_numbers(child)
    for pos in sorted(attachments):
        if pos < p:
            attachments[2 * p - pos] = _mirrored_copies(chain.attachments[pos], used)
    return Linear(atoms, bonds, attachments, chain.leading_bond)


def mirror_ring(ring: Ring, pivot: int = 1) -> Ring:
    """Reflect substitutions and attachments through ring position ``pivot``.

    Position ``p`` maps to ``((2 * pivot - p - 1) mod size) + 1``. Reflected
    entries only fill positions that were empty.

    Example:
        >>> Ring(atoms="c", size=6).attach(2, Linear(["C"])).mirror(3).smiles
        'c1c(C)cc(C)cc1'
    """
    size = ring.size
    check_position(pivot, size, "pivot")

    def reflect(position: int) -> int:
        return ((2 * pivot - position - 1) % size) + 1

    substitutions = dict(ring.substitutions)
    for position, atom in ring.substitutions.items():
        target = reflect(position)
        if target not in ring.substitutions:
            substitutions[target] = atom

    attachments = {pos: list(nodes) for pos, nodes in ring.attachments.items()}
    used = ring_numbers(ring)
    for position in sorted(ring.attachments):
        target = reflect(position)
        if target != position and target not in ring.attachments:
            attachments[target] = _mirrored_copies(ring.attachments[position], used)
    return replace(ring, substitutions=substitutions, attachments=attachments)


def mirror_molecule(molecule: Molecule, pivot: int | None = None) -> Molecule:
    """Mirror a component sequence around the 1-based ``pivot`` component.

    Components before the pivot are appended again in reverse order. Chains
    are written backwards, ring numbers are refreshed, and each copy is
    joined by the bond that joined the original to its successor.
    """
    count = len(molecule.components)
    p = count if pivot is None else check_position(pivot, count, "pivot")
    components = list(molecule.components[:p])
    used: set[int] = set()
    for component in components:
        used |= ring_numbers(component)

    for j in range(p - 2, -1, -1):
        source = molecule.components[j]
        copy = reverse_linear(source) if isinstance(source, Linear) else source
        copy = avoid_ring_numbers(copy, used)
        used |= ring_numbers(copy)
        bond = flip_bond(molecule.components[j + 1].leading_bond)
        components.append(with_leading_bond(copy, bond))
    return Molecule(components)


# =============================================================================
# Repetition
# =============================================================================

def reroot_linear(chain: Linear, position: int) -> Linear:
    """The same chain written starting from the atom at ``position``.

    Atoms before it become a branch on the new first atom.
    """
    if position == 1:
        return chain
    k = position
    head = Linear(
        chain.atoms[:k - 1][::-1],
        tuple(flip_bond(b) for b in reversed(chain.bonds[:k - 2])),
        {k - pos: nodes for pos, nodes in chain.attachments.items() if pos < k},
        flip_bond(chain.bonds[k - 2]),
    )
    attachments = {pos - k + 1: nodes for pos, nodes in chain.attachments.items() if pos > k}
    attachments[1] = chain.attachments.get(k, ()) + (head,)
    return Linear(
        chain.atoms[k - 1:],
        chain.bonds[k - 1:],
        attachments,
        chain.leading_bond,
        {pos - k + 1: nodes for pos, nodes in chain.inline.items()},
    )


def rotate_ring(ring: Ring, position: int) -> Ring:
    """The same ring written starting from ``position``."""
    if position == 1:
        return ring
    if ring.branch_depths or ring.inline:
        raise InvalidAST("Rings written across branches cannot be rotated")
    size = ring.size

    def source(q: int) -> int:
        return ((q - 1 + position - 1) % size) + 1

    bonds = None
    if ring.bonds or ring.closing_bond:
        old = list(ring.bonds) if ring.bonds else [None] * size
        if old[size - 1] is None:
            old[size - 1] = ring.closing_bond
        bonds = [None] * size
        for q in range(1, size + 1):
            bonds[(q - 2) % size] = old[(source(q) - 2) % size]

    return Ring(
        atoms=ring.atoms,
        size=size,
        ring_number=ring.ring_number,
        offset=ring.offset,
        substitutions={q: ring.substitutions[source(q)] for q in range(1, size + 1)
                       if source(q) in ring.substitutions},
        attachments={q: ring.attachments[source(q)] for q in range(1, size + 1)
                     if source(q) in ring.attachments},
        bonds=bonds,
        leading_bond=ring.leading_bond,
    )


def _unit_size(node: Node) -> int:
    if isinstance(node, Linear):
        return len(node.atoms)
    if isinstance(node, Ring):
        return node.size
    if isinstance(node, FusedRing):
        return len(node.resolved_layout())
    if isinstance(node, Molecule):
        return len(node.components)
    if isinstance(node, RawFragment):
        return 1
    raise InvalidAST(f"Not an AST node: {node!r}")


def _copies(first: Node, rest: Node, n: int) -> list[Node]:
    copies = [clone(first)]
    used = ring_numbers(copies[0])
    for _ in range(n - 1):
        copy = renumber_rings(rest, collision_mapping(ring_numbers(rest), used))
        used |= ring_numbers(copy)
        copies.append(copy)
    return copies


def _nest(copies: list[Node], position: int) -> Node:
    result = copies[-1]
    for copy in reversed(copies[:-1]):
        result = attach(copy, position, result)
    return result


def repeat(node: Node, n: int, left_id: int = 1, right_id: int | None = None) -> Node:
    """Join ``n`` copies of ``node`` into a polymer-like structure.

    Each copy is bonded through its ``left_id`` atom to the ``right_id``
    atom of the previous copy (1-based). When ``right_id`` is the last atom
    the copies are written one after another; otherwise each copy becomes a
    branch of the previous one. Every copy gets fresh ring numbers.

    For a Molecule the ids address components and the copies are always
    written one after another.

    Raises:
        ValueError: If ``n`` is less than 1.
        InvalidPosition: If an id is out of range.

    Example:
        >>> Linear(["C", "O"]).repeat(3).smiles
        'COCOCO'
    """
    if isinstance(n, bool) or not isinstance(n, int) or n < 1:
        raise ValueError(f"Repeat count must be a positive integer, got {n!r}")
    size = _unit_size(node)
    right = size if right_id is None else right_id
    check_position(left_id, size, "left_id")
    check_position(right, size, "right_id")
    if n == 1:
        return clone(node)

    if isinstance(node, Linear):
        if left_id != 1 and right < left_id:
            raise InvalidPosition(right, size, "right_id", lower=left_id)
        rest = reroot_linear(node, left_id)
        copies = _copies(node, rest, n)
        if right == size:
            result = copies[0]
            for copy in copies[1:]:
                result = concat(result, copy)
            return result
        tail = _nest(copies[1:], right - left_id + 1) if n > 2 else copies[1]
        return attach(copies[0], right, tail)

    if isinstance(node, Ring):
        unit = rotate_ring(node, left_id)
        position = ((right - left_id) % size) + 1
        copies = _copies(unit, unit, n)
        if position == size:
            return Molecule(copies)
        return _nest(copies, position)

    if isinstance(node, FusedRing):
        if left_id != 1 or right != size:
            raise InvalidAST("Fused ring systems repeat end to end only")
        return Molecule(_copies(node, node, n))

    return Molecule(_copies(node, node, n))


def fused_repeat(ring: Ring, n: int, offset: int) -> Node:
    """Fuse ``n`` copies of ``ring`` in a row.

    The second copy shares the edge starting at 0-based atom ``offset`` of
    the first. Every later copy already shares its first and last atoms
    with the copy before it, so the next edge is counted from the same
    ``offset`` but must lie between its unshared atoms; an offset whose
    edge would touch a shared atom takes the edge opposite the shared one
    instead. Offsets 2 and 4 on six-membered rings both give the acenes.

    Example:
        >>> Ring(atoms="c", size=6).fused_repeat(3, 4).smiles
        'c1cccc2cc3ccccc3cc12'

    Raises:
        ValueError: If ``n`` is less than 1.
        InvalidPosition: If ``offset`` is outside ``[0, size - 2]``.
        InvalidAST: If more than two three-membered rings are requested.
    """
    if isinstance(n, bool) or not isinstance(n, int) or n < 1:
        raise ValueError(f"Repeat count must be a positive integer, got {n!r}")
    if not 0 <= offset <= ring.size - 2:
        raise InvalidPosition(offset, ring.size - 2, "offset", lower=0)
    if n == 1:
        return clone(ring)
    if n > 2 and ring.size < 4:
        raise InvalidAST("Three-membered rings have no free edge for a third fused copy")

    # 1-based start of the outgoing edge on copies that already share positions 1 and size
    position = offset + 1
    if not 2 <= position <= ring.size - 2:
        position = ring.size // 2

    numbers = [ring.ring_number] + allocate_ring_numbers(n - 1, ring_numbers(ring))
    rings = [replace(ring, offset=0)]
    for k in range(1, n):
        _, positions = resolve_offsets(rings)
        start = positions[(0, offset + 1)] if k == 1 else positions[(k - 1, position)]
        rings.append(replace(ring, ring_number=numbers[k], offset=start))
    return FusedRing(rings)
