"""
Fused-ring layouts.

A fused ring system is written as one run of atoms in which several ring
numbers open and close. This module converts between the two encodings of
:class:`~smilesast.types.FusedRing`:

    * resolving the offset form (ordered rings with offsets) into the
      explicit atom layout that is written out, and
    * deriving ring descriptors (base atom, size, substitutions, bonds) from
      an explicit layout.

Layout indices used here are 0-based; :class:`~smilesast.types.LayoutAtom`
positions are 1-based.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from typing import TYPE_CHECKING

from smilesast.exceptions import InvalidAST
from smilesast.rings import RingBond, pair_ring_markers, ring_paths

if TYPE_CHECKING:
    from smilesast.types import LayoutAtom, Ring

# (ring index, 1-based ring position) -> 0-based layout index
PositionMap = dict[tuple[int, int], int]


def check_layout(layout: Sequence[LayoutAtom]) -> None:
    """Validate depths, branch flags and ring markers of a layout.

    Raises:
        InvalidAST: If the layout cannot be written as SMILES.
    """
    if not layout:
        raise InvalidAST("A fused ring layout needs at least one atom")
    first = layout[0]
    if first.depth != 0 or first.branch:
        raise InvalidAST("The first layout atom must be at depth 0 and not open a branch")
    previous = 0
    for entry in layout[1:]:
        if entry.branch:
            if entry.depth < 1 or entry.depth > previous + 1:
                raise InvalidAST(
                    f"Layout atom {entry.position} opens a branch at depth {entry.depth} "
                    f"after depth {previous}"
                )
        elif entry.depth > previous:
            raise InvalidAST(
                f"Layout atom {entry.position} goes deeper without opening a branch"
            )
        previous = entry.depth
    if not layout_ring_bonds(layout):
        raise InvalidAST("A fused ring layout needs at least one ring")


def layout_parents(layout: Sequence[LayoutAtom]) -> list[int | None]:
    """Index of the atom each layout atom is bonded to (None for the first)."""
    parents: list[int | None] = []
    last: list[int] = []
    for i, entry in enumerate(layout):
        if i == 0:
            parents.append(None)
        elif entry.branch:
            parents.append(last[entry.depth - 1])
        else:
            parents.append(last[entry.depth])
        del last[entry.depth:]
        last.append(i)
    return parents


def layout_ring_bonds(layout: Sequence[LayoutAtom]) -> list[RingBond]:
    """Pair the ring markers of a layout, in closing order.

    Raises:
        InvalidAST: If a marker is unpaired or a ring closes on its opener.
    """
    markers = [
        (i, marker.number, marker.bond)
        for i, entry in enumerate(layout)
        for marker in entry.rings
    ]
    bonds = pair_ring_markers(markers)
    for bond in bonds:
        if bond.opener == bond.closer:
            raise InvalidAST(f"Ring {bond.number} opens and closes on the same atom")
    return bonds


def layout_rings(layout: Sequence[LayoutAtom]) -> list[tuple[RingBond, list[int]]]:
    """Ring bonds with their ring atom indices, ordered by opener."""
    parents = layout_parents(layout)
    bonds = layout_ring_bonds(layout)
    paths = ring_paths(bonds, parents)

    def opener_key(item: tuple[RingBond, list[int]]) -> tuple[int, int]:
        bond = item[0]
        numbers = [m.number for m in layout[bond.opener].rings]
        return bond.opener, numbers.index(bond.number)

    return sorted(zip(bonds, paths), key=opener_key)


def derive_rings(layout: Sequence[LayoutAtom]) -> tuple[Ring, ...]:
    """Ring descriptors of a layout.

    Each ring takes its most frequent atom as base atom, records the other
    atoms as substitutions, and keeps the bonds of ring edges that are
    written as chain bonds. Its offset is the opener's layout index.
    """
    from smilesast.types import Ring, most_common_atom

    parents = layout_parents(layout)
    rings = []
    for bond, path in layout_rings(layout):
        values = [layout[i].value for i in path]
        base = most_common_atom(values)
        bonds = []
        for prev, cur in zip(path, path[1:]):
            if parents[cur] == prev:
                bonds.append(layout[cur].bond)
            elif parents[prev] == cur:
                bonds.append(layout[prev].bond)
            else:
                bonds.append(None)
        bonds.append(bond.opener_bond)
        rings.append(Ring(
            atoms=base,
            size=len(path),
            ring_number=bond.number,
            offset=bond.opener,
            substitutions={p: v for p, v in enumerate(values, 1) if v != base},
            bonds=bonds,
            closing_bond=bond.closer_bond,
        ))
    return tuple(rings)


def _check_fusable(ring: Ring) -> None:
    if ring.branch_depths or ring.inline:
        raise InvalidAST(
            f"Ring {ring.ring_number} has branch depths or inline continuations "
            "and cannot be part of a fused system"
        )


def insert_ring(entries: list[LayoutAtom], offset: int, ring: Ring) -> None:
    """Fuse ``ring`` into a layout in place.

    The ring opens on ``entries[offset]``, its interior atoms are inserted
    after it, and it closes on the atom that followed the opener.

    Raises:
        InvalidAST: If the two atoms at ``offset`` are not written as a
            directly bonded pair.
    """
    from smilesast.types import LayoutAtom, RingMarker

    _check_fusable(ring)
    if offset < 0 or offset + 1 >= len(entries):
        raise InvalidAST(
            f"Ring {ring.ring_number} at offset {offset} lies outside the "
            f"{len(entries)} atoms of the fused system"
        )
    head, tail = entries[offset], entries[offset + 1]
    if tail.branch or tail.depth != head.depth:
        raise InvalidAST(
            f"Atoms {offset} and {offset + 1} are not bonded in writing order; "
            f"ring {ring.ring_number} cannot be fused there"
        )

    size = ring.size
    head = replace(
        head,
        value=ring.substitutions.get(1, head.value),
        rings=head.rings + (RingMarker(ring.ring_number, ring.opener_bond),),
        attachments=head.attachments + ring.attachments.get(1, ()),
    )
    tail = replace(
        tail,
        value=ring.substitutions.get(size, tail.value),
        bond=ring.bond_before(size),
        rings=tail.rings + (RingMarker(ring.ring_number, ring.closing_bond),),
        attachments=tail.attachments + ring.attachments.get(size, ()),
    )
    interior = [
        LayoutAtom(
            position=0,
            depth=head.depth,
            value=ring.atom_at(p),
            bond=ring.bond_before(p),
            attachments=ring.attachments.get(p, ()),
        )
        for p in range(2, size)
    ]
    entries[offset:offset + 2] = [head, *interior, tail]


def ring_entries(ring: Ring, depth: int = 0, branch: bool = False) -> list[LayoutAtom]:
    """Layout atoms for a ring written on its own."""
    from smilesast.types import LayoutAtom, RingMarker

    _check_fusable(ring)
    entries = []
    for p in range(1, ring.size + 1):
        markers = []
        if p == 1:
            markers.append(RingMarker(ring.ring_number, ring.opener_bond))
        if p == ring.size:
            markers.append(RingMarker(ring.ring_number, ring.closing_bond))
        entries.append(LayoutAtom(
            position=0,
            depth=depth,
            value=ring.atom_at(p),
            bond=ring.leading_bond if p == 1 else ring.bond_before(p),
            branch=branch and p == 1,
            rings=markers,
            attachments=ring.attachments.get(p, ()),
        ))
    return entries


def number_entries(entries: Sequence[LayoutAtom]) -> tuple[LayoutAtom, ...]:
    """Assign 1-based positions in list order."""
    return tuple(
        entry if entry.position == i else replace(entry, position=i)
        for i, entry in enumerate(entries, 1)
    )


def resolve_offsets(rings: Sequence[Ring]) -> tuple[tuple[LayoutAtom, ...], PositionMap]:
    """Resolve offset-form rings into a layout.

    Returns:
        The layout and a map from ``(ring index, ring position)`` to the
        0-based layout index of that atom.

    Raises:
        InvalidAST: If an offset falls outside the atoms laid down so far.

    Example:
        >>> from smilesast.types import Ring
        >>> layout, _ = resolve_offsets([Ring("C", 10), Ring("C", 6, 2, offset=2)])
        >>> "".join(e.value + "".join(m.text for m in e.rings) for e in layout)
        'C1CC2CCCCC2CCCCCC1'
    """
    entries = ring_entries(rings[0])
    positions: PositionMap = {(0, p): p - 1 for p in range(1, rings[0].size + 1)}

    for k, ring in enumerate(rings[1:], 1):
        offset = ring.offset
        insert_ring(entries, offset, ring)
        shift = ring.size - 2
        positions = {
            key: index + shift if index > offset else index
            for key, index in positions.items()
        }
        positions[(k, 1)] = offset
        for p in range(2, ring.size + 1):
            positions[(k, p)] = offset + p - 1

    return number_entries(entries), positions
