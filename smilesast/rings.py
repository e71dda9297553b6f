"""
Ring-bond numbering and ring path extraction.

Ring numbers are the digits (``1``-``9``) and ``%nn`` escapes (``%10``-``%99``)
that pair two atoms into a ring bond. This module renders and allocates them,
scans SMILES text for the numbers in use, and turns ring bonds over a
spanning tree into ordered ring atom lists.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Final, TYPE_CHECKING

from smilesast.exceptions import InvalidAST, TooManyRings

if TYPE_CHECKING:
    from smilesast.elements import BondKind

MAX_RING_NUMBER: Final[int] = 99


def ring_number_to_smiles(number: int) -> str:
    """Convert a ring-bond number to SMILES notation.

    Args:
        number: Ring number (1-99).

    Returns:
        The bare digit for 1-9, ``%nn`` for 10-99.

    Raises:
        InvalidAST: If number is below 1.
        TooManyRings: If number is above 99.

    Example:
        >>> ring_number_to_smiles(3), ring_number_to_smiles(12)
        ('3', '%12')
    """
    if number < 1:
        raise InvalidAST(f"Ring number must be positive, got {number}")
    if number <= 9:
        return str(number)
    if number <= MAX_RING_NUMBER:
        return f"%{number}"
    raise TooManyRings(f"Ring number {number} is above {MAX_RING_NUMBER}")


def find_used_ring_numbers(smiles: str) -> set[int]:
    """Collect the ring-bond numbers written in a SMILES string.

    Bracket atoms are skipped, so isotopes such as ``[13C]`` are not
    mistaken for ring bonds.

    Example:
        >>> sorted(find_used_ring_numbers("c1ccc2ccccc2c1[13CH3]"))
        [1, 2]
    """
    from smilesast.tokenizer import TokenKind, tokenize

    return {
        tok.ring_number
        for tok in tokenize(smiles)
        if tok.kind == TokenKind.RING and tok.ring_number is not None
    }


def next_ring_number(used: Iterable[int], start: int = 1) -> int:
    """Return the lowest ring number not in ``used``.

    Raises:
        TooManyRings: If every number from start to 99 is taken.
    """
    taken = set(used)
    for number in range(max(start, 1), MAX_RING_NUMBER + 1):
        if number not in taken:
            return number
    raise TooManyRings()


def allocate_ring_numbers(count: int, used: Iterable[int]) -> list[int]:
    """Return ``count`` distinct free ring numbers, lowest first."""
    taken = set(used)
    numbers = []
    for _ in range(count):
        number = next_ring_number(taken)
        taken.add(number)
        numbers.append(number)
    return numbers


def collision_mapping(numbers: Collection[int], used: Collection[int]) -> dict[int, int]:
    """Map each number in ``numbers`` that is also in ``used`` to a free one.

    Replacement numbers avoid both sets, so applying the mapping to a
    structure never merges two of its own rings.
    """
    clashes = sorted(set(numbers) & set(used))
    if not clashes:
        return {}
    fresh = allocate_ring_numbers(len(clashes), set(numbers) | set(used))
    return dict(zip(clashes, fresh))


@dataclass(frozen=True, slots=True)
class RingBond:
    """A resolved ring-closure pair.

    Attributes:
        number: Ring-bond number as written.
        opener: Index of the atom carrying the first marker.
        closer: Index of the atom carrying the second marker.
        opener_bond: Bond symbol written before the first marker.
        closer_bond: Bond symbol written before the second marker.
    """

    number: int
    opener: int
    closer: int
    opener_bond: BondKind | None = None
    closer_bond: BondKind | None = None


def pair_ring_markers(markers: Iterable[tuple[int, int, BondKind | None]]) -> list[RingBond]:
    """Pair ring markers written in source order.

    Args:
        markers: ``(atom_index, number, bond)`` triples in the order they
            appear in the string.

    Returns:
        Ring bonds in the order they close.

    Raises:
        InvalidAST: If a number is left open.
    """
    open_rings: dict[int, tuple[int, BondKind | None]] = {}
    bonds = []
    for atom, number, bond in markers:
        if number in open_rings:
            opener, opener_bond = open_rings.pop(number)
            bonds.append(RingBond(number, opener, atom, opener_bond, bond))
        else:
            open_rings[number] = (atom, bond)
    if open_rings:
        raise InvalidAST(f"Ring numbers never closed: {sorted(open_rings)}")
    return bonds


def ring_path(
    bond: RingBond,
    parents: Sequence[int | None],
    shortcuts: Mapping[int, Collection[int]] | None = None,
) -> list[int]:
    """Atoms of the ring closed by ``bond``, starting at its opener.

    The ring is the spanning-tree path from opener to closer. Ring bonds
    that closed earlier and join two atoms of that path are taken as
    shortcuts, so the outer ring of ``c1ccc2ccccc2c1`` has six atoms, not ten.

    Args:
        bond: The ring bond.
        parents: Spanning-tree parent of each atom (None for roots).
        shortcuts: Atom -> partner atoms of previously closed ring bonds.

    Returns:
        Atom indices in ring order, opener first and closer last.
    """
    up = []
    atom: int | None = bond.closer
    while atom is not None:
        up.append(atom)
        atom = parents[atom]
    index_up = {a: i for i, a in enumerate(up)}

    down = []
    atom = bond.opener
    while atom is not None and atom not in index_up:
        down.append(atom)
        atom = parents[atom]
    if atom is None:
        raise InvalidAST(f"Ring {bond.number} joins disconnected atoms")

    path = down + up[index_up[atom]::-1]
    if not shortcuts:
        return path

    index = {a: i for i, a in enumerate(path)}
    result: list[int] = []
    i = 0
    while i < len(path):
        result.append(path[i])
        jump = None
        for partner in shortcuts.get(path[i], ()):
            j = index.get(partner)
            if j is None or j <= i + 1:
                continue
            # Keep at least three atoms in the ring
            if len(result) + len(path) - j < 3:
                continue
            if jump is None or j > jump:
                jump = j
        i = jump if jump is not None else i + 1
    return result


def shortcut_table(bonds: Iterable[RingBond]) -> dict[int, set[int]]:
    """Adjacency of ring bonds, used for :func:`ring_path` shortcuts."""
    table: dict[int, set[int]] = {}
    for bond in bonds:
        table.setdefault(bond.opener, set()).add(bond.closer)
        table.setdefault(bond.closer, set()).add(bond.opener)
    return table


def ring_paths(bonds: Sequence[RingBond], parents: Sequence[int | None]) -> list[list[int]]:
    """Ring atom lists for bonds given in closing order.

    Each ring may shortcut through ring bonds that closed before it.
    """
    paths = []
    for k, bond in enumerate(bonds):
        paths.append(ring_path(bond, parents, shortcut_table(bonds[:k])))
    return paths
