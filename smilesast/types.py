"""
AST node types.

A parsed or constructed SMILES structure is a tree of four node variants:

    Linear     an open chain of atoms
    Ring       a single cycle, written with one ring-bond number
    FusedRing  rings sharing atoms, in offset form or as an explicit layout
    Molecule   components written end to end

A fifth node, RawFragment, carries unparsed SMILES text for tests and
debugging.

Every node is a frozen dataclass. Mappings are stored as read-only proxies
and sequences as tuples, so a node never changes after construction and
every transformation method returns a new node. Constructor arguments are
validated and normalised in ``__post_init__``; structurally impossible input
raises :class:`~smilesast.exceptions.InvalidAST` and out-of-range positions
raise :class:`~smilesast.exceptions.InvalidPosition`.

Atom text is opaque: a single organic or aromatic symbol, or a complete
bracket atom such as ``[nH]`` or ``[C@@H]``. Bonds are
:class:`~smilesast.elements.BondKind` members, with ``None`` for the implicit
single bond; plain symbol strings (``"="``) are accepted everywhere.

Example:
    >>> benzene = Ring(atoms="c", size=6)
    >>> benzene.substitute(1, "n").smiles
    'n1ccccc1'
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from functools import lru_cache
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar

from smilesast.elements import BondKind, NodeType, bond_text
from smilesast.exceptions import (
    InvalidAST,
    InvalidPosition,
    ParseError,
    RingError,
    TooManyRings,
)
from smilesast.rings import MAX_RING_NUMBER

if TYPE_CHECKING:
    from smilesast.tokenizer import Token

_EMPTY: Mapping[Any, Any] = MappingProxyType({})


@lru_cache(maxsize=1024)
def _is_single_atom(text: str) -> bool:
    from smilesast.tokenizer import TokenKind, tokenize

    try:
        tokens = tokenize(text)
    except ParseError:
        return False
    return len(tokens) == 1 and tokens[0].kind == TokenKind.ATOM


def atom_text(text: object) -> str:
    if not isinstance(text, str) or not _is_single_atom(text):
        raise InvalidAST(f"Invalid atom text: {text!r}")
    return text


def _split_atoms(text: str) -> tuple[str, ...]:
    from smilesast.tokenizer import TokenKind, tokenize

    try:
        tokens = tokenize(text)
    except ParseError as e:
        raise InvalidAST(f"Invalid atom text: {text!r}") from e
    if any(tok.kind != TokenKind.ATOM for tok in tokens):
        raise InvalidAST(f"Expected a run of atoms, got {text!r}")
    return tuple(tok.text for tok in tokens)


def check_position(position: object, bound: int, what: str = "position") -> int:
    if isinstance(position, bool) or not isinstance(position, int) or not 1 <= position <= bound:
        raise InvalidPosition(position, bound, what)
    return position


def check_ring_number(number: object) -> int:
    if isinstance(number, bool) or not isinstance(number, int):
        raise InvalidAST(f"Ring number must be an integer, got {number!r}")
    if number < 1:
        raise InvalidAST(f"Ring number must be positive, got {number}")
    if number > MAX_RING_NUMBER:
        raise TooManyRings(f"Ring number {number} is above {MAX_RING_NUMBER}")
    return number


def _freeze_children(
    value: Mapping[int, Node | Iterable[Node]] | None,
    bound: int,
    what: str = "attachment position",
) -> Mapping[int, tuple[Node, ...]]:
    """Normalise a position -> child(ren) mapping into a read-only mapping."""
    if not value:
        return _EMPTY
    frozen: dict[int, tuple[Node, ...]] = {}
    for position, children in value.items():
        position = check_position(position, bound, what)
        if isinstance(children, Node):
            children = (children,)
        children = tuple(children)
        for child in children:
            if not isinstance(child, Node):
                raise InvalidAST(f"Attachment at {position} is not an AST node: {child!r}")
        if children:
            frozen[position] = children
    if not frozen:
        return _EMPTY
    return MappingProxyType(dict(sorted(frozen.items())))


def _children_dict(children: Mapping[int, tuple[Node, ...]]) -> dict[int, list[dict[str, Any]]]:
    return {pos: [child.to_dict() for child in nodes] for pos, nodes in children.items()}


def _bonds_list(bonds: Iterable[BondKind | None]) -> list[str | None]:
    return [None if bond is None else bond.value for bond in bonds]


def most_common_atom(values: Sequence[str]) -> str:
    """The most frequent atom text; ties go to the one seen first."""
    counts = Counter(values)
    best = max(counts.values())
    for value in values:
        if counts[value] == best:
            return value
    raise InvalidAST("No atoms")


class Node:
    """Base class for the four AST variants.

    Provides the operations every node supports. Variant-specific
    transformations live on the subclasses.
    """

    __slots__ = ()

    type: ClassVar[NodeType]

    @property
    def smiles(self) -> str:
        """SMILES text of this node."""
        from smilesast.writer import build_smiles

        return build_smiles(self)

    def __str__(self) -> str:
        return self.smiles

    def concat(self, other: Node) -> Node:
        """Write ``other`` directly after this node.

        Two chains merge into one Linear; anything else yields a Molecule.
        Ring numbers of ``other`` that clash with this node's are remapped.

        Example:
            >>> Linear(["C", "C"]).concat(Linear(["O"])).smiles
            'CCO'
        """
        from smilesast.algebra import concat

        return concat(self, other)

    def clone(self) -> Node:
        """Deep copy."""
        from smilesast.algebra import clone

        return clone(self)

    def to_code(self, prefix: str = "v") -> str:
        """Python code that rebuilds this node with the public constructors."""
        from smilesast.decompiler import to_code

        return to_code(self, prefix)

    def ring_numbers(self) -> set[int]:
        """Ring-bond numbers used anywhere in this node, children included."""
        from smilesast.algebra import ring_numbers

        return ring_numbers(self)

    def renumber_rings(self, mapping: Mapping[int, int]) -> Node:
        """Copy with ring numbers replaced through ``mapping``."""
        from smilesast.algebra import renumber_rings

        return renumber_rings(self, mapping)

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view of the node."""
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class Linear(Node):
    """An open chain of atoms.

    Attributes:
        atoms: Atom texts in order. A string is split into atoms.
        bonds: Bond before each atom after the first (``len(atoms) - 1``
            entries, padded with implicit bonds). A vector with one entry per
            atom is also accepted; its first entry is the leading bond.
        attachments: 1-based atom position -> branches written in
            parentheses after that atom.
        leading_bond: Bond written before the first atom.
        inline: Continuations written without parentheses after the last
            atom (position ``len(atoms)`` only).

    Example:
        >>> Linear(["C", "C", "O"], [None, "="]).smiles
        'CC=O'
    """

    type: ClassVar[NodeType] = NodeType.LINEAR

    atoms: tuple[str, ...]
    bonds: tuple[BondKind | None, ...] = ()
    attachments: Mapping[int, tuple[Node, ...]] | None = None
    leading_bond: BondKind | None = None
    inline: Mapping[int, tuple[Node, ...]] | None = None

    def __post_init__(self) -> None:
        atoms = self.atoms
        if isinstance(atoms, str):
            atoms = _split_atoms(atoms)
        atoms = tuple(atom_text(atom) for atom in atoms)
        if not atoms:
            raise InvalidAST("A linear chain needs at least one atom")

        bonds = [BondKind.coerce(bond) for bond in (self.bonds or ())]
        leading = BondKind.coerce(self.leading_bond)
        if len(bonds) == len(atoms):
            first = bonds.pop(0)
            if leading is not None and first is not None and first != leading:
                raise InvalidAST(f"Conflicting leading bonds {first} and {leading}")
            leading = leading or first
        if len(bonds) > len(atoms) - 1:
            raise InvalidAST(f"{len(atoms)} atoms take at most {len(atoms)} bonds, got {len(bonds)}")
        bonds.extend([None] * (len(atoms) - 1 - len(bonds)))

        inline = _freeze_children(self.inline, len(atoms), "inline position")
        if any(pos != len(atoms) for pos in inline):
            raise InvalidAST("A linear chain takes inline continuations at its last atom only")

        object.__setattr__(self, "atoms", atoms)
        object.__setattr__(self, "bonds", tuple(bonds))
        object.__setattr__(self, "attachments", _freeze_children(self.attachments, len(atoms)))
        object.__setattr__(self, "leading_bond", leading)
        object.__setattr__(self, "inline", inline)

    def __len__(self) -> int:
        return len(self.atoms)

    def attach(self, position: int, child: Node, sibling: bool = True) -> Linear:
        """Attach ``child`` after the atom at ``position`` (1-based).

        Args:
            position: Atom position.
            child: Node to attach.
            sibling: Write the child as a parenthesised branch. When False the
                child is an inline continuation, allowed at the last atom.

        Example:
            >>> Linear(["C", "C"]).attach(1, Linear(["O"])).smiles
            'C(O)C'
        """
        from smilesast.algebra import attach

        return attach(self, position, child, sibling)

    def branch(self, position: int, *children: Node) -> Linear:
        """Attach several branches at one position."""
        result = self
        for child in children:
            result = result.attach(position, child)
        return result

    def branch_at(self, mapping: Mapping[int, Node | Iterable[Node]]) -> Linear:
        """Attach branches at several positions at once."""
        result = self
        for position, children in mapping.items():
            if isinstance(children, Node):
                children = (children,)
            result = result.branch(position, *children)
        return result

    def mirror(self, pivot: int | None = None) -> Linear:
        """Mirror the chain around the atom at ``pivot`` (default: last)."""
        from smilesast.algebra import mirror_linear

        return mirror_linear(self, pivot)

    def repeat(self, n: int, left_id: int = 1, right_id: int | None = None) -> Node:
        """Chain ``n`` copies, joining each copy's ``left_id`` atom to the
        previous copy's ``right_id`` atom."""
        from smilesast.algebra import repeat

        return repeat(self, n, left_id, right_id)

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view; absent and empty fields are omitted."""
        data: dict[str, Any] = {"type": str(self.type), "atoms": list(self.atoms)}
        if any(bond is not None for bond in self.bonds):
            data["bonds"] = _bonds_list(self.bonds)
        if self.attachments:
            data["attachments"] = _children_dict(self.attachments)
        if self.leading_bond is not None:
            data["leading_bond"] = self.leading_bond.value
        if self.inline:
            data["inline"] = _children_dict(self.inline)
        return data


@dataclass(frozen=True, slots=True)
class Ring(Node):
    """A single ring closed by one ring-bond number.

    Positions are 1-based: position 1 carries the opening ring number and
    position ``size`` the closing one.

    Attributes:
        atoms: Base atom text used for every position without a substitution.
        size: Number of ring atoms (at least 3).
        ring_number: Ring-bond number (1-99).
        offset: Index of the first atom in the aggregate atom sequence of an
            enclosing fused system; 0 for a standalone ring.
        substitutions: Position -> atom text replacing the base atom.
        attachments: Position -> branches written in parentheses.
        bonds: Ring bonds, one per position. ``bonds[i - 2]`` is written
            before position ``i`` and ``bonds[size - 1]`` before the opening
            ring number (the closure bond). Empty when every bond is implicit.
        leading_bond: Bond written before the first atom.
        branch_depths: Branch depth of each position, for rings whose atoms
            are written across parentheses. None for a flat ring.
        closing_bond: Closure bond written before the closing ring number.
        inline: Position -> continuations written without parentheses. Only
            valid at the last position or where the next position opens a
            deeper branch.

    Example:
        >>> Ring(atoms="C", size=11, ring_number=10).smiles
        'C%10CCCCCCCCCC%10'
    """

    type: ClassVar[NodeType] = NodeType.RING

    atoms: str
    size: int
    ring_number: int = 1
    offset: int = 0
    substitutions: Mapping[int, str] | None = None
    attachments: Mapping[int, tuple[Node, ...]] | None = None
    bonds: tuple[BondKind | None, ...] | None = None
    leading_bond: BondKind | None = None
    branch_depths: tuple[int, ...] | None = None
    closing_bond: BondKind | None = None
    inline: Mapping[int, tuple[Node, ...]] | None = None

    def __post_init__(self) -> None:
        base = atom_text(self.atoms)
        size = self.size
        if isinstance(size, bool) or not isinstance(size, int) or size < 3:
            raise InvalidAST(f"Ring size must be an integer of at least 3, got {size!r}")
        number = check_ring_number(self.ring_number)
        if isinstance(self.offset, bool) or not isinstance(self.offset, int) or self.offset < 0:
            raise InvalidAST(f"Ring offset must be a non-negative integer, got {self.offset!r}")

        substitutions = {}
        for position, atom in (self.substitutions or {}).items():
            position = check_position(position, size, "substitution position")
            atom = atom_text(atom)
            if atom != base:
                substitutions[position] = atom

        bonds = [BondKind.coerce(bond) for bond in (self.bonds or ())]
        if bonds and len(bonds) == size - 1:
            bonds.append(None)
        if bonds and len(bonds) != size:
            raise InvalidAST(f"A ring of size {size} takes {size} bonds, got {len(bonds)}")
        if all(bond is None for bond in bonds):
            bonds = []

        depths = None
        if self.branch_depths is not None:
            depths = tuple(self.branch_depths)
            if len(depths) != size:
                raise InvalidAST(f"branch_depths needs {size} entries, got {len(depths)}")
            previous = 0
            for depth in depths:
                if isinstance(depth, bool) or not isinstance(depth, int) or depth < 0:
                    raise InvalidAST(f"Invalid branch depth {depth!r}")
                if depth > previous + 1:
                    raise InvalidAST("Branch depth may only increase by one per position")
                previous = depth
            if depths[0] != 0:
                raise InvalidAST("The first ring atom must be at branch depth 0")
            if not any(depths):
                depths = None

        inline = _freeze_children(self.inline, size, "inline position")
        for position in inline:
            deeper = depths is not None and position < size and depths[position] > depths[position - 1]
            if position != size and not deeper:
                raise InvalidAST(
                    f"Inline continuation at position {position} would split the ring"
                )

        object.__setattr__(self, "atoms", base)
        object.__setattr__(self, "ring_number", number)
        object.__setattr__(self, "substitutions", MappingProxyType(dict(sorted(substitutions.items()))))
        object.__setattr__(self, "attachments", _freeze_children(self.attachments, size))
        object.__setattr__(self, "bonds", tuple(bonds))
        object.__setattr__(self, "leading_bond", BondKind.coerce(self.leading_bond))
        object.__setattr__(self, "branch_depths", depths)
        object.__setattr__(self, "closing_bond", BondKind.coerce(self.closing_bond))
        object.__setattr__(self, "inline", inline)

    @property
    def base_atom(self) -> str:
        """Atom text written at unsubstituted positions."""
        return self.atoms

    @property
    def opener_bond(self) -> BondKind | None:
        """Closure bond written before the opening ring number."""
        return self.bonds[self.size - 1] if self.bonds else None

    def atom_at(self, position: int) -> str:
        """Atom text at a 1-based position."""
        check_position(position, self.size)
        return self.substitutions.get(position, self.atoms)

    def bond_before(self, position: int) -> BondKind | None:
        """Bond written before the atom at ``position`` (2..size)."""
        if position < 2 or not self.bonds:
            return None
        return self.bonds[position - 2]

    def depth_at(self, position: int) -> int:
        """Branch depth of a position (0 for flat rings)."""
        return self.branch_depths[position - 1] if self.branch_depths else 0

    def attach(self, position: int, child: Node, sibling: bool = True) -> Ring:
        """Attach ``child`` at a ring position.

        Example:
            >>> Ring(atoms="c", size=6).attach(1, Linear(["C"])).smiles
            'c1(C)ccccc1'
        """
        from smilesast.algebra import attach

        return attach(self, position, child, sibling)

    def substitute(self, position: int, atom: str) -> Ring:
        """Replace the atom at ``position``.

        Substituting the base atom removes the substitution.
        """
        from smilesast.algebra import substitute

        return substitute(self, position, atom)

    def substitute_multiple(self, mapping: Mapping[int, str]) -> Ring:
        """Apply several substitutions in one step."""
        from smilesast.algebra import substitute_multiple

        return substitute_multiple(self, mapping)

    def fuse(self, offset: int, other: Ring) -> FusedRing:
        """Fuse ``other`` onto this ring.

        Args:
            offset: 0-based index of the atom where ``other`` opens; the
                shared edge runs from that atom to the next.
            other: Ring to fuse. It is renumbered if its ring number clashes.

        Example:
            >>> Ring(atoms="C", size=10).fuse(2, Ring(atoms="C", size=6, ring_number=2)).smiles
            'C1CC2CCCCC2CCCCCC1'
        """
        from smilesast.algebra import fuse

        return fuse(self, offset, other)

    def mirror(self, pivot: int = 1) -> Ring:
        """Copy substitutions and attachments to the positions mirrored
        through ``pivot``, filling only positions that are empty."""
        from smilesast.algebra import mirror_ring

        return mirror_ring(self, pivot)

    def repeat(self, n: int, left_id: int = 1, right_id: int | None = None) -> Node:
        """Chain ``n`` copies of the ring."""
        from smilesast.algebra import repeat

        return repeat(self, n, left_id, right_id)

    def fused_repeat(self, n: int, offset: int) -> Node:
        """Fuse ``n`` copies in a row, each at ``offset`` of the previous one."""
        from smilesast.algebra import fused_repeat

        return fused_repeat(self, n, offset)

    def with_ring_number(self, number: int) -> Ring:
        """Copy with a different ring-bond number."""
        return replace(self, ring_number=number)

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view; absent and empty fields are omitted."""
        data: dict[str, Any] = {
            "type": str(self.type),
            "atoms": self.atoms,
            "size": self.size,
            "ring_number": self.ring_number,
        }
        if self.offset:
            data["offset"] = self.offset
        if self.substitutions:
            data["substitutions"] = dict(self.substitutions)
        if self.attachments:
            data["attachments"] = _children_dict(self.attachments)
        if self.bonds:
            data["bonds"] = _bonds_list(self.bonds)
        if self.leading_bond is not None:
            data["leading_bond"] = self.leading_bond.value
        if self.branch_depths:
            data["branch_depths"] = list(self.branch_depths)
        if self.closing_bond is not None:
            data["closing_bond"] = self.closing_bond.value
        if self.inline:
            data["inline"] = _children_dict(self.inline)
        return data


@dataclass(frozen=True, slots=True)
class RingMarker:
    """A ring-bond number written on a layout atom.

    Attributes:
        number: Ring-bond number.
        bond: Bond symbol written before the number.
    """

    number: int
    bond: BondKind | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "number", check_ring_number(self.number))
        object.__setattr__(self, "bond", BondKind.coerce(self.bond))

    @property
    def text(self) -> str:
        from smilesast.rings import ring_number_to_smiles

        return bond_text(self.bond) + ring_number_to_smiles(self.number)

    @classmethod
    def coerce(cls, value: object) -> RingMarker:
        """Accept a marker, a number, a ``(number, bond)`` pair or a dict."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        if isinstance(value, Mapping):
            return cls(value["number"], value.get("bond"))
        if isinstance(value, Sequence) and not isinstance(value, str) and len(value) == 2:
            return cls(value[0], value[1])
        raise InvalidAST(f"Invalid ring marker: {value!r}")


@dataclass(frozen=True, slots=True)
class LayoutAtom:
    """One atom of an explicit fused-ring layout.

    Attributes:
        position: 1-based position in writing order.
        depth: Branch depth relative to the first atom.
        value: Atom text.
        bond: Bond written before the atom.
        branch: True if the atom opens a new parenthesised branch.
        rings: Ring-bond markers written after the atom.
        attachments: Self-contained branches written after the markers.
    """

    position: int
    depth: int
    value: str
    bond: BondKind | None = None
    branch: bool = False
    rings: tuple[RingMarker, ...] = ()
    attachments: tuple[Node, ...] = ()

    def __post_init__(self) -> None:
        if isinstance(self.depth, bool) or not isinstance(self.depth, int) or self.depth < 0:
            raise InvalidAST(f"Invalid layout depth {self.depth!r}")
        attachments = self.attachments
        if isinstance(attachments, Node):
            attachments = (attachments,)
        attachments = tuple(attachments or ())
        for child in attachments:
            if not isinstance(child, Node):
                raise InvalidAST(f"Layout attachment is not an AST node: {child!r}")
        object.__setattr__(self, "value", atom_text(self.value))
        object.__setattr__(self, "bond", BondKind.coerce(self.bond))
        object.__setattr__(self, "branch", bool(self.branch))
        object.__setattr__(self, "rings", tuple(RingMarker.coerce(m) for m in (self.rings or ())))
        object.__setattr__(self, "attachments", attachments)

    @classmethod
    def coerce(cls, value: object) -> LayoutAtom:
        """Accept a LayoutAtom or a dict with the same keys."""
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            try:
                return cls(
                    position=value["position"],
                    depth=value.get("depth", 0),
                    value=value["value"],
                    bond=value.get("bond"),
                    branch=value.get("branch", False),
                    rings=value.get("rings", ()),
                    attachments=value.get("attachments", ()),
                )
            except KeyError as e:
                raise InvalidAST(f"Layout atom is missing {e.args[0]!r}") from e
        raise InvalidAST(f"Invalid layout atom: {value!r}")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"position": self.position, "depth": self.depth, "value": self.value}
        if self.bond is not None:
            data["bond"] = self.bond.value
        if self.branch:
            data["branch"] = True
        if self.rings:
            data["rings"] = [
                m.number if m.bond is None else [m.number, m.bond.value] for m in self.rings
            ]
        if self.attachments:
            data["attachments"] = [child.to_dict() for child in self.attachments]
        return data


@dataclass(frozen=True, slots=True)
class FusedRing(Node):
    """Rings sharing atoms.

    Two encodings are accepted:

    * Offset form: ``rings`` alone. The first ring has offset 0 and lays
      down the aggregate atom sequence; each later ring opens at the atom
      with index ``offset`` of the sequence built so far, inserts its
      interior atoms after it, and closes on the atom that followed it.
    * Layout form: ``layout`` alone, an explicit list of atoms in writing
      order with depths, bonds, ring markers and attachments. Ring
      descriptors are derived from it. This form reproduces systems the
      offset form cannot express, such as rings opened inside branches.

    Example:
        >>> naphthalene = Ring(atoms="c", size=6).fuse(3, Ring(atoms="c", size=6, ring_number=2))
        >>> naphthalene.smiles
        'c1ccc2ccccc2c1'
    """

    type: ClassVar[NodeType] = NodeType.FUSED_RING

    rings: tuple[Ring, ...] = ()
    layout: tuple[LayoutAtom, ...] | None = None

    def __post_init__(self) -> None:
        from smilesast.layout import check_layout, derive_rings, resolve_offsets

        rings = tuple(self.rings or ())
        for ring in rings:
            if not isinstance(ring, Ring):
                raise InvalidAST(f"FusedRing members must be Ring nodes, got {ring!r}")

        if self.layout is not None:
            if rings:
                raise InvalidAST("Give either rings or a layout, not both")
            entries = sorted((LayoutAtom.coerce(e) for e in self.layout), key=lambda e: e.position)
            layout = tuple(replace(e, position=i) for i, e in enumerate(entries, 1))
            check_layout(layout)
            object.__setattr__(self, "layout", layout)
            object.__setattr__(self, "rings", derive_rings(layout))
            return

        if len(rings) < 2:
            raise InvalidAST("A fused ring system needs at least two rings")
        if rings[0].offset != 0:
            raise InvalidAST("The first ring of a fused system must have offset 0")
        numbers = [ring.ring_number for ring in rings]
        if len(set(numbers)) != len(numbers):
            raise InvalidAST(f"Duplicate ring numbers in fused system: {numbers}")
        resolve_offsets(rings)
        object.__setattr__(self, "rings", rings)

    @property
    def has_layout(self) -> bool:
        """True for the layout form."""
        return self.layout is not None

    @property
    def leading_bond(self) -> BondKind | None:
        if self.layout is not None:
            return self.layout[0].bond
        return self.rings[0].leading_bond

    def resolved_layout(self) -> tuple[LayoutAtom, ...]:
        """The atoms of the system in writing order."""
        if self.layout is not None:
            return self.layout
        from smilesast.layout import resolve_offsets

        return resolve_offsets(self.rings)[0]

    def get_ring(self, ring_number: int) -> Ring:
        """The first ring written with ``ring_number``.

        Raises:
            RingError: If no ring uses that number.
        """
        for ring in self.rings:
            if ring.ring_number == ring_number:
                return ring
        raise RingError(f"No ring numbered {ring_number} in fused system", ring_number)

    def add_ring(self, offset: int, ring: Ring) -> FusedRing:
        """Fuse another ring at ``offset`` of the aggregate atom sequence."""
        from smilesast.algebra import add_ring

        return add_ring(self, offset, ring)

    def substitute_in_ring(self, ring_number: int, position: int, atom: str) -> FusedRing:
        """Substitute an atom addressed by ring number and ring position."""
        from smilesast.algebra import substitute_in_ring

        return substitute_in_ring(self, ring_number, position, atom)

    def attach_to_ring(self, ring_number: int, position: int, child: Node) -> FusedRing:
        """Attach a branch addressed by ring number and ring position."""
        from smilesast.algebra import attach_to_ring

        return attach_to_ring(self, ring_number, position, child)

    def renumber(self, start: int = 1) -> FusedRing:
        """Renumber the system's rings consecutively from ``start``."""
        from smilesast.algebra import renumber_fused

        return renumber_fused(self, start)

    def add_sequential_rings(
        self,
        rings: Iterable[Any],
        chain_atoms: Iterable[Any] = (),
    ) -> FusedRing:
        """Append rings written one after another, plus standalone chain atoms.

        Args:
            rings: ``(ring, depth)`` pairs or dicts with keys ``ring``,
                ``depth`` and optionally ``branch``.
            chain_atoms: Layout atom dicts with explicit positions after the
                current layout; ring atoms fill the remaining positions.
        """
        from smilesast.algebra import add_sequential_rings

        return add_sequential_rings(self, rings, chain_atoms)

    def repeat(self, n: int, left_id: int = 1, right_id: int | None = None) -> Node:
        """Write ``n`` copies of the system one after another."""
        from smilesast.algebra import repeat

        return repeat(self, n, left_id, right_id)

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view; absent and empty fields are omitted."""
        data: dict[str, Any] = {"type": str(self.type)}
        if self.layout is not None:
            data["layout"] = [entry.to_dict() for entry in self.layout]
        else:
            data["rings"] = [ring.to_dict() for ring in self.rings]
        return data


@dataclass(frozen=True, slots=True)
class Molecule(Node):
    """Components written end to end.

    Each component's leading bond joins it to the previous component.

    Example:
        >>> Molecule([Linear(["C", "C"]), Ring(atoms="c", size=6)]).smiles
        'CCc1ccccc1'
    """

    type: ClassVar[NodeType] = NodeType.MOLECULE

    components: tuple[Node, ...]

    def __post_init__(self) -> None:
        components = tuple(self.components)
        if not components:
            raise InvalidAST("A molecule needs at least one component")
        for component in components:
            if not isinstance(component, Node):
                raise InvalidAST(f"Molecule component is not an AST node: {component!r}")
        object.__setattr__(self, "components", components)

    def __len__(self) -> int:
        return len(self.components)

    @property
    def leading_bond(self) -> BondKind | None:
        return self.components[0].leading_bond

    def append(self, node: Node) -> Molecule:
        """Copy with ``node`` added at the end."""
        return Molecule(self.components + (node,))

    def prepend(self, node: Node) -> Molecule:
        """Copy with ``node`` added at the start."""
        return Molecule((node,) + self.components)

    def get_component(self, index: int) -> Node:
        """Component at a 0-based index."""
        if not 0 <= index < len(self.components):
            raise InvalidPosition(index, len(self.components) - 1, "component index", lower=0)
        return self.components[index]

    def replace_component(self, index: int, node: Node) -> Molecule:
        """Copy with the component at a 0-based index replaced."""
        self.get_component(index)
        components = list(self.components)
        components[index] = node
        return Molecule(components)

    def mirror(self, pivot: int | None = None) -> Molecule:
        """Mirror the component sequence around the 1-based ``pivot``
        component (default: last)."""
        from smilesast.algebra import mirror_molecule

        return mirror_molecule(self, pivot)

    def repeat(self, n: int, left_id: int = 1, right_id: int | None = None) -> Node:
        """Write ``n`` copies one after another."""
        from smilesast.algebra import repeat

        return repeat(self, n, left_id, right_id)

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view of the molecule."""
        return {"type": str(self.type), "components": [c.to_dict() for c in self.components]}


@dataclass(frozen=True, slots=True)
class RawFragment(Node):
    """SMILES text carried through the tree without being parsed into nodes.

    The text must tokenize, and it is written back exactly as given. Ring
    numbers inside it take part in renumbering like those of any other
    node. Intended for tests and debugging; the parser never produces it.

    Example:
        >>> Molecule([Linear(["C", "C"]), RawFragment("C(=O)O")]).smiles
        'CCC(=O)O'
    """

    type: ClassVar[NodeType] = NodeType.RAW_FRAGMENT

    text: str

    def __post_init__(self) -> None:
        from smilesast.tokenizer import tokenize

        if not isinstance(self.text, str) or not self.text:
            raise InvalidAST(f"A raw fragment needs SMILES text, got {self.text!r}")
        try:
            tokenize(self.text)
        except ParseError as e:
            raise InvalidAST(f"Invalid raw fragment {self.text!r}: {e}") from e

    @property
    def leading_bond(self) -> BondKind | None:
        from smilesast.tokenizer import TokenKind

        first = self.tokens()[0]
        return BondKind.coerce(first.text) if first.kind == TokenKind.BOND else None

    def tokens(self) -> list[Token]:
        """Tokens of the fragment text."""
        from smilesast.tokenizer import tokenize

        return tokenize(self.text)

    def to_dict(self) -> dict[str, Any]:
        return {"type": str(self.type), "smiles": self.text}
