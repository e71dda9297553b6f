"""
SMILES parser.

This module converts a SMILES string into an AST in two passes.

The scan pass walks the token list once, checking the grammar (bond and
ring-marker placement, balanced parentheses, closed rings) and recording for
every atom its bond, branch depth, spanning-tree parent, ring markers and
branches. The validator runs this pass alone.

The assembly pass turns the scan records into nodes. Along the main chain of
a fragment, runs of atoms outside any ring become Linear nodes and atoms
joined by ring bonds become ring systems. A ring system is first described in
the compact forms (a Ring, or a FusedRing in offset form); the description is
kept only if it writes back exactly the source text of the system. Otherwise
the system becomes a FusedRing in layout form, which reproduces any
arrangement of rings and branches verbatim.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from smilesast.elements import BondKind
from smilesast.exceptions import (
    EmptyInput,
    InvalidAST,
    UnbalancedBranches,
    UnclosedRing,
    UnexpectedToken,
)
from smilesast.layout import number_entries
from smilesast.rings import RingBond, ring_number_to_smiles, ring_paths
from smilesast.tokenizer import Token, TokenKind, tokenize
from smilesast.types import (
    FusedRing,
    LayoutAtom,
    Linear,
    Molecule,
    Node,
    Ring,
    RingMarker,
    most_common_atom,
)
from smilesast.writer import build_smiles

if TYPE_CHECKING:
    from collections.abc import Sequence


@dataclass(slots=True)
class _Branch:
    """A parenthesised branch: atom index range and its parenthesis tokens."""

    first: int
    last: int
    open_token: int
    close_token: int = -1

    def __contains__(self, atom: int) -> bool:
        return self.first <= atom <= self.last


@dataclass(slots=True)
class _AtomRecord:
    """Everything the scan pass learns about one atom."""

    index: int
    text: str
    bond: BondKind | None
    depth: int
    parent: int | None
    opens_branch: bool
    first_token: int
    last_token: int
    markers: list[tuple[int, BondKind | None]] = field(default_factory=list)
    branches: list[_Branch] = field(default_factory=list)
    next: int | None = None


@dataclass
class _ParserState:
    """Mutable state of the scan pass."""

    atoms: list[_AtomRecord] = field(default_factory=list)

    # Ring bonds in the order they close
    ring_bonds: list[RingBond] = field(default_factory=list)

    # Open ring number -> (atom index, bond, character offset)
    open_rings: dict[int, tuple[int, BondKind | None, int]] = field(default_factory=dict)

    # (parent atom index, '(' token index) per open branch
    branch_stack: list[tuple[int, int]] = field(default_factory=list)

    prev_atom: int | None = None
    pending_bond: tuple[BondKind, int] | None = None
    last_kind: TokenKind | None = None


class SmilesParser:
    """SMILES string parser.

    Parses a SMILES string into a Linear, Ring, FusedRing or Molecule node.

    Supported syntax:
        - Organic subset atoms (B, C, N, O, P, S, F, Cl, Br, I) and the
          two-letter symbols in the element table
        - Aromatic atoms (b, c, n, o, p, s)
        - Bracket atoms, kept as opaque text
        - Bonds ``- = # : / \\``
        - Ring bonds ``1``-``9`` and ``%10``-``%99``
        - Branches, nested to any depth

    Example:
        >>> parser = SmilesParser("c1ccccc1")
        >>> ring = parser.parse()
        >>> ring.size, ring.base_atom
        (6, 'c')

    For convenience, use the module-level `parse()` function:
        >>> from smilesast import parse
        >>> ring = parse("c1ccccc1")
    """

    def __init__(self, smiles: str) -> None:
        """Initialize parser with a SMILES string.

        Args:
            smiles: SMILES string to parse.
        """
        self._smiles = smiles
        self._tokens: list[Token] = []
        self._texts: list[str] = []
        self._state = _ParserState()
        self._contained: dict[tuple[int, int], bool] = {}

    # =========================================================================
    # Scan pass
    # =========================================================================

    def scan(self) -> _ParserState:
        """Check the grammar and record atoms, branches and ring bonds.

        Raises:
            EmptyInput: If the string has no tokens.
            InvalidCharacter, UnclosedBracket, InvalidRingEscape: From the
                tokenizer.
            UnexpectedToken: For a bond, ring marker or parenthesis in a
                position where it cannot appear.
            UnbalancedBranches: If parentheses do not match.
            UnclosedRing: If a ring number is opened and never closed.
        """
        self._tokens = tokenize(self._smiles)
        if not self._tokens:
            raise EmptyInput(self._smiles)
        self._state = _ParserState()
        self._contained = {}
        state = self._state

        for index, tok in enumerate(self._tokens):
            kind = tok.kind
            if kind == TokenKind.ATOM:
                self._scan_atom(index, tok)
            elif kind == TokenKind.BOND:
                self._scan_bond(index, tok)
                continue
            elif kind == TokenKind.RING:
                self._scan_ring_bond(index, tok)
            elif kind == TokenKind.BRANCH_OPEN:
                self._scan_branch_open(index, tok)
            else:
                self._scan_branch_close(index, tok)
            state.last_kind = kind

        if state.pending_bond is not None:
            raise UnexpectedToken(
                "Bond at the end of the string", self._smiles, state.pending_bond[1]
            )
        if state.branch_stack:
            _, open_token = state.branch_stack[-1]
            raise UnbalancedBranches(
                "Unclosed branch", self._smiles, self._tokens[open_token].start
            )
        if state.open_rings:
            number, (_, _, offset) = min(state.open_rings.items(), key=lambda item: item[1][2])
            raise UnclosedRing(number, self._smiles, offset)

        self._texts = [
            ring_number_to_smiles(tok.ring_number)
            if tok.kind == TokenKind.RING and tok.ring_number is not None
            else tok.text
            for tok in self._tokens
        ]
        return state

    def _unexpected(self, message: str, tok: Token) -> UnexpectedToken:
        return UnexpectedToken(message, self._smiles, tok.start)

    def _scan_atom(self, index: int, tok: Token) -> None:
        state = self._state
        bond = None
        first_token = index
        if state.pending_bond is not None:
            bond = state.pending_bond[0]
            first_token = index - 1
            state.pending_bond = None

        atom = len(state.atoms)
        opens_branch = state.last_kind == TokenKind.BRANCH_OPEN
        if opens_branch:
            parent, open_token = state.branch_stack[-1]
            state.atoms[parent].branches.append(_Branch(atom, atom, open_token))
        else:
            parent = state.prev_atom
            if parent is not None:
                state.atoms[parent].next = atom

        state.atoms.append(_AtomRecord(
            index=atom,
            text=tok.text,
            bond=bond,
            depth=len(state.branch_stack),
            parent=parent,
            opens_branch=opens_branch,
            first_token=first_token,
            last_token=index,
        ))
        state.prev_atom = atom

    def _scan_bond(self, index: int, tok: Token) -> None:
        state = self._state
        if not state.atoms:
            raise self._unexpected("Bond before any atom", tok)
        if state.pending_bond is not None:
            raise self._unexpected("Two bonds in a row", tok)
        state.pending_bond = (BondKind(tok.text), tok.start)

    def _scan_ring_bond(self, index: int, tok: Token) -> None:
        state = self._state
        if state.last_kind not in (TokenKind.ATOM, TokenKind.RING) or state.prev_atom is None:
            raise self._unexpected("Ring bond number must follow an atom", tok)
        number = tok.ring_number
        assert number is not None
        if number == 0:
            raise self._unexpected("Ring bond number 0 is not supported", tok)

        atom = state.prev_atom
        bond = state.pending_bond[0] if state.pending_bond is not None else None
        state.pending_bond = None

        if number in state.open_rings:
            opener, opener_bond, _ = state.open_rings[number]
            if opener == atom:
                raise self._unexpected(f"Ring bond {number} closes on the atom that opened it", tok)
            if self._bonded(opener, atom):
                raise self._unexpected(f"Ring bond {number} joins atoms that are already bonded", tok)
            del state.open_rings[number]
            state.ring_bonds.append(RingBond(number, opener, atom, opener_bond, bond))
        else:
            state.open_rings[number] = (atom, bond, tok.start)

        record = state.atoms[atom]
        record.markers.append((number, bond))
        record.last_token = index

    def _bonded(self, a: int, b: int) -> bool:
        atoms = self._state.atoms
        if atoms[a].parent == b or atoms[b].parent == a:
            return True
        return any({rb.opener, rb.closer} == {a, b} for rb in self._state.ring_bonds)

    def _scan_branch_open(self, index: int, tok: Token) -> None:
        state = self._state
        if state.last_kind not in (TokenKind.ATOM, TokenKind.RING, TokenKind.BRANCH_CLOSE):
            raise self._unexpected("Branch must follow an atom", tok)
        if state.pending_bond is not None:
            raise UnexpectedToken("Bond before a branch", self._smiles, state.pending_bond[1])
        assert state.prev_atom is not None
        state.branch_stack.append((state.prev_atom, index))

    def _scan_branch_close(self, index: int, tok: Token) -> None:
        state = self._state
        if not state.branch_stack:
            raise UnbalancedBranches("Unmatched ')'", self._smiles, tok.start)
        if state.pending_bond is not None:
            raise UnexpectedToken("Bond at the end of a branch", self._smiles, state.pending_bond[1])
        if state.last_kind == TokenKind.BRANCH_OPEN:
            raise self._unexpected("Empty branch", tok)
        parent, _ = state.branch_stack.pop()
        branch = state.atoms[parent].branches[-1]
        branch.last = len(state.atoms) - 1
        branch.close_token = index
        state.prev_atom = parent

    # =========================================================================
    # Assembly pass
    # =========================================================================

    def parse(self) -> Node:
        """Parse the SMILES string into an AST.

        Returns:
            A Linear, Ring, FusedRing or Molecule node.

        Raises:
            ParseError: If the SMILES syntax is invalid (see :meth:`scan`).
        """
        state = self.scan()
        return self._build(0, len(state.atoms) - 1)

    def _self_contained(self, first: int, last: int) -> bool:
        """True if no ring bond crosses the boundary of atoms first..last."""
        key = (first, last)
        if key not in self._contained:
            self._contained[key] = all(
                (first <= rb.opener <= last) == (first <= rb.closer <= last)
                for rb in self._state.ring_bonds
            )
        return self._contained[key]

    def _branch_contained(self, branch: _Branch) -> bool:
        return self._self_contained(branch.first, branch.last)

    def _chain(self, first: int, last: int) -> list[int]:
        atoms = self._state.atoms
        chain = [first]
        while True:
            nxt = atoms[chain[-1]].next
            if nxt is None or nxt > last:
                return chain
            chain.append(nxt)

    def _build(self, first: int, last: int) -> Node:
        """Node for the fragment of atoms first..last.

        The fragment is a whole branch, the whole string, or the tail of a
        branch; no ring bond crosses its boundary.
        """
        atoms = self._state.atoms
        chain = self._chain(first, last)

        def top(atom: int) -> int:
            return bisect_right(chain, atom) - 1

        spans: list[tuple[int, int, RingBond]] = []
        for rb in self._state.ring_bonds:
            if not (first <= rb.opener <= last):
                continue
            lo, hi = sorted((top(rb.opener), top(rb.closer)))
            if lo == hi:
                inner = [b for b in atoms[chain[lo]].branches if rb.opener in b]
                if inner and rb.closer in inner[0] and self._branch_contained(inner[0]):
                    continue
            spans.append((lo, hi, rb))

        systems: list[tuple[int, int, list[RingBond]]] = []
        for lo, hi, rb in sorted(spans, key=lambda s: (s[0], s[1])):
            if systems and lo <= systems[-1][1]:
                s_lo, s_hi, bonds = systems[-1]
                systems[-1] = (s_lo, max(s_hi, hi), bonds + [rb])
            else:
                systems.append((lo, hi, [rb]))

        components: list[Node] = []
        position = 0
        for lo, hi, bonds in systems:
            if position < lo:
                components.append(self._build_linear(chain[position:lo]))
            closing_order = [rb for rb in self._state.ring_bonds if rb in bonds]
            components.append(self._build_system(chain, lo, hi, closing_order))
            position = hi + 1
        if position < len(chain):
            components.append(self._build_linear(chain[position:]))

        if len(components) == 1:
            return components[0]
        return Molecule(components)

    def _build_branches(self, branches: Sequence[_Branch]) -> list[Node]:
        return [self._build(branch.first, branch.last) for branch in branches]

    def _build_linear(self, run: Sequence[int]) -> Linear:
        atoms = self._state.atoms
        records = [atoms[i] for i in run]
        return Linear(
            [r.text for r in records],
            [r.bond for r in records[1:]],
            {p: self._build_branches(r.branches) for p, r in enumerate(records, 1) if r.branches},
            records[0].bond,
        )

    def _source_text(self, first_atom: int, last_atom: int) -> str:
        """Normalised source text from one chain atom through another's branches."""
        atoms = self._state.atoms
        start = atoms[first_atom].first_token
        record = atoms[last_atom]
        end = record.branches[-1].close_token if record.branches else record.last_token
        return "".join(self._texts[start:end + 1])

    def _build_system(self, chain: list[int], lo: int, hi: int, bonds: list[RingBond]) -> Node:
        source = self._source_text(chain[lo], chain[hi])
        for describe in (self._describe_ring, self._describe_fused):
            try:
                candidate = describe(chain, lo, hi, bonds)
            except InvalidAST:
                candidate = None
            if candidate is not None and build_smiles(candidate) == source:
                return candidate
        return self._describe_layout(chain, lo, hi)

    # -------------------------------------------------------------------------
    # Ring system descriptions
    # -------------------------------------------------------------------------

    def _enclosing_branch_end(self, atom: int) -> int:
        """Last atom index of the branch that contains ``atom``."""
        atoms = self._state.atoms
        x = atom
        while not atoms[x].opens_branch:
            parent = atoms[x].parent
            assert parent is not None
            x = parent
        parent = atoms[x].parent
        assert parent is not None
        for branch in atoms[parent].branches:
            if branch.first == x:
                return branch.last
        raise InvalidAST(f"Atom {atom} is not inside a branch")

    def _describe_ring(self, chain: list[int], lo: int, hi: int, bonds: list[RingBond]) -> Ring | None:
        """A single Ring, possibly written across branches."""
        if len(bonds) != 1:
            return None
        atoms = self._state.atoms
        rb = bonds[0]
        if rb.opener != chain[lo]:
            return None

        path = chain[lo:hi + 1]
        if rb.closer != chain[hi]:
            branches = atoms[chain[hi]].branches
            if not branches or rb.closer not in branches[-1]:
                return None
            down = []
            x = rb.closer
            while x != chain[hi]:
                down.append(x)
                parent = atoms[x].parent
                assert parent is not None
                x = parent
            path = path + down[::-1]

        base_depth = atoms[chain[lo]].depth
        size = len(path)
        attachments: dict[int, list[Node]] = {}
        inline: dict[int, list[Node]] = {}
        for p, x in enumerate(path, 1):
            record = atoms[x]
            if len(record.markers) != (1 if x in (rb.opener, rb.closer) else 0):
                return None
            siblings = record.branches
            dives = p < size and atoms[path[p]].parent == x and atoms[path[p]].opens_branch
            if dives:
                if not siblings or siblings[-1].first != path[p]:
                    return None
                siblings = siblings[:-1]
            if not all(self._branch_contained(b) for b in siblings):
                return None
            if siblings:
                attachments[p] = self._build_branches(siblings)

            deeper = record.depth > base_depth
            if deeper and record.next is not None and (dives or p == size):
                end = self._enclosing_branch_end(x)
                if not self._self_contained(record.next, end):
                    return None
                inline[p] = [self._build(record.next, end)]

        values = [atoms[x].text for x in path]
        base = most_common_atom(values)
        depths = [atoms[x].depth - base_depth for x in path]
        return Ring(
            atoms=base,
            size=size,
            ring_number=rb.number,
            substitutions={p: v for p, v in enumerate(values, 1) if v != base},
            attachments=attachments,
            bonds=[atoms[x].bond for x in path[1:]] + [rb.opener_bond],
            leading_bond=atoms[chain[lo]].bond,
            branch_depths=depths,
            closing_bond=rb.closer_bond,
            inline=inline,
        )

    def _describe_fused(
        self, chain: list[int], lo: int, hi: int, bonds: list[RingBond]
    ) -> FusedRing | None:
        """An offset-form FusedRing for rings opened and closed on the chain."""
        if len(bonds) < 2:
            return None
        atoms = self._state.atoms
        members = chain[lo:hi + 1]
        local = {atom: k for k, atom in enumerate(members)}
        if any(rb.opener not in local or rb.closer not in local for rb in bonds):
            return None
        for atom in members:
            if not all(self._branch_contained(b) for b in atoms[atom].branches):
                return None

        local_bonds = [
            RingBond(rb.number, local[rb.opener], local[rb.closer], rb.opener_bond, rb.closer_bond)
            for rb in bonds
        ]
        parents: list[int | None] = [None] + list(range(len(members) - 1))
        paths = ring_paths(local_bonds, parents)

        def opener_key(i: int) -> tuple[int, int]:
            rb = local_bonds[i]
            numbers = [n for n, _ in atoms[members[rb.opener]].markers]
            return rb.opener, numbers.index(rb.number)

        order = sorted(range(len(local_bonds)), key=opener_key)

        # Chain atom -> (ring rank, position) of the last ring through it
        owner: dict[int, tuple[int, int]] = {}
        for rank, i in enumerate(order):
            for p, k in enumerate(paths[i], 1):
                owner[k] = (rank, p)
        if len(owner) != len(members):
            return None

        rings = []
        for rank, i in enumerate(order):
            rb, path = local_bonds[i], paths[i]
            values = [atoms[members[k]].text for k in path]
            base = most_common_atom(values)
            ring_bonds: list[BondKind | None] = []
            for prev, cur in zip(path, path[1:]):
                if cur == prev + 1:
                    ring_bonds.append(atoms[members[cur]].bond)
                elif prev == cur + 1:
                    ring_bonds.append(atoms[members[prev]].bond)
                else:
                    ring_bonds.append(None)
            ring_bonds.append(rb.opener_bond)
            attachments = {
                p: self._build_branches(atoms[members[k]].branches)
                for k, (r, p) in owner.items()
                if r == rank and atoms[members[k]].branches
            }
            rings.append(Ring(
                atoms=base,
                size=len(path),
                ring_number=rb.number,
                offset=rb.opener,
                substitutions={p: v for p, v in enumerate(values, 1) if v != base},
                attachments=attachments,
                bonds=ring_bonds,
                leading_bond=atoms[members[0]].bond if rank == 0 else None,
                closing_bond=rb.closer_bond,
            ))
        return FusedRing(rings)

    def _describe_layout(self, chain: list[int], lo: int, hi: int) -> FusedRing:
        """A layout-form FusedRing that writes the system verbatim."""
        atoms = self._state.atoms
        base_depth = atoms[chain[lo]].depth
        entries: list[LayoutAtom] = []
        for atom in chain[lo:hi + 1]:
            self._layout_atom(atom, base_depth, False, entries)
        return FusedRing(layout=number_entries(entries))

    def _layout_atom(self, atom: int, base_depth: int, branch: bool, entries: list[LayoutAtom]) -> None:
        record = self._state.atoms[atom]
        attachments: list[Node] = []
        expanded: list[_Branch] = []
        for b in record.branches:
            if not expanded and self._branch_contained(b):
                attachments.append(self._build(b.first, b.last))
            else:
                expanded.append(b)

        entries.append(LayoutAtom(
            position=0,
            depth=record.depth - base_depth,
            value=record.text,
            bond=record.bond,
            branch=branch,
            rings=[RingMarker(number, bond) for number, bond in record.markers],
            attachments=attachments,
        ))
        for b in expanded:
            x: int | None = b.first
            opens = True
            while x is not None:
                self._layout_atom(x, base_depth, opens, entries)
                opens = False
                x = self._state.atoms[x].next


def parse(smiles: str) -> Node:
    """Parse a SMILES string into an AST.

    This is a convenience function that creates a SmilesParser and calls
    parse().

    Args:
        smiles: SMILES string.

    Returns:
        A Linear, Ring, FusedRing or Molecule node.

    Raises:
        ParseError: If the SMILES syntax is invalid.

    Example:
        >>> parse("CCO").atoms
        ('C', 'C', 'O')
        >>> parse("c1ccccc1").smiles
        'c1ccccc1'
    """
    return SmilesParser(smiles).parse()
