"""
Atom and bond symbol tables.

This module provides the fixed symbol tables the tokenizer recognises and the
enumerations shared by the AST, writer and decompiler.
"""

from __future__ import annotations

from enum import Enum
from typing import Final, FrozenSet

from smilesast.exceptions import InvalidAST


class BondKind(str, Enum):
    """Explicit bond symbols.

    The implicit single bond has no member; it is represented as ``None``
    everywhere a bond may appear.
    """

    SINGLE = "-"
    DOUBLE = "="
    TRIPLE = "#"
    AROMATIC = ":"
    UP = "/"
    DOWN = "\\"

    def __str__(self) -> str:
        return self.value

    @property
    def is_directional(self) -> bool:
        """True for the E/Z bonds ``/`` and ``\\``."""
        return self in (BondKind.UP, BondKind.DOWN)

    def flipped(self) -> BondKind:
        """Directional bonds swap when the chain is read backwards."""
        if self is BondKind.UP:
            return BondKind.DOWN
        if self is BondKind.DOWN:
            return BondKind.UP
        return self

    @classmethod
    def coerce(cls, value: object) -> BondKind | None:
        """Convert user input (symbol text, member or None) to a bond.

        Raises:
            InvalidAST: If the value is not a known bond symbol.
        """
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidAST(f"Unknown bond symbol: {value!r}") from None


def bond_text(bond: BondKind | None) -> str:
    """SMILES text of a bond (empty for the implicit single bond)."""
    return "" if bond is None else bond.value


def flip_bond(bond: BondKind | None) -> BondKind | None:
    """Reverse the direction of an optional bond."""
    return None if bond is None else bond.flipped()


class NodeType(str, Enum):
    """AST node variants."""

    LINEAR = "linear"
    RING = "ring"
    FUSED_RING = "fused_ring"
    MOLECULE = "molecule"
    RAW_FRAGMENT = "raw_fragment"

    def __str__(self) -> str:
        return self.value


# Two-letter elements written outside brackets. Pairs whose second letter is
# an aromatic symbol (Co, Sc, Cn, ...) are left out: "Sc1ccccc1" is S then c.
TWO_LETTER_ELEMENTS: Final[FrozenSet[str]] = frozenset({
    "Cl", "Br", "Si", "Al", "Ca", "Fe", "Mg", "Na", "Se", "Zn", "Li", "Cu",
})

AROMATIC_SYMBOLS: Final[FrozenSet[str]] = frozenset({"b", "c", "n", "o", "p", "s"})

BOND_SYMBOLS: Final[FrozenSet[str]] = frozenset(kind.value for kind in BondKind)
