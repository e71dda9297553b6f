"""
SMILES tokenizer.

Splits a SMILES string into a flat list of tokens: atoms (organic subset,
aromatic, or bracketed), bonds, ring-bond markers and branch parentheses.
Each token keeps its character offsets so that later stages can report
errors against the original input and slice out source spans.

Bracket atoms are kept opaque: everything between ``[`` and ``]`` (isotope,
chirality, hydrogen count, charge, atom class) is carried as text and never
interpreted, so a digit inside brackets is never mistaken for a ring bond.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from smilesast.elements import AROMATIC_SYMBOLS, BOND_SYMBOLS, TWO_LETTER_ELEMENTS
from smilesast.exceptions import InvalidCharacter, InvalidRingEscape, UnclosedBracket

_DIGITS = "0123456789"


class TokenKind(IntEnum):
    """Token classes produced by the tokenizer."""

    ATOM = 0
    BOND = 1
    RING = 2
    BRANCH_OPEN = 3
    BRANCH_CLOSE = 4

    def __str__(self) -> str:
        return self.name.lower()


@dataclass(frozen=True, slots=True)
class Token:
    """A single SMILES token.

    Attributes:
        kind: Token class.
        start: Offset of the first character.
        end: Offset one past the last character.
        text: Source text of the token.
        ring_number: Ring-bond number for RING tokens.
    """

    kind: TokenKind
    start: int
    end: int
    text: str
    ring_number: int | None = None


class _Cursor:
    """Character-level access to a SMILES string with lookahead."""

    __slots__ = ("_string", "_pos")

    def __init__(self, string: str) -> None:
        self._string = string
        self._pos = 0

    @property
    def position(self) -> int:
        """Current position in the string."""
        return self._pos

    def peek(self, offset: int = 0) -> str | None:
        """Look at the character at position + offset without consuming it."""
        pos = self._pos + offset
        if pos >= len(self._string):
            return None
        return self._string[pos]

    def skip(self, count: int = 1) -> None:
        """Skip forward by count characters."""
        self._pos += count

    def find(self, char: str) -> int:
        """Offset of the next occurrence of char, or -1."""
        return self._string.find(char, self._pos)

    def is_eof(self) -> bool:
        """Check if at end of string."""
        return self._pos >= len(self._string)


class Tokenizer:
    """Convert a SMILES string into tokens.

    Recognition order at each position:

        1. ``[`` ... ``]`` bracket atom (one token, contents opaque)
        2. uppercase letter, with a following lowercase letter when the
           pair is a known two-letter element
        3. aromatic lowercase letter (b, c, n, o, p, s)
        4. digit: ring-bond marker
        5. ``%nn``: two-digit ring-bond marker
        6. ``(`` and ``)``
        7. bond symbols ``- = # : / \\``

    Anything else, whitespace included, is rejected.

    Example:
        >>> [t.text for t in Tokenizer("C(=O)Cl").tokenize()]
        ['C', '(', '=', 'O', ')', 'Cl']
    """

    def __init__(self, smiles: str) -> None:
        self._smiles = smiles
        self._cursor = _Cursor(smiles)
        self._tokens: list[Token] = []

    def tokenize(self) -> list[Token]:
        """Tokenize the whole string.

        Returns:
            Tokens in source order.

        Raises:
            UnclosedBracket: If a ``[`` has no matching ``]``.
            InvalidRingEscape: If ``%`` is not followed by two digits.
            InvalidCharacter: For any character outside the SMILES alphabet.
        """
        cur = self._cursor

        while not cur.is_eof():
            char = cur.peek()
            assert char is not None

            if char == "[":
                self._read_bracket_atom()
            elif "A" <= char <= "Z":
                self._read_organic_atom()
            elif char in AROMATIC_SYMBOLS:
                self._emit(TokenKind.ATOM, 1)
            elif char in _DIGITS:
                self._emit(TokenKind.RING, 1, int(char))
            elif char == "%":
                self._read_ring_escape()
            elif char == "(":
                self._emit(TokenKind.BRANCH_OPEN, 1)
            elif char == ")":
                self._emit(TokenKind.BRANCH_CLOSE, 1)
            elif char in BOND_SYMBOLS:
                self._emit(TokenKind.BOND, 1)
            else:
                raise InvalidCharacter(char, self._smiles, cur.position)

        return self._tokens

    def _emit(self, kind: TokenKind, length: int, ring_number: int | None = None) -> None:
        start = self._cursor.position
        end = start + length
        self._tokens.append(Token(kind, start, end, self._smiles[start:end], ring_number))
        self._cursor.skip(length)

    def _read_bracket_atom(self) -> None:
        cur = self._cursor
        start = cur.position
        close = cur.find("]")
        nested = self._smiles.find("[", start + 1)
        if close == -1 or (nested != -1 and nested < close):
            raise UnclosedBracket(self._smiles, start)
        self._emit(TokenKind.ATOM, close - start + 1)

    def _read_organic_atom(self) -> None:
        cur = self._cursor
        first = cur.peek()
        second = cur.peek(1)
        if second is not None and second.islower() and first + second in TWO_LETTER_ELEMENTS:
            self._emit(TokenKind.ATOM, 2)
        else:
            self._emit(TokenKind.ATOM, 1)

    def _read_ring_escape(self) -> None:
        cur = self._cursor
        d1 = cur.peek(1)
        d2 = cur.peek(2)
        if d1 is None or d2 is None or d1 not in _DIGITS or d2 not in _DIGITS:
            raise InvalidRingEscape(self._smiles, cur.position)
        self._emit(TokenKind.RING, 3, int(d1 + d2))


def tokenize(smiles: str) -> list[Token]:
    """Tokenize a SMILES string.

    This is a convenience function that creates a Tokenizer and calls
    tokenize().

    Args:
        smiles: SMILES string.

    Returns:
        List of tokens; empty for an empty string.

    Example:
        >>> [str(t.kind) for t in tokenize("C1CC1")]
        ['atom', 'ring', 'atom', 'atom', 'ring']
    """
    return Tokenizer(smiles).tokenize()
