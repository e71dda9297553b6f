"""Tests for the SMILES tokenizer."""

import pytest

from smilesast import tokenize, Tokenizer, TokenKind
from smilesast.exceptions import InvalidCharacter, InvalidRingEscape, UnclosedBracket


def texts(smiles: str) -> list[str]:
    return [tok.text for tok in tokenize(smiles)]


class TestTokenKinds:
    """Test classification of tokens."""

    def test_chain_with_branch(self):
        """Atoms, bonds and parentheses are separate tokens."""
        tokens = tokenize("C(=O)Cl")
        assert [t.text for t in tokens] == ["C", "(", "=", "O", ")", "Cl"]
        assert [t.kind for t in tokens] == [
            TokenKind.ATOM,
            TokenKind.BRANCH_OPEN,
            TokenKind.BOND,
            TokenKind.ATOM,
            TokenKind.BRANCH_CLOSE,
            TokenKind.ATOM,
        ]

    def test_class_and_function_agree(self):
        """Tokenizer(s).tokenize() and tokenize(s) give the same tokens."""
        assert Tokenizer("c1ccccc1").tokenize() == tokenize("c1ccccc1")

    def test_empty_string(self):
        """An empty string has no tokens."""
        assert tokenize("") == []

    @pytest.mark.parametrize("smiles,expected", [
        ("CCl", ["C", "Cl"]),
        ("BrCC", ["Br", "C", "C"]),
        ("Sc1ccccc1", ["S", "c", "1", "c", "c", "c", "c", "c", "1"]),
        ("Cc1ccccc1", ["C", "c", "1", "c", "c", "c", "c", "c", "1"]),
        ("CN", ["C", "N"]),
    ])
    def test_two_letter_elements(self, smiles, expected):
        """Two-letter symbols are only read when they are known elements."""
        assert texts(smiles) == expected

    @pytest.mark.parametrize("bond", ["-", "=", "#", ":", "/", "\\"])
    def test_bond_symbols(self, bond):
        """Every bond symbol is a BOND token."""
        tokens = tokenize(f"C{bond}C")
        assert tokens[1].kind == TokenKind.BOND
        assert tokens[1].text == bond


class TestBracketAtoms:
    """Test that bracket atoms are kept opaque."""

    @pytest.mark.parametrize("atom", ["[nH]", "[13C]", "[C@@H]", "[NH4+]", "[O-]", "[2H]", "[Fe+2]"])
    def test_single_token(self, atom):
        """A bracket atom is one ATOM token with its full text."""
        tokens = tokenize(atom)
        assert len(tokens) == 1
        assert tokens[0].kind == TokenKind.ATOM
        assert tokens[0].text == atom

    def test_isotope_digits_are_not_ring_bonds(self):
        """Digits inside brackets never become ring markers."""
        tokens = tokenize("[13CH3]C")
        assert all(t.kind == TokenKind.ATOM for t in tokens)


class TestRingMarkers:
    """Test ring-bond digits and %nn escapes."""

    def test_single_digit(self):
        """A bare digit is a ring marker with its number."""
        tokens = tokenize("C1CC1")
        assert tokens[1].kind == TokenKind.RING
        assert tokens[1].ring_number == 1

    def test_percent_escape(self):
        """%nn is one token spanning three characters."""
        tokens = tokenize("C%10CC%10")
        assert tokens[1].kind == TokenKind.RING
        assert tokens[1].ring_number == 10
        assert tokens[1].text == "%10"
        assert (tokens[1].start, tokens[1].end) == (1, 4)

    def test_adjacent_digits_are_separate_rings(self):
        """Digits "12" are ring 1 followed by ring 2."""
        tokens = tokenize("C12CC1C2")
        assert tokens[1].ring_number == 1
        assert tokens[2].ring_number == 2

    def test_offsets(self):
        """Tokens record start and end offsets."""
        tokens = tokenize("CCl")
        assert [(t.start, t.end) for t in tokens] == [(0, 1), (1, 3)]


class TestTokenizerErrors:
    """Test tokenizer error kinds and offsets."""

    def test_unclosed_bracket(self):
        """A '[' without ']' is an UnclosedBracket at the '['."""
        with pytest.raises(UnclosedBracket) as exc_info:
            tokenize("C[C")
        assert exc_info.value.position == 1

    def test_nested_bracket(self):
        """A '[' inside brackets is an UnclosedBracket."""
        with pytest.raises(UnclosedBracket):
            tokenize("[C[N]]")

    @pytest.mark.parametrize("smiles,position", [
        ("C%1", 1),
        ("C%", 1),
        ("C%a1", 1),
    ])
    def test_invalid_ring_escape(self, smiles, position):
        """'%' must be followed by exactly two digits."""
        with pytest.raises(InvalidRingEscape) as exc_info:
            tokenize(smiles)
        assert exc_info.value.position == position

    @pytest.mark.parametrize("smiles,position", [
        ("C$", 1),
        ("C C", 1),
        ("CC.O", 2),
        ("Cx", 1),
    ])
    def test_invalid_character(self, smiles, position):
        """Characters outside the SMILES alphabet are rejected."""
        with pytest.raises(InvalidCharacter) as exc_info:
            tokenize(smiles)
        assert exc_info.value.position == position

    def test_error_message_shows_caret(self):
        """The error message points at the offending character."""
        with pytest.raises(InvalidCharacter) as exc_info:
            tokenize("CC$")
        assert "CC$" in str(exc_info.value)
        assert "  ^" in str(exc_info.value)
