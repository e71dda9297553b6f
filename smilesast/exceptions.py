"""Custom exceptions for smilesast."""

from __future__ import annotations


class SmilesError(Exception):
    """Base exception for SMILES structure errors."""
    pass


class ParseError(SmilesError):
    """Error during SMILES tokenization or parsing."""

    def __init__(self, message: str, smiles: str | None = None, position: int | None = None):
        self.message = message
        self.smiles = smiles
        self.position = position

        if smiles is not None and position is not None:
            super().__init__(f"{message}\n  {smiles}\n  {' ' * position}^")
        elif smiles is not None:
            super().__init__(f"{message} in: {smiles}")
        else:
            super().__init__(message)

    @property
    def offset(self) -> int | None:
        """Character offset of the error in the input string."""
        return self.position


class EmptyInput(ParseError):
    """The input string contains no atoms."""

    def __init__(self, smiles: str = ""):
        super().__init__("Empty SMILES string", smiles or None, None)


class InvalidCharacter(ParseError):
    """A character outside the recognised SMILES alphabet."""

    def __init__(self, char: str, smiles: str, position: int):
        self.char = char
        super().__init__(f"Invalid character {char!r}", smiles, position)


class UnclosedBracket(ParseError):
    """A bracket atom opened with '[' and never closed."""

    def __init__(self, smiles: str, position: int):
        super().__init__("Unclosed bracket atom", smiles, position)


class InvalidRingEscape(ParseError):
    """A '%' not followed by exactly two digits."""

    def __init__(self, smiles: str, position: int):
        super().__init__("'%' must be followed by two digits", smiles, position)


class UnbalancedBranches(ParseError):
    """Parentheses do not balance."""

    def __init__(self, message: str, smiles: str, position: int | None = None):
        super().__init__(message, smiles, position)


class UnclosedRing(ParseError):
    """A ring-bond number was opened but never closed."""

    def __init__(self, ring_number: int, smiles: str, position: int | None = None):
        self.ring_number = ring_number
        super().__init__(f"Unclosed ring {ring_number}", smiles, position)


class UnexpectedToken(ParseError):
    """A token that cannot appear where it was found."""
    pass


class RingError(SmilesError):
    """Invalid ring-number usage."""

    def __init__(self, message: str, ring_number: int | None = None):
        self.ring_number = ring_number
        super().__init__(message)


class TooManyRings(RingError):
    """Ring-number allocation exhausted 1..99."""

    def __init__(self, message: str = "Too many rings: ring numbers 1-99 are all in use"):
        super().__init__(message)


class InvalidPosition(SmilesError):
    """An algebra call addressed a position outside the structure."""

    def __init__(self, position: int, bound: int, what: str = "position", lower: int = 1):
        self.position = position
        self.bound = bound
        super().__init__(f"Invalid {what} {position}: must be between {lower} and {bound}")


class InvalidAST(SmilesError):
    """A structurally impossible AST node."""
    pass


class RoundTripError(SmilesError):
    """Strict round-trip validation failed."""

    def __init__(self, result: object):
        self.result = result
        super().__init__(getattr(result, "recommendation", str(result)))


class RoundTripWarning(UserWarning):
    """Advisory issued when a SMILES string does not round-trip exactly."""
    pass
