"""
Syntax validation without building an AST.

    >>> from smilesast import validate
    >>> validate("c1ccccc1").ok
    True
    >>> result = validate("C1CC")
    >>> result.error, result.position
    ('UnclosedRing', 1)
"""

from __future__ import annotations

from dataclasses import dataclass

from smilesast.exceptions import ParseError


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of :func:`validate`.

    Attributes:
        ok: True if the string is valid.
        error: Name of the error class for invalid input.
        reason: Human-readable message for invalid input.
        position: Character offset of the error, when known.
    """

    ok: bool
    error: str | None = None
    reason: str | None = None
    position: int | None = None

    def __bool__(self) -> bool:
        return self.ok


def validate(smiles: str) -> ValidationResult:
    """Check bracket, branch and ring-closure syntax of a SMILES string.

    Runs the tokenizer and the parser's scan pass, which cover every error
    :func:`~smilesast.parser.parse` can raise.

    Args:
        smiles: SMILES string.

    Returns:
        A ValidationResult; ``ok`` is True exactly when ``parse`` succeeds.
    """
    from smilesast.parser import SmilesParser

    try:
        SmilesParser(smiles).scan()
    except ParseError as e:
        return ValidationResult(False, type(e).__name__, e.message, e.position)
    return ValidationResult(True)
