"""
Round-trip checks.

A SMILES string round-trips perfectly when parsing it and writing the tree
back gives the same string. Inputs that are written differently on the first
pass (``%05`` becomes ``5``) usually reach a fixed point on the second pass;
that first output is the normalised form.

    >>> from smilesast import validate_round_trip
    >>> validate_round_trip("c1ccccc1").status
    <RoundTripStatus.PERFECT: 'perfect'>
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from smilesast.exceptions import RoundTripError, RoundTripWarning

if TYPE_CHECKING:
    from smilesast.types import Node


class RoundTripStatus(str, Enum):
    """Outcome of a round-trip check."""

    PERFECT = "perfect"
    STABILIZED = "stabilized"
    UNSTABLE = "unstable"

    def __str__(self) -> str:
        return self.value


PERFECT_RECOMMENDATION = "SMILES round-trips perfectly. No action needed."
STABILIZED_RECOMMENDATION = "SMILES stabilizes on second parse. Use the normalized form: {first}"
UNSTABLE_RECOMMENDATION = (
    "SMILES does not stabilize after two round-trips. "
    "The parser or writer has a bug for this input; please report it."
)


@dataclass(frozen=True, slots=True)
class RoundTripResult:
    """Result of :func:`validate_round_trip`.

    Attributes:
        status: perfect, stabilized or unstable.
        original: The input string.
        first: Output of the first parse-and-write pass.
        second: Output of the second pass (parsing ``first``).
        recommendation: Advice for the caller.
        ast: Tree parsed from the input.
    """

    status: RoundTripStatus
    original: str
    first: str
    second: str
    recommendation: str
    ast: Node

    @property
    def perfect(self) -> bool:
        return self.status == RoundTripStatus.PERFECT

    @property
    def stabilizes(self) -> bool:
        return self.status != RoundTripStatus.UNSTABLE


def _round_trip(smiles: str) -> RoundTripResult:
    from smilesast.parser import parse
    from smilesast.writer import build_smiles

    ast = parse(smiles)
    first = build_smiles(ast)
    if first == smiles:
        return RoundTripResult(RoundTripStatus.PERFECT, smiles, first, first, PERFECT_RECOMMENDATION, ast)

    second = build_smiles(parse(first))
    if second == first:
        status = RoundTripStatus.STABILIZED
        recommendation = STABILIZED_RECOMMENDATION.format(first=first)
    else:
        status = RoundTripStatus.UNSTABLE
        recommendation = UNSTABLE_RECOMMENDATION
    return RoundTripResult(status, smiles, first, second, recommendation, ast)


def validate_round_trip(smiles: str) -> RoundTripResult:
    """Parse, write, and parse-and-write again.

    Issues a :class:`~smilesast.exceptions.RoundTripWarning` when the output
    does not stabilize.

    Raises:
        ParseError: If the input is not valid SMILES.
    """
    result = _round_trip(smiles)
    if result.status == RoundTripStatus.UNSTABLE:
        warnings.warn(
            f"{result.recommendation} Input: {smiles}, first: {result.first}, second: {result.second}",
            RoundTripWarning,
            stacklevel=2,
        )
    return result


def parse_with_validation(smiles: str, silent: bool = False, strict: bool = False) -> Node:
    """Parse a SMILES string and check that it round-trips.

    Args:
        smiles: SMILES string.
        silent: Suppress the warning for inputs that do not round-trip
            perfectly.
        strict: Raise instead of returning when the round trip is not
            perfect.

    Returns:
        The parsed tree.

    Raises:
        ParseError: If the input is not valid SMILES.
        RoundTripError: If ``strict`` and the round trip is not perfect.
    """
    result = _round_trip(smiles)
    if result.perfect:
        return result.ast

    if not silent:
        if result.stabilizes:
            message = f"SMILES round-trip notice: {smiles} is written as {result.first}"
        else:
            message = (
                f"SMILES round-trip error: {smiles} is written as {result.first}, "
                f"then as {result.second}. {result.recommendation}"
            )
        warnings.warn(message, RoundTripWarning, stacklevel=2)

    if strict:
        raise RoundTripError(result)
    return result.ast


def is_valid_round_trip(smiles: str) -> bool:
    """True if ``smiles`` round-trips perfectly."""
    return _round_trip(smiles).perfect


def normalize(smiles: str) -> str:
    """The string as written after one parse-and-write pass."""
    return _round_trip(smiles).first


def stabilizes(smiles: str) -> bool:
    """True if the output is a fixed point by the second pass."""
    return _round_trip(smiles).stabilizes
