"""
smilesast - Round-trippable SMILES structure trees.

Parse a SMILES string into a tree of chains, rings and fused ring systems,
transform it with a small immutable algebra, and write it back. Parsing and
writing are lossless: every valid input writes back byte for byte.

    >>> from smilesast import parse, Ring
    >>> parse("c1ccccc1").smiles
    'c1ccccc1'
    >>> Ring(atoms="c", size=6).fuse(3, Ring(atoms="c", size=6, ring_number=2)).smiles
    'c1ccc2ccccc2c1'

Trees can also be turned into Python code that rebuilds them:

    >>> print(parse("c1ccncc1").to_code())
    v1 = Ring(atoms='c', size=6)
    v2 = v1.substitute(4, 'n')
"""

__version__ = "0.1.0"
__author__ = "smilesast contributors"

# Core types
from smilesast.types import (
    FusedRing,
    LayoutAtom,
    Linear,
    Molecule,
    Node,
    RawFragment,
    Ring,
    RingMarker,
)
from smilesast.elements import BondKind, NodeType

# Parsing and writing
from smilesast.tokenizer import Token, TokenKind, Tokenizer, tokenize
from smilesast.parser import SmilesParser, parse
from smilesast.writer import SmilesWriter, build_smiles
from smilesast.decompiler import Decompiler, execute_code, to_code

# Validation
from smilesast.validator import ValidationResult, validate
from smilesast.roundtrip import (
    RoundTripResult,
    RoundTripStatus,
    is_valid_round_trip,
    normalize,
    parse_with_validation,
    stabilizes,
    validate_round_trip,
)

# Ring numbers
from smilesast.rings import (
    MAX_RING_NUMBER,
    find_used_ring_numbers,
    next_ring_number,
    ring_number_to_smiles,
)

# Common fragments
from smilesast.common import FRAGMENTS, fragment

# Exceptions
from smilesast.exceptions import (
    EmptyInput,
    InvalidAST,
    InvalidCharacter,
    InvalidPosition,
    InvalidRingEscape,
    ParseError,
    RingError,
    RoundTripError,
    RoundTripWarning,
    SmilesError,
    TooManyRings,
    UnbalancedBranches,
    UnclosedBracket,
    UnclosedRing,
    UnexpectedToken,
)

__all__ = [
    # Types
    "Node", "Linear", "Ring", "FusedRing", "Molecule", "RawFragment", "LayoutAtom", "RingMarker",
    "BondKind", "NodeType",
    # Parsing and writing
    "Token", "TokenKind", "Tokenizer", "tokenize",
    "SmilesParser", "parse",
    "SmilesWriter", "build_smiles",
    "Decompiler", "to_code", "execute_code",
    # Validation
    "ValidationResult", "validate",
    "RoundTripResult", "RoundTripStatus", "validate_round_trip", "parse_with_validation",
    "is_valid_round_trip", "normalize", "stabilizes",
    # Ring numbers
    "MAX_RING_NUMBER", "find_used_ring_numbers", "next_ring_number", "ring_number_to_smiles",
    # Common fragments
    "FRAGMENTS", "fragment",
    # Exceptions
    "SmilesError", "ParseError", "EmptyInput", "InvalidCharacter", "UnclosedBracket",
    "InvalidRingEscape", "UnbalancedBranches", "UnclosedRing", "UnexpectedToken",
    "RingError", "TooManyRings", "InvalidPosition", "InvalidAST",
    "RoundTripError", "RoundTripWarning",
]
