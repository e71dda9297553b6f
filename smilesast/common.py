"""
Ready-made fragments.

Substituents are ``Linear`` chains bonded through their first atom; rings
and fused systems use ring number 1 for their first ring. Every fragment is
an immutable node, so they can be combined freely::

    >>> from smilesast.common import BENZENE, CARBOXYL
    >>> BENZENE.attach(1, CARBOXYL).smiles
    'c1(C(=O)O)ccccc1'
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Final, Mapping

from smilesast.types import FusedRing, Linear, Node, Ring


def _branched(chain: str, position: int, *branches: Linear) -> Linear:
    result = Linear(chain)
    for branch in branches:
        result = result.attach(position, branch)
    return result


# Alkyl groups
METHYL: Final[Linear] = Linear("C")
ETHYL: Final[Linear] = Linear("CC")
PROPYL: Final[Linear] = Linear("CCC")
ISOPROPYL: Final[Linear] = _branched("CC", 1, Linear("C"))
BUTYL: Final[Linear] = Linear("CCCC")
TBUTYL: Final[Linear] = _branched("CC", 1, Linear("C"), Linear("C"))

# Functional groups
HYDROXYL: Final[Linear] = Linear("O")
AMINO: Final[Linear] = Linear("N")
CARBOXYL: Final[Linear] = _branched("CO", 1, Linear("O", leading_bond="="))
CARBONYL: Final[Linear] = Linear("CO", ["="])
NITRO: Final[Linear] = _branched("[N+][O-]", 1, Linear("O", leading_bond="="))
CYANO: Final[Linear] = Linear("CN", ["#"])

# Halogens
FLUORO: Final[Linear] = Linear("F")
CHLORO: Final[Linear] = Linear("Cl")
BROMO: Final[Linear] = Linear("Br")
IODO: Final[Linear] = Linear("I")

# Rings
BENZENE: Final[Ring] = Ring(atoms="c", size=6)
CYCLOHEXANE: Final[Ring] = Ring(atoms="C", size=6)
PYRIDINE: Final[Ring] = BENZENE.substitute(1, "n")
PYRROLE: Final[Ring] = Ring(atoms="c", size=5).substitute(1, "[nH]")
FURAN: Final[Ring] = Ring(atoms="c", size=5).substitute(1, "o")
THIOPHENE: Final[Ring] = Ring(atoms="c", size=5).substitute(1, "s")

# Fused systems
NAPHTHALENE: Final[FusedRing] = BENZENE.fuse(3, Ring(atoms="c", size=6, ring_number=2))
INDOLE: Final[FusedRing] = BENZENE.fuse(
    3, Ring(atoms="c", size=5, ring_number=2).substitute(2, "[nH]")
)
QUINOLINE: Final[FusedRing] = BENZENE.substitute(6, "n").fuse(
    3, Ring(atoms="c", size=6, ring_number=2)
)
ISOQUINOLINE: Final[FusedRing] = PYRIDINE.fuse(3, Ring(atoms="c", size=6, ring_number=2))


FRAGMENTS: Final[Mapping[str, Node]] = MappingProxyType({
    "methyl": METHYL,
    "ethyl": ETHYL,
    "propyl": PROPYL,
    "isopropyl": ISOPROPYL,
    "butyl": BUTYL,
    "tbutyl": TBUTYL,
    "hydroxyl": HYDROXYL,
    "amino": AMINO,
    "carboxyl": CARBOXYL,
    "carbonyl": CARBONYL,
    "nitro": NITRO,
    "cyano": CYANO,
    "fluoro": FLUORO,
    "chloro": CHLORO,
    "bromo": BROMO,
    "iodo": IODO,
    "benzene": BENZENE,
    "cyclohexane": CYCLOHEXANE,
    "pyridine": PYRIDINE,
    "pyrrole": PYRROLE,
    "furan": FURAN,
    "thiophene": THIOPHENE,
    "naphthalene": NAPHTHALENE,
    "indole": INDOLE,
    "quinoline": QUINOLINE,
    "isoquinoline": ISOQUINOLINE,
})


def fragment(name: str) -> Node:
    """Look up a fragment by its lowercase name.

    Raises:
        KeyError: If no fragment has that name.

    Example:
        >>> fragment("pyridine").smiles
        'n1ccccc1'
    """
    try:
        return FRAGMENTS[name.lower()]
    except KeyError:
        raise KeyError(f"Unknown fragment {name!r}; known: {', '.join(FRAGMENTS)}") from None
