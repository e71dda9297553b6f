"""Test configuration and fixtures for smilesast tests."""

import pytest

# RDKit is used as an independent check that generated SMILES are valid
from rdkit import Chem


def rdkit_canonical(smiles: str) -> str:
    """Get RDKit canonical SMILES for comparison.

    Args:
        smiles: Input SMILES string.

    Returns:
        RDKit's canonical SMILES.
    """
    mol = Chem.MolFromSmiles(smiles)
    if mol is None:
        raise ValueError(f"RDKit could not parse: {smiles}")
    return Chem.MolToSmiles(mol, canonical=True)


def rdkit_is_valid(smiles: str) -> bool:
    """Check if SMILES is valid according to RDKit."""
    return Chem.MolFromSmiles(smiles) is not None


@pytest.fixture
def simple_smiles() -> list[str]:
    """Acyclic SMILES strings."""
    return [
        "C",
        "CC",
        "CCO",
        "C=C",
        "C#N",
        "CC(C)C",
        "CC(C)(C)C",
        "CC(=O)O",
        "ClCCl",
        "CCBr",
    ]


@pytest.fixture
def ring_smiles() -> list[str]:
    """Single rings."""
    return [
        "C1CC1",
        "C1CCCCC1",
        "c1ccccc1",
        "c1ccncc1",
        "n1ccccc1",
        "C1=CC=CC=C1",
        "c1(C)ccccc1",
        "Cc1ccccc1",
        "C1CCC(CC1)O",
        "C1CCCCCCCCCC1",
    ]


@pytest.fixture
def fused_smiles() -> list[str]:
    """Fused and bridged ring systems."""
    return [
        "c1ccc2ccccc2c1",
        "c1cc2ccccc2cc1",
        "C1CC2CCCCC2C1",
        "C12CC1CC2",
        "c1ccc2cc3ccccc3cc2c1",
        "c1cc2ccc3cccc4ccc(c1)c2c34",
        "C1CC2CC1C2",
    ]


@pytest.fixture
def bracket_atom_smiles() -> list[str]:
    """SMILES with bracket atoms, written through as text."""
    return [
        "[NH4+]",
        "[O-]C=O",
        "CC([O-])=O",
        "C[C@H](O)F",
        "C[C@@H]1CCCCC1",
        "[2H]C([2H])([2H])[2H]",
        "c1cc[nH]c1",
        "[13CH3]c1ccccc1",
    ]


@pytest.fixture
def stereo_bond_smiles() -> list[str]:
    """SMILES with directional bonds."""
    return [
        "F/C=C/F",
        r"F/C=C\F",
        r"C/C=C\C",
        r"Cl/C=C/Cl",
    ]


@pytest.fixture
def high_ring_closure_smiles() -> list[str]:
    """SMILES with %nn ring closures."""
    return [
        "C%10CC%10",
        "C%11CC%11",
        "C%99CC%99",
        "C%10CCCCCCCCCC%10",
    ]


@pytest.fixture
def complex_smiles() -> list[str]:
    """Real-world molecules."""
    return [
        # Aspirin
        "CC(=O)OC1=CC=CC=C1C(=O)O",
        # Caffeine
        "CN1C=NC2=C1C(=O)N(C(=O)N2C)C",
        # Ibuprofen
        "CC(C)Cc1ccc(cc1)C(C)C(=O)O",
        # Acetaminophen
        "CC(=O)Nc1ccc(O)cc1",
        # Naphthalene
        "c1ccc2ccccc2c1",
        # Anthracene
        "c1ccc2cc3ccccc3cc2c1",
        # Pyrene
        "c1cc2ccc3cccc4ccc(c1)c2c34",
        # Biphenyl
        "c1ccc(-c2ccccc2)cc1",
        # Omeprazole
        "COc1ccc2nc(S(=O)Cc3ncc(C)c(OC)c3C)[nH]c2c1",
    ]
