"""Tests for the transformation algebra.

Every transformation must leave its inputs untouched and produce SMILES that
RDKit accepts.
"""

from __future__ import annotations

import pytest

from smilesast import Linear, Molecule, Ring, FusedRing, parse
from smilesast.exceptions import InvalidAST, InvalidPosition
from .conftest import rdkit_canonical, rdkit_is_valid


def benzene() -> Ring:
    return Ring(atoms="c", size=6)


class TestAttachAndSubstitute:
    """Test attachments and substitutions."""

    def test_attach_does_not_mutate(self):
        ring = benzene()
        attached = ring.attach(1, Linear(["C"]))
        assert ring.smiles == "c1ccccc1"
        assert attached.smiles == "c1(C)ccccc1"

    def test_attach_position_checked(self):
        with pytest.raises(InvalidPosition):
            benzene().attach(7, Linear(["C"]))
        with pytest.raises(InvalidPosition):
            Linear(["C"]).attach(0, Linear(["O"]))

    def test_attach_requires_node(self):
        with pytest.raises(InvalidAST):
            benzene().attach(1, "C")

    def test_branch_helpers(self):
        chain = Linear(["C", "C", "C"])
        assert chain.branch(2, Linear(["C"]), Linear(["O"])).smiles == "CC(C)(O)C"
        assert chain.branch_at({1: Linear(["N"]), 3: [Linear(["O"])]}).smiles == "C(N)CC(O)"

    def test_pyridine(self):
        pyridine = benzene().substitute(1, "n")
        assert pyridine.smiles == "n1ccccc1"
        assert rdkit_canonical(pyridine.smiles) == rdkit_canonical("c1ccncc1")

    def test_substitute_back_clears(self):
        ring = benzene().substitute(1, "n").substitute(1, "c")
        assert dict(ring.substitutions) == {}
        assert ring == benzene()

    def test_substitute_multiple(self):
        ring = benzene().substitute_multiple({1: "n", 3: "n"})
        assert ring.smiles == "n1cnccc1"
        assert rdkit_is_valid(ring.smiles)

    def test_substitute_invalid_atom(self):
        with pytest.raises(InvalidAST):
            benzene().substitute(1, "nn")

    def test_substitute_does_not_mutate(self):
        ring = benzene().substitute(2, "n")
        ring.substitute(4, "o")
        ring.substitute_multiple({1: "s", 2: "c"})
        assert ring.smiles == "c1ncccc1"
        assert dict(ring.substitutions) == {2: "n"}


class TestConcat:
    """Test concatenation."""

    def test_chains_merge(self):
        result = Linear(["C", "C"]).concat(Linear(["O"], leading_bond="="))
        assert isinstance(result, Linear)
        assert result.smiles == "CC=O"

    def test_chain_attachments_shift(self):
        left = Linear(["C"])
        right = Linear(["C", "C"]).attach(2, Linear(["O"]))
        assert left.concat(right).smiles == "CCC(O)"

    def test_ring_numbers_avoid_collision(self):
        result = benzene().concat(benzene())
        assert isinstance(result, Molecule)
        assert result.smiles == "c1ccccc1c2ccccc2"
        assert rdkit_canonical(result.smiles) == rdkit_canonical("c1ccc(-c2ccccc2)cc1")

    def test_molecules_flatten(self):
        left = Molecule([Linear(["C"]), benzene()])
        result = left.concat(Molecule([Linear(["O"])]))
        assert len(result) == 3

    def test_does_not_mutate(self):
        left = Linear(["C", "C"]).attach(1, benzene())
        right = benzene().attach(3, Linear(["O"]))
        left.concat(right)
        right.concat(left)
        assert left.smiles == "C(c1ccccc1)C"
        assert right.smiles == "c1cc(O)ccc1"
        assert right.ring_number == 1


class TestMirror:
    """Test mirroring of chains, rings and molecules."""

    def test_linear_default_pivot(self):
        assert Linear(["C", "C", "O"]).mirror().smiles == "CCOCC"

    def test_linear_pivot(self):
        assert Linear(["O", "C", "C", "O"]).mirror(3).smiles == "OCCCO"

    def test_linear_bonds(self):
        assert Linear(["C", "C", "O"], ["="]).mirror().smiles == "C=COC=C"

    def test_directional_bonds_flip(self):
        assert Linear(["F", "C", "C"], ["/", "="]).mirror().smiles == "F/C=C=C\\F"

    def test_linear_attachments(self):
        chain = Linear(["C", "C", "O"]).attach(1, benzene())
        mirrored = chain.mirror()
        assert mirrored.smiles == "C(c1ccccc1)COCC(c2ccccc2)"
        assert rdkit_is_valid(mirrored.smiles)

    def test_ring_attachment(self):
        ring = benzene().attach(2, Linear(["C"])).mirror(3)
        assert ring.smiles == "c1c(C)cc(C)cc1"
        assert rdkit_canonical(ring.smiles) == rdkit_canonical("Cc1cccc(C)c1")

    def test_ring_substitution(self):
        ring = benzene().substitute(2, "n").mirror(1)
        assert sorted(ring.substitutions) == [2, 6]

    def test_ring_mirror_keeps_existing(self):
        ring = benzene().substitute(2, "n").substitute(6, "o").mirror(1)
        assert dict(ring.substitutions) == {2: "n", 6: "o"}

    def test_molecule(self):
        molecule = Molecule([Linear(["C", "C"]), benzene()])
        assert molecule.mirror().smiles == "CCc1ccccc1CC"

    def test_molecule_renumbers(self):
        molecule = Molecule([Linear(["C", "C"]), benzene(), Linear(["O"])])
        mirrored = molecule.mirror()
        assert mirrored.smiles == "CCc1ccccc1Oc2ccccc2CC"
        assert rdkit_is_valid(mirrored.smiles)

    def test_pivot_checked(self):
        with pytest.raises(InvalidPosition):
            Linear(["C", "C"]).mirror(3)

    def test_does_not_mutate(self):
        chain = Linear(["C", "C", "O"], ["="]).attach(1, benzene())
        ring = benzene().substitute(2, "n").attach(3, Linear(["C"]))
        molecule = Molecule([Linear(["C", "C"]), benzene()])
        chain.mirror()
        ring.mirror(1)
        molecule.mirror()
        assert chain.smiles == "C(c1ccccc1)=CO"
        assert ring.smiles == "c1nc(C)ccc1"
        assert molecule.smiles == "CCc1ccccc1"
        assert len(molecule) == 2


class TestRepeat:
    """Test polymer-style repetition."""

    def test_chain(self):
        assert Linear(["C", "C"]).repeat(3, 1, 2).smiles == "CCCCCC"

    def test_default_ids(self):
        assert Linear(["C", "O"]).repeat(3).smiles == "COCOCO"

    def test_styrene(self):
        unit = Linear(["C", "C"]).attach(2, benzene())
        polymer = unit.repeat(2, 1, 2)
        assert polymer.smiles == "CC(c1ccccc1)CC(c2ccccc2)"
        assert rdkit_is_valid(polymer.smiles)

    def test_vinyl_alcohol(self):
        unit = Linear(["C", "C"]).attach(2, Linear(["O"]))
        assert unit.repeat(2, 1, 2).smiles == "CC(O)CC(O)"

    def test_branching_repeat(self):
        """A right id before the end nests each copy as a branch."""
        polymer = Linear(["C", "C", "C"]).repeat(2, 1, 2)
        assert polymer.smiles == "CC(CCC)C"
        assert rdkit_canonical(polymer.smiles) == rdkit_canonical("CCCC(C)C")

    def test_ring_chain(self):
        assert benzene().repeat(2, 1, 6).smiles == "c1ccccc1c2ccccc2"

    def test_pyridine_chain(self):
        pyridine = benzene().substitute(3, "n")
        assert pyridine.repeat(2, 1, 6).smiles == "c1cnccc1c2cnccc2"

    def test_molecule(self):
        unit = Molecule([Linear(["N"]), Linear(["C", "C"])])
        polymer = unit.repeat(2, 1, 1)
        assert len(polymer) == 2
        assert polymer.smiles == "NCCNCC"

    def test_single_copy_is_a_copy(self):
        chain = Linear(["C", "O"])
        assert chain.repeat(1) == chain

    @pytest.mark.parametrize("n", [0, -1, 1.5])
    def test_invalid_count(self, n):
        with pytest.raises(ValueError):
            Linear(["C"]).repeat(n)

    def test_invalid_ids(self):
        with pytest.raises(InvalidPosition):
            Linear(["C", "C"]).repeat(2, 1, 3)

    def test_does_not_mutate(self):
        unit = Linear(["C", "C"]).attach(2, benzene())
        before = unit.smiles
        unit.repeat(3, 1, 2)
        assert unit.smiles == before


class TestFusedRepeat:
    """Test linear fusion of ring copies."""

    def test_two_copies(self):
        fused = benzene().fused_repeat(2, 4)
        assert isinstance(fused, FusedRing)
        assert [r.ring_number for r in fused.rings] == [1, 2]
        assert rdkit_is_valid(fused.smiles)

    def test_naphthalene(self):
        fused = benzene().fused_repeat(2, 2)
        assert fused.smiles == "c1cc2ccccc2cc1"
        assert rdkit_canonical(fused.smiles) == rdkit_canonical("c1ccc2ccccc2c1")

    def test_anthracene(self):
        fused = benzene().fused_repeat(3, 2)
        assert fused.smiles == "c1cc2cc3ccccc3cc2cc1"
        assert rdkit_canonical(fused.smiles) == rdkit_canonical("c1ccc2cc3ccccc3cc2c1")

    def test_anthracene_from_last_edge(self):
        fused = benzene().fused_repeat(3, 4)
        assert len(fused.rings) == 3
        assert fused.smiles == "c1cccc2cc3ccccc3cc12"
        assert rdkit_canonical(fused.smiles) == rdkit_canonical("c1ccc2cc3ccccc3cc2c1")

    def test_tetracene_from_last_edge(self):
        fused = benzene().fused_repeat(4, 4)
        assert len(fused.rings) == 4
        assert fused.smiles == "c1cccc2cc3cc4ccccc4ccc3cc12"
        assert rdkit_canonical(fused.smiles) == rdkit_canonical("c1ccc2cc3cc4ccccc4cc3cc2c1")

    @pytest.mark.parametrize("atom,size,n,offset", [
        ("c", 6, 3, 0),
        ("c", 6, 4, 4),
        ("c", 6, 5, 1),
        ("C", 6, 3, 4),
        ("C", 5, 3, 3),
        ("C", 5, 4, 0),
        ("C", 4, 3, 2),
    ])
    def test_no_atom_in_three_rings(self, atom, size, n, offset):
        fused = Ring(atoms=atom, size=size).fused_repeat(n, offset)
        assert len(fused.rings) == n
        assert all(len(entry.rings) <= 2 for entry in fused.resolved_layout())
        assert rdkit_is_valid(fused.smiles)

    def test_cyclohexane(self):
        fused = Ring(atoms="C", size=6).fused_repeat(2, 4)
        assert rdkit_canonical(fused.smiles) == rdkit_canonical("C1CCC2CCCCC2C1")

    def test_three_membered_rings_limited(self):
        assert len(Ring(atoms="C", size=3).fused_repeat(2, 1).rings) == 2
        with pytest.raises(InvalidAST):
            Ring(atoms="C", size=3).fused_repeat(3, 1)

    def test_single_copy(self):
        assert isinstance(benzene().fused_repeat(1, 2), Ring)

    def test_does_not_mutate(self):
        ring = benzene()
        ring.fused_repeat(3, 4)
        assert ring.smiles == "c1ccccc1"
        assert ring.offset == 0

    def test_offset_checked(self):
        with pytest.raises(InvalidPosition):
            benzene().fused_repeat(2, 5)


class TestRingNumbers:
    """Test ring-number queries and renumbering."""

    def test_ring_numbers(self):
        node = parse("c1ccc2ccccc2c1CC(C3CC3)")
        assert node.ring_numbers() == {1, 2, 3}

    def test_renumber(self):
        node = parse("C1CC1C2CC2")
        assert node.renumber_rings({1: 5}).smiles == "C5CC5C2CC2"

    def test_clone_is_equal(self):
        node = parse("CC(=O)Nc1ccc(O)cc1")
        copy = node.clone()
        assert copy == node
        assert copy.smiles == node.smiles
