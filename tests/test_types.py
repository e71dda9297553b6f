"""Tests for AST node construction and validation."""

import pytest

from smilesast import FusedRing, LayoutAtom, Linear, Molecule, Ring, RingMarker
from smilesast import BondKind, NodeType
from smilesast.exceptions import InvalidAST, InvalidPosition, RingError, TooManyRings


class TestLinear:
    """Test Linear construction."""

    def test_defaults(self):
        chain = Linear(["C", "O"])
        assert chain.type == NodeType.LINEAR
        assert chain.bonds == (None,)
        assert dict(chain.attachments) == {}
        assert chain.leading_bond is None
        assert len(chain) == 2

    def test_bonds_are_padded(self):
        assert Linear(["C", "C", "C"], ["="]).bonds == (BondKind.DOUBLE, None)

    def test_bond_text_is_coerced(self):
        assert Linear(["C", "C"], ["#"]).bonds == (BondKind.TRIPLE,)

    def test_conflicting_leading_bonds(self):
        with pytest.raises(InvalidAST):
            Linear(["C", "C"], ["=", None], leading_bond="#")

    def test_too_many_bonds(self):
        with pytest.raises(InvalidAST):
            Linear(["C", "C"], [None, None, None])

    @pytest.mark.parametrize("atoms", [[], [""], ["X1"], ["(C)"], "C=C"])
    def test_invalid_atoms(self, atoms):
        with pytest.raises(InvalidAST):
            Linear(atoms)

    def test_unknown_bond(self):
        with pytest.raises(InvalidAST):
            Linear(["C", "C"], ["~"])

    def test_attachment_position_checked(self):
        with pytest.raises(InvalidPosition):
            Linear(["C"], attachments={2: [Linear(["O"])]})

    def test_inline_only_at_last_atom(self):
        with pytest.raises(InvalidAST):
            Linear(["C", "C"], inline={1: [Linear(["O"])]})

    def test_immutable(self):
        chain = Linear(["C"])
        with pytest.raises(AttributeError):
            chain.atoms = ("O",)
        with pytest.raises(TypeError):
            chain.attachments[1] = ()


class TestRing:
    """Test Ring construction."""

    def test_defaults(self):
        ring = Ring(atoms="c", size=6)
        assert ring.type == NodeType.RING
        assert ring.base_atom == "c"
        assert ring.ring_number == 1
        assert ring.offset == 0
        assert ring.bonds == ()
        assert ring.branch_depths is None

    @pytest.mark.parametrize("size", [0, 2, -1, 3.0, True])
    def test_invalid_size(self, size):
        with pytest.raises(InvalidAST):
            Ring(atoms="C", size=size)

    def test_ring_number_range(self):
        with pytest.raises(InvalidAST):
            Ring(atoms="C", size=3, ring_number=0)
        with pytest.raises(TooManyRings):
            Ring(atoms="C", size=3, ring_number=100)

    def test_substitution_of_base_atom_is_dropped(self):
        ring = Ring(atoms="c", size=6, substitutions={2: "c", 3: "n"})
        assert dict(ring.substitutions) == {3: "n"}

    def test_substitution_position_checked(self):
        with pytest.raises(InvalidPosition):
            Ring(atoms="c", size=6, substitutions={7: "n"})

    def test_bonds_length(self):
        assert len(Ring(atoms="C", size=4, bonds=["=", None, None]).bonds) == 4
        with pytest.raises(InvalidAST):
            Ring(atoms="C", size=4, bonds=["="])

    def test_implicit_bonds_are_dropped(self):
        assert Ring(atoms="C", size=4, bonds=[None] * 4).bonds == ()

    def test_bond_accessors(self):
        ring = Ring(atoms="C", size=4, bonds=["=", None, "#", "-"])
        assert ring.bond_before(1) is None
        assert ring.bond_before(2) == BondKind.DOUBLE
        assert ring.bond_before(4) == BondKind.TRIPLE
        assert ring.opener_bond == BondKind.SINGLE

    def test_atom_at(self):
        ring = Ring(atoms="c", size=6, substitutions={2: "n"})
        assert ring.atom_at(2) == "n"
        assert ring.atom_at(3) == "c"
        with pytest.raises(InvalidPosition):
            ring.atom_at(7)

    @pytest.mark.parametrize("depths", [
        [1, 1, 1],
        [0, 2, 2],
        [0, 1],
        [0, -1, 0],
    ])
    def test_invalid_branch_depths(self, depths):
        with pytest.raises(InvalidAST):
            Ring(atoms="C", size=3, branch_depths=depths)

    def test_flat_branch_depths_normalise(self):
        assert Ring(atoms="C", size=3, branch_depths=[0, 0, 0]).branch_depths is None

    def test_inline_positions(self):
        """Inline children must not split the ring."""
        child = Linear(["O"])
        assert Ring(atoms="C", size=4, inline={4: [child]}).inline[4] == (child,)
        Ring(atoms="C", size=4, branch_depths=[0, 0, 1, 1], inline={2: [child]})
        with pytest.raises(InvalidAST):
            Ring(atoms="C", size=4, inline={2: [child]})

    def test_with_ring_number(self):
        ring = Ring(atoms="c", size=6)
        assert ring.with_ring_number(5).ring_number == 5
        assert ring.ring_number == 1


class TestLayoutAtoms:
    """Test layout entries and ring markers."""

    def test_marker_coercion(self):
        assert RingMarker.coerce(3) == RingMarker(3)
        assert RingMarker.coerce((2, "=")) == RingMarker(2, BondKind.DOUBLE)
        assert RingMarker.coerce({"number": 12}).text == "%12"
        with pytest.raises(InvalidAST):
            RingMarker.coerce("1")

    def test_layout_atom_from_dict(self):
        entry = LayoutAtom.coerce({"position": 1, "value": "c", "rings": [1, (2, "=")]})
        assert entry.depth == 0
        assert entry.rings == (RingMarker(1), RingMarker(2, BondKind.DOUBLE))

    def test_layout_atom_missing_key(self):
        with pytest.raises(InvalidAST):
            LayoutAtom.coerce({"position": 1})

    def test_layout_atom_to_dict(self):
        entry = LayoutAtom(2, 1, "C", bond="=", branch=True, rings=[(1, "-")])
        assert entry.to_dict() == {
            "position": 2, "depth": 1, "value": "C", "bond": "=", "branch": True, "rings": [[1, "-"]],
        }


class TestFusedRing:
    """Test FusedRing construction."""

    def test_needs_two_rings(self):
        with pytest.raises(InvalidAST):
            FusedRing([Ring(atoms="c", size=6)])

    def test_first_offset_zero(self):
        with pytest.raises(InvalidAST):
            FusedRing([Ring(atoms="c", size=6, offset=1), Ring(atoms="c", size=6, ring_number=2, offset=3)])

    def test_duplicate_ring_numbers(self):
        with pytest.raises(InvalidAST):
            FusedRing([Ring(atoms="c", size=6), Ring(atoms="c", size=6, offset=3)])

    def test_offset_out_of_range(self):
        with pytest.raises(InvalidAST):
            FusedRing([Ring(atoms="c", size=6), Ring(atoms="c", size=6, ring_number=2, offset=5)])

    def test_rings_and_layout_exclusive(self):
        with pytest.raises(InvalidAST):
            FusedRing(
                [Ring(atoms="C", size=3), Ring(atoms="C", size=3, ring_number=2)],
                layout=[{"position": 1, "value": "C"}],
            )

    def test_layout_derives_rings(self):
        fused = FusedRing(layout=[
            {"position": 1, "depth": 0, "value": "c", "rings": [1]},
            {"position": 2, "depth": 0, "value": "c"},
            {"position": 3, "depth": 0, "value": "n"},
            {"position": 4, "depth": 0, "value": "c"},
            {"position": 5, "depth": 0, "value": "c"},
            {"position": 6, "depth": 0, "value": "c", "rings": [1]},
        ])
        assert fused.has_layout
        (ring,) = fused.rings
        assert ring.size == 6
        assert dict(ring.substitutions) == {3: "n"}

    def test_layout_is_sorted_by_position(self):
        fused = FusedRing(layout=[
            {"position": 3, "value": "C", "rings": [1]},
            {"position": 1, "value": "C", "rings": [1]},
            {"position": 2, "value": "O"},
        ])
        assert fused.smiles == "C1OC1"

    @pytest.mark.parametrize("layout", [
        [],
        [{"position": 1, "value": "C"}, {"position": 2, "value": "C"}],
        [{"position": 1, "value": "C", "rings": [1]}, {"position": 2, "value": "C"}],
        [{"position": 1, "value": "C", "rings": [1, 1]}],
        [{"position": 1, "value": "C", "depth": 1, "rings": [1]}],
        [
            {"position": 1, "value": "C", "rings": [1]},
            {"position": 2, "value": "C", "depth": 1},
            {"position": 3, "value": "C", "rings": [1]},
        ],
    ])
    def test_invalid_layouts(self, layout):
        with pytest.raises(InvalidAST):
            FusedRing(layout=layout)

    def test_get_ring(self):
        fused = Ring(atoms="c", size=6).fuse(3, Ring(atoms="c", size=6, ring_number=2))
        assert fused.get_ring(2).offset == 3
        with pytest.raises(RingError):
            fused.get_ring(3)


class TestMolecule:
    """Test Molecule construction and access."""

    def test_needs_components(self):
        with pytest.raises(InvalidAST):
            Molecule([])

    def test_components_must_be_nodes(self):
        with pytest.raises(InvalidAST):
            Molecule(["CC"])

    def test_access(self):
        molecule = Molecule([Linear(["C"]), Ring(atoms="c", size=6)])
        assert len(molecule) == 2
        assert isinstance(molecule.get_component(1), Ring)
        with pytest.raises(InvalidPosition):
            molecule.get_component(2)

    def test_append_prepend_replace(self):
        molecule = Molecule([Linear(["C"])])
        assert molecule.append(Linear(["O"])).smiles == "CO"
        assert molecule.prepend(Linear(["O"])).smiles == "OC"
        assert molecule.replace_component(0, Linear(["N"])).smiles == "N"
        assert molecule.smiles == "C"

    def test_leading_bond(self):
        molecule = Molecule([Linear(["C"], leading_bond="="), Linear(["O"])])
        assert molecule.leading_bond == BondKind.DOUBLE


class TestToDict:
    """Test the plain-data view."""

    def test_linear(self):
        chain = Linear(["C", "O"], ["="], attachments={1: [Linear(["N"])]})
        assert chain.to_dict() == {
            "type": "linear",
            "atoms": ["C", "O"],
            "bonds": ["="],
            "attachments": {1: [{"type": "linear", "atoms": ["N"]}]},
        }

    def test_ring(self):
        ring = Ring(atoms="c", size=6, substitutions={1: "n"})
        assert ring.to_dict() == {
            "type": "ring", "atoms": "c", "size": 6, "ring_number": 1, "substitutions": {1: "n"},
        }

    def test_fused_and_molecule(self):
        fused = Ring(atoms="c", size=6).fuse(3, Ring(atoms="c", size=6, ring_number=2))
        data = Molecule([fused]).to_dict()
        assert data["type"] == "molecule"
        assert [r["offset"] for r in data["components"][0]["rings"][1:]] == [3]
