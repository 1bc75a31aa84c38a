"""Tests for SectionAlignmentBatch and z-key canonicalization."""

import pytest

pytestmark = pytest.mark.unit

from stackalign.contracts import DuplicateTileError
from stackalign.tiles.batch import SectionAlignmentBatch, canonical_z
from stackalign.transforms.spec import LeafTransformSpec

SPEC = LeafTransformSpec(className="mpicbg.trakem2.transform.AffineModel2D",
                         dataString="1 0 0 1 0 0")


class TestCanonicalZ:

    def test_rounds_to_decimals(self):
        """z values are rounded to the configured decimals."""
        assert canonical_z(100.0000000001) == 100.0
        assert canonical_z(100.0000000001) == canonical_z(99.9999999999)

    def test_distinct_layers_stay_distinct(self):
        """Nearby but distinct z values keep distinct keys."""
        assert canonical_z(100.5) != canonical_z(100.0)

    def test_negative_zero_folds(self):
        """-0.0 folds to 0.0."""
        assert str(canonical_z(-0.0000001)) == "0.0"


class TestSectionAlignmentBatch:

    def test_tile_ids_are_sorted(self):
        """Tile ids are returned sorted."""
        batch = SectionAlignmentBatch("a.met", 100.0)
        for tile_id in ("T3", "T1", "T2"):
            batch.add_tile(tile_id, SPEC)
        assert batch.tile_ids == ["T1", "T2", "T3"]
        assert [tile_id for tile_id, _ in batch.items()] == ["T1", "T2", "T3"]
        assert len(batch) == 3
        assert repr(batch) == "{z: 100.0, tileCount: 3}"

    def test_duplicate_tile_raises(self):
        """Adding a tile twice raises DuplicateTileError."""
        batch = SectionAlignmentBatch("a.met", 100.0)
        batch.add_tile("T1", SPEC, line_number=4)
        with pytest.raises(DuplicateTileError, match=r"T1 is listed more than once in a.met \(lines 4 and 9\)"):
            batch.add_tile("T1", SPEC, line_number=9)

    def test_target_z_only_recorded_when_given(self):
        """Target z is recorded only for tiles that have one."""
        batch = SectionAlignmentBatch("project.xml", 100.0)
        batch.add_tile("T1", SPEC)
        batch.add_tile("T2", SPEC, target_z=7.0)
        assert batch.target_z == {"T2": 7.0}
