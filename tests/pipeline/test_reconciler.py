"""Tests for the two-phase section reconciler."""

import pytest

pytestmark = [pytest.mark.unit, pytest.mark.pipeline]

from stackalign.contracts import EmptyCollectionError, MissingTileError, StackClientError
from stackalign.pipeline.reconciler import SectionReconciler, UpdatePolicy
from stackalign.tiles.batch import SectionAlignmentBatch
from stackalign.tiles.validator import TemTileSpecValidator
from stackalign.transforms.spec import LeafTransformSpec

from tests.helpers.fake_stack_client import (
    AFFINE,
    TRANSLATION,
    FakeStackClient,
    make_collection_json,
)


def _affine(tx=10.0, ty=20.0):
    return LeafTransformSpec(className=AFFINE, dataString=f"1.0 0.0 0.0 1.0 {tx} {ty}")


def _batch(tile_ids, z=100.0, source="5100.met"):
    batch = SectionAlignmentBatch(source, z)
    for tile_id in tile_ids:
        batch.add_tile(tile_id, _affine())
    return batch


class TestAppendPolicy:

    def test_existing_transforms_are_kept(self, fake_client):
        """Append keeps the tile's existing transforms."""
        plan = SectionReconciler(fake_client, "v12_acquire").plan_section(_batch(["T1", "T2"]))

        for tile_id in ("T1", "T2"):
            tile = plan.collection.get_tile_spec(tile_id)
            assert [s.class_name for s in tile.transform_specs] == [TRANSLATION, AFFINE]

    def test_non_batch_tiles_are_filtered_out(self, fake_client):
        """Tiles not in the batch are filtered out of the plan."""
        plan = SectionReconciler(fake_client, "v12_acquire").plan_section(_batch(["T1", "T2", "T3"]))
        assert sorted(plan.collection.tile_ids) == ["T1", "T2", "T3"]
        assert plan.processed == 3
        assert plan.removed == 0

    def test_bounding_box_is_rederived(self, fake_client):
        """Bounding boxes follow the new transform."""
        plan = SectionReconciler(fake_client, "v12_acquire").plan_section(_batch(["T1"]))
        assert plan.collection.get_tile_spec("T1").bounding_box == (1010.0, 2020.0, 3570.0, 4180.0)


class TestReplacePolicies:

    def test_replace_all_discards_existing(self, fake_client):
        """replace_all drops every existing transform."""
        reconciler = SectionReconciler(fake_client, "v12_acquire", policy=UpdatePolicy.REPLACE_ALL)
        plan = reconciler.plan_section(_batch(["T1"]))
        tile = plan.collection.get_tile_spec("T1")
        assert [s.class_name for s in tile.transform_specs] == [AFFINE]

    def test_replace_last_swaps_final_transform(self):
        """replace_last swaps only the final transform."""
        data = make_collection_json(["T1"], 5.0)
        data["tileSpecs"][0]["transforms"]["specList"].append(
            {"type": "leaf", "className": AFFINE, "dataString": "1 0 0 1 0 0"}
        )
        client = FakeStackClient(collections={("basis", 5.0): data})
        reconciler = SectionReconciler(client, "basis", policy="replace_last")

        plan = reconciler.plan_section(_batch(["T1"], z=5.0))
        specs = plan.collection.get_tile_spec("T1").transform_specs
        assert [s.class_name for s in specs] == [TRANSLATION, AFFINE]
        assert specs[-1].data_string == "1.0 0.0 0.0 1.0 10.0 20.0"

    @pytest.mark.parametrize("policy", list(UpdatePolicy))
    def test_missing_tile_is_fatal(self, policy, fake_client):
        """A batch tile absent from the collection is fatal under every policy."""
        reconciler = SectionReconciler(fake_client, "v12_acquire", policy=policy, prune=True)
        with pytest.raises(MissingTileError, match="'T9' not found"):
            reconciler.plan_section(_batch(["T1", "T9"]))


class TestEmptyCollections:

    def test_no_tiles_at_z(self, fake_client):
        """An empty collection at the batch z is an error."""
        with pytest.raises(EmptyCollectionError, match="does not have any tiles"):
            SectionReconciler(fake_client, "v12_acquire").plan_section(_batch(["T1"], z=7.0))

    def test_no_overlap_with_batch(self, fake_client):
        """A collection sharing no tiles with the batch is an error."""
        with pytest.raises(EmptyCollectionError, match="after filtering out non-aligned tiles"):
            SectionReconciler(fake_client, "v12_acquire").plan_section(_batch(["X1"]))


class TestValidation:

    def test_invalid_tiles_are_dropped_and_counted(self, fake_client):
        """Tiles failing validation are dropped and counted."""
        batch = SectionAlignmentBatch("5100.met", 100.0)
        batch.add_tile("T1", _affine())
        batch.add_tile("T2", _affine(tx=-5000.0))

        reconciler = SectionReconciler(fake_client, "v12_acquire", validator=TemTileSpecValidator())
        plan = reconciler.plan_section(batch)

        assert plan.collection.tile_ids == ["T1"]
        assert plan.processed == 2
        assert plan.removed == 1


class TestExportPruning:

    def test_prune_removes_unlisted_tiles_and_applies_target_z(self, fake_client):
        """Pruning drops unlisted tiles and applies the target z."""
        batch = SectionAlignmentBatch("montage.xml", 100.0)
        batch.add_tile("T1", _affine(), target_z=7.0)
        batch.add_tile("T2", _affine(), target_z=7.0)

        reconciler = SectionReconciler(fake_client, "v12_acquire", policy=UpdatePolicy.REPLACE_LAST,
                                       prune=True)
        plan = reconciler.plan_section(batch)

        assert sorted(plan.collection.tile_ids) == ["T1", "T2"]
        assert {tile.z for tile in plan.collection.tile_specs} == {7.0}
        assert all(tile.bounding_box is not None for tile in plan.collection.tile_specs)


class TestTwoPhaseCommit:

    def test_nothing_is_saved_when_a_later_batch_fails(self):
        """A planning failure in any batch prevents every save."""
        client = FakeStackClient(collections={
            ("acquire", 1.0): make_collection_json(["A1"], 1.0),
            ("acquire", 2.0): make_collection_json(["B1"], 2.0),
        })
        reconciler = SectionReconciler(client, "acquire")
        batches = [_batch(["A1"], z=1.0), _batch(["B1", "B9"], z=2.0)]

        with pytest.raises(MissingTileError):
            reconciler.run(batches, "align")
        assert client.saved == []

    def test_commit_saves_each_plan_with_its_z(self):
        """Each plan is saved with its own z."""
        client = FakeStackClient(collections={
            ("acquire", 1.0): make_collection_json(["A1"], 1.0),
            ("acquire", 2.0): make_collection_json(["B1"], 2.0),
        })
        reconciler = SectionReconciler(client, "acquire")
        plans = reconciler.run([_batch(["A1"], z=1.0), _batch(["B1"], z=2.0)], "align")

        assert [(stack, z) for stack, z, _ in client.saved] == [("align", 1.0), ("align", 2.0)]
        assert len(plans) == 2

    def test_commit_without_z(self, fake_client):
        """Plans can be saved without a z."""
        reconciler = SectionReconciler(fake_client, "v12_acquire")
        reconciler.run([_batch(["T1"])], "target", save_with_z=False)
        assert fake_client.saved[0][1] is None

    def test_saves_go_to_target_client(self, fake_client):
        """Saves use the target client when one is given."""
        target = FakeStackClient()
        reconciler = SectionReconciler(fake_client, "v12_acquire", target_client=target)
        reconciler.run([_batch(["T1"])], "target")
        assert fake_client.saved == []
        assert len(target.saved) == 1

    def test_save_failure_keeps_earlier_sections(self):
        """Sections saved before a failed save stay saved."""
        client = FakeStackClient(collections={
            ("acquire", 1.0): make_collection_json(["A1"], 1.0),
            ("acquire", 2.0): make_collection_json(["B1"], 2.0),
        }, fail_save_after=1)
        reconciler = SectionReconciler(client, "acquire")

        with pytest.raises(StackClientError):
            reconciler.run([_batch(["A1"], z=1.0), _batch(["B1"], z=2.0)], "align")
        assert [(stack, z) for stack, z, _ in client.saved] == [("align", 1.0)]


class TestProgressLogging:

    def test_progress_uses_injected_clock(self, fake_client, caplog):
        """Progress is logged on the injected clock's schedule."""
        ticks = iter(range(0, 1000, 10))
        reconciler = SectionReconciler(fake_client, "v12_acquire", progress_interval_sec=5.0,
                                       clock=lambda: next(ticks))
        with caplog.at_level("INFO", logger="stackalign.pipeline.reconciler"):
            reconciler.plan_section(_batch(["T1", "T2", "T3"]))
        assert "updated transforms for 1 out of 3 tiles" in caplog.text
