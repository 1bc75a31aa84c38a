"""Section reconciliation: merge alignment batches into canonical tile collections.

A run is two phases:

1. **plan**: for every batch, fetch the canonical collection for its z,
   apply the new transforms and re-validate. Nothing is written.
2. **commit**: only after every batch planned successfully, save each
   updated collection to the target stack.

Any error in phase 1 aborts the run with no writes. A save failure in
phase 2 leaves earlier sections written; there is no cross-section
transaction.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from stackalign.contracts.base import require
from stackalign.contracts.failure import EmptyCollectionError, MissingTileError
from stackalign.tiles.batch import SectionAlignmentBatch
from stackalign.pipeline.progress import ProgressTimer
from stackalign.tiles.collection import ResolvedTileSpecCollection

__all__ = ['UpdatePolicy', 'SectionPlan', 'SectionReconciler']

logger = logging.getLogger(__name__)


class UpdatePolicy(str, Enum):
    """How a new transform is merged into a tile's existing stack."""
    APPEND = "append"
    REPLACE_ALL = "replace_all"
    REPLACE_LAST = "replace_last"


@dataclass
class SectionPlan:
    """Updated, not yet saved, collection for one batch."""
    batch: SectionAlignmentBatch
    collection: ResolvedTileSpecCollection
    processed: int
    removed: int

    @property
    def z(self) -> float:
        return self.batch.z


class SectionReconciler:
    """Apply alignment batches to the tile collections of a source stack.

    Parameters
    ----------
    client : StackClient
        Tile store the source stack is fetched from.
    source_stack : str
        Stack whose collections are updated.
    policy : UpdatePolicy, optional
        Merge policy for each tile's transform stack (default APPEND).
    validator : TileSpecValidator, optional
        Attached to every fetched collection; tiles failing it are dropped.
    prune : bool, optional
        Export mode. Instead of filtering the collection to the batch tile
        ids up front (an empty result is fatal), tiles outside the batch are
        removed after the update (an empty result is tolerated), per-tile
        target z values are applied and every bounding box is recomputed.
    progress_interval_sec : float, optional
        Minimum seconds between two progress log lines.
    clock : callable, optional
        Time source for progress logging (for testing).
    target_client : StackClient, optional
        Tile store updated collections are saved to (defaults to ``client``).
    """

    def __init__(self, client, source_stack: str,
                 policy: UpdatePolicy = UpdatePolicy.APPEND,
                 validator=None, prune: bool = False,
                 progress_interval_sec: float = 5.0, clock=None,
                 target_client=None):
        self.client = client
        self.target_client = target_client or client
        self.source_stack = source_stack
        self.policy = UpdatePolicy(policy)
        self.validator = validator
        self.prune = prune
        self.progress_interval_sec = progress_interval_sec
        self._clock = clock

    def __repr__(self):
        return (f"SectionReconciler(source_stack={self.source_stack}, "
                f"policy={self.policy.value}, prune={self.prune})")

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    def plan_section(self, batch: SectionAlignmentBatch) -> SectionPlan:
        """Fetch and update the collection for one batch.

        Raises
        ------
        EmptyCollectionError
            If the stack has no tiles at the batch z, or (without ``prune``)
            none of the batch tile ids are in it.
        MissingTileError
            If a batch tile id is not in the collection.
        """
        logger.info("plan_section: entry, z=%s", batch.z)

        collection = self.client.get_resolved_tiles(self.source_stack, batch.z)
        collection.set_validator(self.validator)

        require(
            collection.has_tile_specs(),
            f"{collection} does not have any tiles",
            EmptyCollectionError,
        )

        if not self.prune:
            logger.info("plan_section: filtering tile spec collection %s", collection)
            collection.filter_specs(
                batch.tile_ids,
                context=f"after filtering out non-aligned tiles, {collection} "
                        f"does not have any remaining tiles",
            )
            logger.info("plan_section: after filter, collection is %s", collection)

        timer = ProgressTimer(self.progress_interval_sec, clock=self._clock)
        processed = 0
        for tile_id, transform_spec in batch.items():
            self._update_tile(collection, tile_id, transform_spec)
            processed += 1
            if timer.has_interval_passed():
                logger.info("plan_section: updated transforms for %d out of %d tiles",
                            processed, len(batch))

        if self.prune:
            self._finalize_export(collection, batch)

        removed = processed - collection.tile_count
        logger.debug("plan_section: updated transforms for %d tiles, removed %d bad tiles, "
                     "elapsedSeconds=%.1f", processed, removed, timer.elapsed_seconds)

        return SectionPlan(batch=batch, collection=collection, processed=processed, removed=removed)

    def _update_tile(self, collection: ResolvedTileSpecCollection, tile_id: str, transform_spec) -> None:
        tile_spec = collection.get_tile_spec(tile_id)
        require(
            tile_spec is not None,
            f"tile spec with id '{tile_id}' not found in {collection}, possible issue with z value",
            MissingTileError,
        )

        if self.policy is UpdatePolicy.REPLACE_ALL:
            tile_spec.clear_transforms()

        collection.add_transform_spec_to_tile(
            tile_id, transform_spec,
            replace_last=self.policy is UpdatePolicy.REPLACE_LAST,
        )

    def _finalize_export(self, collection: ResolvedTileSpecCollection,
                         batch: SectionAlignmentBatch) -> None:
        collection.remove_different_tile_specs(batch.tile_ids)

        for tile_id, target_z in batch.target_z.items():
            tile_spec = collection.get_tile_spec(tile_id)
            if tile_spec is not None:
                tile_spec.z = target_z

        logger.info("plan_section: updating bounding boxes for z %s", batch.z)
        collection.recalculate_bounding_boxes()

    def plan(self, batches: Iterable[SectionAlignmentBatch]) -> List[SectionPlan]:
        """Plan every batch; the first failure aborts before anything is saved."""
        return [self.plan_section(batch) for batch in batches]

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    def commit(self, plans: List[SectionPlan], target_stack: str, save_with_z: bool = True) -> int:
        """Save every planned collection to ``target_stack``.

        Parameters
        ----------
        save_with_z : bool, optional
            Save to the plan's z (True) or with no z so that tiles keep their
            own, possibly remapped, z values (False).

        Returns
        -------
        int
            Number of tiles saved.
        """
        saved = 0
        for section_plan in plans:
            z: Optional[float] = section_plan.z if save_with_z else None
            logger.info("commit: saving %s to %s", section_plan.collection, target_stack)
            self.target_client.save_resolved_tiles(section_plan.collection, target_stack, z)
            saved += section_plan.collection.tile_count
        logger.info("commit: saved %d tiles in %d sections to %s", saved, len(plans), target_stack)
        return saved

    def run(self, batches: Iterable[SectionAlignmentBatch], target_stack: str,
            save_with_z: bool = True) -> List[SectionPlan]:
        """Plan all batches, then commit them."""
        plans = self.plan(batches)
        self.commit(plans, target_stack, save_with_z=save_with_z)
        return plans
