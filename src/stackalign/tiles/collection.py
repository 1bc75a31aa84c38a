"""Resolved tile spec collection: every tile spec of one z layer."""

import logging
from typing import Dict, Iterable, List, Optional

from stackalign.contracts.base import require
from stackalign.contracts.failure import EmptyCollectionError, MissingTileError
from stackalign.tiles.tile_spec import TileSpec
from stackalign.transforms.spec import (
    ListTransformSpec,
    TransformSpec,
    shared_spec_index,
)

__all__ = ['ResolvedTileSpecCollection']

logger = logging.getLogger(__name__)


class ResolvedTileSpecCollection:
    """Tile specs for one z layer plus the transform specs they share.

    Tile ids are unique; inserting a spec with an existing id replaces the
    previous one. Mutating operations that add transforms re-derive the
    tile's bounding box and, when a validator is attached, drop tiles that
    no longer validate.

    JSON form (render web service)::

        {"transformSpecs": [...], "tileSpecs": [...]}
    """

    def __init__(self, tile_specs: Iterable[TileSpec] = (),
                 transform_specs: Iterable[TransformSpec] = (),
                 z: Optional[float] = None,
                 validator=None):
        self.z = z
        self.transform_specs: List[TransformSpec] = list(transform_specs)
        self._tile_id_to_spec: Dict[str, TileSpec] = {}
        self._validator = validator
        for tile_spec in tile_specs:
            self.add_tile_spec(tile_spec)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @classmethod
    def from_json(cls, data: dict, z: Optional[float] = None) -> "ResolvedTileSpecCollection":
        shared = ListTransformSpec.model_validate(
            {"specList": data.get("transformSpecs") or []}
        ).spec_list
        tiles = [TileSpec.model_validate(t) for t in data.get("tileSpecs") or []]
        return cls(tiles, shared, z=z)

    def to_json(self) -> dict:
        return {
            "transformSpecs": [spec.to_json_dict() for spec in self.transform_specs],
            "tileSpecs": [tile.to_json_dict() for tile in self._tile_id_to_spec.values()],
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def tile_count(self) -> int:
        return len(self._tile_id_to_spec)

    @property
    def tile_ids(self) -> List[str]:
        return list(self._tile_id_to_spec)

    @property
    def tile_specs(self) -> List[TileSpec]:
        return list(self._tile_id_to_spec.values())

    def has_tile_specs(self) -> bool:
        return bool(self._tile_id_to_spec)

    def get_tile_spec(self, tile_id: str) -> Optional[TileSpec]:
        return self._tile_id_to_spec.get(tile_id)

    def __contains__(self, tile_id: str) -> bool:
        return tile_id in self._tile_id_to_spec

    def __len__(self) -> int:
        return self.tile_count

    def __repr__(self):
        return f"{{z: {self.z}, tileCount: {self.tile_count}, transformSpecCount: {len(self.transform_specs)}}}"

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_validator(self, validator) -> None:
        self._validator = validator

    def add_tile_spec(self, tile_spec: TileSpec) -> None:
        self._tile_id_to_spec[tile_spec.tile_id] = tile_spec

    def remove_tile_spec(self, tile_id: str) -> None:
        self._tile_id_to_spec.pop(tile_id, None)

    def filter_specs(self, tile_ids: Iterable[str], context: str = "") -> None:
        """Keep only tiles whose id is in ``tile_ids``.

        Raises
        ------
        EmptyCollectionError
            If no tile survives the filter.
        """
        keep = set(tile_ids)
        self._tile_id_to_spec = {
            tile_id: spec for tile_id, spec in self._tile_id_to_spec.items() if tile_id in keep
        }
        require(
            self.has_tile_specs(),
            context or f"after filtering, {self} does not have any remaining tiles",
            EmptyCollectionError,
        )

    def remove_different_tile_specs(self, tile_ids: Iterable[str]) -> int:
        """Drop every tile whose id is not in ``tile_ids``; returns the number removed."""
        keep = set(tile_ids)
        before = self.tile_count
        self._tile_id_to_spec = {
            tile_id: spec for tile_id, spec in self._tile_id_to_spec.items() if tile_id in keep
        }
        removed = before - self.tile_count
        if removed:
            logger.debug("remove_different_tile_specs: removed %d tiles from z %s", removed, self.z)
        return removed

    def shared_specs(self) -> Dict[str, TransformSpec]:
        return shared_spec_index(self.transform_specs)

    def add_transform_spec_to_tile(self, tile_id: str, transform_spec: TransformSpec,
                                   replace_last: bool = False) -> bool:
        """Append a transform to one tile and re-validate it.

        Parameters
        ----------
        tile_id : str
            Tile to update.
        transform_spec : TransformSpec
            Transform to append to the end of the tile's stack.
        replace_last : bool, optional
            Remove the tile's current last transform first.

        Returns
        -------
        bool
            False if the updated tile failed validation and was removed.

        Raises
        ------
        MissingTileError
            If the collection has no tile with this id.
        """
        tile_spec = self.get_tile_spec(tile_id)
        require(
            tile_spec is not None,
            f"tile spec with id '{tile_id}' not found in {self}, possible issue with z value",
            MissingTileError,
        )

        if replace_last:
            tile_spec.remove_last_transform_spec()
        tile_spec.add_transform_specs([transform_spec])
        tile_spec.derive_bounding_box(self.shared_specs())

        return self._keep_if_valid(tile_spec)

    def _keep_if_valid(self, tile_spec: TileSpec) -> bool:
        if self._validator is None:
            return True
        try:
            self._validator.validate(tile_spec)
        except ValueError as exc:
            logger.warning("removing invalid tile %s: %s", tile_spec.tile_id, exc)
            self.remove_tile_spec(tile_spec.tile_id)
            return False
        return True

    def recalculate_bounding_boxes(self) -> None:
        shared = self.shared_specs()
        for tile_spec in self._tile_id_to_spec.values():
            tile_spec.derive_bounding_box(shared)
