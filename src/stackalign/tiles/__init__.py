"""Tile spec data model.

- tile_spec: One tile's metadata and transform stack
- collection: All tile specs for one z layer
- validator: Tile validation policies
- batch: Per-section alignment batches and z-key canonicalization
"""

from stackalign.tiles.tile_spec import TileSpec
from stackalign.tiles.collection import ResolvedTileSpecCollection
from stackalign.tiles.validator import TemTileSpecValidator, build_validator
from stackalign.tiles.batch import SectionAlignmentBatch, canonical_z

__all__ = [
    "TileSpec",
    "ResolvedTileSpecCollection",
    "TemTileSpecValidator",
    "build_validator",
    "SectionAlignmentBatch",
    "canonical_z",
]
