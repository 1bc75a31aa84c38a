"""Per-section alignment batches and z-key canonicalization.

A batch collects the new transform for every tile of one z layer, as read
from an external source (MET file or TrakEM2 project). Batches are built
incrementally while a source is scanned and consumed once by the reconciler.
"""

import logging
from typing import Dict, Iterator, List, Optional, Tuple

from stackalign.contracts.base import require
from stackalign.contracts.failure import DuplicateTileError
from stackalign.transforms.spec import TransformSpec

__all__ = ['SectionAlignmentBatch', 'canonical_z']

logger = logging.getLogger(__name__)


def canonical_z(z: float, decimals: int = 6) -> float:
    """Canonical dictionary key for a z value.

    z values coming from different sources (a tile record, a section table,
    a user-supplied map) are compared after rounding to ``decimals`` places,
    so ``100.0`` and ``100.0000000001`` select the same layer.
    """
    return round(float(z), decimals) + 0.0  # + 0.0 folds -0.0 into 0.0


class SectionAlignmentBatch:
    """New transforms for the tiles of one z layer.

    Parameters
    ----------
    source : str
        Where the records came from (file path or project), for messages.
    z : float
        Canonical z of the layer in the source (basis) stack.
    """

    def __init__(self, source: str, z: float):
        self.source = source
        self.z = z
        self._transforms: Dict[str, TransformSpec] = {}
        self._line_numbers: Dict[str, Optional[int]] = {}
        self.target_z: Dict[str, float] = {}

    def add_tile(self, tile_id: str, transform_spec: TransformSpec,
                 line_number: Optional[int] = None,
                 target_z: Optional[float] = None) -> None:
        """Record the new transform for ``tile_id``.

        Parameters
        ----------
        target_z : float, optional
            z the tile should carry when saved, if it differs from ``self.z``.

        Raises
        ------
        DuplicateTileError
            If the tile id was already added to this batch.
        """
        require(
            tile_id not in self._transforms,
            f"tile id {tile_id} is listed more than once in {self.source} "
            f"(lines {self._line_numbers.get(tile_id)} and {line_number})",
            DuplicateTileError,
        )
        self._transforms[tile_id] = transform_spec
        self._line_numbers[tile_id] = line_number
        if target_z is not None:
            self.target_z[tile_id] = target_z

    @property
    def tile_ids(self) -> List[str]:
        """Tile ids in deterministic (sorted) order."""
        return sorted(self._transforms)

    def transform_for(self, tile_id: str) -> TransformSpec:
        return self._transforms[tile_id]

    def items(self) -> Iterator[Tuple[str, TransformSpec]]:
        for tile_id in self.tile_ids:
            yield tile_id, self._transforms[tile_id]

    def __len__(self) -> int:
        return len(self._transforms)

    def __contains__(self, tile_id: str) -> bool:
        return tile_id in self._transforms

    def __repr__(self):
        return f"{{z: {self.z}, tileCount: {len(self)}}}"
