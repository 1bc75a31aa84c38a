"""Tile spec validation policies.

A validator inspects one tile spec (after its bounding box has been derived)
and raises ``ValueError`` describing the first problem it finds. Collections
drop tiles that fail validation instead of failing the whole run.
"""

import logging
from typing import Optional, Protocol

from stackalign.tiles.tile_spec import TileSpec

__all__ = ['TileSpecValidator', 'TemTileSpecValidator', 'build_validator']

logger = logging.getLogger(__name__)


class TileSpecValidator(Protocol):
    def validate(self, tile_spec: TileSpec) -> None:
        ...


class TemTileSpecValidator:
    """Bounds and size checks for transmission electron microscopy tiles.

    Parameters
    ----------
    min_coordinate, max_coordinate : float
        World bounding box must lie inside this range on both axes.
    min_size, max_size : float
        Raw tile width and height must lie inside this range.
    """

    def __init__(self, min_coordinate: float = 0.0, max_coordinate: float = 400000.0,
                 min_size: float = 500.0, max_size: float = 5000.0):
        self.min_coordinate = min_coordinate
        self.max_coordinate = max_coordinate
        self.min_size = min_size
        self.max_size = max_size

    def validate(self, tile_spec: TileSpec) -> None:
        tile_id = tile_spec.tile_id
        box = tile_spec.bounding_box
        if box is None:
            raise ValueError(f"tile {tile_id} has no bounding box")

        min_x, min_y, max_x, max_y = box
        for name, value in (("minX", min_x), ("minY", min_y)):
            if value < self.min_coordinate:
                raise ValueError(
                    f"tile {tile_id} {name} {value} is less than {self.min_coordinate}"
                )
        for name, value in (("maxX", max_x), ("maxY", max_y)):
            if value > self.max_coordinate:
                raise ValueError(
                    f"tile {tile_id} {name} {value} is greater than {self.max_coordinate}"
                )

        for name, value in (("width", tile_spec.width), ("height", tile_spec.height)):
            if value is None or not (self.min_size <= value <= self.max_size):
                raise ValueError(
                    f"tile {tile_id} {name} {value} is outside "
                    f"[{self.min_size}, {self.max_size}]"
                )

    def __repr__(self):
        return (f"TemTileSpecValidator(coordinates=[{self.min_coordinate}, {self.max_coordinate}], "
                f"size=[{self.min_size}, {self.max_size}])")


def build_validator(config) -> Optional[TileSpecValidator]:
    """Create the validator selected by ``config.reconcile.validator``."""
    settings = config.reconcile
    if settings.validator == "none":
        return None
    return TemTileSpecValidator(
        min_coordinate=settings.min_coordinate,
        max_coordinate=settings.max_coordinate,
        min_size=settings.min_tile_size,
        max_size=settings.max_tile_size,
    )
