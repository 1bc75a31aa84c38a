"""TrakEM2 project export source.

Reads patches from a TrakEM2 XML project and turns each visible patch's
full coordinate transform into a single alignment transform for its tile.

After a TrakEM2 montage a patch's flattened transform chain typically is::

    NonLinearCoordinateTransform   lens correction
    AffineModel2D                  lens correction
    TranslationModel2D             stage position
    AffineModel2D                  alignment (patch matrix)

Downstream tools expect one "last" transform per tile, so the stage
translation and the alignment affine are folded into a single affine that
replaces the last transform of the basis stack's tile spec.
"""

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from stackalign.contracts.base import require
from stackalign.contracts.failure import MalformedTransformError, UnexpectedTransformShapeError
from stackalign.tiles.batch import SectionAlignmentBatch, canonical_z
from stackalign.transforms.models import (
    AffineModel2D,
    CoordinateTransform,
    CoordinateTransformList,
    TranslationModel2D,
    concatenate,
    model_for_class_name,
)
from stackalign.transforms.spec import LeafTransformSpec

__all__ = [
    'TrakPatch',
    'TrakLayer',
    'TrakProjectReader',
    'TrakTransformFlattener',
    'flatten',
    'concatenate_stage_and_alignment',
    'section_id_for_title',
]

logger = logging.getLogger(__name__)

TILE_SECTION_ID_PATTERN = re.compile(r".*\.(\d+\.\d+)")

_MATRIX_PATTERN = re.compile(r"^\s*matrix\(([^)]*)\)\s*$")


@dataclass
class TrakPatch:
    """One visible patch: its tile id and full coordinate transform."""
    tile_id: str
    transform: CoordinateTransform


@dataclass
class TrakLayer:
    z: float
    patches: List[TrakPatch] = field(default_factory=list)


# ----------------------------------------------------------------------
# Transform chain helpers
# ----------------------------------------------------------------------

def flatten(transform: CoordinateTransform) -> List[CoordinateTransform]:
    """Depth-first, left-to-right list of the leaf transforms of a nested list."""
    if isinstance(transform, CoordinateTransformList):
        flattened = []
        for item in transform.transforms:
            flattened.extend(flatten(item))
        return flattened
    return [transform]


def concatenate_stage_and_alignment(tile_id: str,
                                    flattened: List[CoordinateTransform]) -> LeafTransformSpec:
    """Fold the stage translation into the alignment affine.

    Parameters
    ----------
    tile_id : str
        Tile the chain belongs to (for messages).
    flattened : list of CoordinateTransform
        Flattened chain; must end in ``[TranslationModel2D, AffineModel2D]``.

    Returns
    -------
    LeafTransformSpec
        Affine mapping every point the way applying the stage translation
        and then the alignment affine does.

    Raises
    ------
    UnexpectedTransformShapeError
        If the chain is shorter than two or its tail has the wrong classes.
    """
    require(
        len(flattened) >= 2,
        f"tile {tile_id} has {len(flattened)} transforms, "
        f"expected at least a stage and an alignment transform",
        UnexpectedTransformShapeError,
    )
    stage, alignment = flattened[-2], flattened[-1]
    require(
        isinstance(stage, TranslationModel2D),
        f"tile {tile_id} stage transform class is {type(stage).__name__}",
        UnexpectedTransformShapeError,
    )
    require(
        isinstance(alignment, AffineModel2D),
        f"tile {tile_id} alignment transform class is {type(alignment).__name__}",
        UnexpectedTransformShapeError,
    )
    return LeafTransformSpec.from_model(concatenate(alignment, stage))


def section_id_for_title(title: str) -> str:
    """Section id embedded in a patch title, e.g. ``150501185511004011.2429.3`` -> ``2429.3``.

    Raises
    ------
    ValueError
        If the title does not end in ``.<digits>.<digits>``.
    """
    m = TILE_SECTION_ID_PATTERN.fullmatch(title)
    if m is None:
        raise ValueError(f"cannot parse sectionId from patch title (tileId): {title}")
    return m.group(1)


# ----------------------------------------------------------------------
# XML project reader
# ----------------------------------------------------------------------

def _parse_matrix(value: str, tile_id: str) -> AffineModel2D:
    """``matrix(a,b,c,d,e,f)`` maps x' = a*x + c*y + e, y' = b*x + d*y + f."""
    m = _MATRIX_PATTERN.match(value or "")
    if m is None:
        raise ValueError(f"patch {tile_id} has invalid transform attribute '{value}'")
    try:
        a, b, c, d, e, f = (float(v) for v in m.group(1).split(","))
    except ValueError as exc:
        raise ValueError(f"patch {tile_id} has invalid transform attribute '{value}'") from exc
    return AffineModel2D(m00=a, m10=b, m01=c, m11=d, m02=e, m12=f)


def _parse_coordinate_transform(element: ET.Element) -> CoordinateTransform:
    if element.tag == "ict_transform_list":
        return CoordinateTransformList(
            [_parse_coordinate_transform(child) for child in element
             if child.tag in ("ict_transform", "ict_transform_list")]
        )
    class_name = element.get("class", "")
    data = element.get("data", "")
    try:
        return model_for_class_name(class_name).from_data_string(data)
    except ValueError as exc:
        raise MalformedTransformError(f"invalid data string '{data}' for {class_name}") from exc


def _is_visible(element: ET.Element) -> bool:
    return element.get("visible", "true").strip().lower() != "false"


class TrakProjectReader:
    """Read layers and visible patches from a TrakEM2 XML project file.

    Parameters
    ----------
    path : str or Path
        TrakEM2 ``.xml`` project.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).absolute()

    def __repr__(self):
        return f"TrakProjectReader({self.path})"

    def read_layers(self, min_z: Optional[float] = None,
                    max_z: Optional[float] = None) -> List[TrakLayer]:
        """Layers with ``min_z <= z <= max_z`` in z order, visible patches only.

        Raises
        ------
        MalformedTransformError
            If the project is not well-formed XML.
        """
        try:
            root = ET.parse(self.path).getroot()
        except ET.ParseError as exc:
            raise MalformedTransformError(f"cannot parse TrakEM2 project {self.path}: {exc}") from exc

        layers = []
        for layer_element in root.iter("t2_layer"):
            z = float(layer_element.get("z", "0"))
            if min_z is not None and z < min_z:
                continue
            if max_z is not None and z > max_z:
                continue

            layer = TrakLayer(z=z)
            for patch_element in layer_element.iter("t2_patch"):
                if not _is_visible(patch_element):
                    continue
                layer.patches.append(self._read_patch(patch_element))
            layers.append(layer)

        layers.sort(key=lambda layer: layer.z)
        logger.info("read %d layers from %s", len(layers), self.path)
        return layers

    @staticmethod
    def _read_patch(element: ET.Element) -> TrakPatch:
        tile_id = element.get("title")
        if not tile_id:
            raise ValueError(f"patch {element.get('oid')} has no title")

        chain = [
            _parse_coordinate_transform(child) for child in element
            if child.tag in ("ict_transform", "ict_transform_list")
        ]
        chain.append(_parse_matrix(element.get("transform"), tile_id))
        return TrakPatch(tile_id=tile_id, transform=CoordinateTransformList(chain))


# ----------------------------------------------------------------------
# Batch building
# ----------------------------------------------------------------------

class TrakTransformFlattener:
    """Build per-basis-z alignment batches from TrakEM2 layers.

    Parameters
    ----------
    section_z : mapping
        Section id -> z in the basis stack (from the stack's section data).
    z_mapping : mapping, optional
        TrakEM2 layer z -> target z. When non-empty every exported tile gets
        a target z: the mapped value, or the layer z when it is not mapped.
    z_decimals : int, optional
        Decimal places used to canonicalize z keys.
    """

    def __init__(self, section_z: Mapping[str, float],
                 z_mapping: Optional[Mapping[float, float]] = None,
                 z_decimals: int = 6):
        self.z_decimals = z_decimals
        self.section_z = {section_id: canonical_z(z, z_decimals)
                          for section_id, z in section_z.items()}
        self.z_mapping = {canonical_z(k, z_decimals): canonical_z(v, z_decimals)
                          for k, v in (z_mapping or {}).items()}

    def target_z_for(self, layer_z: float) -> Optional[float]:
        if not self.z_mapping:
            return None
        key = canonical_z(layer_z, self.z_decimals)
        return self.z_mapping.get(key, key)

    def build_batches(self, layers: List[TrakLayer], source: str) -> List[SectionAlignmentBatch]:
        """One batch per basis z; layers without visible patches are skipped.

        Raises
        ------
        ValueError
            If a patch title carries no section id, or the section is not in
            the basis stack.
        UnexpectedTransformShapeError
            If a patch's transform chain does not end in stage + alignment.
        DuplicateTileError
            If a tile id appears twice for the same basis z.
        """
        batches: Dict[float, SectionAlignmentBatch] = {}

        for layer in layers:
            if not layer.patches:
                continue

            section_id = section_id_for_title(layer.patches[0].tile_id)
            if section_id not in self.section_z:
                raise ValueError(f"section {section_id} (layer z {layer.z}) is not in the basis stack")
            basis_z = self.section_z[section_id]

            batch = batches.get(basis_z)
            if batch is None:
                batch = SectionAlignmentBatch(source, basis_z)
                batches[basis_z] = batch

            target_z = self.target_z_for(layer.z)
            for patch in layer.patches:
                spec = concatenate_stage_and_alignment(patch.tile_id, flatten(patch.transform))
                batch.add_tile(patch.tile_id, spec, target_z=target_z)

            logger.info("build_batches: flattened %d patches for section %s (basis z %s)",
                        len(layer.patches), section_id, basis_z)

        return [batches[z] for z in sorted(batches)]
