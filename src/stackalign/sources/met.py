"""MET transform file parsing.

A MET file is whitespace-delimited text with one tile record per line and
no header. Two layouts are supported:

v1 (affine)::

    section  tileId              ?  m00  m01  m02  m10  m11  m12  ...
    5100     140731162138009113  1  0.992264  0.226714  27606.648556  -0.085614  0.712238  38075.232380  9  113  0  ...

  The six affine values are stored row-major; the affine model wants them
  column-major, so fields are taken in the order 3, 6, 4, 7, 5, 8.

v2 (second order polynomial)::

    section  tileId  ?  a0 .. a5 (x)  b0 .. b5 (y)  ...

  Twelve polynomial coefficients at fields 3..14, in natural order.

Short lines are skipped with a warning. Everything else that is wrong with
the input is fatal.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Tuple, Union

from stackalign.contracts.base import require
from stackalign.contracts.failure import (
    DuplicateTileError,
    EmptyInputError,
    MalformedTransformError,
)
from stackalign.tiles.batch import SectionAlignmentBatch, canonical_z
from stackalign.transforms.models import AffineModel2D, PolynomialTransform2D
from stackalign.transforms.spec import LeafTransformSpec

__all__ = ['MetFormat', 'MET_FORMATS', 'MetRecord', 'MetRecordParser']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetFormat:
    """Field layout of one MET format version."""
    version: str
    parameter_indexes: Tuple[int, ...]
    min_fields: int
    model_class: type


MET_FORMATS = {
    "v1": MetFormat("v1", (3, 6, 4, 7, 5, 8), 9, AffineModel2D),
    "v2": MetFormat("v2", tuple(range(3, 15)), 15, PolynomialTransform2D),
}


@dataclass(frozen=True)
class MetRecord:
    """One decoded MET line."""
    line_number: int
    section_id: str
    tile_id: str
    transform_spec: LeafTransformSpec


class MetRecordParser:
    """Decode MET files into per-z alignment batches.

    Parameters
    ----------
    client : StackClient
        Used to resolve each new section to a z value.
    acquire_stack : str
        Stack whose current tile records define the section z values.
    format_version : str, optional
        "v1" (default) or "v2".
    z_decimals : int, optional
        Decimal places used to canonicalize z keys.

    Notes
    -----
    z values come from the acquire stack's current tile record, never from
    the MET file. The section -> z cache lives as long as the parser.
    """

    def __init__(self, client, acquire_stack: str, format_version: str = "v1",
                 z_decimals: int = 6):
        if format_version not in MET_FORMATS:
            raise ValueError(
                f"unknown MET format version '{format_version}', expected one of {sorted(MET_FORMATS)}"
            )
        self.client = client
        self.acquire_stack = acquire_stack
        self.format = MET_FORMATS[format_version]
        self.z_decimals = z_decimals
        self.section_to_z: Dict[str, float] = {}

    def iter_records(self, lines: Iterable[str], source: str = "<stream>") -> Iterator[MetRecord]:
        """Decode lines without touching the stack client.

        Raises
        ------
        MalformedTransformError
            If the selected fields are not a valid parameter string for the model.
        """
        fmt = self.format
        model_class_name = fmt.model_class.CLASS_NAME

        for line_number, line in enumerate(lines, start=1):
            words = line.split()
            if not words:
                continue
            if len(words) < fmt.min_fields:
                logger.warning("skipping line %d of %s because it only contains %d words",
                               line_number, source, len(words))
                continue

            data_string = " ".join(words[i] for i in fmt.parameter_indexes)
            try:
                fmt.model_class.from_data_string(data_string)
            except ValueError as exc:
                raise MalformedTransformError(
                    f"Failed to parse transform data from line {line_number} of MET file {source}. "
                    f"Invalid data string is '{data_string}'."
                ) from exc

            yield MetRecord(
                line_number=line_number,
                section_id=words[0],
                tile_id=words[1],
                transform_spec=LeafTransformSpec(className=model_class_name, dataString=data_string),
            )

    def resolve_section_z(self, section_id: str, tile_id: str) -> float:
        """Map a section to its canonical z using one of its tiles."""
        if section_id not in self.section_to_z:
            tile_spec = self.client.get_tile(self.acquire_stack, tile_id)
            z = canonical_z(tile_spec.z, self.z_decimals)
            logger.info("mapped section %s to z value %s", section_id, z)
            self.section_to_z[section_id] = z
        return self.section_to_z[section_id]

    def parse_lines(self, lines: Iterable[str], source: str = "<stream>") -> List[SectionAlignmentBatch]:
        """Group every record of one input into batches, ordered by z.

        Raises
        ------
        DuplicateTileError
            If a tile id appears twice in the input.
        EmptyInputError
            If no records were found.
        """
        logger.info("parse_lines: entry, formatVersion=%s, modelClassName=%s, source=%s",
                    self.format.version, self.format.model_class.CLASS_NAME, source)

        batches: Dict[float, SectionAlignmentBatch] = {}
        tile_id_to_line: Dict[str, int] = {}

        for record in self.iter_records(lines, source):
            first_line = tile_id_to_line.get(record.tile_id)
            require(
                first_line is None,
                f"Tile ID {record.tile_id} is listed more than once in MET file {source}. "
                f"The first reference was found at line {first_line}, "
                f"the second reference at line {record.line_number}.",
                DuplicateTileError,
            )
            tile_id_to_line[record.tile_id] = record.line_number

            z = self.resolve_section_z(record.section_id, record.tile_id)
            batch = batches.get(z)
            if batch is None:
                batch = SectionAlignmentBatch(source, z)
                batches[z] = batch
            batch.add_tile(record.tile_id, record.transform_spec, line_number=record.line_number)

        require(len(batches) > 0, f"No tile information found in MET file {source}.", EmptyInputError)

        ordered = [batches[z] for z in sorted(batches)]
        logger.info("parse_lines: exit, loaded %d tiles for %s",
                    len(tile_id_to_line), ordered)
        return ordered

    def parse_file(self, path: Union[str, Path]) -> List[SectionAlignmentBatch]:
        path = Path(path).absolute()
        with open(path, "r") as f:
            return self.parse_lines(f, str(path))
