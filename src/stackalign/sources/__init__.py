"""Alignment sources: turn external alignment results into per-z batches.

- met: MET transform files (v1 affine, v2 polynomial)
- trakem2: TrakEM2 XML projects (stage + alignment folded into one affine)
"""

from stackalign.sources.met import MET_FORMATS, MetRecordParser
from stackalign.sources.trakem2 import (
    TrakProjectReader,
    TrakTransformFlattener,
    concatenate_stage_and_alignment,
    flatten,
)

__all__ = [
    "MET_FORMATS",
    "MetRecordParser",
    "TrakProjectReader",
    "TrakTransformFlattener",
    "concatenate_stage_and_alignment",
    "flatten",
]
