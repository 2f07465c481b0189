"""
seg_stitch: IOU-based stitching of cell segmentations (e.g. Baysor runs per FOV) into one labeling.
"""

__version__ = "0.1.0"

from .overlap import outer_union, pair_scores, score_pairs
from .resolver import find_merge_pairs, find_new_cells, rank_descending
from .stitcher import (
    StitchConfig,
    StitchResult,
    annotate_layers,
    merge_layers,
    read_layers,
    resolve_identities,
    stitch_files,
    stitch_layers,
)
from .tables import InputTableError, read_segmentation, write_table
from .universe import attach_cells, build_universe

__all__ = [
    "StitchConfig",
    "StitchResult",
    "stitch_layers",
    "stitch_files",
    "read_layers",
    "annotate_layers",
    "merge_layers",
    "resolve_identities",
    "pair_scores",
    "score_pairs",
    "outer_union",
    "find_new_cells",
    "find_merge_pairs",
    "rank_descending",
    "build_universe",
    "attach_cells",
    "read_segmentation",
    "write_table",
    "InputTableError",
    "__version__",
]
