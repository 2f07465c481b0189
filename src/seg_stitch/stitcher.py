"""
Stitch segmentation layers into a single transcript-to-cell assignment.

Two layers are fused by matching cells on transcript IOU: mutual best matches at
or above the threshold merge into the layer-A identity, B-cells that mostly cover
transcripts unassigned in A are carried over as new cells, and everything else
keeps its layer-A cell. Many layers are folded strictly left to right, so the
accumulated result is always layer A and the next input is layer B.

The fold is order-sensitive (only B-cells are tested for being new), so the
input order given by the caller is part of the result.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .overlap import outer_union, score_pairs
from .resolver import RANK_METHODS, find_merge_pairs, find_new_cells
from .tables import PathLike, read_segmentation
from .universe import attach_cells, build_universe


DEFAULT_ADDITIONAL_COLUMNS = ("x", "y", "z", "qv", "overlaps_nucleus", "gene")


@dataclass
class StitchConfig:
    """Configuration for IOU-based stitching."""

    # Minimum IOU for a mutual best match to merge two cells
    threshold: float = 0.2
    # Tie handling when ranking candidates: "min" | "max"
    rank_method: str = "min"
    # Schema
    transcript_col: str = "transcript_id"
    cell_col: str = "cell"
    additional_columns: List[str] = field(default_factory=lambda: list(DEFAULT_ADDITIONAL_COLUMNS))

    def validate(self) -> None:
        if not 0.0 <= float(self.threshold) <= 1.0:
            raise ValueError(f"threshold must lie in [0, 1], got {self.threshold!r}")
        if self.rank_method not in RANK_METHODS:
            raise ValueError(f"rank_method must be one of {RANK_METHODS}, got {self.rank_method!r}")
        if self.transcript_col == self.cell_col:
            raise ValueError("transcript_col and cell_col must differ")


@dataclass
class StitchResult:
    assignments: pd.DataFrame  # columns: transcript_id, cell
    steps: List[Dict[str, Any]]  # per pairwise step diagnostics
    meta: Dict[str, Any]


def _check_enough(n: int) -> None:
    if n < 2:
        raise ValueError("Not enough layers to merge. Please provide at least two.")


def _assignments(layer: pd.DataFrame, cfg: StitchConfig, idx: int) -> pd.DataFrame:
    missing = [c for c in (cfg.transcript_col, cfg.cell_col) if c not in layer.columns]
    if missing:
        raise ValueError(f"Layer {idx} missing columns: {missing}")
    out = layer.loc[:, [cfg.transcript_col, cfg.cell_col]]
    if out[cfg.transcript_col].duplicated().any():
        raise ValueError(f"Layer {idx} assigns some {cfg.transcript_col} more than once")
    return out


def resolve_identities(
    joined: pd.DataFrame,
    new_cells: pd.DataFrame,
    merge_pairs: pd.DataFrame,
    *,
    transcript_col: str = "transcript_id",
    cell_col: str = "cell",
) -> pd.DataFrame:
    """Assign one cell per transcript of a joined union.

    Precedence: merge survivor (the A-cell of an accepted pair) > new B-cell >
    the transcript's A-cell (possibly null).
    """
    # merge_pairs is sorted by (cell_b, cell_a); tied survivors resolve to the smallest A-cell
    survivor = merge_pairs.drop_duplicates("cell_b", keep="first").set_index("cell_b")["cell_a"]
    merged = joined["cell_b"].map(survivor)
    is_new = joined["cell_b"].isin(set(new_cells["cell_b"]))
    fallback = joined["cell_b"].where(is_new, joined["cell_a"])
    cell = merged.where(merged.notna(), fallback)
    return pd.DataFrame({transcript_col: joined[transcript_col].to_numpy(), cell_col: cell.to_numpy()})


def merge_layers(
    lhs: pd.DataFrame, rhs: pd.DataFrame, config: Optional[StitchConfig] = None
) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    """Fuse two assignment tables; returns the fused table and step diagnostics."""
    cfg = config or StitchConfig()
    joined = outer_union(lhs, rhs, transcript_col=cfg.transcript_col, cell_col=cfg.cell_col)
    scores = score_pairs(joined)
    new_cells = find_new_cells(scores, method=cfg.rank_method)
    merge_pairs = find_merge_pairs(scores, cfg.threshold, method=cfg.rank_method)
    fused = resolve_identities(
        joined, new_cells, merge_pairs, transcript_col=cfg.transcript_col, cell_col=cfg.cell_col
    )

    cells_b = set(joined["cell_b"].dropna())
    resolved_b = set(new_cells["cell_b"]) | set(merge_pairs["cell_b"])
    both = scores["cell_a"].notna() & scores["cell_b"].notna()
    diag: Dict[str, Any] = {
        "n_transcripts": int(len(fused)),
        "n_cells_a": int(joined["cell_a"].dropna().nunique()),
        "n_cells_b": int(len(cells_b)),
        "n_candidate_pairs": int(both.sum()),
        "n_merged_pairs": int(len(merge_pairs)),
        "n_new_cells": int(len(new_cells)),
        # B-cells neither merged nor new; their transcripts keep the layer-A cell
        "n_fallback_cells": int(len(cells_b - resolved_b)),
        "n_unassigned": int(fused[cfg.cell_col].isna().sum()),
    }
    return fused, diag


def stitch_layers(layers: Sequence[pd.DataFrame], config: Optional[StitchConfig] = None) -> StitchResult:
    """Fold all layers left to right into one assignment table."""
    cfg = config or StitchConfig()
    cfg.validate()
    layers = list(layers)
    _check_enough(len(layers))

    acc = _assignments(layers[0], cfg, 0)
    steps: List[Dict[str, Any]] = []
    for k in range(1, len(layers)):
        acc, diag = merge_layers(acc, _assignments(layers[k], cfg, k), cfg)
        diag["step"] = k
        steps.append(diag)

    meta = {
        "n_layers": len(layers),
        "threshold": float(cfg.threshold),
        "rank_method": cfg.rank_method,
        "n_transcripts": int(len(acc)),
        "n_cells": int(acc[cfg.cell_col].dropna().nunique()),
    }
    return StitchResult(assignments=acc, steps=steps, meta=meta)


def read_layers(paths: Sequence[PathLike], config: Optional[StitchConfig] = None) -> List[pd.DataFrame]:
    """Load every input with its assignment and requested attribute columns."""
    cfg = config or StitchConfig()
    cfg.validate()
    _check_enough(len(paths))
    return [
        read_segmentation(
            p,
            transcript_col=cfg.transcript_col,
            cell_col=cfg.cell_col,
            additional_columns=cfg.additional_columns,
        )
        for p in paths
    ]


def annotate_layers(
    tables: Sequence[pd.DataFrame], result: StitchResult, config: Optional[StitchConfig] = None
) -> pd.DataFrame:
    """One row per distinct transcript: its resolved cell plus the requested attributes."""
    cfg = config or StitchConfig()
    universe = build_universe(
        tables, cfg.additional_columns, transcript_col=cfg.transcript_col, cell_col=cfg.cell_col
    )
    return attach_cells(universe, result.assignments, transcript_col=cfg.transcript_col, cell_col=cfg.cell_col)


def stitch_files(
    paths: Sequence[PathLike], config: Optional[StitchConfig] = None
) -> Tuple[pd.DataFrame, StitchResult]:
    """Read, stitch and annotate segmentation files.

    Returns the output table (transcript_id, cell, additional columns; one row per
    distinct transcript) and the stitching result with its diagnostics.
    """
    cfg = config or StitchConfig()
    tables = read_layers(paths, cfg)
    result = stitch_layers(tables, cfg)
    out = annotate_layers(tables, result, cfg)
    result.meta["inputs"] = [str(p) for p in paths]
    result.meta["config"] = asdict(cfg)
    return out, result


__all__ = [
    "DEFAULT_ADDITIONAL_COLUMNS",
    "StitchConfig",
    "StitchResult",
    "resolve_identities",
    "merge_layers",
    "stitch_layers",
    "read_layers",
    "annotate_layers",
    "stitch_files",
]
