"""
Transcript-overlap scoring between two segmentation layers.

Cells from two layers are compared purely through the transcripts they share:
for every (cell_a, cell_b) combination present in the full outer join of the
layers we count shared transcripts and derive an intersection-over-union score,
as cellpose does when stitching masks.
"""

from __future__ import annotations

import numpy as np
import pandas as pd


TRANSCRIPT_COL = "transcript_id"
CELL_COL = "cell"


def outer_union(
    lhs: pd.DataFrame,
    rhs: pd.DataFrame,
    *,
    transcript_col: str = TRANSCRIPT_COL,
    cell_col: str = CELL_COL,
) -> pd.DataFrame:
    """Full outer join of two assignment tables on the transcript id.

    Returns columns `transcript_id`, `cell_a`, `cell_b`. A transcript seen in only
    one layer carries a null cell for the other.
    """
    a = lhs.loc[:, [transcript_col, cell_col]].rename(columns={cell_col: "cell_a"})
    b = rhs.loc[:, [transcript_col, cell_col]].rename(columns={cell_col: "cell_b"})
    return a.merge(b, how="outer", on=transcript_col)


def score_pairs(joined: pd.DataFrame) -> pd.DataFrame:
    """IOU for every (cell_a, cell_b) combination in a joined union.

    Null cells are kept as group keys: the null A-cell collects every transcript
    that only layer B assigned, and vice versa.
    """
    tally = (
        joined.groupby(["cell_a", "cell_b"], dropna=False, sort=False)
        .size()
        .rename("shared_count")
        .reset_index()
    )
    total_a = (
        tally.groupby("cell_a", dropna=False, sort=False)["shared_count"]
        .sum()
        .rename("total_a")
        .reset_index()
    )
    total_b = (
        tally.groupby("cell_b", dropna=False, sort=False)["shared_count"]
        .sum()
        .rename("total_b")
        .reset_index()
    )
    scores = tally.merge(total_a, how="left", on="cell_a").merge(total_b, how="left", on="cell_b")

    # IOU = (transcripts in A and B) / (transcripts in A + transcripts in B - transcripts in A and B)
    shared = scores["shared_count"].to_numpy(dtype=float)
    denom = scores["total_a"].to_numpy(dtype=float) + scores["total_b"].to_numpy(dtype=float) - shared
    iou = np.full(shared.shape, np.nan, dtype=float)
    np.divide(shared, denom, out=iou, where=denom > 0)
    scores["iou"] = iou
    return scores


def pair_scores(
    lhs: pd.DataFrame,
    rhs: pd.DataFrame,
    *,
    transcript_col: str = TRANSCRIPT_COL,
    cell_col: str = CELL_COL,
) -> pd.DataFrame:
    """Score every cell pairing between two assignment tables.

    Returns columns: cell_a, cell_b, shared_count, total_a, total_b, iou.
    """
    joined = outer_union(lhs, rhs, transcript_col=transcript_col, cell_col=cell_col)
    return score_pairs(joined)


__all__ = ["TRANSCRIPT_COL", "CELL_COL", "outer_union", "score_pairs", "pair_scores"]
