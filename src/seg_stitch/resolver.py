"""Decide which cells are new and which cell pairs merge, from pairwise IOU scores."""

from __future__ import annotations

import pandas as pd


RANK_METHODS = ("min", "max")


def rank_descending(scores: pd.DataFrame, by: str, *, method: str = "min", score_col: str = "iou") -> pd.Series:
    """Rank `score_col` from best (1) to worst within each `by` partition.

    `method="min"` gives tied rows the best rank of the tie, so every row tied for
    the top score ranks 1. `method="max"` gives them the worst rank of the tie, so
    a tie at the top never ranks 1. NaN scores are left unranked.
    """
    if method not in RANK_METHODS:
        raise ValueError(f"Unsupported rank method {method!r}; expected one of {RANK_METHODS}")
    return scores.groupby(by, sort=False)[score_col].rank(method=method, ascending=False)


def find_new_cells(scores: pd.DataFrame, *, method: str = "min") -> pd.DataFrame:
    """B-cells whose best overlap is with the null A-cell.

    Such a cell has no counterpart in layer A. Returns columns cell_b, iou.
    """
    cand = scores.loc[scores["cell_b"].notna(), ["cell_a", "cell_b", "iou"]].copy()
    cand["rank_b"] = rank_descending(cand, "cell_b", method=method)
    new = cand[(cand["rank_b"] == 1) & cand["cell_a"].isna()]
    return new.loc[:, ["cell_b", "iou"]].reset_index(drop=True)


def find_merge_pairs(scores: pd.DataFrame, threshold: float, *, method: str = "min") -> pd.DataFrame:
    """Mutual best matches with IOU at or above `threshold`.

    A pair is kept only if it ranks 1 among the candidates of its A-cell and among
    the candidates of its B-cell. Rows with a null cell never merge.
    Returns columns cell_a, cell_b, iou sorted by (cell_b, cell_a).
    """
    keep = scores["cell_a"].notna() & scores["cell_b"].notna() & (scores["iou"] >= threshold)
    cand = scores.loc[keep, ["cell_a", "cell_b", "iou"]].copy()
    cand["rank_a"] = rank_descending(cand, "cell_a", method=method)
    cand["rank_b"] = rank_descending(cand, "cell_b", method=method)
    pairs = cand[(cand["rank_a"] == 1) & (cand["rank_b"] == 1)]
    return pairs.loc[:, ["cell_a", "cell_b", "iou"]].sort_values(["cell_b", "cell_a"]).reset_index(drop=True)


__all__ = ["RANK_METHODS", "rank_descending", "find_new_cells", "find_merge_pairs"]
