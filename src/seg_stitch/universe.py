"""Transcript universe across all inputs, with auxiliary attribute columns."""

from __future__ import annotations

from typing import List, Sequence

import pandas as pd


def build_universe(
    tables: Sequence[pd.DataFrame],
    columns: Sequence[str],
    *,
    transcript_col: str = "transcript_id",
    cell_col: str = "cell",
) -> pd.DataFrame:
    """Every distinct transcript with its attributes, first-seen input wins.

    Inputs lacking some of `columns` contribute nulls for them; a column missing
    from every input is still returned (all null).
    """
    wanted: List[str] = [transcript_col] + [
        c for c in dict.fromkeys(columns) if c not in {transcript_col, cell_col}
    ]
    frames = [t.loc[:, [c for c in wanted if c in t.columns]] for t in tables]
    if frames:
        universe = pd.concat(frames, ignore_index=True, sort=False).reindex(columns=wanted)
    else:
        universe = pd.DataFrame(columns=wanted)
    return universe.drop_duplicates(subset=transcript_col, keep="first").reset_index(drop=True)


def attach_cells(
    universe: pd.DataFrame,
    assignments: pd.DataFrame,
    *,
    transcript_col: str = "transcript_id",
    cell_col: str = "cell",
) -> pd.DataFrame:
    """Left-join resolved cells onto the universe; unassigned transcripts keep a null cell."""
    out = universe.merge(assignments.loc[:, [transcript_col, cell_col]], how="left", on=transcript_col)
    extras = [c for c in universe.columns if c != transcript_col]
    return out.loc[:, [transcript_col, cell_col, *extras]]


__all__ = ["build_universe", "attach_cells"]
