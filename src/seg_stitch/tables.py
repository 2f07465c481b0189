"""Reading segmentation tables and writing stitched output."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Sequence, Union

import pandas as pd


PathLike = Union[str, Path]


class InputTableError(ValueError):
    """An input table could not be read or does not have the expected shape."""

    def __init__(self, path: PathLike, message: str):
        self.path = Path(path)
        super().__init__(f"{self.path}: {message}")


def infer_separator(path: PathLike) -> str:
    suffixes = [s.lower() for s in Path(path).suffixes]
    return "\t" if ".tsv" in suffixes else ","


def read_segmentation(
    path: PathLike,
    *,
    transcript_col: str = "transcript_id",
    cell_col: str = "cell",
    additional_columns: Sequence[str] = (),
) -> pd.DataFrame:
    """Load one segmentation result (e.g. Baysor `segmentation.csv`).

    Returns `transcript_col`, `cell_col` and whichever of `additional_columns` the
    file provides, in that order. Values are kept as strings; only empty fields are
    read as null so identifiers like "NA" survive.
    """
    path = Path(path)
    if not path.exists():
        raise InputTableError(path, "file not found")
    sep = infer_separator(path)

    try:
        header = pd.read_csv(path, sep=sep, nrows=0)
    except pd.errors.EmptyDataError as exc:
        raise InputTableError(path, "file is empty") from exc
    except pd.errors.ParserError as exc:
        raise InputTableError(path, f"malformed table: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise InputTableError(path, f"not valid UTF-8: {exc}") from exc

    missing = [c for c in (transcript_col, cell_col) if c not in header.columns]
    if missing:
        raise InputTableError(path, f"missing required columns {missing}")
    extras = [
        c for c in dict.fromkeys(additional_columns)
        if c in header.columns and c not in {transcript_col, cell_col}
    ]
    usecols: List[str] = [transcript_col, cell_col, *extras]

    try:
        df = pd.read_csv(
            path,
            sep=sep,
            usecols=usecols,
            dtype=str,
            keep_default_na=False,
            na_values=[""],
        )
    except pd.errors.ParserError as exc:
        raise InputTableError(path, f"malformed table: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise InputTableError(path, f"not valid UTF-8: {exc}") from exc
    df = df.loc[:, usecols]

    # Line numbers below count the header as line 1.
    no_id = df[transcript_col].isna()
    if no_id.any():
        line = int(df.index[no_id.to_numpy()][0]) + 2
        raise InputTableError(path, f"line {line}: empty {transcript_col}")
    dup = df[transcript_col].duplicated()
    if dup.any():
        idx = int(df.index[dup.to_numpy()][0])
        raise InputTableError(
            path,
            f"line {idx + 2}: duplicate {transcript_col} {df.at[idx, transcript_col]!r}; "
            "each transcript may be assigned at most once per input",
        )
    return df


def write_table(df: pd.DataFrame, path: PathLike) -> Path:
    """Write `df` to `path` (CSV, or TSV for a .tsv suffix) without leaving partial files."""
    path = Path(path)
    # keep the real suffixes last so pandas infers compression (e.g. .csv.gz)
    tmp = path.with_name(f".tmp.{path.name}")
    try:
        df.to_csv(tmp, sep=infer_separator(path), index=False)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
    os.replace(tmp, path)
    return path


__all__ = ["InputTableError", "infer_separator", "read_segmentation", "write_table"]
