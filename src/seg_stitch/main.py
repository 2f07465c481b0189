# main.py

import json
from dataclasses import asdict
from pathlib import Path
from typing import Annotated, List, Optional

import typer

from . import __version__
from .stitcher import DEFAULT_ADDITIONAL_COLUMNS, StitchConfig, annotate_layers, read_layers, stitch_layers
from .tables import write_table

app = typer.Typer(add_completion=False)


def split_columns(values: Optional[List[str]]) -> List[str]:
    """Flatten repeated and comma-separated column options."""
    if values is None:
        return list(DEFAULT_ADDITIONAL_COLUMNS)
    cols: List[str] = []
    for value in values:
        cols.extend(c.strip() for c in value.split(",") if c.strip())
    return cols


def write_run_manifest(path: Path, payload: dict) -> Path:
    path = Path(path)
    path.write_text(json.dumps(payload, indent=2, default=str) + "\n", encoding="utf-8")
    return path


@app.command()
def stitch(
    files: Annotated[
        Optional[List[Path]],
        typer.Argument(
            help="Segmentation output files (e.g. Baysor). Each must include the columns transcript_id and cell.",
            show_default=False,
        ),
    ] = None,
    threshold: Annotated[
        float, typer.Option(help="Cells whose IOU is at least this value and that are mutual best matches are merged.")
    ] = 0.2,
    additional_columns: Annotated[
        Optional[List[str]],
        typer.Option(
            help="Columns copied into the output (repeat or comma-separate). Default: x, y, z, qv, overlaps_nucleus, gene.",
            show_default=False,
        ),
    ] = None,
    outfile: Annotated[Path, typer.Option(help="Output file.")] = Path("out.csv"),
    rank_method: Annotated[
        str, typer.Option(help="Tie handling for best matches: 'min' (ties share rank 1) or 'max'.")
    ] = "min",
    manifest: Annotated[
        bool, typer.Option(help="Also write <outfile>.run_manifest.json with run diagnostics.")
    ] = False,
):
    """
    Merge segmentation results from different runs (e.g. FOVs) into a single
    segmentation file by combining cells whose transcript IOU exceeds a threshold.
    """
    files = files or []
    if len(files) < 2:
        print("Error: Not enough files to merge. Please provide at least two files.")
        raise typer.Exit(code=1)

    cfg = StitchConfig(
        threshold=threshold,
        rank_method=rank_method,
        additional_columns=split_columns(additional_columns),
    )

    try:
        print("Read files")
        tables = read_layers(files, cfg)
        print("Merging files")
        result = stitch_layers(tables, cfg)
        for step in result.steps:
            print(
                f".. step {step['step']}: {step['n_merged_pairs']} merged, "
                f"{step['n_new_cells']} new, {step['n_fallback_cells']} unmatched cells"
            )
        out = annotate_layers(tables, result, cfg)
        n_assigned = int(out[cfg.cell_col].notna().sum())
        print(f"All done: {len(out)} transcripts, {n_assigned} assigned to {result.meta['n_cells']} cells")

        # manifest first; a failed table write removes it again
        manifest_path = None
        if manifest:
            payload = {
                "command": "stitch",
                "seg_stitch_version": __version__,
                "inputs": [str(p) for p in files],
                "outfile": str(outfile),
                "n_output_rows": int(len(out)),
                "n_assigned": n_assigned,
                **result.meta,
                "config": asdict(cfg),
                "steps": result.steps,
            }
            manifest_path = write_run_manifest(outfile.with_name(outfile.name + ".run_manifest.json"), payload)

        print(f'Saving to "{outfile}"')
        try:
            write_table(out, outfile)
        except Exception:
            if manifest_path is not None:
                manifest_path.unlink(missing_ok=True)
            raise
        if manifest_path is not None:
            print(f"wrote {manifest_path}")
    except Exception as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
