import gzip

import pandas as pd
import pytest

from seg_stitch import InputTableError, read_segmentation, write_table


def test_read_segmentation_keeps_available_columns_as_strings(tmp_path):
    path = tmp_path / "fov1.csv"
    path.write_text(
        "x,y,transcript_id,cell,gene,extra\n"
        "1.10,2.0,1001,CRa-1,Actb,zz\n"
        "3.5,4.0,1002,,NA,zz\n"
        "5.0,6.0,1003,NA,Gapdh,zz\n",
        encoding="utf-8",
    )
    df = read_segmentation(path, additional_columns=["gene", "x", "z"])
    assert df.columns.tolist() == ["transcript_id", "cell", "gene", "x"]
    assert df["transcript_id"].tolist() == ["1001", "1002", "1003"]
    assert df["x"].tolist()[0] == "1.10"
    assert pd.isna(df.loc[1, "cell"])
    # only empty fields are null
    assert df.loc[2, "cell"] == "NA"
    assert df.loc[1, "gene"] == "NA"


def test_read_segmentation_tsv(tmp_path):
    path = tmp_path / "fov1.tsv"
    path.write_text("transcript_id\tcell\nt1\tc1\nt2\t\n", encoding="utf-8")
    df = read_segmentation(path)
    assert df["cell"].tolist()[0] == "c1"
    assert pd.isna(df["cell"].iloc[1])


def test_missing_required_column_names_file(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("transcript_id,gene\nt1,Actb\n", encoding="utf-8")
    with pytest.raises(InputTableError, match="missing required columns") as info:
        read_segmentation(path)
    assert info.value.path == path
    assert "bad.csv" in str(info.value)


def test_missing_and_empty_files(tmp_path):
    with pytest.raises(InputTableError, match="not found"):
        read_segmentation(tmp_path / "nope.csv")
    empty = tmp_path / "empty.csv"
    empty.write_text("", encoding="utf-8")
    with pytest.raises(InputTableError, match="empty"):
        read_segmentation(empty)


def test_duplicate_transcript_reports_line(tmp_path):
    path = tmp_path / "dup.csv"
    path.write_text("transcript_id,cell\nt1,c1\nt2,c1\nt1,c2\n", encoding="utf-8")
    with pytest.raises(InputTableError, match="line 4: duplicate transcript_id 't1'"):
        read_segmentation(path)


def test_empty_transcript_id_reports_line(tmp_path):
    path = tmp_path / "noid.csv"
    path.write_text("transcript_id,cell\nt1,c1\n,c1\n", encoding="utf-8")
    with pytest.raises(InputTableError, match="line 3"):
        read_segmentation(path)


def test_malformed_table(tmp_path):
    path = tmp_path / "broken.csv"
    path.write_text('transcript_id,cell\nt1,"c1\nt2,c2\n', encoding="utf-8")
    with pytest.raises(InputTableError, match="malformed"):
        read_segmentation(path)


def test_write_table_replaces_target_and_leaves_no_temp(tmp_path):
    out = tmp_path / "out.csv"
    out.write_text("old\n", encoding="utf-8")
    df = pd.DataFrame({"transcript_id": ["t1", "t2"], "cell": ["c1", None]})
    write_table(df, out)
    assert out.read_text(encoding="utf-8").splitlines() == ["transcript_id,cell", "t1,c1", "t2,"]
    assert [p.name for p in tmp_path.iterdir()] == ["out.csv"]


def test_non_utf8_input_names_file(tmp_path):
    path = tmp_path / "latin1.csv"
    path.write_bytes(b"transcript_id,cell,gene\nt1,c1,Actb\nt2,c2,caf\xe9\xff\n")
    with pytest.raises(InputTableError, match="not valid UTF-8") as info:
        read_segmentation(path, additional_columns=["gene"])
    assert info.value.path == path
    assert "latin1.csv" in str(info.value)


def test_read_segmentation_tsv_gz(tmp_path):
    path = tmp_path / "fov1.tsv.gz"
    with gzip.open(path, "wt", encoding="utf-8") as handle:
        handle.write("transcript_id\tcell\tgene\nt1\tc1\tActb\nt2\t\tGapdh\n")
    df = read_segmentation(path, additional_columns=["gene"])
    assert df.columns.tolist() == ["transcript_id", "cell", "gene"]
    assert df["gene"].tolist() == ["Actb", "Gapdh"]
    assert pd.isna(df.loc[1, "cell"])


def test_write_table_tsv(tmp_path):
    out = tmp_path / "out.tsv"
    df = pd.DataFrame({"transcript_id": ["t1", "t2"], "cell": ["c1", None]})
    write_table(df, out)
    assert out.read_text(encoding="utf-8").splitlines() == ["transcript_id\tcell", "t1\tc1", "t2\t"]


def test_write_table_compressed_output_reads_back(tmp_path):
    out = tmp_path / "out.csv.gz"
    df = pd.DataFrame({"transcript_id": ["t1", "t2"], "cell": ["c1", None]})
    write_table(df, out)
    assert out.read_bytes()[:2] == b"\x1f\x8b"
    back = read_segmentation(out)
    assert back["transcript_id"].tolist() == ["t1", "t2"]
    assert back.loc[0, "cell"] == "c1"
    assert pd.isna(back.loc[1, "cell"])
    assert [p.name for p in tmp_path.iterdir()] == ["out.csv.gz"]
