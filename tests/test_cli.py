import json
import subprocess
import sys
from pathlib import Path

from glyphtape.tokenize import words

REPO_ROOT = Path(__file__).resolve().parents[1]
CORPUS = "the cat sat on the mat. the cat sat on the hat. the cat ran off the mat."


def _run(*args: str, check: bool = True) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "glyphtape.cli", *args],
        check=check,
        capture_output=True,
        text=True,
        cwd=REPO_ROOT,
    )


def _words(text: str) -> str:
    return " ".join(words(text))


def _train(tmp_path: Path) -> Path:
    corpus = tmp_path / "corpus.txt"
    corpus.write_text(CORPUS)
    glyphs = tmp_path / "glyphs.json"
    _run("train", str(corpus), "--output", str(glyphs), "--seed", "cli")
    return glyphs


def test_cli_train_writes_dictionary(tmp_path: Path):
    corpus = tmp_path / "corpus.txt"
    corpus.write_text(CORPUS)
    glyphs = tmp_path / "out" / "glyphs.json"

    result = _run("train", str(corpus), "--output", str(glyphs), "--seed", "cli", "--layers", "2")

    summary = json.loads(result.stdout)
    assert summary["glyphs"] > 0
    assert summary["layers"] == 2
    records = json.loads(glyphs.read_text())
    assert len(records) == summary["glyphs"]
    assert all(record["glyph"].startswith("~") for record in records)


def test_cli_encode_decode_round_trip(tmp_path: Path):
    glyphs = _train(tmp_path)
    source = tmp_path / "input.txt"
    source.write_text(CORPUS)

    encoded = _run("encode", str(source), "--glyphs", str(glyphs)).stdout.strip()
    assert len(encoded.split()) < len(_words(CORPUS).split())

    encoded_file = tmp_path / "encoded.txt"
    encoded_file.write_text(encoded)
    decoded = _run("decode", str(encoded_file), "--glyphs", str(glyphs)).stdout.strip()
    assert decoded == _words(CORPUS)


def test_cli_encode_reads_stdin(tmp_path: Path):
    glyphs = _train(tmp_path)

    result = subprocess.run(
        [sys.executable, "-m", "glyphtape.cli", "encode", "-", "--glyphs", str(glyphs)],
        input="the cat sat",
        check=True,
        capture_output=True,
        text=True,
        cwd=REPO_ROOT,
    )
    assert result.stdout.strip()


def test_cli_pack_unpack(tmp_path: Path):
    glyphs = _train(tmp_path)
    source = tmp_path / "input.txt"
    source.write_text(CORPUS)
    container = tmp_path / "tape.ftz"

    summary = json.loads(_run("pack", str(source), "--glyphs", str(glyphs), "--output", str(container)).stdout)
    assert summary["bytes"] == container.stat().st_size
    assert container.read_bytes()[:4] == b"FTZ1"

    assert _run("unpack", str(container)).stdout.strip() == _words(CORPUS)


def test_cli_fgt_writes_tape_and_trace(tmp_path: Path):
    source = tmp_path / "input.txt"
    source.write_text("alpha beta " * 6)
    tape = tmp_path / "tape.fgt"
    trace = tmp_path / "trace.jsonl"

    result = _run("fgt", str(source), "--output", str(tape), "--trace-jsonl", str(trace), "--top-k", "0")

    summary = json.loads(result.stdout)
    assert summary["rules_created"] == 1
    assert tape.read_text() == "DEF 0 -> [alpha beta] // alpha beta\nSTREAM:\n0 0 0 0 0 0"
    lines = trace.read_text().strip().splitlines()
    assert len(lines) == summary["trace_events"] == 1
    assert json.loads(lines[0])["phase"] == "repair"


def test_cli_ingest_query_bitmap(tmp_path: Path):
    glyphs = _train(tmp_path)
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "a.txt").write_text("the cat sat on the mat")
    (docs / "b.md").write_text("a dog ran off")
    (docs / "skip.csv").write_text("ignored words here")
    db = tmp_path / "tape.db"

    stats = json.loads(_run("ingest", str(docs), "--db", str(db), "--glyphs", str(glyphs)).stdout)
    assert stats["docs"] == 2
    assert stats["tokens_pre"] == 10

    result = json.loads(_run("query", "dog", "--db", str(db)).stdout)
    assert result["tokens"] == ["dog"]
    assert result["hits"] == 1
    assert result["docs"] == [1]

    bitmap = json.loads(_run("bitmap", "--db", str(db), "--tokens", "dog", "a", "--and").stdout)
    assert bitmap["total_docs"] == 2
    assert bitmap["docs"] == [1]


def test_cli_geometry_commands():
    point = json.loads(_run("point", "0").stdout)
    assert point["address"] == "0"
    assert abs(point["x"] - 0.25) < 1e-12

    address = json.loads(_run("address", str(point["x"]), str(point["y"]), "--depth", "1").stdout)
    assert address["address"] == "0"


def test_cli_reports_errors(tmp_path: Path):
    result = _run("decode", str(tmp_path / "missing.txt"), "--glyphs", str(tmp_path / "nope.json"), check=False)

    assert result.returncode == 1
    assert result.stderr.startswith("glyphtape:")

    bad = _run("point", "0123", check=False)
    assert bad.returncode == 1
