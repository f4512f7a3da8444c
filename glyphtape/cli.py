from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterable, List

from glyphtape.bitmap import BitmapIndex
from glyphtape.container import pack_text, unpack_text
from glyphtape.fgt import FGTConfig, render_fgt, train_fgt
from glyphtape.geometry import Point, address_to_point, point_to_address
from glyphtape.glyphs import GlyphEntry, GlyphSession, TrainOptions, dictionary_from_json, train_layered
from glyphtape.store import QueryOptions, TapeStore, ingest_documents, query_store
from glyphtape.trace import JSONLTracer

DOCUMENT_SUFFIXES = (".txt", ".md")


def _read_source(path: str) -> str:
    """Load text from a file path or stdin.

    Passing ``-`` reads from stdin to support piping text into the CLI.
    """

    if path == "-":
        return sys.stdin.read()

    target = Path(path)
    if not target.exists():
        raise FileNotFoundError(path)
    return target.read_text(encoding="utf-8")


def _collect_documents(inputs: Iterable[str]) -> List[str]:
    """Expand directories into their ``.txt``/``.md`` files, sorted by path."""

    docs: List[str] = []
    for item in inputs:
        target = Path(item)
        if target.is_dir():
            files = sorted(p for p in target.rglob("*") if p.is_file() and p.suffix in DOCUMENT_SUFFIXES)
            docs.extend(p.read_text(encoding="utf-8") for p in files)
        else:
            docs.append(_read_source(item))
    return docs


def _load_glyphs(path: str | None) -> List[GlyphEntry]:
    if path is None:
        return []
    target = Path(path)
    if not target.exists():
        raise FileNotFoundError(path)
    return dictionary_from_json(target.read_text(encoding="utf-8"))


def _write_output(destination: str, payload: str) -> None:
    target = Path(destination)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(payload, encoding="utf-8")


def _cmd_train(args: argparse.Namespace) -> dict:
    text = "\n".join(_collect_documents(args.inputs))
    options = TrainOptions(
        top=args.top,
        n_min=args.nmin,
        n_max=args.nmax,
        prefix=args.prefix,
        levels=args.levels,
        seed=args.seed,
    )
    session = train_layered(text, args.layers, options)
    _write_output(args.output, session.export_json())
    return {
        "glyphs": len(session.entries),
        "layers": session.layer_depth,
        "output": args.output,
    }


def _cmd_encode(args: argparse.Namespace) -> str:
    session = GlyphSession.from_entries(_load_glyphs(args.glyphs))
    return " ".join(session.encode_text(_read_source(args.input)))


def _cmd_decode(args: argparse.Namespace) -> str:
    session = GlyphSession.from_entries(_load_glyphs(args.glyphs))
    return " ".join(session.decode_tokens(_read_source(args.input).split()))


def _cmd_pack(args: argparse.Namespace) -> dict:
    data = pack_text(_read_source(args.input), _load_glyphs(args.glyphs))
    target = Path(args.output)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    return {"output": args.output, "bytes": len(data)}


def _cmd_unpack(args: argparse.Namespace) -> str:
    target = Path(args.input)
    if not target.exists():
        raise FileNotFoundError(args.input)
    return " ".join(unpack_text(target.read_bytes()))


def _cmd_fgt(args: argparse.Namespace) -> dict:
    config = FGTConfig(
        top_k=args.top_k,
        n_min=args.nmin,
        n_max=args.nmax,
        max_iterations=args.max_iterations,
        lam=args.lam,
        min_gain=args.min_gain,
        min_freq=args.min_freq,
    )
    text = _read_source(args.input)

    sink = open(args.trace_jsonl, "w", encoding="utf-8") if args.trace_jsonl else None
    tracer = JSONLTracer(sink) if sink is not None else None
    try:
        result = train_fgt(text, config, hooks=[tracer] if tracer is not None else [])
    finally:
        if sink is not None:
            sink.close()

    if args.output:
        _write_output(args.output, render_fgt(result))
    summary = {"input": args.input, "output": args.output, **result.summary()}
    if tracer is not None:
        summary["trace_events"] = tracer.written
    return summary


def _cmd_ingest(args: argparse.Namespace) -> dict:
    docs = _collect_documents(args.inputs)
    with TapeStore(args.db) as store:
        stats = ingest_documents(docs, store, _load_glyphs(args.glyphs), batch_size=args.batch_size)
    return {"db": args.db, **stats.to_dict()}


def _cmd_query(args: argparse.Namespace) -> dict:
    options = QueryOptions(
        mode=args.mode,
        window=args.window,
        min_span=args.min_span,
        max_gap=args.max_gap,
        limit=args.limit,
    )
    with TapeStore(args.db) as store:
        entries = _load_glyphs(args.glyphs) if args.glyphs else store.glyph_entries()
        result = query_store(store, args.text, entries, options)
    return result.to_dict()


def _cmd_bitmap(args: argparse.Namespace) -> dict:
    with TapeStore(args.db) as store:
        index = BitmapIndex.from_store(store)
    summary: dict = {"db": args.db, **index.stats().to_dict()}
    if args.tokens:
        docs = index.intersect(args.tokens) if args.mode == "intersection" else index.union(args.tokens)
        summary.update({"tokens": args.tokens, "mode": args.mode, "docs": docs})
    return summary


def _cmd_point(args: argparse.Namespace) -> dict:
    return {"address": args.address, **address_to_point(args.address).to_dict()}


def _cmd_address(args: argparse.Namespace) -> dict:
    return {"x": args.x, "y": args.y, "address": point_to_address(Point(args.x, args.y), args.depth)}


def _add_mode_flags(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--and", "--intersection", dest="mode", action="store_const", const="intersection")
    group.add_argument("--or", "--union", dest="mode", action="store_const", const="union")
    parser.set_defaults(mode="union")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="glyphtape", description="Glyph compression and fractal tape addressing.")
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging threshold for library diagnostics on stderr",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    train = commands.add_parser("train", help="Train a (layered) glyph dictionary")
    train.add_argument("inputs", nargs="+", help="Files, folders of .txt/.md files, or - for stdin")
    train.add_argument("--output", default="glyphs.json", help="Where to write the glyph dictionary")
    train.add_argument("--top", type=int, default=512, help="Maximum glyphs per layer")
    train.add_argument("--nmin", type=int, default=2, help="Minimum n-gram size")
    train.add_argument("--nmax", type=int, default=5, help="Maximum n-gram size")
    train.add_argument("--prefix", default="~", help="Glyph prefix")
    train.add_argument("--levels", type=int, default=2, help="Glyph pool levels")
    train.add_argument("--seed", help="Seed for deterministic glyph assignment")
    train.add_argument("--layers", type=int, default=1, help="Number of stacked glyph layers")
    train.set_defaults(handler=_cmd_train)

    encode = commands.add_parser("encode", help="Encode text with a glyph dictionary")
    encode.add_argument("input", nargs="?", default="-", help="Text file or - for stdin")
    encode.add_argument("--glyphs", required=True, help="Glyph dictionary file")
    encode.set_defaults(handler=_cmd_encode)

    decode = commands.add_parser("decode", help="Decode an encoded token stream")
    decode.add_argument("input", nargs="?", default="-", help="Encoded file or - for stdin")
    decode.add_argument("--glyphs", required=True, help="Glyph dictionary file")
    decode.set_defaults(handler=_cmd_decode)

    pack = commands.add_parser("pack", help="Encode text and write an FTZ1 container")
    pack.add_argument("input", nargs="?", default="-", help="Text file or - for stdin")
    pack.add_argument("--glyphs", required=True, help="Glyph dictionary file")
    pack.add_argument("--output", required=True, help="Container path")
    pack.set_defaults(handler=_cmd_pack)

    unpack = commands.add_parser("unpack", help="Decode an FTZ1 container back to words")
    unpack.add_argument("input", help="Container path")
    unpack.set_defaults(handler=_cmd_unpack)

    fgt = commands.add_parser("fgt", help="Train a fractal grammar tape")
    fgt.add_argument("input", nargs="?", default="-", help="Text file or - for stdin")
    fgt.add_argument("--output", help="Write the DEF/STREAM text form here")
    fgt.add_argument("--trace-jsonl", dest="trace_jsonl", help="Write induction events to a JSONL file")
    fgt.add_argument("--top-k", dest="top_k", type=int, default=100, help="Mined candidates to consider")
    fgt.add_argument("--nmin", type=int, default=2, help="Minimum n-gram size")
    fgt.add_argument("--nmax", type=int, default=5, help="Maximum n-gram size")
    fgt.add_argument("--max-iterations", dest="max_iterations", type=int, default=50, help="Pair induction budget")
    fgt.add_argument("--lambda", dest="lam", type=float, default=1.0, help="Rule cost penalty")
    fgt.add_argument("--min-gain", dest="min_gain", type=float, default=1.0, help="Minimum phrase gain")
    fgt.add_argument("--min-freq", dest="min_freq", type=int, default=2, help="Minimum phrase frequency")
    fgt.set_defaults(handler=_cmd_fgt)

    ingest = commands.add_parser("ingest", help="Encode documents onto the SQLite tape")
    ingest.add_argument("inputs", nargs="+", help="Files or folders of .txt/.md files")
    ingest.add_argument("--db", default="tape.db", help="SQLite database path")
    ingest.add_argument("--glyphs", help="Glyph dictionary file")
    ingest.add_argument("--batch-size", dest="batch_size", type=int, default=1000, help="Rows per transaction")
    ingest.set_defaults(handler=_cmd_ingest)

    query = commands.add_parser("query", help="Look up text on the tape")
    query.add_argument("text", help="Query text")
    query.add_argument("--db", default="tape.db", help="SQLite database path")
    query.add_argument("--glyphs", help="Glyph dictionary file (defaults to the stored dictionary)")
    _add_mode_flags(query)
    query.add_argument("--window", type=int, default=0, help="Merge spans whose gap is at most k")
    query.add_argument("--min-span", dest="min_span", type=int, default=1, help="Minimum hits per span")
    query.add_argument("--max-gap", dest="max_gap", type=int, default=0, help="Maximum gap inside a span")
    query.add_argument("--limit", type=int, default=50, help="Maximum hits to report")
    query.set_defaults(handler=_cmd_query)

    bitmap = commands.add_parser("bitmap", help="Build a bitmap index and report on it")
    bitmap.add_argument("--db", default="tape.db", help="SQLite database path")
    bitmap.add_argument("--tokens", nargs="+", help="Tokens to look up")
    _add_mode_flags(bitmap)
    bitmap.set_defaults(handler=_cmd_bitmap)

    point = commands.add_parser("point", help="Map a base-3 address to its centroid")
    point.add_argument("address", help="Base-3 address")
    point.set_defaults(handler=_cmd_point)

    address = commands.add_parser("address", help="Map a point to its base-3 address")
    address.add_argument("x", type=float)
    address.add_argument("y", type=float)
    address.add_argument("--depth", type=int, required=True, help="Address depth")
    address.set_defaults(handler=_cmd_address)

    return parser


def run_cli(argv: Iterable[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    try:
        output = args.handler(args)
    except Exception as exc:  # pragma: no cover - defensive shell entry
        print(f"glyphtape: {exc}", file=sys.stderr)
        return 1

    if isinstance(output, str):
        print(output)
    else:
        print(json.dumps(output, indent=2))
    return 0


def main() -> int:  # pragma: no cover - thin wrapper
    return run_cli()


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
