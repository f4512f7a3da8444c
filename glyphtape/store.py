"""SQLite-backed tape storage plus ingestion and query over it."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from glyphtape.glyphs import GlyphEntry, GlyphSession
from glyphtape.path import AddressAllocator
from glyphtape.spans import AddressSpan, find_min_max_spans, merge_overlapping_spans
from glyphtape.tokenize import words

logger = logging.getLogger(__name__)

SNIPPET_RADIUS = 20
DEFAULT_POSTINGS_LIMIT = 1_000_000

_SCHEMA = """
CREATE TABLE IF NOT EXISTS tokens(addr INTEGER PRIMARY KEY, token TEXT);
CREATE TABLE IF NOT EXISTS postings(token TEXT, addr INTEGER);
CREATE INDEX IF NOT EXISTS idx_postings ON postings(token, addr);
CREATE TABLE IF NOT EXISTS doc_bounds(doc INTEGER PRIMARY KEY, start INTEGER, "end" INTEGER);
CREATE TABLE IF NOT EXISTS glyph_dict(glyph TEXT PRIMARY KEY, phrase TEXT, layer INTEGER NOT NULL DEFAULT 1, gain INTEGER);
"""


class TapeStore:
    """Append-only token tape with postings and per-document bounds.

    Document bounds are half-open: ``[start, end)``.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self._init_db()

    def _init_db(self) -> None:
        self.conn.executescript(_SCHEMA)
        self.conn.commit()

    def __enter__(self) -> "TapeStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.conn.close()

    def put_token(self, addr: int, token: str) -> None:
        self.conn.execute("INSERT OR REPLACE INTO tokens(addr, token) VALUES (?, ?)", (addr, token))
        self.conn.commit()

    def add_posting(self, token: str, addr: int) -> None:
        self.conn.execute("INSERT INTO postings(token, addr) VALUES (?, ?)", (token, addr))
        self.conn.commit()

    def add_doc_bounds(self, doc: int, start: int, end: int) -> None:
        self.conn.execute(
            'INSERT OR REPLACE INTO doc_bounds(doc, start, "end") VALUES (?, ?, ?)',
            (doc, start, end),
        )
        self.conn.commit()

    def batch_tokens(self, entries: Iterable[Tuple[int, str]]) -> None:
        with self.conn:
            self.conn.executemany("INSERT OR REPLACE INTO tokens(addr, token) VALUES (?, ?)", entries)

    def batch_postings(self, entries: Iterable[Tuple[str, int]]) -> None:
        with self.conn:
            self.conn.executemany("INSERT INTO postings(token, addr) VALUES (?, ?)", entries)

    def batch_glyphs(self, entries: Iterable[GlyphEntry]) -> None:
        rows = ((entry.glyph, " ".join(entry.phrase), entry.layer, entry.gain) for entry in entries)
        with self.conn:
            self.conn.executemany(
                "INSERT OR REPLACE INTO glyph_dict(glyph, phrase, layer, gain) VALUES (?, ?, ?, ?)",
                rows,
            )

    def postings(self, token: str, limit: int = DEFAULT_POSTINGS_LIMIT) -> List[int]:
        cur = self.conn.execute(
            "SELECT addr FROM postings WHERE token = ? ORDER BY addr ASC LIMIT ?",
            (token, limit),
        )
        return [row[0] for row in cur.fetchall()]

    def doc_at(self, addr: int) -> Optional[int]:
        cur = self.conn.execute(
            'SELECT doc FROM doc_bounds WHERE start <= ? AND "end" > ? LIMIT 1',
            (addr, addr),
        )
        row = cur.fetchone()
        return row[0] if row else None

    def address_to_doc(self, addr: int) -> int:
        doc = self.doc_at(addr)
        if doc is None:
            raise LookupError(f"address {addr} is outside every document")
        return doc

    def addresses_to_docs(self, addrs: Iterable[int]) -> List[int]:
        """Sorted distinct documents covering ``addrs``; stray addresses are skipped."""

        docs = {self.doc_at(addr) for addr in addrs}
        docs.discard(None)
        return sorted(docs)

    def token_at(self, addr: int) -> Optional[str]:
        row = self.conn.execute("SELECT token FROM tokens WHERE addr = ?", (addr,)).fetchone()
        return row[0] if row else None

    def tokens_in_range(self, start: int, end: int) -> List[str]:
        cur = self.conn.execute(
            "SELECT token FROM tokens WHERE addr >= ? AND addr < ? ORDER BY addr ASC",
            (start, end),
        )
        return [row[0] for row in cur.fetchall()]

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM tokens").fetchone()[0]

    def distinct_tokens(self) -> List[str]:
        cur = self.conn.execute("SELECT DISTINCT token FROM tokens ORDER BY token")
        return [row[0] for row in cur.fetchall()]

    def doc_bounds(self) -> List[Tuple[int, int, int]]:
        cur = self.conn.execute('SELECT doc, start, "end" FROM doc_bounds ORDER BY doc ASC')
        return [(row[0], row[1], row[2]) for row in cur.fetchall()]

    def glyph_entries(self) -> List[GlyphEntry]:
        """Stored dictionary, lowest layer first, so layered queries encode like ingest did."""

        cur = self.conn.execute("SELECT glyph, phrase, layer, gain FROM glyph_dict ORDER BY layer, rowid")
        return [
            GlyphEntry(layer=layer, phrase=tuple(phrase.split(" ")), glyph=glyph, gain=gain)
            for glyph, phrase, layer, gain in cur.fetchall()
        ]


@dataclass(frozen=True)
class IngestStats:
    docs: int
    tokens_pre: int
    tokens_post: int
    unique_tokens: int
    depth: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def ingest_documents(
    docs: Sequence[str],
    store: TapeStore,
    entries: Sequence[GlyphEntry] = (),
    batch_size: int = 1000,
    allocator: AddressAllocator | None = None,
) -> IngestStats:
    """Encode each document and append it to the tape.

    Every token of every document draws the next address from a single
    allocator, so one call lays down one contiguous, increasing address run.
    """

    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    allocator = allocator or AddressAllocator(start=store.count())
    session = GlyphSession.from_entries(entries)
    store.batch_glyphs(entries)

    first_doc = max((doc for doc, _, _ in store.doc_bounds()), default=-1) + 1
    tokens_pre = 0
    tokens_post = 0
    for offset, text in enumerate(docs):
        raw = words(text)
        tokens_pre += len(raw)
        encoded = session.encode_tokens(raw)
        tokens_post += len(encoded)

        start = allocator.next_address
        placed = allocator.allocate(encoded)
        for idx in range(0, len(placed), batch_size):
            chunk = placed[idx : idx + batch_size]
            store.batch_tokens(chunk)
            store.batch_postings((token, addr) for addr, token in chunk)
        store.add_doc_bounds(first_doc + offset, start, allocator.next_address)

    stats = IngestStats(
        docs=len(docs),
        tokens_pre=tokens_pre,
        tokens_post=tokens_post,
        unique_tokens=len(store.distinct_tokens()),
        depth=allocator.depth,
    )
    logger.info("ingested %d docs: %d words -> %d tokens", stats.docs, tokens_pre, tokens_post)
    return stats


@dataclass(frozen=True)
class QueryOptions:
    """``mode`` is ``"union"`` (any token) or ``"intersection"`` (docs holding every token)."""

    mode: str = "union"
    window: int = 0
    min_span: int = 1
    max_gap: int = 0
    limit: int = 50

    def __post_init__(self) -> None:
        if self.mode not in ("union", "intersection"):
            raise ValueError(f"unknown query mode: {self.mode}")
        if self.limit < 0:
            raise ValueError("limit must be non-negative")

    @property
    def wants_spans(self) -> bool:
        return self.window > 0 or self.min_span > 1 or self.max_gap > 0


@dataclass(frozen=True)
class Snippet:
    doc: int
    addr: int
    text: str


@dataclass
class QueryResult:
    query: str
    tokens: List[str]
    hits: int
    limited_hits: int
    docs: List[int]
    snippets: List[Snippet] = field(default_factory=list)
    spans: List[AddressSpan] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "query": self.query,
            "tokens": self.tokens,
            "hits": self.hits,
            "limited_hits": self.limited_hits,
            "docs": self.docs,
            "snippets": [asdict(snippet) for snippet in self.snippets],
            "spans": [span.to_dict() for span in self.spans],
        }


def _matching_addresses(store: TapeStore, tokens: Sequence[str], mode: str) -> List[int]:
    per_token = {token: store.postings(token) for token in dict.fromkeys(tokens)}
    addrs = sorted({addr for postings in per_token.values() for addr in postings})
    if mode == "union" or not per_token:
        return addrs

    shared: Optional[set] = None
    for postings in per_token.values():
        docs = set(store.addresses_to_docs(postings))
        shared = docs if shared is None else shared & docs
    if not shared:
        return []
    return [addr for addr in addrs if store.doc_at(addr) in shared]


def query_store(
    store: TapeStore,
    text: str,
    entries: Sequence[GlyphEntry] = (),
    options: QueryOptions | None = None,
) -> QueryResult:
    """Encode ``text`` like ingested documents and look its tokens up on the tape.

    In intersection mode only documents holding every query token match; a
    token absent from the tape therefore matches nothing, as in
    ``BitmapIndex.intersect``.
    """

    options = options or QueryOptions()
    tokens = GlyphSession.from_entries(entries).encode_text(text)
    addrs = _matching_addresses(store, tokens, options.mode)
    limited = addrs[: options.limit]

    spans: List[AddressSpan] = []
    if options.wants_spans:
        spans = find_min_max_spans(limited, options.min_span, options.max_gap)
        if options.window > 0:
            spans = merge_overlapping_spans(spans, options.window)

    snippets = []
    for addr in limited:
        window = store.tokens_in_range(max(0, addr - SNIPPET_RADIUS), addr + SNIPPET_RADIUS)
        snippets.append(Snippet(doc=store.address_to_doc(addr), addr=addr, text=" ".join(window)))

    return QueryResult(
        query=text,
        tokens=tokens,
        hits=len(addrs),
        limited_hits=len(limited),
        docs=store.addresses_to_docs(limited),
        snippets=snippets,
        spans=spans,
    )
