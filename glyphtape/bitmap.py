"""In-memory bitmap index over stored postings.

Bitmaps are plain Python ints: bit ``n`` is set when document ``n`` (or
token id ``n``) is a member. Token ids are handed out sequentially as tokens
are first seen.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from glyphtape.store import TapeStore

logger = logging.getLogger(__name__)


def _members(bitmap: int) -> List[int]:
    out: List[int] = []
    idx = 0
    while bitmap:
        if bitmap & 1:
            out.append(idx)
        bitmap >>= 1
        idx += 1
    return out


@dataclass(frozen=True)
class BitmapStats:
    total_tokens: int
    total_docs: int
    avg_tokens_per_doc: float
    avg_docs_per_token: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class BitmapIndex:
    token_docs: Dict[str, int] = field(default_factory=dict)
    doc_tokens: Dict[int, int] = field(default_factory=dict)
    token_ids: Dict[str, int] = field(default_factory=dict)

    def token_id(self, token: str) -> int:
        if token not in self.token_ids:
            self.token_ids[token] = len(self.token_ids)
        return self.token_ids[token]

    def add(self, token: str, doc: int) -> None:
        if doc < 0:
            raise ValueError("document ids must be non-negative")
        self.token_docs[token] = self.token_docs.get(token, 0) | (1 << doc)
        self.doc_tokens[doc] = self.doc_tokens.get(doc, 0) | (1 << self.token_id(token))

    @property
    def total_docs(self) -> int:
        return max(self.doc_tokens, default=-1) + 1

    def docs_for_token(self, token: str) -> List[int]:
        return _members(self.token_docs.get(token, 0))

    def tokens_for_doc(self, doc: int) -> List[int]:
        return _members(self.doc_tokens.get(doc, 0))

    def intersect(self, tokens: Iterable[str]) -> List[int]:
        """Documents holding every one of ``tokens``.

        A token that was never indexed is held by no document, so it empties
        the result, the same rule ``query_store`` applies in intersection mode.
        """

        bitmaps = [self.token_docs.get(t, 0) for t in tokens]
        if not bitmaps:
            return []
        result = bitmaps[0]
        for bitmap in bitmaps[1:]:
            result &= bitmap
        return _members(result)

    def union(self, tokens: Iterable[str]) -> List[int]:
        result = 0
        for token in tokens:
            result |= self.token_docs.get(token, 0)
        return _members(result)

    def stats(self) -> BitmapStats:
        pairs = sum(bin(bitmap).count("1") for bitmap in self.token_docs.values())
        total_tokens = len(self.token_docs)
        total_docs = self.total_docs
        return BitmapStats(
            total_tokens=total_tokens,
            total_docs=total_docs,
            avg_tokens_per_doc=pairs / total_docs if total_docs else 0.0,
            avg_docs_per_token=pairs / total_tokens if total_tokens else 0.0,
        )

    @classmethod
    def from_store(cls, store: "TapeStore") -> "BitmapIndex":
        """Index every stored token against the documents its postings fall in."""

        index = cls()
        for token in store.distinct_tokens():
            for doc in store.addresses_to_docs(store.postings(token)):
                index.add(token, doc)
        logger.info("bitmap index built: %d tokens over %d docs", len(index.token_docs), index.total_docs)
        return index
