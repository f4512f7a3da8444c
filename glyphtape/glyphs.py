"""Glyph dictionaries: training, layering and persistence.

A dictionary is an ordered list of ``GlyphEntry`` records. Layer 1 is mined
from raw words; layer ``k`` is mined from the stream already encoded with
layers ``1..k-1``. All state that used to be process-wide lives on a
caller-owned ``GlyphSession``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from glyphtape.glyph_pool import fnv1a32, pool_for_tape, usable_glyphs
from glyphtape.mining import mine_phrases
from glyphtape.tokenize import words
from glyphtape.trie import TrieNode, build_trie, decode_layered, encode

logger = logging.getLogger(__name__)


class MalformedDictionary(ValueError):
    """Raised when a persisted glyph dictionary or container fails validation."""


@dataclass(frozen=True)
class GlyphEntry:
    layer: int
    phrase: Tuple[str, ...]
    glyph: str
    gain: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"layer": self.layer, "phrase": list(self.phrase), "glyph": self.glyph}
        if self.gain is not None:
            payload["gain"] = self.gain
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "GlyphEntry":
        if not isinstance(payload, Mapping):
            raise MalformedDictionary(f"glyph entry must be an object, got {type(payload).__name__}")

        phrase = payload.get("phrase")
        glyph = payload.get("glyph")
        layer = payload.get("layer", 1)
        gain = payload.get("gain")

        if not isinstance(phrase, list) or not phrase or not all(isinstance(t, str) and t for t in phrase):
            raise MalformedDictionary(f"glyph entry has an invalid phrase: {phrase!r}")
        if not isinstance(glyph, str) or not glyph:
            raise MalformedDictionary(f"glyph entry has an invalid glyph: {glyph!r}")
        if isinstance(layer, bool) or not isinstance(layer, int) or layer < 1:
            raise MalformedDictionary(f"glyph entry has an invalid layer: {layer!r}")
        if gain is not None and (isinstance(gain, bool) or not isinstance(gain, (int, float))):
            raise MalformedDictionary(f"glyph entry has an invalid gain: {gain!r}")

        return cls(layer=layer, phrase=tuple(phrase), glyph=glyph, gain=gain)


def dictionary_to_records(entries: Iterable[GlyphEntry]) -> List[Dict[str, Any]]:
    return [entry.to_dict() for entry in entries]


def dictionary_from_records(records: object) -> List[GlyphEntry]:
    """Load entries from a record list or from a ``{"glyphs": [...]}`` wrapper."""

    if isinstance(records, Mapping):
        if "glyphs" not in records:
            raise MalformedDictionary("dictionary object is missing 'glyphs'")
        records = records["glyphs"]
    if not isinstance(records, list):
        raise MalformedDictionary("glyph dictionary must be a list of entries")
    return [GlyphEntry.from_dict(record) for record in records]


def dictionary_to_json(entries: Iterable[GlyphEntry], indent: int | None = None) -> str:
    return json.dumps(dictionary_to_records(entries), indent=indent, ensure_ascii=False)


def dictionary_from_json(text: str) -> List[GlyphEntry]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedDictionary(f"glyph dictionary is not valid JSON: {exc}") from exc
    return dictionary_from_records(payload)


@dataclass(frozen=True)
class TrainOptions:
    """Knobs for glyph training; ``seed=None`` derives a seed from the text."""

    top: int = 512
    n_min: int = 2
    n_max: int = 5
    prefix: str = "~"
    levels: int = 2
    seed: Optional[str] = None

    def __post_init__(self) -> None:
        if self.top < 0:
            raise ValueError("top must be non-negative")
        if self.n_min < 1 or self.n_max < self.n_min:
            raise ValueError(f"invalid n-gram bounds: n_min={self.n_min}, n_max={self.n_max}")
        if self.levels < 1:
            raise ValueError("levels must be at least 1")


def _utf16_length(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2


def default_seed(text: str, word_count: int) -> str:
    return f"tape:{_utf16_length(text)}:{word_count}"


def assign_glyphs(
    tokens: Sequence[str],
    layer: int,
    options: TrainOptions,
    seed: str,
    excluded: Iterable[str] = (),
) -> List[GlyphEntry]:
    """Mine ``tokens`` and pair the best candidates with pool glyphs in order.

    Pool glyphs equal to any token of ``tokens`` or to anything in
    ``excluded`` are skipped so glyphs never shadow literals.
    """

    candidates = mine_phrases(tokens, options.n_min, options.n_max)
    pool = usable_glyphs(pool_for_tape(seed, options.prefix, options.levels), [*tokens, *excluded])
    limit = min(options.top, len(candidates), len(pool))
    if limit < min(options.top, len(candidates)):
        logger.warning(
            "glyph pool exhausted at layer %d: %d candidates, %d usable glyphs",
            layer,
            len(candidates),
            len(pool),
        )

    return [
        GlyphEntry(layer=layer, phrase=candidates[idx].phrase, glyph=pool[idx], gain=candidates[idx].gain)
        for idx in range(limit)
    ]


def train(text: str, options: TrainOptions | None = None) -> List[GlyphEntry]:
    """Train a single-layer glyph dictionary ranked by byte gain."""

    options = options or TrainOptions()
    tokens = words(text)
    seed = options.seed if options.seed is not None else default_seed(text, len(tokens))
    entries = assign_glyphs(tokens, 1, options, seed)
    logger.info("trained %d glyphs from %d words", len(entries), len(tokens))
    return entries


def encode_text(text: str, entries: Iterable[GlyphEntry]) -> List[str]:
    return encode(words(text), build_trie(entries))


@dataclass
class GlyphSession:
    """Caller-owned glyph dictionary plus the layer depth it was trained to."""

    entries: List[GlyphEntry] = field(default_factory=list)
    layer_depth: int = 1

    def glyphs_up_to_layer(self, max_layer: int) -> List[GlyphEntry]:
        return [entry for entry in self.entries if entry.layer <= max_layer]

    def trie(self, max_layer: int | None = None) -> TrieNode:
        if max_layer is None:
            return build_trie(self.entries)
        return build_trie(self.glyphs_up_to_layer(max_layer))

    def encode_tokens(self, tokens: Sequence[str]) -> List[str]:
        """Apply every layer in order, the way the dictionary was trained."""

        stream = list(tokens)
        for layer in sorted({entry.layer for entry in self.entries}):
            layer_entries = [entry for entry in self.entries if entry.layer == layer]
            stream = encode(stream, build_trie(layer_entries))
        return stream

    def encode_text(self, text: str) -> List[str]:
        return self.encode_tokens(words(text))

    def decode_tokens(self, tokens: Iterable[str]) -> List[str]:
        return decode_layered(tokens, self.entries)

    def export_json(self, indent: int | None = 2) -> str:
        return dictionary_to_json(self.entries, indent=indent)

    @classmethod
    def from_entries(cls, entries: Sequence[GlyphEntry]) -> "GlyphSession":
        depth = max((entry.layer for entry in entries), default=1)
        return cls(entries=list(entries), layer_depth=depth)


def train_layered(
    text: str,
    layer_depth: int,
    options: TrainOptions | None = None,
    session: GlyphSession | None = None,
) -> GlyphSession:
    """Train ``layer_depth`` stacked glyph layers into ``session``.

    Any dictionary already on the session is discarded. Each layer mines the
    stream produced by the layers below it and draws from its own seeded
    pool, minus every glyph and literal already in play.

    Without an explicit seed the base seed is ``tape:{fnv1a32(text)}`` and
    layer ``k`` uses ``{base}:layer-{k}``. That differs from the seed ``train``
    derives, so ``train(text)`` and ``train_layered(text, 1)`` pick different
    glyphs for the same phrases.
    """

    if layer_depth < 1:
        raise ValueError("layer_depth must be at least 1")

    options = options or TrainOptions()
    session = session if session is not None else GlyphSession()
    session.entries = []
    session.layer_depth = layer_depth

    raw = words(text)
    base_seed = options.seed if options.seed is not None else f"tape:{fnv1a32(text)}"
    vocabulary = set(raw)
    stream = raw

    for layer in range(1, layer_depth + 1):
        if layer > 1:
            previous = [entry for entry in session.entries if entry.layer == layer - 1]
            stream = encode(stream, build_trie(previous))
            vocabulary.update(stream)
        seed = base_seed if layer == 1 else f"{base_seed}:layer-{layer}"
        used = {entry.glyph for entry in session.entries}
        entries = assign_glyphs(stream, layer, options, seed, excluded=vocabulary | used)
        session.entries.extend(entries)
        logger.info("layer %d: %d glyphs over %d tokens", layer, len(entries), len(stream))
        if not entries:
            break

    return session
