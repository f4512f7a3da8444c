from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from glyphtape.glyphs import GlyphEntry


@dataclass
class TrieNode:
    """Prefix-tree node keyed by token; ``glyph`` marks a phrase end."""

    children: Dict[str, "TrieNode"] = field(default_factory=dict)
    glyph: Optional[str] = None

    def max_depth(self) -> int:
        depth = 0
        stack = [(self, 0)]
        while stack:
            node, level = stack.pop()
            depth = max(depth, level)
            stack.extend((child, level + 1) for child in node.children.values())
        return depth


def build_trie(entries: Iterable["GlyphEntry"]) -> TrieNode:
    """Insert every entry's phrase; a repeated phrase keeps the last glyph."""

    root = TrieNode()
    for entry in entries:
        node = root
        for token in entry.phrase:
            node = node.children.setdefault(token, TrieNode())
        node.glyph = entry.glyph
    return root


def encode(tokens: Sequence[str], trie: TrieNode) -> List[str]:
    """Greedy longest-match substitution in a single left-to-right pass.

    At each position the walk goes as deep as the tokens allow and keeps the
    longest prefix that ends on a glyph, which need not be the deepest node
    reached. Without any match the raw token is emitted.
    """

    out: List[str] = []
    idx = 0
    total = len(tokens)
    while idx < total:
        node = trie
        cursor = idx
        match_len = 0
        match_glyph: Optional[str] = None
        while cursor < total:
            node = node.children.get(tokens[cursor])
            if node is None:
                break
            cursor += 1
            if node.glyph is not None:
                match_len = cursor - idx
                match_glyph = node.glyph

        if match_glyph is not None:
            out.append(match_glyph)
            idx += match_len
        else:
            out.append(tokens[idx])
            idx += 1
    return out


def reverse_map(entries: Iterable["GlyphEntry"]) -> Dict[str, tuple]:
    return {entry.glyph: tuple(entry.phrase) for entry in entries}


def decode(tokens: Iterable[str], entries: Iterable["GlyphEntry"]) -> List[str]:
    """Expand known glyphs back into their phrases; other tokens are literals."""

    glyph_to_phrase = reverse_map(entries)
    out: List[str] = []
    for token in tokens:
        phrase = glyph_to_phrase.get(token)
        if phrase is None:
            out.append(token)
        else:
            out.extend(phrase)
    return out


def decode_layered(tokens: Iterable[str], entries: Sequence["GlyphEntry"]) -> List[str]:
    """Undo a layered encoding, highest layer first, down to raw words."""

    by_layer: Dict[int, List["GlyphEntry"]] = {}
    for entry in entries:
        by_layer.setdefault(entry.layer, []).append(entry)

    out = list(tokens)
    for layer in sorted(by_layer, reverse=True):
        out = decode(out, by_layer[layer])
    return out
