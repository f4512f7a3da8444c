from glyphtape.glyphs import GlyphEntry
from glyphtape.tokenize import words
from glyphtape.trie import build_trie, decode, decode_layered, encode


def _entry(phrase, glyph, layer=1):
    return GlyphEntry(layer=layer, phrase=tuple(phrase), glyph=glyph)


def test_scenario_encoding_with_single_entry():
    entries = [_entry(["the", "cat"], "~A")]
    tokens = words("the cat sat. the cat ran.")

    assert encode(tokens, build_trie(entries)) == ["~A", "sat", "~A", "ran"]


def test_longest_terminal_match_not_deepest_node():
    entries = [_entry(["a", "b"], "~1"), _entry(["a", "b", "c", "d"], "~2")]
    trie = build_trie(entries)

    assert encode(["a", "b", "c", "e"], trie) == ["~1", "c", "e"]
    assert encode(["a", "b", "c", "d", "a"], trie) == ["~2", "a"]


def test_greedy_match_is_not_globally_optimal():
    entries = [_entry(["a", "b"], "~1"), _entry(["b", "c", "d"], "~2")]

    assert encode(["a", "b", "c", "d"], build_trie(entries)) == ["~1", "c", "d"]


def test_duplicate_phrase_last_write_wins():
    entries = [_entry(["x", "y"], "~old"), _entry(["x", "y"], "~new")]

    assert encode(["x", "y"], build_trie(entries)) == ["~new"]


def test_decode_passes_unknown_tokens_through():
    entries = [_entry(["the", "cat"], "~A")]

    assert decode(["~A", "sat", "~Z"], entries) == ["the", "cat", "sat", "~Z"]


def test_round_trip_with_disjoint_vocabularies():
    entries = [
        _entry(["to", "be"], "~a"),
        _entry(["or", "not"], "~b"),
        _entry(["to", "be", "or"], "~c"),
    ]
    tokens = words("To be or not to be, that is the question. To be, or not.")

    encoded = encode(tokens, build_trie(entries))
    assert len(encoded) < len(tokens)
    assert decode(encoded, entries) == tokens


def test_decode_layered_expands_highest_layer_first():
    entries = [
        _entry(["the", "cat"], "~A", layer=1),
        _entry(["~A", "~A"], "~B", layer=2),
    ]

    assert decode_layered(["~B", "sat"], entries) == ["the", "cat", "the", "cat", "sat"]


def test_trie_depth_tracks_longest_phrase():
    trie = build_trie([_entry(["a"], "~1"), _entry(["a", "b", "c"], "~2")])
    assert trie.max_depth() == 3
