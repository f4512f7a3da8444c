import io
import json

import pytest

from glyphtape.fgt import FGTConfig, decode_fgt, parse_fgt, render_fgt, replace_phrase, train_fgt
from glyphtape.glyphs import MalformedDictionary
from glyphtape.grammar import CycleDetected, expand_stream, has_cycles, validate_grammar
from glyphtape.tokenize import words
from glyphtape.trace import JSONLTracer

RHYME = "the cat sat on the mat. the cat sat on the hat. the cat sat on the mat."


def test_scenario_renders_expected_tape():
    result = train_fgt("the cat sat. the cat ran.")

    assert result.phrase_rules == 1
    assert result.stream == ["0", "sat", "0", "ran"]
    assert render_fgt(result) == "DEF 0 -> [the cat] // the cat\nSTREAM:\n0 sat 0 ran"


def test_rendered_tape_decodes_to_words():
    result = train_fgt(RHYME)

    assert decode_fgt(render_fgt(result)) == words(RHYME)
    assert expand_stream(result.grammar, result.stream) == words(RHYME)
    assert len(result.stream) < len(words(RHYME))


def test_trained_grammar_is_acyclic_and_valid():
    result = train_fgt(RHYME)

    assert not has_cycles(result.grammar)
    assert validate_grammar(result.grammar, words(RHYME)) == []
    assert result.stats.rules_created == len(result.grammar.rules)
    assert sum(result.stats.depth_distribution.values()) == len(result.grammar.symbols)


def test_path_shaped_words_stay_literals():
    text = "0 1 2 0 1 2 0 1 2 0 1 2"
    result = train_fgt(text)

    assert result.grammar.rules
    assert all(len(symbol) >= 2 for symbol in result.grammar.symbols)
    assert decode_fgt(render_fgt(result)) == words(text)


def test_empty_text():
    result = train_fgt("")

    assert result.stream == []
    assert result.compression_ratio == 0.0
    assert render_fgt(result) == "STREAM:\n"
    assert decode_fgt(render_fgt(result)) == []


def test_induction_events_reach_hooks():
    sink = io.StringIO()
    result = train_fgt("alpha beta " * 6, FGTConfig(top_k=0), hooks=[JSONLTracer(sink)])

    lines = [json.loads(line) for line in sink.getvalue().splitlines() if line]
    assert result.phrase_rules == 0
    assert len(lines) == 1
    assert lines[0]["left"] == "alpha"
    assert lines[0]["right"] == "beta"
    assert lines[0]["frequency"] == 6
    assert result.stream == ["0"] * 6


def test_summary_is_json_ready():
    summary = train_fgt(RHYME).summary()
    json.dumps(summary)
    assert summary["tokens"] == len(words(RHYME))


def test_replace_phrase():
    assert replace_phrase(["a", "b", "a", "b", "a"], ("a", "b", "a"), "S") == ["S", "b", "a"]


def test_parse_rejects_malformed_tapes():
    with pytest.raises(MalformedDictionary):
        parse_fgt("DEF broken\nSTREAM:\na")
    with pytest.raises(MalformedDictionary):
        parse_fgt("DEF 0 -> [a b] // a b\n")
    with pytest.raises(MalformedDictionary):
        parse_fgt("DEF 0 -> [a b] // a b\nDEF 0 -> [c d] // c d\nSTREAM:\n0")
    with pytest.raises(MalformedDictionary):
        parse_fgt("DEF 0 -> [] // a\nSTREAM:\n0")


def test_parse_rejects_cyclic_tapes():
    with pytest.raises(CycleDetected):
        parse_fgt("DEF 0 -> [1] // x\nDEF 1 -> [0] // y\nSTREAM:\n0")


def test_parse_reads_rules_and_stream():
    grammar, stream = parse_fgt("DEF 0 -> [the cat] // the cat\nDEF 1 -> [0 sat] // the cat sat\nSTREAM:\n1 0 ran")

    assert stream == ["1", "0", "ran"]
    assert grammar.rules["1"].children == ("0", "sat")
    assert expand_stream(grammar, stream) == ["the", "cat", "sat", "the", "cat", "ran"]
