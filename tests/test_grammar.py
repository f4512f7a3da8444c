import pytest

from glyphtape.grammar import (
    CycleDetected,
    Grammar,
    Rule,
    add_rule,
    define_symbol,
    dependency_graph,
    ensure_acyclic,
    expand_stream,
    expand_symbol,
    find_references,
    grammar_stats,
    has_cycles,
    topological_sort,
    validate_grammar,
)
from glyphtape.path import AddressExhausted, to_base3


def _cyclic_grammar() -> Grammar:
    grammar = Grammar()
    add_rule(grammar, Rule(symbol="0", children=("1",), expansion=("x",)))
    add_rule(grammar, Rule(symbol="1", children=("0",), expansion=("y",)))
    return grammar


def test_define_symbol_allocates_in_order_and_expands():
    grammar = Grammar()
    first = define_symbol(grammar, ["the", "cat"], frequency=2)
    second = define_symbol(grammar, [first, "sat"])

    assert (first, second) == ("0", "1")
    assert grammar.rules[second].expansion == ("the", "cat", "sat")
    assert grammar.rules[first].frequency == 2
    assert grammar.depth == 1
    assert expand_stream(grammar, [second, "ran"]) == ["the", "cat", "sat", "ran"]


def test_reserved_raw_tokens_are_never_symbol_names():
    grammar = Grammar()
    grammar.reserve(["0", "hello", "12"])

    assert grammar.reserved == {"0", "12"}
    assert define_symbol(grammar, ["a", "b"]) == "1"

    # "2" is a raw literal here, so it is reserved before allocation.
    symbol = define_symbol(grammar, ["2", "x"])
    assert "2" in grammar.reserved
    assert symbol == "00"
    assert expand_symbol(grammar, symbol) == ["2", "x"]


def test_unknown_symbol_expands_to_itself():
    assert expand_symbol(Grammar(), "foo") == ["foo"]


def test_define_symbol_rejects_empty_children():
    with pytest.raises(ValueError):
        define_symbol(Grammar(), [])


def test_define_symbol_surfaces_exhaustion():
    grammar = Grammar()
    for _ in range(3):
        define_symbol(grammar, ["a", "b"], max_depth=1)
    with pytest.raises(AddressExhausted):
        define_symbol(grammar, ["a", "b"], max_depth=1)


def test_add_rule_refuses_duplicates():
    grammar = Grammar()
    rule = Rule(symbol="0", children=("a", "b"), expansion=("a", "b"))
    assert add_rule(grammar, rule)
    assert not add_rule(grammar, rule)


def test_topological_sort_puts_children_first():
    grammar = Grammar()
    a = define_symbol(grammar, ["x", "y"])
    b = define_symbol(grammar, [a, "z"])
    c = define_symbol(grammar, [b, a])

    order = topological_sort(grammar)
    assert order.index(a) < order.index(b) < order.index(c)
    assert find_references(grammar, a) == [b, c]
    assert dependency_graph(grammar)[c] == [b, a]


def test_cycles_are_detected():
    grammar = _cyclic_grammar()

    assert has_cycles(grammar)
    with pytest.raises(CycleDetected):
        topological_sort(grammar)
    with pytest.raises(CycleDetected) as info:
        ensure_acyclic(grammar)
    assert info.value.symbol in {"0", "1"}
    assert "grammar contains cycles" in validate_grammar(grammar)


def test_deep_chain_does_not_recurse():
    grammar = Grammar()
    previous = "x"
    for idx in range(5000):
        symbol = to_base3(idx, 10)
        add_rule(grammar, Rule(symbol=symbol, children=(previous, "y"), expansion=()))
        previous = symbol

    assert not has_cycles(grammar)
    assert len(topological_sort(grammar)) == 5000
    assert expand_symbol(grammar, previous) == ["x"] + ["y"] * 5000


def test_validate_grammar_flags_undefined_path_children():
    grammar = Grammar()
    add_rule(grammar, Rule(symbol="0", children=("12", "x"), expansion=("?", "x")))

    assert validate_grammar(grammar) == ["rule 0 references undefined symbol 12"]
    assert validate_grammar(grammar, vocabulary=["12"]) == []


def test_validate_grammar_flags_inconsistent_registration():
    grammar = Grammar()
    grammar.rules["2"] = Rule(symbol="1", children=("a",), expansion=("a",))

    errors = validate_grammar(grammar)
    assert "rule 1 is registered under symbol 2" in errors
    assert "symbol 2 has a rule but is not registered" in errors


def test_grammar_stats():
    grammar = Grammar()
    a = define_symbol(grammar, ["x", "y"])
    define_symbol(grammar, [a, "z", "w"])

    stats = grammar_stats(grammar)
    assert stats.total_rules == 2
    assert stats.avg_children_per_rule == 2.5
    assert stats.total_expansions == 2 + 4
    assert stats.symbols_by_depth == {1: 2}


def test_grammar_json_snapshot_round_trip():
    grammar = Grammar()
    grammar.reserve(["0"])
    a = define_symbol(grammar, ["the", "cat"], gain=4)
    define_symbol(grammar, [a, "sat"])

    rebuilt = Grammar.from_json(grammar.to_json())
    assert rebuilt.rules == grammar.rules
    assert rebuilt.symbols == grammar.symbols
    assert rebuilt.reserved == {"0"}
    assert rebuilt.depth == grammar.depth
