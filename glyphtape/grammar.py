"""Symbol grammar kept as a DAG keyed by base-3 addresses.

Rules are only ever created over symbols that already exist or over raw
tokens, so a fresh symbol can never be reachable from its own children. The
walkers below are iterative so adversarially deep grammars cannot exhaust
the Python call stack.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from glyphtape.path import MAX_DEPTH, is_valid_path, next_available_path


class CycleDetected(ValueError):
    """Raised when a grammar's reference graph contains a cycle."""

    def __init__(self, symbol: str):
        super().__init__(f"grammar contains a cycle through symbol {symbol}")
        self.symbol = symbol


@dataclass(frozen=True)
class Rule:
    symbol: str
    children: Tuple[str, ...]
    expansion: Tuple[str, ...]
    gain: float = 0
    frequency: int = 1

    def to_dict(self) -> Dict[str, object]:
        return {
            "symbol": self.symbol,
            "children": list(self.children),
            "expansion": list(self.expansion),
            "gain": self.gain,
            "frequency": self.frequency,
        }


@dataclass(frozen=True)
class GrammarStats:
    total_rules: int
    max_depth: int
    avg_children_per_rule: float
    total_expansions: int
    symbols_by_depth: Dict[int, int]


@dataclass
class Grammar:
    """Mutable rule table for one training session.

    ``reserved`` holds raw tokens that happen to look like base-3 paths; they
    are never handed out as symbol names so they stay literals forever.
    """

    rules: Dict[str, Rule] = field(default_factory=dict)
    symbols: Set[str] = field(default_factory=set)
    depth: int = 0
    reserved: Set[str] = field(default_factory=set)

    def is_symbol(self, token: str) -> bool:
        return token in self.rules

    def reserve(self, tokens: Iterable[str]) -> None:
        for token in tokens:
            if is_valid_path(token) and token not in self.symbols:
                self.reserved.add(token)

    def to_json(self) -> Dict[str, object]:
        """JSON-friendly snapshot of the rule table in definition order."""

        return {
            "depth": self.depth,
            "rules": [rule.to_dict() for rule in self.rules.values()],
            "symbols": sorted(self.symbols),
            "reserved": sorted(self.reserved),
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, object]) -> "Grammar":
        grammar = cls()
        for record in payload.get("rules", ()):
            rule = Rule(
                symbol=str(record["symbol"]),
                children=tuple(str(child) for child in record.get("children", ())),
                expansion=tuple(str(token) for token in record.get("expansion", ())),
                gain=record.get("gain", 0),
                frequency=int(record.get("frequency", 1)),
            )
            add_rule(grammar, rule)
        grammar.symbols.update(str(sym) for sym in payload.get("symbols", ()))
        grammar.reserved.update(str(tok) for tok in payload.get("reserved", ()))
        grammar.depth = max(grammar.depth, int(payload.get("depth", 0)))
        return grammar


def add_rule(grammar: Grammar, rule: Rule) -> bool:
    """Register ``rule``; returns ``False`` if its symbol is already taken."""

    if rule.symbol in grammar.symbols or rule.symbol in grammar.rules:
        return False
    grammar.rules[rule.symbol] = rule
    grammar.symbols.add(rule.symbol)
    grammar.depth = max(grammar.depth, len(rule.symbol))
    return True


def define_symbol(
    grammar: Grammar,
    children: Sequence[str],
    expansion: Optional[Sequence[str]] = None,
    frequency: int = 1,
    gain: float = 0,
    max_depth: int = MAX_DEPTH,
) -> str:
    """Allocate the next free address and bind it to a new rule.

    This is the only way rules enter a grammar during training. Children that
    look like paths but are not symbols are taken to be raw tokens and
    reserved. Raises ``AddressExhausted`` once ``max_depth`` is passed.
    """

    if not children:
        raise ValueError("a rule needs at least one child")

    grammar.reserve(child for child in children if child not in grammar.rules)
    symbol = next_available_path(grammar.symbols | grammar.reserved, max_depth=max_depth)
    if expansion is None:
        expansion = expand_stream(grammar, children)
    rule = Rule(
        symbol=symbol,
        children=tuple(children),
        expansion=tuple(expansion),
        gain=gain,
        frequency=frequency,
    )
    add_rule(grammar, rule)
    return symbol


def expand_symbol(grammar: Grammar, symbol: str) -> List[str]:
    """Rewrite ``symbol`` down to raw tokens; unknown symbols are literals."""

    out: List[str] = []
    stack = [symbol]
    while stack:
        current = stack.pop()
        rule = grammar.rules.get(current)
        if rule is None:
            out.append(current)
            continue
        stack.extend(reversed(rule.children))
    return out


def expand_stream(grammar: Grammar, stream: Iterable[str]) -> List[str]:
    out: List[str] = []
    for symbol in stream:
        out.extend(expand_symbol(grammar, symbol))
    return out


def find_references(grammar: Grammar, target: str) -> List[str]:
    return [symbol for symbol, rule in grammar.rules.items() if target in rule.children]


def dependency_graph(grammar: Grammar) -> Dict[str, List[str]]:
    return {symbol: list(rule.children) for symbol, rule in grammar.rules.items()}


def _roots(grammar: Grammar) -> List[str]:
    extra = sorted(grammar.symbols - grammar.rules.keys())
    return [*grammar.rules, *extra]


def _walk_postorder(grammar: Grammar) -> Tuple[List[str], Optional[str]]:
    """Depth-first post-order over rule symbols.

    Returns the order and the first symbol found on the active stack twice,
    or ``None`` when the graph is acyclic.
    """

    order: List[str] = []
    done: Set[str] = set()
    on_stack: Set[str] = set()

    for root in _roots(grammar):
        if root in done:
            continue
        stack: List[Tuple[str, int]] = [(root, 0)]
        on_stack.add(root)
        while stack:
            symbol, idx = stack[-1]
            rule = grammar.rules.get(symbol)
            children = rule.children if rule is not None else ()
            if idx < len(children):
                stack[-1] = (symbol, idx + 1)
                child = children[idx]
                if child in on_stack:
                    return order, child
                if child in done or child not in grammar.rules:
                    continue
                on_stack.add(child)
                stack.append((child, 0))
                continue
            stack.pop()
            on_stack.discard(symbol)
            done.add(symbol)
            order.append(symbol)
    return order, None


def has_cycles(grammar: Grammar) -> bool:
    return _walk_postorder(grammar)[1] is not None


def ensure_acyclic(grammar: Grammar) -> None:
    _, cycle = _walk_postorder(grammar)
    if cycle is not None:
        raise CycleDetected(cycle)


def topological_sort(grammar: Grammar) -> List[str]:
    """Symbols ordered so every rule comes after the rules it references."""

    order, cycle = _walk_postorder(grammar)
    if cycle is not None:
        raise CycleDetected(cycle)
    return order


def grammar_stats(grammar: Grammar) -> GrammarStats:
    by_depth: Dict[int, int] = {}
    total_children = 0
    total_expansions = 0
    for symbol, rule in grammar.rules.items():
        by_depth[len(symbol)] = by_depth.get(len(symbol), 0) + 1
        total_children += len(rule.children)
        total_expansions += len(rule.expansion)

    count = len(grammar.rules)
    return GrammarStats(
        total_rules=count,
        max_depth=grammar.depth,
        avg_children_per_rule=total_children / count if count else 0.0,
        total_expansions=total_expansions,
        symbols_by_depth=by_depth,
    )


def validate_grammar(grammar: Grammar, vocabulary: Iterable[str] = ()) -> List[str]:
    """Return human-readable consistency violations.

    Flags cycles, path-shaped children that are neither defined symbols nor
    known raw tokens, and symbols registered more than once or inconsistently.
    """

    errors: List[str] = []
    if has_cycles(grammar):
        errors.append("grammar contains cycles")

    known_raw = set(vocabulary) | grammar.reserved
    for symbol, rule in grammar.rules.items():
        for child in rule.children:
            if child in grammar.symbols or child in known_raw:
                continue
            if is_valid_path(child):
                errors.append(f"rule {symbol} references undefined symbol {child}")

    seen: Set[str] = set()
    for key, rule in grammar.rules.items():
        if rule.symbol != key:
            errors.append(f"rule {rule.symbol} is registered under symbol {key}")
        if rule.symbol in seen:
            errors.append(f"duplicate symbol {rule.symbol}")
        seen.add(rule.symbol)
        if key not in grammar.symbols:
            errors.append(f"symbol {key} has a rule but is not registered")
        if key in grammar.reserved:
            errors.append(f"symbol {key} collides with a reserved raw token")

    return errors
