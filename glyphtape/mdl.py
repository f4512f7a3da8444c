"""Minimum-description-length accounting for grammar rules.

All sizes are bytes of the textual encoding: a rule definition pays a fixed
``DEF`` overhead, its symbol, two bytes per child and the literal expansion;
every use of the rule saves the expansion minus the symbol.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from glyphtape.grammar import Grammar, Rule

DEF_OVERHEAD = 3
CHILD_COST = 2
STREAM_REF_COST = 4


@dataclass(frozen=True)
class ScoredRule:
    rule: Rule
    frequency: int
    gain: float


def rule_cost(rule: Rule, lam: float = 1.0) -> float:
    expansion = len(" ".join(rule.expansion))
    return (DEF_OVERHEAD + len(rule.symbol) + CHILD_COST * len(rule.children) + expansion) * lam


def rule_savings(rule: Rule, frequency: int) -> int:
    return (len(" ".join(rule.expansion)) - len(rule.symbol)) * frequency


def mdl_gain(rule: Rule, frequency: int, lam: float = 1.0) -> float:
    return rule_savings(rule, frequency) - rule_cost(rule, lam)


def mdl_improves(rule: Rule, frequency: int, lam: float = 1.0) -> bool:
    return mdl_gain(rule, frequency, lam) > 0


def find_best_rule(candidates: Iterable[Tuple[Rule, int]], lam: float = 1.0) -> Optional[ScoredRule]:
    """Pick the single highest-gain candidate; ties keep the earliest one.

    Returns ``None`` when no candidate has a positive gain.
    """

    best: Optional[ScoredRule] = None
    for rule, frequency in candidates:
        gain = mdl_gain(rule, frequency, lam)
        if best is None or gain > best.gain:
            best = ScoredRule(rule=rule, frequency=frequency, gain=gain)
    if best is None or best.gain <= 0:
        return None
    return best


def pair_gain(left: str, right: str, frequency: int, symbol_size: int = 2, lam: float = 1.0) -> float:
    """Net bytes saved by naming the pair ``left right`` with a fresh symbol."""

    original = (len(left) + len(right) + 1) * frequency
    compressed = symbol_size * frequency
    # DEF, the symbol, one byte per child reference
    definition = DEF_OVERHEAD + symbol_size + 2
    return (original - compressed) - definition * lam


def total_mdl_cost(grammar: Grammar, stream: Sequence[str], lam: float = 1.0) -> float:
    rules = sum(rule_cost(rule, lam) for rule in grammar.rules.values())
    return rules + STREAM_REF_COST * len(stream)


def compression_ratio(original: str, grammar: Grammar, stream: Sequence[str], lam: float = 1.0) -> float:
    original_bytes = len(original.encode("utf-8"))
    if original_bytes == 0:
        return 0.0
    return total_mdl_cost(grammar, stream, lam) / original_bytes
