"""Greedy pair induction over a symbol stream.

RePair rounds name the most frequent adjacent pair as long as doing so pays
for itself under the MDL model. Sequitur rounds are the same loop with the
extra demand that the pair repeats. The hybrid runner spends most of its
budget on RePair and hands the rest to Sequitur.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from glyphtape.grammar import Grammar, define_symbol
from glyphtape.mdl import pair_gain

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Pair:
    left: str
    right: str
    frequency: int


@dataclass(frozen=True)
class InductionConfig:
    max_iterations: int = 100
    lam: float = 1.0
    repair_share: float = 0.7
    symbol_size: int = 2

    def __post_init__(self) -> None:
        if self.max_iterations < 0:
            raise ValueError("max_iterations must be non-negative")
        if not 0.0 <= self.repair_share <= 1.0:
            raise ValueError("repair_share must be within [0, 1]")


@dataclass(frozen=True)
class InductionEvent:
    phase: str
    iteration: int
    symbol: str
    left: str
    right: str
    frequency: int
    gain: float
    stream_length: int

    def to_record(self) -> Dict[str, object]:
        """JSON-ready event representation for tracing."""

        return {
            "phase": self.phase,
            "iteration": self.iteration,
            "symbol": self.symbol,
            "left": self.left,
            "right": self.right,
            "frequency": self.frequency,
            "gain": self.gain,
            "stream_length": self.stream_length,
        }


InductionHook = Callable[[InductionEvent], None]


@dataclass(frozen=True)
class InductionSummary:
    original_tokens: int
    final_tokens: int
    original_size: int
    final_size: int
    compression_ratio: float
    rules_created: int
    max_depth: int
    avg_rule_length: float


def pair_counts(stream: Sequence[str]) -> Counter[Tuple[str, str]]:
    counts: Counter[Tuple[str, str]] = Counter()
    for idx in range(len(stream) - 1):
        counts[(stream[idx], stream[idx + 1])] += 1
    return counts


def find_most_frequent_pair(stream: Sequence[str]) -> Optional[Pair]:
    """Most frequent adjacent pair; on ties the pair seen first wins."""

    best: Optional[Tuple[str, str]] = None
    best_freq = 0
    for pair, frequency in pair_counts(stream).items():
        if frequency > best_freq:
            best, best_freq = pair, frequency
    if best is None:
        return None
    return Pair(left=best[0], right=best[1], frequency=best_freq)


def replace_pair(stream: Sequence[str], pair: Pair, symbol: str) -> List[str]:
    """Replace non-overlapping occurrences of ``pair``, scanning left to right."""

    out: List[str] = []
    idx = 0
    total = len(stream)
    while idx < total:
        if idx + 1 < total and stream[idx] == pair.left and stream[idx + 1] == pair.right:
            out.append(symbol)
            idx += 2
        else:
            out.append(stream[idx])
            idx += 1
    return out


def _induce(
    phase: str,
    grammar: Grammar,
    stream: Sequence[str],
    config: InductionConfig,
    min_frequency: int,
    hooks: Sequence[InductionHook],
) -> List[str]:
    current = list(stream)
    # raw digits like "0" must never be handed out as symbol names
    grammar.reserve(current)
    for iteration in range(config.max_iterations):
        pair = find_most_frequent_pair(current)
        if pair is None or pair.frequency < min_frequency:
            break
        gain = pair_gain(pair.left, pair.right, pair.frequency, config.symbol_size, config.lam)
        if gain <= 0:
            break

        symbol = define_symbol(grammar, (pair.left, pair.right), frequency=pair.frequency, gain=gain)
        current = replace_pair(current, pair, symbol)
        logger.debug(
            "%s round %d: %s -> (%s, %s) freq=%d gain=%.1f",
            phase,
            iteration,
            symbol,
            pair.left,
            pair.right,
            pair.frequency,
            gain,
        )

        event = InductionEvent(
            phase=phase,
            iteration=iteration,
            symbol=symbol,
            left=pair.left,
            right=pair.right,
            frequency=pair.frequency,
            gain=gain,
            stream_length=len(current),
        )
        for hook in hooks:
            hook(event)
    return current


def run_repair(
    grammar: Grammar,
    stream: Sequence[str],
    config: InductionConfig | None = None,
    hooks: Optional[List[InductionHook]] = None,
) -> List[str]:
    return _induce("repair", grammar, stream, config or InductionConfig(), 1, hooks or [])


def run_sequitur(
    grammar: Grammar,
    stream: Sequence[str],
    config: InductionConfig | None = None,
    hooks: Optional[List[InductionHook]] = None,
) -> List[str]:
    return _induce("sequitur", grammar, stream, config or InductionConfig(), 2, hooks or [])


def run_hybrid(
    grammar: Grammar,
    stream: Sequence[str],
    config: InductionConfig | None = None,
    hooks: Optional[List[InductionHook]] = None,
) -> List[str]:
    """RePair for ``floor(repair_share * budget)`` rounds, Sequitur for the rest."""

    config = config or InductionConfig()
    repair_rounds = math.floor(config.max_iterations * config.repair_share)
    sequitur_rounds = config.max_iterations - repair_rounds

    current = run_repair(grammar, stream, replace(config, max_iterations=repair_rounds), hooks)
    return run_sequitur(grammar, current, replace(config, max_iterations=sequitur_rounds), hooks)


def analyze_induction(grammar: Grammar, original: Sequence[str], final: Sequence[str]) -> InductionSummary:
    original_size = len(" ".join(original))
    final_size = len(" ".join(final))
    rules = len(grammar.rules)
    children = sum(len(rule.children) for rule in grammar.rules.values())
    return InductionSummary(
        original_tokens=len(original),
        final_tokens=len(final),
        original_size=original_size,
        final_size=final_size,
        compression_ratio=final_size / original_size if original_size else 0.0,
        rules_created=rules,
        max_depth=grammar.depth,
        avg_rule_length=children / rules if rules else 0.0,
    )
