"""Fractal Grammar Tape: phrase rules first, then pair induction.

The text form is one ``DEF`` line per rule followed by a ``STREAM:`` marker
and the space-joined stream::

    DEF 0 -> [the cat] // the cat
    STREAM:
    0 sat 0 ran
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from glyphtape.glyphs import MalformedDictionary
from glyphtape.grammar import Grammar, Rule, add_rule, define_symbol, ensure_acyclic, expand_stream
from glyphtape.induction import InductionConfig, InductionHook, run_hybrid
from glyphtape.mdl import total_mdl_cost
from glyphtape.mining import filter_by_frequency, filter_by_gain, mine_phrases
from glyphtape.tokenize import words

logger = logging.getLogger(__name__)

STREAM_MARKER = "STREAM:"
_DEF_LINE = re.compile(r"^DEF (\S+) -> \[([^\]]*)\] // (.*)$")


@dataclass(frozen=True)
class FGTConfig:
    top_k: int = 100
    n_min: int = 2
    n_max: int = 5
    max_iterations: int = 50
    lam: float = 1.0
    min_gain: float = 1.0
    min_freq: int = 2

    def induction(self) -> InductionConfig:
        return InductionConfig(max_iterations=self.max_iterations, lam=self.lam)


@dataclass(frozen=True)
class FGTStats:
    rules_created: int
    max_depth: int
    avg_rule_length: float
    depth_distribution: Dict[int, int]


@dataclass
class FGTResult:
    grammar: Grammar
    stream: List[str]
    original_tokens: List[str]
    compression_ratio: float
    total_savings: float
    stats: FGTStats
    phrase_rules: int = 0

    def summary(self) -> Dict[str, object]:
        return {
            "tokens": len(self.original_tokens),
            "stream_length": len(self.stream),
            "rules_created": self.stats.rules_created,
            "phrase_rules": self.phrase_rules,
            "max_depth": self.stats.max_depth,
            "avg_rule_length": self.stats.avg_rule_length,
            "depth_distribution": {str(k): v for k, v in sorted(self.stats.depth_distribution.items())},
            "compression_ratio": self.compression_ratio,
            "total_savings": self.total_savings,
        }


def _phrase_at(stream: Sequence[str], idx: int, phrase: Sequence[str]) -> bool:
    return tuple(stream[idx : idx + len(phrase)]) == tuple(phrase)


def replace_phrase(stream: Sequence[str], phrase: Sequence[str], symbol: str) -> List[str]:
    """Non-overlapping left-to-right substitution of ``phrase`` by ``symbol``."""

    out: List[str] = []
    idx = 0
    while idx < len(stream):
        if _phrase_at(stream, idx, phrase):
            out.append(symbol)
            idx += len(phrase)
        else:
            out.append(stream[idx])
            idx += 1
    return out


def _depth_distribution(grammar: Grammar) -> Dict[int, int]:
    dist: Dict[int, int] = {}
    for symbol in grammar.symbols:
        dist[len(symbol)] = dist.get(len(symbol), 0) + 1
    return dist


def train_fgt(
    text: str,
    config: FGTConfig | None = None,
    hooks: Optional[List[InductionHook]] = None,
) -> FGTResult:
    """Build a grammar and residual stream for ``text``.

    Mined phrases become rules as long as they still occur in the stream
    when their turn comes; the remaining stream then goes through hybrid pair
    induction. Raises ``CycleDetected`` if the finished grammar is cyclic.
    """

    config = config or FGTConfig()
    tokens = words(text)
    grammar = Grammar()
    grammar.reserve(tokens)

    candidates = mine_phrases(tokens, config.n_min, config.n_max)[: config.top_k]
    candidates = filter_by_frequency(filter_by_gain(candidates, config.min_gain), config.min_freq)

    stream: List[str] = list(tokens)
    phrase_rules = 0
    for candidate in candidates:
        if not any(_phrase_at(stream, idx, candidate.phrase) for idx in range(len(stream))):
            continue
        symbol = define_symbol(
            grammar,
            candidate.phrase,
            expansion=candidate.phrase,
            frequency=candidate.frequency,
            gain=candidate.gain,
        )
        stream = replace_phrase(stream, candidate.phrase, symbol)
        phrase_rules += 1
    logger.info("fgt phrase phase: %d rules, stream %d -> %d", phrase_rules, len(tokens), len(stream))

    stream = run_hybrid(grammar, stream, config.induction(), hooks)
    ensure_acyclic(grammar)

    original_size = len(text.encode("utf-8"))
    cost = total_mdl_cost(grammar, stream, config.lam)
    rules = len(grammar.rules)
    children = sum(len(rule.children) for rule in grammar.rules.values())
    stats = FGTStats(
        rules_created=rules,
        max_depth=grammar.depth,
        avg_rule_length=children / rules if rules else 0.0,
        depth_distribution=_depth_distribution(grammar),
    )
    logger.info("fgt finished: %d rules, %d stream symbols", rules, len(stream))
    return FGTResult(
        grammar=grammar,
        stream=stream,
        original_tokens=tokens,
        compression_ratio=cost / original_size if original_size else 0.0,
        total_savings=original_size - cost,
        stats=stats,
        phrase_rules=phrase_rules,
    )


def render_fgt(result: FGTResult) -> str:
    lines = [
        f"DEF {symbol} -> [{' '.join(rule.children)}] // {' '.join(rule.expansion)}"
        for symbol, rule in result.grammar.rules.items()
    ]
    lines.append(STREAM_MARKER)
    lines.append(" ".join(result.stream))
    return "\n".join(lines)


def parse_fgt(text: str) -> Tuple[Grammar, List[str]]:
    """Read the text form back into a grammar and its stream.

    Raises ``MalformedDictionary`` for a bad ``DEF`` line, a symbol defined
    twice or a missing ``STREAM:`` marker, and ``CycleDetected`` for a cyclic
    rule set.
    """

    grammar = Grammar()
    lines = text.split("\n")
    for lineno, line in enumerate(lines, start=1):
        if line == STREAM_MARKER:
            body = next((rest.strip() for rest in lines[lineno:] if rest.strip()), "")
            ensure_acyclic(grammar)
            return grammar, body.split() if body else []
        if not line.strip():
            continue
        match = _DEF_LINE.match(line)
        if match is None:
            raise MalformedDictionary(f"line {lineno}: expected a DEF line, got {line!r}")
        symbol, children, expansion = match.groups()
        rule = Rule(symbol=symbol, children=tuple(children.split()), expansion=tuple(expansion.split()))
        if not rule.children:
            raise MalformedDictionary(f"line {lineno}: rule {symbol} has no children")
        if not add_rule(grammar, rule):
            raise MalformedDictionary(f"line {lineno}: symbol {symbol} is defined twice")
    raise MalformedDictionary(f"missing {STREAM_MARKER} marker")


def decode_fgt(text: str) -> List[str]:
    grammar, stream = parse_fgt(text)
    return expand_stream(grammar, stream)
