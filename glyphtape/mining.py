from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

Phrase = Tuple[str, ...]

# Pool sizes behind the rank-tiered glyph length estimate: the first 82
# candidates are expected to get 2-char glyphs, the next 82**2 3-char ones.
TIER_ONE = 82
TIER_TWO = TIER_ONE + TIER_ONE * TIER_ONE


@dataclass(frozen=True)
class Candidate:
    """A mined phrase with its corpus frequency and estimated byte gain."""

    phrase: Phrase
    frequency: int
    byte_size: int
    gain: int

    @property
    def chars(self) -> int:
        return len(" ".join(self.phrase))

    @property
    def depth(self) -> int:
        return len(self.phrase)

    def to_dict(self) -> Dict[str, object]:
        return {
            "phrase": list(self.phrase),
            "frequency": self.frequency,
            "byte_size": self.byte_size,
            "gain": self.gain,
        }


@dataclass(frozen=True)
class MiningSummary:
    total_candidates: int
    total_savings: int
    avg_gain: float
    max_gain: int
    depth_distribution: Dict[int, int]
    top_candidate: Candidate | None


def phrase_byte_size(phrase: Sequence[str]) -> int:
    return len(" ".join(phrase).encode("utf-8"))


def estimated_glyph_length(rank: int) -> int:
    """Glyph size expected for the ``rank``-th accepted candidate.

    This is an approximation: it uses the rank at discovery time, not the
    final rank after sorting.
    """

    if rank < TIER_ONE:
        return 2
    if rank < TIER_TWO:
        return 3
    return 4


def count_ngrams(tokens: Sequence[str], n_min: int, n_max: int) -> Counter[Phrase]:
    counts: Counter[Phrase] = Counter()
    for n in range(n_min, n_max + 1):
        for idx in range(len(tokens) - n + 1):
            counts[tuple(tokens[idx : idx + n])] += 1
    return counts


def mine_phrases(tokens: Sequence[str], n_min: int = 2, n_max: int = 5) -> List[Candidate]:
    """Rank every n-gram in ``[n_min, n_max]`` by estimated byte savings.

    Phrases are scored in first-seen order so the glyph-length tier of each
    one depends only on how many candidates were accepted before it. Only
    positive gains survive. The result is sorted by gain (desc), phrase length
    (desc), then the space-joined phrase (asc), which totally orders ties.
    """

    if n_min < 1 or n_max < n_min:
        raise ValueError(f"invalid n-gram bounds: n_min={n_min}, n_max={n_max}")

    candidates: List[Candidate] = []
    for phrase, frequency in count_ngrams(tokens, n_min, n_max).items():
        chars = len(" ".join(phrase))
        gain = (chars - estimated_glyph_length(len(candidates))) * frequency
        if gain > 0:
            candidates.append(
                Candidate(
                    phrase=phrase,
                    frequency=frequency,
                    byte_size=phrase_byte_size(phrase),
                    gain=gain,
                )
            )

    candidates.sort(key=lambda c: (-c.gain, -len(c.phrase), " ".join(c.phrase)))
    return candidates


def filter_by_frequency(candidates: Sequence[Candidate], min_freq: int) -> List[Candidate]:
    return [c for c in candidates if c.frequency >= min_freq]


def filter_by_gain(candidates: Sequence[Candidate], min_gain: float) -> List[Candidate]:
    return [c for c in candidates if c.gain >= min_gain]


def total_potential_savings(candidates: Sequence[Candidate]) -> int:
    return sum(c.gain for c in candidates)


def depth_distribution(candidates: Sequence[Candidate]) -> Dict[int, int]:
    dist: Dict[int, int] = {}
    for candidate in candidates:
        dist[candidate.depth] = dist.get(candidate.depth, 0) + 1
    return dist


def analyze_mining(candidates: Sequence[Candidate]) -> MiningSummary:
    total = len(candidates)
    savings = total_potential_savings(candidates)
    return MiningSummary(
        total_candidates=total,
        total_savings=savings,
        avg_gain=savings / total if total else 0.0,
        max_gain=max((c.gain for c in candidates), default=0),
        depth_distribution=depth_distribution(candidates),
        top_candidate=candidates[0] if candidates else None,
    )
