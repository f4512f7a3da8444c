from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence


@dataclass(frozen=True)
class AddressSpan:
    """Inclusive run ``[start, end]`` of hit addresses."""

    start: int
    end: int
    count: int
    doc: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"start": self.start, "end": self.end, "count": self.count}
        if self.doc is not None:
            payload["doc"] = self.doc
        return payload


def pack_addresses_into_spans(addresses: Sequence[int], max_gap: int) -> List[AddressSpan]:
    """Group sorted addresses into runs whose neighbours differ by at most ``max_gap``."""

    if not addresses:
        return []

    spans: List[AddressSpan] = []
    start = end = addresses[0]
    count = 1
    for addr in addresses[1:]:
        if addr - end <= max_gap:
            end = addr
            count += 1
            continue
        spans.append(AddressSpan(start=start, end=end, count=count))
        start = end = addr
        count = 1
    spans.append(AddressSpan(start=start, end=end, count=count))
    return spans


def find_min_max_spans(addresses: Sequence[int], min_span: int, max_gap: int) -> List[AddressSpan]:
    return [span for span in pack_addresses_into_spans(addresses, max_gap) if span.count >= min_span]


def merge_overlapping_spans(spans: Sequence[AddressSpan], overlap_threshold: int = 0) -> List[AddressSpan]:
    """Merge spans whose gap (next start minus current end) is within the threshold."""

    if not spans:
        return []

    ordered = sorted(spans, key=lambda span: span.start)
    merged: List[AddressSpan] = []
    current = ordered[0]
    for span in ordered[1:]:
        if span.start - current.end <= overlap_threshold:
            current = replace(current, end=max(current.end, span.end), count=current.count + span.count)
        else:
            merged.append(current)
            current = span
    merged.append(current)
    return merged
