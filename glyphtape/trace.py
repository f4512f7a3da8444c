from __future__ import annotations

import io
import json
from typing import Iterable, List

from glyphtape.induction import InductionEvent


class JSONLTracer:
    """Hook that writes each induction event as one JSON line to a file-like sink."""

    def __init__(self, sink: io.TextIOBase):
        self.sink = sink
        self.written = 0

    def __call__(self, event: InductionEvent) -> None:
        self.sink.write(json.dumps(event.to_record()))
        self.sink.write("\n")
        self.sink.flush()
        self.written += 1


def dump_events(events: Iterable[InductionEvent]) -> List[dict]:
    """Convert an event stream to JSON-serializable dicts."""

    return [ev.to_record() for ev in events]
