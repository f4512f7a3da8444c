import io
import json

from glyphtape.grammar import Grammar
from glyphtape.induction import run_repair
from glyphtape.trace import JSONLTracer, dump_events


def test_jsonl_tracer_captures_induction_events():
    sink = io.StringIO()
    tracer = JSONLTracer(sink)

    run_repair(Grammar(), ["the", "cat"] * 4, hooks=[tracer])

    lines = [l for l in sink.getvalue().splitlines() if l]
    assert len(lines) == 1
    assert tracer.written == 1

    first = json.loads(lines[0])
    assert first["phase"] == "repair"
    assert first["symbol"] == "0"
    assert first["stream_length"] == 4


def test_dump_events_serializes_event_stream():
    events = []
    run_repair(Grammar(), ["alpha", "beta"] * 3, hooks=[events.append])

    records = dump_events(events)
    assert records[0]["left"] == "alpha"
    assert records[0]["right"] == "beta"
    assert records[0]["frequency"] == 3
