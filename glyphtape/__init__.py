from glyphtape.bitmap import BitmapIndex, BitmapStats  # noqa: F401
from glyphtape.container import MAGIC, PackedStream, pack, pack_text, unpack, unpack_text  # noqa: F401
from glyphtape.fgt import FGTConfig, FGTResult, decode_fgt, parse_fgt, render_fgt, train_fgt  # noqa: F401
from glyphtape.geometry import Point, address_to_point, point_in_triangle, point_to_address  # noqa: F401
from glyphtape.glyph_pool import ascii_glyph_pool, fnv1a32, pool_for_tape, seeded_shuffle  # noqa: F401
from glyphtape.glyphs import (  # noqa: F401
    GlyphEntry,
    GlyphSession,
    MalformedDictionary,
    TrainOptions,
    dictionary_from_json,
    dictionary_to_json,
    encode_text,
    train,
    train_layered,
)
from glyphtape.grammar import (  # noqa: F401
    CycleDetected,
    Grammar,
    Rule,
    define_symbol,
    expand_stream,
    expand_symbol,
    has_cycles,
    topological_sort,
    validate_grammar,
)
from glyphtape.induction import InductionConfig, InductionEvent, run_hybrid, run_repair, run_sequitur  # noqa: F401
from glyphtape.mdl import find_best_rule, mdl_gain, pair_gain  # noqa: F401
from glyphtape.mining import Candidate, mine_phrases  # noqa: F401
from glyphtape.path import AddressAllocator, AddressExhausted, from_base3, next_available_path, to_base3  # noqa: F401
from glyphtape.spans import AddressSpan, find_min_max_spans, merge_overlapping_spans  # noqa: F401
from glyphtape.store import IngestStats, QueryOptions, QueryResult, TapeStore, ingest_documents, query_store  # noqa: F401
from glyphtape.tokenize import words  # noqa: F401
from glyphtape.trace import JSONLTracer, dump_events  # noqa: F401
from glyphtape.trie import build_trie, decode, decode_layered, encode  # noqa: F401
