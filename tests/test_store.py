from pathlib import Path

import pytest

from glyphtape.glyphs import GlyphEntry, train_layered
from glyphtape.spans import AddressSpan
from glyphtape.store import QueryOptions, TapeStore, ingest_documents, query_store

ENTRIES = [GlyphEntry(layer=1, phrase=("the", "cat"), glyph="~A")]
DOCS = ["The cat sat.", "The cat ran."]


def _ingested() -> TapeStore:
    store = TapeStore()
    ingest_documents(DOCS, store, ENTRIES)
    return store


def test_ingest_reports_stats():
    with TapeStore() as store:
        stats = ingest_documents(DOCS, store, ENTRIES)

        assert stats.docs == 2
        assert stats.tokens_pre == 6
        assert stats.tokens_post == 4
        assert stats.unique_tokens == 3
        assert stats.depth == 2
        assert stats.to_dict()["tokens_post"] == 4


def test_ingest_lays_down_contiguous_addresses():
    with _ingested() as store:
        assert store.count() == 4
        assert store.tokens_in_range(0, 4) == ["~A", "sat", "~A", "ran"]
        assert store.doc_bounds() == [(0, 0, 2), (1, 2, 4)]
        assert store.postings("~A") == [0, 2]
        assert store.postings("~A", limit=1) == [0]
        assert store.token_at(1) == "sat"
        assert store.token_at(99) is None

        ingest_documents(["a b"], store)
        assert store.doc_bounds()[-1] == (2, 4, 6)
        assert store.tokens_in_range(4, 10) == ["a", "b"]


def test_address_to_doc_lookups():
    with _ingested() as store:
        assert store.address_to_doc(3) == 1
        assert store.addresses_to_docs([0, 3, 99]) == [0, 1]
        with pytest.raises(LookupError):
            store.address_to_doc(4)


def test_store_keeps_glyph_dictionary():
    with _ingested() as store:
        assert store.glyph_entries() == ENTRIES


def test_ingest_rejects_bad_batch_size():
    with TapeStore() as store:
        with pytest.raises(ValueError):
            ingest_documents(DOCS, store, batch_size=0)


def test_small_batches_store_everything():
    with TapeStore() as store:
        ingest_documents(["one two three four five"], store, batch_size=2)
        assert store.tokens_in_range(0, 5) == ["one", "two", "three", "four", "five"]


def test_store_persists_to_disk(tmp_path: Path):
    db = tmp_path / "tape.db"
    with TapeStore(db) as store:
        ingest_documents(DOCS, store, ENTRIES)

    with TapeStore(db) as store:
        assert store.count() == 4
        assert store.distinct_tokens() == ["ran", "sat", "~A"]


def test_query_union_reports_hits_docs_and_snippets():
    with _ingested() as store:
        result = query_store(store, "the cat", ENTRIES)

        assert result.tokens == ["~A"]
        assert result.hits == 2
        assert result.limited_hits == 2
        assert result.docs == [0, 1]
        assert [s.addr for s in result.snippets] == [0, 2]
        assert result.snippets[0].text == "~A sat ~A ran"
        assert result.spans == []


def test_query_intersection_keeps_docs_with_every_token():
    with _ingested() as store:
        both = query_store(store, "the cat sat", ENTRIES, QueryOptions(mode="intersection"))
        assert both.tokens == ["~A", "sat"]
        assert both.hits == 2
        assert both.docs == [0]

        none = query_store(store, "sat ran", ENTRIES, QueryOptions(mode="intersection"))
        assert none.hits == 0
        assert none.docs == []

        either = query_store(store, "sat ran", ENTRIES)
        assert either.hits == 2
        assert either.docs == [0, 1]


def test_query_limit_and_spans():
    with _ingested() as store:
        limited = query_store(store, "the cat sat", ENTRIES, QueryOptions(limit=1))
        assert limited.hits == 3
        assert limited.limited_hits == 1

        spanned = query_store(store, "the cat sat", ENTRIES, QueryOptions(max_gap=2))
        assert spanned.spans == [AddressSpan(0, 2, 3)]

        result = spanned.to_dict()
        assert result["spans"] == [{"start": 0, "end": 2, "count": 3}]
        assert result["snippets"][0]["doc"] == 0


def test_query_options_validate_mode():
    with pytest.raises(ValueError):
        QueryOptions(mode="xor")


def test_stored_dictionary_keeps_layers():
    text = "the quick brown fox jumps " * 20
    session = train_layered(text, 2)

    with TapeStore() as store:
        ingest_documents([text], store, session.entries)
        stored = store.glyph_entries()

        assert set(stored) == set(session.entries)
        assert {entry.layer for entry in stored} == {1, 2}

        from_store = query_store(store, text, stored)
        from_session = query_store(store, text, session.entries)
        assert from_store.tokens == from_session.tokens
        assert from_store.hits == from_session.hits > 0


def test_query_intersection_with_unknown_token_matches_nothing():
    with _ingested() as store:
        result = query_store(store, "the cat zebra", ENTRIES, QueryOptions(mode="intersection"))
        assert result.tokens == ["~A", "zebra"]
        assert result.hits == 0
        assert result.docs == []
