"""``FTZ1`` container: a glyph dictionary bundled with an encoded stream.

Layout::

    b"FTZ1" | uint32 LE entry count | JSON dictionary (UTF-8) | b"\\n" | tokens

Tokens are space-joined UTF-8. Glyphs never contain whitespace, and the
dictionary is written without indentation so it never contains a newline.
"""

from __future__ import annotations

import json
import struct
from dataclasses import dataclass
from typing import List, Sequence

from glyphtape.glyphs import GlyphEntry, GlyphSession, MalformedDictionary, dictionary_from_records, dictionary_to_json

MAGIC = b"FTZ1"
_HEADER = struct.Struct("<4sI")


@dataclass(frozen=True)
class PackedStream:
    entries: List[GlyphEntry]
    tokens: List[str]


def pack(entries: Sequence[GlyphEntry], tokens: Sequence[str]) -> bytes:
    dictionary = dictionary_to_json(entries).encode("utf-8")
    return _HEADER.pack(MAGIC, len(entries)) + dictionary + b"\n" + " ".join(tokens).encode("utf-8")


def unpack(data: bytes) -> PackedStream:
    """Split a container back into its dictionary and token stream.

    Raises ``MalformedDictionary`` for anything that is not a well-formed
    ``FTZ1`` payload.
    """

    if len(data) < _HEADER.size:
        raise MalformedDictionary("container is shorter than its header")
    magic, count = _HEADER.unpack_from(data)
    if magic != MAGIC:
        raise MalformedDictionary(f"bad container magic {magic!r}")

    split = data.find(b"\n", _HEADER.size)
    if split < 0:
        raise MalformedDictionary("container has no dictionary terminator")

    try:
        records = json.loads(data[_HEADER.size : split].decode("utf-8"))
        body = data[split + 1 :].decode("utf-8")
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedDictionary(f"container payload is unreadable: {exc}") from exc

    entries = dictionary_from_records(records)
    if len(entries) != count:
        raise MalformedDictionary(f"header declares {count} entries, dictionary holds {len(entries)}")
    return PackedStream(entries=entries, tokens=body.split())


def pack_text(text: str, entries: Sequence[GlyphEntry]) -> bytes:
    session = GlyphSession.from_entries(entries)
    return pack(entries, session.encode_text(text))


def unpack_text(data: bytes) -> List[str]:
    packed = unpack(data)
    return GlyphSession.from_entries(packed.entries).decode_tokens(packed.tokens)
