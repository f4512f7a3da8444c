from __future__ import annotations

import re
from typing import List

_NON_WORD = re.compile(r"[^a-z0-9\s']")
_WHITESPACE = re.compile(r"\s+")


def words(text: str) -> List[str]:
    """Normalize text into lowercase word tokens.

    Anything outside ``[a-z0-9\\s']`` becomes a separator, so punctuation never
    survives into a token. Applying ``words`` to its own space-joined output
    returns the same list.
    """

    cleaned = _NON_WORD.sub(" ", text.lower())
    return [token for token in _WHITESPACE.split(cleaned) if token]
