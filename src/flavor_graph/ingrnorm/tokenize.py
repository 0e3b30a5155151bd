"""
Heuristic normalization of free-text ingredient mentions.

Turns "2 Fresh Tomatoes, chopped" style mentions into lower-case tokens with
punctuation and filler words stripped. This is deliberately not an NLP parser:
it only knows a small stop-word list.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import AbstractSet, FrozenSet, Iterable, List, Optional

import numpy as np
import pandas as pd

STOP_WORDS = frozenset({"of", "and", "fresh", "chopped", "minced", "optional", "to", "taste"})

_DISALLOWED_RE = re.compile(r"[^a-z0-9\s-]")
_WS_RE = re.compile(r"\s+")
_SPLIT_RE = re.compile(r"[\n,;]+")


@lru_cache(maxsize=8)
def _stop_word_re(stop_words: FrozenSet[str]) -> Optional[re.Pattern]:
    if not stop_words:
        return None
    alternation = "|".join(re.escape(w) for w in sorted(stop_words, key=lambda w: (-len(w), w)))
    # a stop word takes its joining hyphens with it: "salt-and-pepper" -> "salt pepper"
    return re.compile(rf"-?\b(?:{alternation})\b-?")


def normalize_token(raw, stop_words: AbstractSet[str] = STOP_WORDS) -> Optional[str]:
    """Normalize a single mention; returns None when nothing is left."""
    if raw is None:
        return None
    text = _DISALLOWED_RE.sub(" ", str(raw).lower())
    pattern = _stop_word_re(frozenset(stop_words))
    if pattern is not None:
        text = pattern.sub(" ", text)
    token = _WS_RE.sub(" ", text).strip()
    return token or None


def split_ingredients(value) -> List[str]:
    """Accept a list-like of mentions or a single newline/comma/semicolon delimited string."""
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return []
    if isinstance(value, (list, tuple, np.ndarray)):
        parts: Iterable = value
    else:
        parts = _SPLIT_RE.split(str(value))
    return [str(p).strip() for p in parts if p is not None and str(p).strip()]


def tokenize_ingredients(value, stop_words: AbstractSet[str] = STOP_WORDS) -> List[str]:
    tokens = []
    for piece in split_ingredients(value):
        tok = normalize_token(piece, stop_words)
        if tok:
            tokens.append(tok)
    return tokens


__all__ = ["STOP_WORDS", "normalize_token", "split_ingredients", "tokenize_ingredients"]
