"""Ingredient text normalization and canonical identifiers."""

from .canonical import AliasTable, canonical_id, canonical_name, metadata_id, pair_key, singularize, slugify
from .tokenize import STOP_WORDS, normalize_token, split_ingredients, tokenize_ingredients

__all__ = [
    "AliasTable",
    "STOP_WORDS",
    "canonical_id",
    "canonical_name",
    "metadata_id",
    "normalize_token",
    "pair_key",
    "singularize",
    "slugify",
    "split_ingredients",
    "tokenize_ingredients",
]
