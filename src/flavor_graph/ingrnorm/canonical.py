from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Union

from flavor_graph.exceptions import ConfigError

from .tokenize import normalize_token

logger = logging.getLogger(__name__)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def singularize(token: str) -> str:
    """
    Naive plural -> singular rewrite. Rule order matters and is kept stable:
    ies -> y, oes -> o, ses -> s, then a lone trailing s (not ss).
    Irregular plurals ("leaves" -> "leave") are not handled.
    """
    if token.endswith("ies"):
        return token[:-3] + "y"
    if token.endswith("oes"):
        return token[:-2]
    if token.endswith("ses"):
        return token[:-2]
    if token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def slugify(name: str) -> str:
    return _NON_ALNUM_RE.sub("-", str(name).lower()).strip("-")


class AliasTable(Mapping[str, str]):
    """Read-only alias lookup (lower-cased name or singular form -> canonical name)."""

    def __init__(self, mapping: Optional[Mapping[str, str]] = None) -> None:
        data: Dict[str, str] = {}
        for key, value in (mapping or {}).items():
            k = str(key).strip().lower()
            v = str(value).strip()
            if k and v:
                data[k] = v
        self._data = MappingProxyType(data)

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"AliasTable({len(self)} entries)"

    @classmethod
    def load(cls, path: Union[str, Path, None]) -> "AliasTable":
        """Load a JSON object of alias -> canonical. A missing file yields an empty table."""
        if not path:
            return cls()
        p = Path(path)
        if not p.exists():
            logger.warning("Alias table %s not found; canonicalizing with singular forms only", p)
            return cls()
        try:
            raw = json.loads(p.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Alias table {p} is not valid JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Alias table {p} must be a JSON object")
        table = cls(raw)
        logger.info("Loaded %d aliases from %s", len(table), p)
        return table


EMPTY_ALIASES = AliasTable()


def _canonical_step(n: str, aliases: Mapping[str, str]) -> str:
    s = singularize(n)
    return aliases.get(n) or aliases.get(s) or s


def canonical_name(token: str, aliases: Mapping[str, str] = EMPTY_ALIASES) -> str:
    """
    Alias lookup on the token, then on its singular form, else the singular form.
    Repeated until the name stops changing, so that canonical names map to themselves.
    """
    current = str(token).lower().strip()
    seen = {current}
    while True:
        nxt = _canonical_step(current, aliases).lower().strip()
        if nxt == current:
            return current
        if nxt in seen:
            logger.warning("Alias cycle through %r; stopping at %r", token, nxt)
            return nxt
        seen.add(nxt)
        current = nxt


def canonical_id(token: str, aliases: Mapping[str, str] = EMPTY_ALIASES) -> str:
    return slugify(canonical_name(token, aliases))


def pair_key(a: str, b: str) -> Tuple[str, str]:
    return (a, b) if a <= b else (b, a)


def metadata_id(row: Mapping[str, Any], aliases: Mapping[str, str] = EMPTY_ALIASES) -> str:
    """
    CanonicalId for an ingredient metadata row, so curated rows join with mined
    tokens: the row's `id` read as words ("black-beans" -> "black bean"), else
    its `name`, normalized and canonicalized like a recipe mention.
    """
    raw = str(row.get("id") or "").replace("-", " ").strip() or str(row.get("name") or "")
    token = normalize_token(raw)
    return canonical_id(token, aliases) if token else ""


__all__ = [
    "AliasTable",
    "EMPTY_ALIASES",
    "canonical_id",
    "canonical_name",
    "metadata_id",
    "pair_key",
    "singularize",
    "slugify",
]
