"""Row types shared by the miner, the dedupe stage and the graph builder."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable

CUISINE_SEP = "|"
PRECISION = 4


def split_cuisines(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        parts = value
    else:
        parts = str(value).split(CUISINE_SEP)
    return [str(p).strip().lower() for p in parts if str(p).strip()]


def to_float(value, default: float) -> float:
    """Parse a numeric cell; blanks and non-finite values fall back to `default`."""
    if value is None or value == "":
        return default
    try:
        f = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(f) or math.isinf(f):
        return default
    return f


def to_int(value, default: int = 0) -> int:
    f = to_float(value, float(default))
    return int(f)


@dataclass(frozen=True)
class PairRecord:
    a_id: str
    b_id: str
    a: str
    b: str
    count: int = 0
    pmi: float = 0.0
    lift: float = 1.0
    cuisines: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def key(self) -> tuple[str, str]:
        return (self.a_id, self.b_id)

    def rounded(self, digits: int = PRECISION) -> "PairRecord":
        return PairRecord(
            a_id=self.a_id,
            b_id=self.b_id,
            a=self.a,
            b=self.b,
            count=self.count,
            pmi=round(self.pmi, digits),
            lift=round(self.lift, digits),
            cuisines=self.cuisines,
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "a_id": self.a_id,
            "b_id": self.b_id,
            "a": self.a,
            "b": self.b,
            "count": int(self.count),
            "pmi": round(self.pmi, PRECISION),
            "lift": round(self.lift, PRECISION),
            "cuisines": CUISINE_SEP.join(sorted(self.cuisines)),
        }


def rows_from_records(records: Iterable[PairRecord]) -> list[Dict[str, Any]]:
    return [r.to_row() for r in records]


__all__ = [
    "CUISINE_SEP",
    "PRECISION",
    "PairRecord",
    "rows_from_records",
    "split_cuisines",
    "to_float",
    "to_int",
]
