from __future__ import annotations
import ast, json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Union
import logging
import numpy as np
import pandas as pd

from flavor_graph.records import PRECISION, PairRecord, rows_from_records

logger = logging.getLogger(__name__)

PAIR_COLUMNS = ["a_id", "b_id", "a", "b", "count", "pmi", "lift", "cuisines"]


def parse_listish(v) -> list[str]:
    """Accept list/tuple/np.ndarray; try JSON/Python list in string; fallback to single-item list."""
    if v is None or (isinstance(v, float) and pd.isna(v)):
        return []
    if isinstance(v, (list, tuple, np.ndarray)):
        return [str(x) for x in v if str(x).strip()]
    s = str(v).strip()
    if not s:
        return []
    if (s.startswith("[") and s.endswith("]")) or (s.startswith("(") and s.endswith(")")):
        parsed = None
        try:
            parsed = json.loads(s)
        except json.JSONDecodeError:
            try:
                parsed = ast.literal_eval(s)
            except (ValueError, SyntaxError):
                parsed = None
        if isinstance(parsed, (list, tuple, np.ndarray)):
            return [str(x) for x in parsed if str(x).strip()]
    return [s]


def read_csv_rows(path: Union[str, Path]) -> List[Dict[str, str]]:
    """Read a header CSV as a list of string dicts; blanks stay as empty strings."""
    p = Path(path)
    if p.stat().st_size == 0:
        return []
    df = pd.read_csv(p, dtype=str, keep_default_na=False, skip_blank_lines=True)
    return df.to_dict(orient="records")


def pairs_to_frame(records: Iterable[PairRecord]) -> pd.DataFrame:
    rows = rows_from_records(records)
    df = pd.DataFrame(rows, columns=PAIR_COLUMNS)
    if not df.empty:
        df["count"] = df["count"].astype(int)
    return df


def write_pair_table(records: Iterable[PairRecord], out_path: Union[str, Path]) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    df = pairs_to_frame(records)
    df.to_csv(out_path, index=False, float_format=f"%.{PRECISION}f", lineterminator="\n")
    return out_path


def read_pair_table(path: Union[str, Path]) -> List[Dict[str, str]]:
    return read_csv_rows(path)


def read_ingredient_metadata(path: Union[str, Path, None]) -> List[Dict[str, str]]:
    """Curated ingredient rows (`id,name,...`). Missing file -> no metadata."""
    if not path:
        return []
    p = Path(path)
    if not p.exists():
        logger.warning("Ingredient metadata %s not found; all nodes will be corpus-derived", p)
        return []
    return read_csv_rows(p)


def write_jsonl(records: Iterable[Mapping[str, Any]], out_path: Union[str, Path]) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        for obj in records:
            f.write(json.dumps(obj, ensure_ascii=False) + "\n")
    return out_path


def append_jsonl(records: Iterable[Mapping[str, Any]], out_path: Union[str, Path]) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "a", encoding="utf-8") as f:
        for obj in records:
            f.write(json.dumps(obj, ensure_ascii=False) + "\n")
    return out_path


def count_lines(path: Union[str, Path]) -> int:
    p = Path(path)
    if not p.exists():
        return 0
    with open(p, "r", encoding="utf-8") as f:
        return sum(1 for line in f if line.strip())


__all__ = [
    "PAIR_COLUMNS",
    "append_jsonl",
    "count_lines",
    "pairs_to_frame",
    "parse_listish",
    "read_csv_rows",
    "read_ingredient_metadata",
    "read_pair_table",
    "write_jsonl",
    "write_pair_table",
]
