"""
Recipe ingest stage: reads recipe files (JSONL / JSON / CSV / Parquet), drops
malformed and already-seen recipes, and appends the rest to the corpus JSONL
consumed by the pair miner.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

import numpy as np
import pandas as pd

from ..core import PipelineContext, StageResult
from ..exceptions import UnsupportedFileType
from ..ingrnorm.io import append_jsonl, parse_listish
from ..ingrnorm.tokenize import split_ingredients
from ..utils import stage_logger

RECORD_SUFFIXES = {".jsonl", ".json"}
TABULAR_SUFFIXES = {".csv", ".parquet"}


@dataclass
class LoadedRecipes:
    path: Path
    records: List[Any] = field(default_factory=list)
    malformed: int = 0


@dataclass
class IngestResult:
    added: int = 0
    skipped: int = 0
    records: List[Dict[str, Any]] = field(default_factory=list)


def _cell(value):
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if isinstance(value, np.ndarray):
        return value.tolist()
    return value


def _frame_to_recipes(df: pd.DataFrame) -> List[Dict[str, Any]]:
    out = []
    for row in df.to_dict(orient="records"):
        ingredients = _cell(row.get("ingredients"))
        # serialized list cells, e.g. "['tomato', 'basil']"
        if isinstance(ingredients, str) and ingredients.strip().startswith("["):
            ingredients = parse_listish(ingredients)
        out.append({
            "title": _cell(row.get("title")) or _cell(row.get("name")),
            "ingredients": ingredients,
            "cuisine": _cell(row.get("cuisine")),
        })
    return out


def check_supported(path: Union[str, Path]) -> Path:
    p = Path(path)
    if p.suffix.lower() not in RECORD_SUFFIXES | TABULAR_SUFFIXES:
        raise UnsupportedFileType(p)
    return p


def load_recipes(path: Union[str, Path]) -> LoadedRecipes:
    """Read raw recipe records. Unparsable JSONL lines are counted, not fatal."""
    p = check_supported(path)
    suffix = p.suffix.lower()
    result = LoadedRecipes(path=p)

    if suffix == ".jsonl":
        with open(p, "r", encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    result.records.append(json.loads(line))
                except json.JSONDecodeError:
                    result.malformed += 1
        return result

    if suffix == ".json":
        data = json.loads(p.read_text(encoding="utf-8"))
        if isinstance(data, list):
            result.records = data
        elif isinstance(data, dict) and isinstance(data.get("recipes"), list):
            result.records = data["recipes"]
        return result

    if suffix == ".csv":
        df = pd.read_csv(p, dtype=str, keep_default_na=False)
    else:
        df = pd.read_parquet(p)
    result.records = _frame_to_recipes(df)
    return result


def normalize_cuisine(value) -> Union[str, List[str], None]:
    if value is None:
        return None
    if isinstance(value, (list, tuple, np.ndarray)):
        tags = [str(c).strip().lower() for c in value if c is not None and str(c).strip()]
        return tags or None
    tag = str(value).strip().lower()
    return tag or None


def normalize_recipe(raw) -> Optional[Dict[str, Any]]:
    """Coerce a raw record into `{title?, ingredients: [...], cuisine?}`; None if unusable."""
    if not isinstance(raw, Mapping):
        return None
    ingredients = split_ingredients(_cell(raw.get("ingredients")))
    if not ingredients:
        return None
    rec: Dict[str, Any] = {}
    title = _cell(raw.get("title"))
    if title is not None and str(title).strip():
        rec["title"] = str(title).strip()
    rec["ingredients"] = ingredients
    cuisine = normalize_cuisine(_cell(raw.get("cuisine")))
    if cuisine:
        rec["cuisine"] = cuisine
    return rec


def recipe_fingerprint(recipe: Mapping[str, Any]) -> str:
    title = str(recipe.get("title") or "").lower().strip()
    ings = "|".join(sorted(s.lower() for s in split_ingredients(recipe.get("ingredients"))))
    cuisine = recipe.get("cuisine") or ""
    if isinstance(cuisine, (list, tuple)):
        cuisine = "|".join(cuisine)
    return f"{title}::{ings}::{str(cuisine).lower().strip()}"


def read_fingerprints(path: Union[str, Path]) -> Set[str]:
    fps: Set[str] = set()
    p = Path(path)
    if not p.exists():
        return fps
    with open(p, "r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(obj, Mapping):
                fps.add(recipe_fingerprint(obj))
    return fps


def ingest_recipes(batch: Iterable[Any], seen: Optional[Set[str]] = None) -> IngestResult:
    """Normalize a batch, skipping invalid records and fingerprints already in `seen` (updated in place)."""
    seen = seen if seen is not None else set()
    result = IngestResult()
    for raw in batch:
        rec = normalize_recipe(raw)
        if rec is None:
            result.skipped += 1
            continue
        key = recipe_fingerprint(rec)
        if key in seen:
            result.skipped += 1
            continue
        seen.add(key)
        result.records.append(rec)
        result.added += 1
    return result


def run(context: PipelineContext, *, inputs: Optional[Sequence[str]] = None, force: bool = False) -> StageResult:
    cfg = context.stage("ingest_recipes", required=False)
    logger = stage_logger(context, "ingest_recipes", force=force)

    data_cfg = cfg.get("data", {})
    input_paths = [context.resolve(p) for p in (inputs or data_cfg.get("inputs") or [])]
    corpus_path = context.resolve(cfg.get("output", {}).get("corpus_path", "data/raw/recipes.jsonl"))

    if not input_paths:
        logger.info("No recipe inputs configured; nothing to ingest")
        return StageResult(name="ingest_recipes", status="skipped", details="No inputs configured")

    # Validate every input before touching the corpus
    try:
        for p in input_paths:
            check_supported(p)
    except UnsupportedFileType as exc:
        logger.error("%s", exc)
        return StageResult(name="ingest_recipes", status="failed", details=str(exc))
    missing = [str(p) for p in input_paths if not p.exists()]
    if missing:
        logger.error("Recipe inputs not found: %s", ", ".join(missing))
        return StageResult(name="ingest_recipes", status="failed", details=f"Missing inputs: {missing}")

    seen = read_fingerprints(corpus_path)
    added = skipped = 0
    new_records: List[Dict[str, Any]] = []
    for p in input_paths:
        loaded = load_recipes(p)
        res = ingest_recipes(loaded.records, seen)
        new_records.extend(res.records)
        added += res.added
        skipped += res.skipped + loaded.malformed
        logger.info("%s: %d added, %d skipped", p.name, res.added, res.skipped + loaded.malformed)

    if new_records:
        append_jsonl(new_records, corpus_path)
    logger.info("Ingest complete -> %s (added=%d skipped=%d)", corpus_path, added, skipped)
    return StageResult(
        name="ingest_recipes",
        status="success",
        outputs={"corpus": str(corpus_path)},
        artifacts={"added": added, "skipped": skipped},
    )
