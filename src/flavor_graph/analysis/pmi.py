"""
PMI Analysis Stage: mines ingredient co-occurrence from the recipe corpus and
scores every qualifying pair with pointwise mutual information and lift.
"""
from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from itertools import combinations
from math import log2
from typing import AbstractSet, Any, Dict, Iterable, List, Mapping, Optional, Set

from pydantic import BaseModel, Field

from ..core import PipelineContext, StageResult
from ..exceptions import UnsupportedFileType
from ..ingrnorm.canonical import EMPTY_ALIASES, AliasTable, canonical_name, metadata_id, slugify
from ..ingrnorm.io import read_ingredient_metadata, write_pair_table
from ..ingrnorm.tokenize import STOP_WORDS, tokenize_ingredients
from ..preprocessing.ingest import load_recipes
from ..records import PairRecord
from ..utils import stage_logger


class MiningParams(BaseModel):
    min_count: int = Field(default=5, ge=1)
    top_n: int = Field(default=5000, ge=0)
    cuisine_aware: bool = True
    # bypass the metadata whitelist and let any corpus token through
    allow_any: bool = False


@dataclass
class MiningResult:
    pairs: List[PairRecord] = field(default_factory=list)
    documents: int = 0
    recipes_seen: int = 0
    malformed: int = 0
    qualifying_pairs: int = 0


def _recipe_cuisines(value) -> List[str]:
    if value is None:
        return []
    values = value if isinstance(value, (list, tuple, set)) else [value]
    return [str(c).strip().lower() for c in values if c is not None and str(c).strip()]


def pair_score(record: PairRecord) -> float:
    """Ranking score: association strength weighted by volume of evidence."""
    return record.pmi * log2(1 + record.count)


def mine_pairs(
    recipes: Iterable[Any],
    params: Optional[MiningParams] = None,
    *,
    aliases: Mapping[str, str] = EMPTY_ALIASES,
    whitelist: Optional[AbstractSet[str]] = None,
    stop_words: AbstractSet[str] = STOP_WORDS,
) -> MiningResult:
    """Count item/pair frequencies per recipe and derive PMI and lift for each pair."""
    params = params or MiningParams()
    result = MiningResult()
    use_whitelist = whitelist is not None and not params.allow_any

    item_freq: Counter = Counter()
    pair_freq: Counter = Counter()
    pair_cuisines: Dict[tuple, Set[str]] = defaultdict(set)
    names: Dict[str, str] = {}

    # Pass 1: counts
    for recipe in recipes:
        result.recipes_seen += 1
        if not isinstance(recipe, Mapping) or not recipe.get("ingredients"):
            result.malformed += 1
            continue

        ids: List[str] = []
        for tok in tokenize_ingredients(recipe["ingredients"], stop_words):
            name = canonical_name(tok, aliases)
            cid = slugify(name)
            if not cid:
                continue
            if use_whitelist and cid not in whitelist:
                continue
            names.setdefault(cid, name)
            ids.append(cid)

        uniq = sorted(set(ids))
        if len(uniq) < 2:
            continue
        result.documents += 1
        item_freq.update(uniq)

        cuisines = _recipe_cuisines(recipe.get("cuisine")) if params.cuisine_aware else []
        for a, b in combinations(uniq, 2):
            pair_freq[(a, b)] += 1
            if cuisines:
                pair_cuisines[(a, b)].update(cuisines)

    docs = result.documents
    if docs == 0:
        return result

    # Pass 2: PMI / lift
    rows: List[PairRecord] = []
    for (a, b), count in pair_freq.items():
        if count < params.min_count:
            continue
        p_a = item_freq[a] / docs
        p_b = item_freq[b] / docs
        p_ab = count / docs
        lift = p_ab / (p_a * p_b)
        rows.append(PairRecord(
            a_id=a,
            b_id=b,
            a=names[a],
            b=names[b],
            count=count,
            pmi=log2(lift),
            lift=lift,
            cuisines=frozenset(pair_cuisines.get((a, b), ())),
        ))

    result.qualifying_pairs = len(rows)
    rows.sort(key=lambda r: (-pair_score(r), r.a_id, r.b_id))
    result.pairs = rows[: params.top_n]
    return result


def whitelist_from_metadata(
    rows: Iterable[Mapping[str, Any]],
    aliases: Mapping[str, str] = EMPTY_ALIASES,
) -> Set[str]:
    """CanonicalIds of the metadata rows, comparable with the ids `mine_pairs` derives."""
    return {cid for cid in (metadata_id(r, aliases) for r in rows) if cid}


def run(context: PipelineContext, *, force: bool = False, **overrides) -> StageResult:
    cfg = context.stage("analysis_pmi")
    logger = stage_logger(context, "analysis_pmi", force=force)

    # Config
    data_cfg = cfg.get("data", {})
    params = MiningParams(**{**cfg.get("params", {}), **overrides})
    output_cfg = cfg.get("output", {})

    corpus_path = context.resolve(data_cfg.get("corpus_path"))
    pair_path = context.resolve(output_cfg.get("pair_table", "data/stage/pairings.csv"))

    if corpus_path is None or not corpus_path.exists():
        logger.error("Recipe corpus not found: %s", corpus_path)
        return StageResult(name="analysis_pmi", status="failed", details=f"Missing corpus {corpus_path}")

    aliases = AliasTable.load(context.resolve(data_cfg.get("alias_path")))
    metadata = read_ingredient_metadata(context.resolve(data_cfg.get("ingredients_path")))
    known_ids = whitelist_from_metadata(metadata, aliases)
    whitelist = known_ids if (metadata and data_cfg.get("whitelist_from_metadata", True)) else None

    # 1. Load Data
    logger.info("Loading recipes from %s...", corpus_path)
    try:
        loaded = load_recipes(corpus_path)
    except UnsupportedFileType as exc:
        logger.error("%s", exc)
        return StageResult(name="analysis_pmi", status="failed", details=str(exc))

    # 2. Mine pairs
    logger.info(
        "Mining pairs (min_count=%d, top_n=%d, cuisine_aware=%s, whitelist=%s)",
        params.min_count,
        params.top_n,
        params.cuisine_aware,
        "bypassed" if params.allow_any else (len(whitelist) if whitelist is not None else "none"),
    )
    mined = mine_pairs(loaded.records, params, aliases=aliases, whitelist=whitelist)
    skipped = mined.malformed + loaded.malformed
    if skipped:
        logger.warning("Skipped %d malformed recipe records", skipped)
    if mined.documents == 0:
        logger.warning("No recipe contributed a pair; writing an empty pair table")
    logger.info(
        "%d recipes contributed pairs; %d pairs reached min_count, kept top %d",
        mined.documents,
        mined.qualifying_pairs,
        len(mined.pairs),
    )

    write_pair_table(mined.pairs, pair_path)
    logger.info("Saved %d PMI pairs to %s", len(mined.pairs), pair_path)

    discovered = sorted(
        {r.a_id for r in mined.pairs if r.a_id not in known_ids}
        | {r.b_id for r in mined.pairs if r.b_id not in known_ids}
    )
    if discovered:
        logger.info("%d corpus-derived ingredients not in metadata", len(discovered))

    return StageResult(
        name="analysis_pmi",
        status="success",
        outputs={"pair_table": str(pair_path)},
        artifacts={
            "documents": mined.documents,
            "pairs": len(mined.pairs),
            "skipped": skipped,
            "discovered": discovered,
            "params": params.model_dump(),
            "source_file": str(data_cfg.get("corpus_path")),
        },
    )
