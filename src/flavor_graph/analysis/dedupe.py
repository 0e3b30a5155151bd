"""
Pair-table dedupe stage.

Re-canonicalizes both sides of every pair row with the current alias table and
folds rows that land on the same pair key into one. Output is sorted by
(a_id, b_id) with pmi/lift at fixed precision, so running the stage on its own
output is a no-op.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..core import PipelineContext, StageResult
from ..ingrnorm.canonical import EMPTY_ALIASES, AliasTable, canonical_name, pair_key, slugify
from ..ingrnorm.io import read_pair_table, write_pair_table
from ..records import PairRecord, split_cuisines, to_float, to_int
from ..utils import stage_logger


def _side_name(row: Mapping[str, Any], side: str) -> str:
    name = str(row.get(side) or "").strip()
    if name:
        return name
    return str(row.get(f"{side}_id") or "").replace("-", " ").strip()


def merge_records(existing: Optional[PairRecord], incoming: PairRecord) -> PairRecord:
    """Fold `incoming` into `existing` (same pair key): sum counts, keep max pmi/lift, union cuisines."""
    count = incoming.count or 1
    if existing is None:
        return PairRecord(
            a_id=incoming.a_id,
            b_id=incoming.b_id,
            a=incoming.a,
            b=incoming.b,
            count=count,
            pmi=incoming.pmi,
            lift=incoming.lift,
            cuisines=incoming.cuisines,
        )
    return PairRecord(
        a_id=existing.a_id,
        b_id=existing.b_id,
        a=existing.a,
        b=existing.b,
        count=existing.count + count,
        pmi=max(existing.pmi, incoming.pmi),
        lift=max(existing.lift, incoming.lift),
        cuisines=existing.cuisines | incoming.cuisines,
    )


def recanonicalize(row: Mapping[str, Any], aliases: Mapping[str, str] = EMPTY_ALIASES) -> Optional[PairRecord]:
    """
    Rebuild a pair row's identity from its side names. None if a side is empty or
    both sides now share one CanonicalId (e.g. "scallion" aliased to "green onion").
    """
    a_name = canonical_name(_side_name(row, "a"), aliases)
    b_name = canonical_name(_side_name(row, "b"), aliases)
    first, second = pair_key(a_name, b_name)
    a_id, b_id = slugify(first), slugify(second)
    if not a_id or not b_id or a_id == b_id:
        return None
    if a_id > b_id:
        a_id, b_id = b_id, a_id
        first, second = second, first
    return PairRecord(
        a_id=a_id,
        b_id=b_id,
        a=first,
        b=second,
        count=to_int(row.get("count"), 0),
        pmi=to_float(row.get("pmi"), 0.0),
        lift=to_float(row.get("lift"), 1.0),
        cuisines=frozenset(split_cuisines(row.get("cuisines"))),
    )


def merge_pair_table(
    rows: Iterable[Mapping[str, Any] | PairRecord],
    aliases: Mapping[str, str] = EMPTY_ALIASES,
) -> List[PairRecord]:
    merged: Dict[Tuple[str, str], PairRecord] = {}
    for row in rows:
        if isinstance(row, PairRecord):
            row = row.to_row()
        rec = recanonicalize(row, aliases)
        if rec is None:
            continue
        merged[rec.key] = merge_records(merged.get(rec.key), rec)
    return [merged[k].rounded() for k in sorted(merged)]


def run(context: PipelineContext, *, force: bool = False) -> StageResult:
    cfg = context.stage("analysis_dedupe", required=False)
    logger = stage_logger(context, "analysis_dedupe", force=force)

    data_cfg = cfg.get("data", {})
    pair_path = context.resolve(data_cfg.get("pair_table", "data/stage/pairings.csv"))
    out_path = context.resolve(cfg.get("output", {}).get("pair_table")) or pair_path

    if not pair_path.exists():
        logger.info("No pair table at %s; nothing to dedupe", pair_path)
        return StageResult(name="analysis_dedupe", status="skipped", details=f"Missing {pair_path}")

    aliases = AliasTable.load(context.resolve(data_cfg.get("alias_path")))
    rows = read_pair_table(pair_path)
    out = merge_pair_table(rows, aliases)
    write_pair_table(out, out_path)
    logger.info("Deduped %d -> %d rows. Updated %s", len(rows), len(out), out_path)

    return StageResult(
        name="analysis_dedupe",
        status="success",
        outputs={"pair_table": str(out_path)},
        artifacts={"rows_in": len(rows), "rows_out": len(out)},
    )
