"""
Graph stage: joins the canonical pair table with curated ingredient metadata and
emits Ingredient, Pairing and Edge records (JSONL), plus a GEXF view and a
provenance manifest.
"""
from __future__ import annotations

import json
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

import networkx as nx

from ..core import PipelineContext, StageResult
from ..ingrnorm.canonical import EMPTY_ALIASES, AliasTable, metadata_id, slugify
from ..ingrnorm.io import count_lines, read_ingredient_metadata, read_pair_table, write_jsonl
from ..records import PairRecord, split_cuisines, to_float
from ..utils import bool_from_cfg, stage_logger
from .pmi import MiningParams
from .taxonomy import DEFAULT_TAXONOMY, Taxonomy

CORPUS_NOTE = "Auto-added from corpus"

_WORD_RE = re.compile(r"\w\S*")


def title_case(s: str) -> str:
    return _WORD_RE.sub(lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), s)


@dataclass
class FlavorGraph:
    ingredients: List[Dict[str, Any]] = field(default_factory=list)
    pairings: List[Dict[str, Any]] = field(default_factory=list)
    edges: List[Dict[str, Any]] = field(default_factory=list)

    def records(self) -> Iterator[Dict[str, Any]]:
        """Tagged records in artifact order: Ingredients, then Pairings, then Edges."""
        for node in self.ingredients:
            yield {"Ingredient": node}
        for node in self.pairings:
            yield {"Pairing": node}
        for edge in self.edges:
            yield {"Edge": edge}

    @property
    def counts(self) -> Dict[str, int]:
        return {
            "ingredients": len(self.ingredients),
            "pairings": len(self.pairings),
            "edges": len(self.edges),
        }


def _pair_rows(rows: Iterable[Mapping[str, Any] | PairRecord]) -> List[Dict[str, Any]]:
    """Coerce pair rows to dicts with ids filled in from the side names when missing."""
    out = []
    for r in rows:
        row = r.to_row() if isinstance(r, PairRecord) else dict(r)
        a, b = str(row.get("a") or ""), str(row.get("b") or "")
        row["a_id"] = str(row.get("a_id") or "") or slugify(a)
        row["b_id"] = str(row.get("b_id") or "") or slugify(b)
        if not row["a_id"] or not row["b_id"]:
            continue
        row["a"] = a or row["a_id"]
        row["b"] = b or row["b_id"]
        out.append(row)
    return out


def infer_cuisines(pair_rows: Iterable[Mapping[str, Any]]) -> Dict[str, str]:
    """Most frequent cuisine per token id; ties go to the cuisine seen first."""
    tally: Dict[str, Counter] = {}
    for r in pair_rows:
        cuisines = split_cuisines(r.get("cuisines"))
        for tid in (r["a_id"], r["b_id"]):
            counter = tally.setdefault(tid, Counter())
            counter.update(cuisines)
    best: Dict[str, str] = {}
    for tid, counter in tally.items():
        if counter:
            # max() keeps the first of equal counts; Counter keeps insertion order
            best[tid] = max(counter.items(), key=lambda kv: kv[1])[0]
    return best


def _ingredient_node(
    node_id: str,
    name: str,
    category: str,
    default_cuisine: Optional[str],
    notes: Optional[str],
) -> Dict[str, Any]:
    node: Dict[str, Any] = {"id": node_id, "name": name, "category": category}
    if default_cuisine:
        node["default_cuisine"] = default_cuisine
    if notes:
        node["notes"] = notes
    return node


def build_ingredients(
    metadata: Iterable[Mapping[str, Any]],
    pair_rows: List[Dict[str, Any]],
    cuisines: Mapping[str, str],
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
    aliases: Mapping[str, str] = EMPTY_ALIASES,
) -> List[Dict[str, Any]]:
    """Metadata rows keyed by their CanonicalId, then corpus tokens the metadata lacks."""
    seen: Set[str] = set()
    nodes: List[Dict[str, Any]] = []
    for r in metadata:
        name = str(r.get("name") or "").strip()
        node_id = metadata_id(r, aliases)
        if not node_id or node_id in seen:
            continue
        seen.add(node_id)
        name = name or node_id
        category = str(r.get("category") or "").strip() or taxonomy.category(name)
        default_cuisine = str(r.get("default_cuisine") or "").strip().lower() or cuisines.get(node_id)
        notes = str(r.get("notes") or "").strip() or None
        nodes.append(_ingredient_node(node_id, name, category, default_cuisine, notes))

    # Auto-add corpus tokens so every edge endpoint has a node
    for r in pair_rows:
        for side in ("a", "b"):
            token = str(r[side]).lower()
            node_id = r[f"{side}_id"]
            if node_id in seen:
                continue
            seen.add(node_id)
            name = title_case(token)
            nodes.append(_ingredient_node(node_id, name, taxonomy.category(token), cuisines.get(node_id), CORPUS_NOTE))

    nodes.sort(key=lambda n: n["id"])
    return nodes


def build_pairings(pair_rows: List[Dict[str, Any]], taxonomy: Taxonomy = DEFAULT_TAXONOMY) -> List[Dict[str, Any]]:
    seen: Set[str] = set()
    nodes: List[Dict[str, Any]] = []
    for r in pair_rows:
        for side in ("a", "b"):
            node_id = r[f"{side}_id"]
            if node_id in seen:
                continue
            seen.add(node_id)
            name = r[side]
            ptype = taxonomy.pairing_type(name)
            node: Dict[str, Any] = {
                "id": node_id,
                "name": name,
                "type": ptype,
                "nutrition_tags": taxonomy.nutrition_tags(ptype),
            }
            allergens = taxonomy.allergens_for(name)
            if allergens:
                node["allergens"] = allergens
            nodes.append(node)
    nodes.sort(key=lambda n: n["id"])
    return nodes


def build_edges(pair_rows: List[Dict[str, Any]], taxonomy: Taxonomy = DEFAULT_TAXONOMY) -> List[Dict[str, Any]]:
    seen: Set[Tuple[str, str]] = set()
    edges: List[Dict[str, Any]] = []
    for r in pair_rows:
        key = (r["a_id"], r["b_id"])
        if key in seen:
            continue
        seen.add(key)
        edge: Dict[str, Any] = {
            "ingredient_id": key[0],
            "pairing_id": key[1],
            "strength": taxonomy.strength(to_float(r.get("lift"), 1.0)),
        }
        cuisines = split_cuisines(r.get("cuisines"))
        if cuisines:
            edge["cuisines"] = cuisines
        edge["techniques"] = []
        edges.append(edge)
    edges.sort(key=lambda e: (e["ingredient_id"], e["pairing_id"]))
    return edges


def build_graph(
    ingredient_metadata: Iterable[Mapping[str, Any]],
    pair_table: Iterable[Mapping[str, Any] | PairRecord],
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
    aliases: Mapping[str, str] = EMPTY_ALIASES,
) -> FlavorGraph:
    rows = _pair_rows(pair_table)
    cuisines = infer_cuisines(rows)
    return FlavorGraph(
        ingredients=build_ingredients(ingredient_metadata, rows, cuisines, taxonomy, aliases),
        pairings=build_pairings(rows, taxonomy),
        edges=build_edges(rows, taxonomy),
    )


def active_ingredients(graph: FlavorGraph) -> List[Dict[str, Any]]:
    """Ingredients that start at least one edge (the planner's dropdown list)."""
    active = {e["ingredient_id"] for e in graph.edges}
    return [n for n in graph.ingredients if n["id"] in active]


def to_networkx(graph: FlavorGraph) -> nx.Graph:
    G = nx.Graph()
    for n in graph.ingredients:
        G.add_node(n["id"], label=n["name"], category=n["category"], kind="ingredient")
    for n in graph.pairings:
        if n["id"] in G:
            G.nodes[n["id"]]["type"] = n["type"]
        else:
            G.add_node(n["id"], label=n["name"], type=n["type"], kind="pairing")
    for e in graph.edges:
        G.add_edge(
            e["ingredient_id"],
            e["pairing_id"],
            weight=e["strength"],
            cuisines="|".join(e.get("cuisines", [])),
        )
    return G


def run(context: PipelineContext, *, force: bool = False) -> StageResult:
    cfg = context.stage("analysis_graph")
    logger = stage_logger(context, "analysis_graph", force=force)

    data_cfg = cfg.get("data", {})
    output_cfg = cfg.get("output", {})
    pair_path = context.resolve(data_cfg.get("pair_table", "data/stage/pairings.csv"))
    out_dir = context.resolve(output_cfg.get("jsonl_dir", "data/jsonl"))

    if not pair_path.exists():
        logger.error("Pair table not found: %s", pair_path)
        return StageResult(name="analysis_graph", status="failed", details=f"Missing pair table {pair_path}")

    taxonomy = Taxonomy.load(context.resolve(data_cfg.get("taxonomy_path")))
    aliases = AliasTable.load(context.resolve(data_cfg.get("alias_path")))
    metadata = read_ingredient_metadata(context.resolve(data_cfg.get("ingredients_path")))
    pair_rows = read_pair_table(pair_path)

    logger.info("Building graph from %d pairs and %d metadata rows...", len(pair_rows), len(metadata))
    graph = build_graph(metadata, pair_rows, taxonomy, aliases)
    counts = graph.counts
    logger.info("Graph: %d ingredients, %d pairings, %d edges", counts["ingredients"], counts["pairings"], counts["edges"])

    files = {
        "graph": out_dir / "graph.jsonl",
        "ingredients": out_dir / "ingredients.jsonl",
        "pairings": out_dir / "pairings.jsonl",
        "edges": out_dir / "edges.jsonl",
    }
    write_jsonl(({"Ingredient": n} for n in graph.ingredients), files["ingredients"])
    write_jsonl(({"Pairing": n} for n in graph.pairings), files["pairings"])
    write_jsonl(({"Edge": e} for e in graph.edges), files["edges"])
    write_jsonl(graph.records(), files["graph"])

    dropdown = active_ingredients(graph)
    files["dropdown"] = write_jsonl(({"Ingredient": n} for n in dropdown), out_dir / "ingredients.dropdown.jsonl")
    logger.info("%d active ingredients in dropdown export", len(dropdown))

    G = to_networkx(graph)
    if G.number_of_nodes():
        top = sorted(G.degree, key=lambda kv: (-kv[1], kv[0]))[:5]
        logger.info("Most connected: %s", ", ".join(f"{n} ({d})" for n, d in top))
    if bool_from_cfg(output_cfg.get("gexf"), default=True):
        # Export GEXF for Gephi
        files["gexf"] = out_dir / "flavor_graph.gexf"
        nx.write_gexf(G, files["gexf"])

    manifest_path = write_manifest(context, out_dir, files)
    logger.info("Wrote %s", manifest_path)

    return StageResult(
        name="analysis_graph",
        status="success",
        outputs={**{k: str(v) for k, v in files.items()}, "manifest": str(manifest_path)},
        artifacts=counts,
    )


def write_manifest(context: PipelineContext, out_dir: Path, files: Mapping[str, Path]) -> Path:
    """Provenance only: line counts of the written collections plus the mining parameters."""
    mined = context.results.get("analysis_pmi")
    if mined is not None and mined.status == "success":
        # what this session's mining run actually used, overrides included
        params = MiningParams(**mined.artifacts["params"])
        source = mined.artifacts.get("source_file")
    else:
        mine_cfg = context.stage("analysis_pmi", required=False)
        params = MiningParams(**mine_cfg.get("params", {}))
        source = mine_cfg.get("data", {}).get("corpus_path")
    manifest = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "source_file": str(source) if source else None,
        "params": {
            "min_count": params.min_count,
            "top_n": params.top_n,
            "allow_any": params.allow_any,
        },
        "counts": {
            "ingredients": count_lines(files["ingredients"]),
            "pairings": count_lines(files["pairings"]),
            "edges": count_lines(files["edges"]),
        },
        "files": {k: str(v) for k, v in files.items()},
    }
    manifest_path = out_dir / "_manifest.json"
    manifest_path.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    return manifest_path
