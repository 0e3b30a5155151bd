import json

import pytest

from flavor_graph.analysis import graph as graph_stage
from flavor_graph.analysis.graph import (
    CORPUS_NOTE,
    active_ingredients,
    build_graph,
    infer_cuisines,
    title_case,
    to_networkx,
)
from flavor_graph.analysis.taxonomy import DEFAULT_TAXONOMY, Taxonomy, strength_from_lift
from flavor_graph.ingrnorm.canonical import AliasTable
from flavor_graph.records import PairRecord


def _row(a, b, lift="1.0", cuisines="", **extra):
    row = {"a_id": a.replace(" ", "-"), "b_id": b.replace(" ", "-"), "a": a, "b": b, "count": "2", "pmi": "0.5", "lift": lift, "cuisines": cuisines}
    row.update(extra)
    return row


@pytest.mark.parametrize(
    "lift, strength",
    list(zip([1.24, 1.25, 1.99, 2.0, 3.99, 4.0, 7.99, 8.0], [1, 2, 2, 3, 3, 4, 4, 5])),
)
def test_strength_bucket_boundaries(lift, strength):
    assert strength_from_lift(lift) == strength


def test_strength_for_weak_association():
    assert strength_from_lift(0.5) == 1


def test_first_metadata_row_wins():
    metadata = [{"id": "tomato", "name": "Tomato"}, {"id": "tomato", "name": "Roma"}]
    g = build_graph(metadata, [])
    assert g.ingredients == [{"id": "tomato", "name": "Tomato", "category": "veg"}]


def test_metadata_without_id_uses_canonical_name():
    g = build_graph([{"name": "Black Beans"}], [])
    assert g.ingredients[0]["id"] == "black-bean"
    assert g.ingredients[0]["category"] == "legume"


def test_metadata_joins_mined_tokens_by_canonical_id():
    metadata = [{"id": "couscous", "name": "Couscous"}, {"id": "chickpeas", "name": "Chickpeas"}]
    g = build_graph(metadata, [_row("chickpea", "couscou", lift="2.0")])
    assert [(n["id"], n["name"]) for n in g.ingredients] == [("chickpea", "Chickpeas"), ("couscou", "Couscous")]
    assert all("notes" not in n for n in g.ingredients)

    aliases = AliasTable({"garbanzo bean": "chickpea"})
    g = build_graph([{"id": "garbanzo-beans", "name": "Garbanzo Beans"}], [_row("chickpea", "rice")], aliases=aliases)
    assert [n["id"] for n in g.ingredients] == ["chickpea", "rice"]
    assert g.ingredients[0]["name"] == "Garbanzo Beans"


def test_corpus_tokens_are_auto_added():
    metadata = [{"id": "tomato", "name": "Tomato"}]
    g = build_graph(metadata, [_row("basil", "tomato", lift="2.5", cuisines="italian")])

    assert [n["id"] for n in g.ingredients] == ["basil", "tomato"]
    basil = g.ingredients[0]
    assert basil == {
        "id": "basil",
        "name": "Basil",
        "category": "veg",
        "default_cuisine": "italian",
        "notes": CORPUS_NOTE,
    }
    assert g.ingredients[1]["default_cuisine"] == "italian"
    assert "notes" not in g.ingredients[1]


def test_pairing_classification():
    rows = [
        _row("basil", "goat cheese"),
        _row("peanut butter", "soy sauce"),
        _row("tomato", "white wine"),
    ]
    g = build_graph([], rows)
    by_id = {p["id"]: p for p in g.pairings}

    assert by_id["basil"] == {"id": "basil", "name": "basil", "type": "herb", "nutrition_tags": ["plant-forward"]}
    assert by_id["goat-cheese"]["type"] == "cheese"
    assert by_id["goat-cheese"]["allergens"] == ["dairy"]
    assert by_id["peanut-butter"]["type"] == "other"
    assert by_id["peanut-butter"]["allergens"] == ["dairy", "nuts"]
    assert by_id["soy-sauce"]["type"] == "sauce"
    assert by_id["soy-sauce"]["allergens"] == ["soy"]
    assert by_id["soy-sauce"]["nutrition_tags"] == []
    assert "allergens" not in by_id["white-wine"]
    assert [p["id"] for p in g.pairings] == sorted(by_id)


def test_edges_are_sorted_and_unique():
    rows = [
        _row("garlic", "tomato", lift="4.2", cuisines="italian|greek"),
        _row("basil", "tomato", lift="8"),
        _row("basil", "tomato", lift="1.0"),
    ]
    g = build_graph([], rows)
    assert g.edges == [
        {"ingredient_id": "basil", "pairing_id": "tomato", "strength": 5, "techniques": []},
        {"ingredient_id": "garlic", "pairing_id": "tomato", "strength": 4, "cuisines": ["italian", "greek"], "techniques": []},
    ]


def test_missing_ids_are_derived_from_names():
    g = build_graph([], [{"a": "Olive Oil", "b": "garlic", "lift": "2"}])
    assert [n["id"] for n in g.ingredients] == ["garlic", "olive-oil"]
    assert g.ingredients[1]["name"] == "Olive Oil"
    assert g.edges[0]["ingredient_id"] == "olive-oil"


def test_cuisine_tie_goes_to_first_seen():
    rows = [
        {"a_id": "basil", "b_id": "tomato", "cuisines": "italian"},
        {"a_id": "basil", "b_id": "lime", "cuisines": "thai"},
        {"a_id": "basil", "b_id": "mint", "cuisines": "thai"},
        {"a_id": "lime", "b_id": "tomato", "cuisines": "mexican"},
    ]
    best = infer_cuisines(rows)
    assert best["basil"] == "thai"
    assert best["tomato"] == "italian"
    assert best["lime"] == "thai"


def test_records_are_ordered_ingredients_pairings_edges():
    g = build_graph([{"id": "tomato", "name": "Tomato"}], [_row("basil", "tomato")])
    kinds = [next(iter(r)) for r in g.records()]
    assert kinds == ["Ingredient", "Ingredient", "Pairing", "Pairing", "Edge"]


def test_build_is_deterministic():
    rows = [_row("tomato", "garlic", cuisines="italian"), _row("basil", "garlic", lift="3.1")]
    meta = [{"id": "garlic", "name": "Garlic"}]
    first = [json.dumps(r) for r in build_graph(meta, rows).records()]
    second = [json.dumps(r) for r in build_graph(meta, rows).records()]
    assert first == second


def test_accepts_pair_records():
    rec = PairRecord(a_id="basil", b_id="tomato", a="basil", b="tomato", count=3, pmi=1.0, lift=2.0)
    g = build_graph([], [rec])
    assert g.edges[0]["strength"] == 3


def test_active_ingredients_and_networkx_view():
    g = build_graph([{"id": "rice", "name": "Rice"}], [_row("basil", "tomato", lift="2.0")])
    assert [n["id"] for n in active_ingredients(g)] == ["basil"]

    G = to_networkx(g)
    assert set(G.nodes) == {"basil", "rice", "tomato"}
    assert G["basil"]["tomato"]["weight"] == 3
    assert G.nodes["basil"]["type"] == "herb"


def test_title_case():
    assert title_case("olive oil") == "Olive Oil"
    assert title_case("BELL pepper") == "Bell Pepper"


def test_taxonomy_tables_can_be_replaced():
    custom = Taxonomy.from_mapping({"pairing_types": {"herb": ["shiso"]}, "strength_thresholds": [[1.5, 2], [3, 5]]})
    assert custom.pairing_type("shiso") == "herb"
    assert custom.pairing_type("basil") == "other"
    assert custom.strength(3.0) == 5
    assert custom.strength(2.0) == 2
    assert custom.category("chicken") == DEFAULT_TAXONOMY.category("chicken") == "protein"


def test_stage_writes_jsonl_and_manifest(make_context, workspace):
    (workspace / "data/stage/pairings.csv").write_text(
        "a_id,b_id,a,b,count,pmi,lift,cuisines\n"
        "basil,tomato,basil,tomato,4,1.2,2.3,italian\n"
        "garlic,tomato,garlic,tomato,3,0.4,1.3,\n",
        encoding="utf-8",
    )
    (workspace / "data/stage/ingredients.csv").write_text("id,name\ntomato,Tomato\n", encoding="utf-8")
    context = make_context({
        "analysis_pmi": {"data": {"corpus_path": "data/raw/recipes.jsonl"}, "params": {"min_count": 3, "top_n": 10}},
        "analysis_graph": {
            "data": {"pair_table": "data/stage/pairings.csv", "ingredients_path": "data/stage/ingredients.csv"},
            "output": {"jsonl_dir": "data/jsonl", "gexf": True},
        },
    })

    result = graph_stage.run(context)
    assert result.status == "success"
    assert result.artifacts == {"ingredients": 3, "pairings": 3, "edges": 2}

    out = workspace / "data/jsonl"
    lines = (out / "graph.jsonl").read_text(encoding="utf-8").splitlines()
    assert [next(iter(json.loads(l))) for l in lines] == ["Ingredient"] * 3 + ["Pairing"] * 3 + ["Edge"] * 2
    assert json.loads(lines[-1]) == {"Edge": {"ingredient_id": "garlic", "pairing_id": "tomato", "strength": 2, "techniques": []}}
    assert (out / "flavor_graph.gexf").exists()

    dropdown = (out / "ingredients.dropdown.jsonl").read_text(encoding="utf-8").splitlines()
    assert [json.loads(l)["Ingredient"]["id"] for l in dropdown] == ["basil", "garlic"]

    manifest = json.loads((out / "_manifest.json").read_text(encoding="utf-8"))
    assert manifest["counts"] == {"ingredients": 3, "pairings": 3, "edges": 2}
    assert manifest["params"] == {"min_count": 3, "top_n": 10, "allow_any": False}
    assert manifest["source_file"] == "data/raw/recipes.jsonl"


def test_stage_fails_without_pair_table(make_context):
    context = make_context({"analysis_graph": {"data": {"pair_table": "data/stage/missing.csv"}}})
    assert graph_stage.run(context).status == "failed"
