from math import log2

import pytest
from pydantic import ValidationError

from flavor_graph.analysis import pmi
from flavor_graph.analysis.pmi import MiningParams, mine_pairs, pair_score, whitelist_from_metadata
from flavor_graph.ingrnorm.canonical import AliasTable
from flavor_graph.ingrnorm.io import read_pair_table


def _by_key(result):
    return {r.key: r for r in result.pairs}


def test_end_to_end_corpus_gives_equal_lift(basic_corpus):
    result = mine_pairs(basic_corpus, MiningParams(min_count=2))

    assert result.documents == 4
    assert [r.key for r in result.pairs] == [
        ("basil", "garlic"),
        ("basil", "tomato"),
        ("garlic", "tomato"),
    ]
    expected_lift = (2 / 4) / ((3 / 4) * (3 / 4))
    for rec in result.pairs:
        assert rec.count == 2
        assert rec.lift == pytest.approx(expected_lift)
        assert rec.pmi == pytest.approx(log2(expected_lift))


def test_min_count_filters_every_pair(basic_corpus):
    result = mine_pairs(basic_corpus, MiningParams(min_count=3))
    assert result.pairs == []
    assert result.documents == 4


def test_pair_key_symmetry():
    forward = mine_pairs([{"ingredients": ["tomato", "basil"]}], MiningParams(min_count=1))
    backward = mine_pairs([{"ingredients": ["basil", "tomato"]}], MiningParams(min_count=1))
    assert [r.key for r in forward.pairs] == [r.key for r in backward.pairs] == [("basil", "tomato")]


def test_lift_matches_marginals():
    # N=10; apple in 5 recipes, brie in 4, both together in 3
    corpus = (
        [{"ingredients": ["apple", "brie"]}] * 3
        + [{"ingredients": ["apple", "kale"]}] * 2
        + [{"ingredients": ["brie", "leek"]}] * 1
        + [{"ingredients": ["kale", "leek"]}] * 4
    )
    result = mine_pairs(corpus, MiningParams(min_count=1))
    rec = _by_key(result)[("apple", "brie")]

    n, a, b, c = 10, 5, 4, 3
    expected = (c / n) / ((a / n) * (b / n))
    assert result.documents == n
    assert rec.count == c
    assert rec.lift == pytest.approx(expected)
    assert rec.pmi == pytest.approx(log2(rec.lift))


def test_multiplicity_within_a_recipe_does_not_inflate_counts():
    corpus = [{"ingredients": ["tomato", "tomatoes", "Tomato", "basil"]}]
    result = mine_pairs(corpus, MiningParams(min_count=1))
    assert len(result.pairs) == 1
    assert result.pairs[0].count == 1
    assert result.pairs[0].lift == pytest.approx(1.0)


def test_recipes_with_fewer_than_two_tokens_do_not_count():
    corpus = [
        {"ingredients": ["tomato"]},
        {"ingredients": ["fresh", "chopped"]},
        {"ingredients": ["tomato", "basil"]},
    ]
    result = mine_pairs(corpus, MiningParams(min_count=1))
    assert result.documents == 1


def test_no_contributing_recipes_returns_empty_without_dividing():
    result = mine_pairs([{"ingredients": ["tomato"]}], MiningParams(min_count=1))
    assert result.pairs == []
    assert result.documents == 0


def test_malformed_records_are_skipped_and_counted():
    corpus = [None, "tomato, basil", {"ingredients": []}, {"title": "no ingredients"}, {"ingredients": "tomato; basil"}]
    result = mine_pairs(corpus, MiningParams(min_count=1))
    assert result.malformed == 4
    assert result.recipes_seen == 5
    assert [r.key for r in result.pairs] == [("basil", "tomato")]


def test_whitelist_and_bypass(basic_corpus):
    whitelist = {"tomato", "basil"}
    limited = mine_pairs(basic_corpus, MiningParams(min_count=1), whitelist=whitelist)
    assert [r.key for r in limited.pairs] == [("basil", "tomato")]

    bypassed = mine_pairs(basic_corpus, MiningParams(min_count=1, allow_any=True), whitelist=whitelist)
    assert len(bypassed.pairs) == 3


def test_cuisines_are_lowercased_and_optional():
    corpus = [
        {"ingredients": ["tomato", "basil"], "cuisine": "Italian"},
        {"ingredients": ["tomato", "basil"], "cuisine": ["Mexican", "  "]},
        {"ingredients": ["tomato", "basil"]},
    ]
    aware = mine_pairs(corpus, MiningParams(min_count=1))
    assert aware.pairs[0].cuisines == frozenset({"italian", "mexican"})

    blind = mine_pairs(corpus, MiningParams(min_count=1, cuisine_aware=False))
    assert blind.pairs[0].cuisines == frozenset()


def test_aliases_merge_spellings_while_mining():
    aliases = AliasTable({"scallion": "green onion"})
    corpus = [
        {"ingredients": ["scallions", "ginger"]},
        {"ingredients": ["Scallion", "ginger"]},
    ]
    result = mine_pairs(corpus, MiningParams(min_count=2), aliases=aliases)
    assert len(result.pairs) == 1
    rec = result.pairs[0]
    assert rec.key == ("ginger", "green-onion")
    assert (rec.a, rec.b) == ("ginger", "green onion")
    assert rec.count == 2


def test_ranking_and_top_n():
    corpus = (
        [{"ingredients": ["tomato", "basil"]}] * 4
        + [{"ingredients": ["rice", "soy sauce"]}] * 2
        + [{"ingredients": ["tomato", "rice"]}] * 1
    )
    result = mine_pairs(corpus, MiningParams(min_count=1))
    scores = [pair_score(r) for r in result.pairs]
    assert scores == sorted(scores, reverse=True)
    # fewer recipes but a stronger association outranks the more frequent pair
    assert [r.key for r in result.pairs] == [("rice", "soy-sauce"), ("basil", "tomato"), ("rice", "tomato")]

    top = mine_pairs(corpus, MiningParams(min_count=1, top_n=2))
    assert [r.key for r in top.pairs] == [r.key for r in result.pairs[:2]]
    assert top.qualifying_pairs == 3

    assert mine_pairs(corpus, MiningParams(min_count=1, top_n=0)).pairs == []


@pytest.mark.parametrize("kwargs", [{"min_count": 0}, {"top_n": -1}])
def test_mining_params_validation(kwargs):
    with pytest.raises(ValidationError):
        MiningParams(**kwargs)


def test_whitelist_ids_are_canonicalized_from_metadata():
    metadata = [
        {"id": "couscous", "name": "Couscous"},
        {"id": "black-beans", "name": "Black Beans"},
        {"id": "", "name": "Chickpeas"},
        {"id": "tomato", "name": "Tomato"},
    ]
    assert whitelist_from_metadata(metadata) == {"couscou", "black-bean", "chickpea", "tomato"}
    aliases = AliasTable({"garbanzo bean": "chickpea"})
    assert "chickpea" in whitelist_from_metadata([{"id": "garbanzo-beans"}], aliases)


def test_stage_keeps_plural_metadata_ingredients(make_context, workspace, write_jsonl):
    (workspace / "data/stage/ingredients.csv").write_text(
        "id,name\ncouscous,Couscous\nlentils,Lentils\ntomato,Tomato\n", encoding="utf-8"
    )
    write_jsonl(workspace / "data/raw/recipes.jsonl", [
        {"ingredients": ["couscous", "lentils", "tomatoes", "parsley"]},
        {"ingredients": ["Couscous", "lentil", "tomato"]},
    ])
    context = make_context({
        "analysis_pmi": {
            "data": {
                "corpus_path": "data/raw/recipes.jsonl",
                "ingredients_path": "data/stage/ingredients.csv",
            },
            "params": {"min_count": 1},
            "output": {"pair_table": "data/stage/pairings.csv"},
        },
    })

    result = pmi.run(context)
    assert result.status == "success"
    assert result.artifacts["pairs"] == 3
    assert result.artifacts["discovered"] == []
    rows = read_pair_table(workspace / "data/stage/pairings.csv")
    assert [(r["a_id"], r["b_id"]) for r in rows] == [
        ("couscou", "lentil"),
        ("couscou", "tomato"),
        ("lentil", "tomato"),
    ]
