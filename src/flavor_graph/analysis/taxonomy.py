"""
Keyword tables used to classify graph nodes.

Categories and pairing types match a name exactly against each table in order;
allergens match by substring and may stack. The tables are plain data so they
can be swapped from YAML without touching the builder.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Tuple, Union

import yaml

from flavor_graph.exceptions import ConfigError

KeywordTable = Tuple[Tuple[str, FrozenSet[str]], ...]


def _table(entries: Mapping[str, Any]) -> KeywordTable:
    return tuple((str(tag), frozenset(str(w).lower() for w in words)) for tag, words in entries.items())


INGREDIENT_CATEGORIES = _table({
    "protein": ["chicken", "beef", "pork", "lamb", "shrimp", "salmon", "tuna", "egg", "eggs", "turkey", "tofu", "tempeh"],
    "legume": ["black beans", "kidney beans", "chickpea", "chickpeas", "lentil", "lentils", "peas", "edamame"],
    "carb": ["rice", "quinoa", "bread", "pasta", "noodles", "tortilla", "potato", "potatoes", "couscous", "bulgur"],
    "veg": [
        "onion", "tomato", "garlic", "cucumber", "spinach", "kale", "lettuce", "arugula", "bell pepper",
        "mushroom", "zucchini", "eggplant", "broccoli", "cauliflower", "cabbage", "carrot", "celery",
        "basil", "cilantro", "parsley",
    ],
})

PAIRING_TYPES = _table({
    "herb": ["basil", "cilantro", "parsley", "mint", "dill", "oregano", "thyme", "rosemary", "chive", "tarragon", "sage"],
    "spice": ["cumin", "coriander", "paprika", "turmeric", "chili powder", "black pepper", "cinnamon", "clove", "nutmeg", "cardamom"],
    "acid": ["lemon", "lime", "vinegar", "balsamic vinegar", "red wine vinegar", "rice vinegar", "yuzu", "lemon juice", "lime juice"],
    "fat": ["olive oil", "butter", "cream", "yogurt", "ghee", "lard", "mayonnaise", "olive", "avocado oil", "sesame oil"],
    "sauce": ["soy sauce", "fish sauce", "hot sauce", "tahini", "salsa", "pesto", "teriyaki", "hoisin", "barbecue sauce"],
    "aromatic": ["onion", "garlic", "ginger", "shallot", "scallion", "leek", "celery", "carrot"],
    "texture": ["croutons", "panko", "breadcrumbs", "nuts", "seeds"],
    "cheese": ["feta", "parmesan", "mozzarella", "cheddar", "goat cheese", "ricotta", "pecorino", "gruyere", "blue cheese"],
})

ALLERGENS = _table({
    "dairy": ["yogurt", "butter", "cream", "cheese", "feta", "parmesan", "mozzarella", "cheddar", "milk"],
    "nuts": ["almond", "walnut", "pecan", "hazelnut", "peanut", "cashew", "pistachio", "nuts"],
    "shellfish": ["shrimp", "prawn", "crab", "lobster", "oyster", "scallop", "mussel", "clam"],
    "soy": ["soy", "soy sauce", "tofu", "edamame", "tamari"],
    "egg": ["egg", "eggs"],
    "wheat": ["flour", "bread", "panko", "breadcrumbs", "pasta"],
})

# lift thresholds, highest first
STRENGTH_THRESHOLDS: Tuple[Tuple[float, int], ...] = ((8.0, 5), (4.0, 4), (2.0, 3), (1.25, 2))


@dataclass(frozen=True)
class Taxonomy:
    categories: KeywordTable = INGREDIENT_CATEGORIES
    pairing_types: KeywordTable = PAIRING_TYPES
    allergens: KeywordTable = ALLERGENS
    plant_forward: FrozenSet[str] = field(default_factory=lambda: frozenset({"herb", "spice", "acid"}))
    strength_thresholds: Tuple[Tuple[float, int], ...] = STRENGTH_THRESHOLDS
    default_category: str = "other"
    default_type: str = "other"

    def category(self, name: str) -> str:
        n = str(name).lower()
        for tag, words in self.categories:
            if n in words:
                return tag
        return self.default_category

    def pairing_type(self, name: str) -> str:
        n = str(name).lower()
        for tag, words in self.pairing_types:
            if n in words:
                return tag
        return self.default_type

    def allergens_for(self, name: str) -> List[str]:
        n = str(name).lower()
        return [tag for tag, words in self.allergens if any(w in n for w in words)]

    def nutrition_tags(self, pairing_type: str) -> List[str]:
        return ["plant-forward"] if pairing_type in self.plant_forward else []

    def strength(self, lift: float) -> int:
        for threshold, bucket in self.strength_thresholds:
            if lift >= threshold:
                return bucket
        return 1

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Taxonomy":
        """Override any table; keys: categories, pairing_types, allergens, plant_forward, strength_thresholds."""
        kwargs: Dict[str, Any] = {}
        for key in ("categories", "pairing_types", "allergens"):
            if key in data:
                if not isinstance(data[key], Mapping):
                    raise ConfigError(f"Taxonomy '{key}' must map tag -> list of keywords")
                kwargs[key] = _table(data[key])
        if "plant_forward" in data:
            kwargs["plant_forward"] = frozenset(str(t) for t in data["plant_forward"])
        if "strength_thresholds" in data:
            pairs = sorted(((float(t), int(s)) for t, s in data["strength_thresholds"]), reverse=True)
            kwargs["strength_thresholds"] = tuple(pairs)
        return cls(**kwargs)

    @classmethod
    def load(cls, path: Union[str, Path, None]) -> "Taxonomy":
        if not path or not Path(path).exists():
            return DEFAULT_TAXONOMY
        with open(path, "r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, Mapping):
            raise ConfigError(f"Taxonomy file {path} must be a mapping.")
        return cls.from_mapping(raw)


DEFAULT_TAXONOMY = Taxonomy()


def strength_from_lift(lift: float, taxonomy: Taxonomy = DEFAULT_TAXONOMY) -> int:
    return taxonomy.strength(lift)


__all__ = ["DEFAULT_TAXONOMY", "Taxonomy", "strength_from_lift"]
