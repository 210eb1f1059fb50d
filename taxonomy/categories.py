"""Known metadata categories and the nouns used when talking about them to users."""
from __future__ import annotations

ROD_BRAND = "rod_brand"
REEL_BRAND = "reel_brand"
ROD_POWER = "rod_power"
LENGTH_UNIT = "length_unit"
COMBO_SCENE_TAG = "combo_scene_tag"
WEATHER_TYPE = "weather_type"

METADATA_CATEGORIES = (
    ROD_BRAND,
    REEL_BRAND,
    ROD_POWER,
    LENGTH_UNIT,
    COMBO_SCENE_TAG,
    WEATHER_TYPE,
)

CATEGORY_NOUNS = {
    ROD_BRAND: "rod brand",
    REEL_BRAND: "reel brand",
    ROD_POWER: "rod power",
    LENGTH_UNIT: "length unit",
    COMBO_SCENE_TAG: "scene tag",
    WEATHER_TYPE: "weather type",
}


def category_noun(category: str) -> str:
    return CATEGORY_NOUNS.get(category, category.replace("_", " "))
