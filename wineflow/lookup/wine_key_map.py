"""
Loose mapping from a flow node's lookup key to catalogue search terms.
"""

WINE_KEY_SEARCH_TERMS: dict[str, list[str]] = {
    "chinon": ["chinon", "loire"],
    "white_burgundy": ["burgundy", "bourgogne blanc", "chardonnay"],
    "orange_wine": ["orange"],
    "xinomavro": ["xinomavro"],
    "chianti": ["chianti", "tuscany"],
    "australian_red": ["australia", "shiraz"],
    "port": ["port", "porto"],
    "tokaji_late_harvest": ["tokaji", "tokaj"],
    "white_boxed_wine": ["bag in box", "box", "boxed"],
    "red_magnum": ["magnum"],
    "zweigelt": ["zweigelt"],
    "pignoletto": ["pignoletto"],
    "champagne": ["champagne"],
}

# Still wines only: sparkling matches are filtered out for these keys
EXCLUDE_SPARKLING_FOR: frozenset[str] = frozenset({
    "chinon",
    "white_burgundy",
    "orange_wine",
    "xinomavro",
    "chianti",
    "australian_red",
    "port",
    "tokaji_late_harvest",
    "white_boxed_wine",
    "red_magnum",
})


def search_terms_for(wine_key: str) -> list[str]:
    """Search terms for a key; unmapped keys search on the key itself."""
    return WINE_KEY_SEARCH_TERMS.get(wine_key) or [wine_key.replace("_", " ")]
