"""
Vocabulary tables for query understanding.

Every table maps a canonical value to the words (English and Albanian) that
refer to it. Albanian forms are listed both with and without diacritics,
since shoppers rarely type ç/ë on a phone keyboard.

These tables are shared by the filter extractor, the candidate scorer and
the provider query normalizer.
"""

import re
from typing import Dict, List, Optional, Tuple


# =============================================================================
# Colors
# =============================================================================

COLOR_SYNONYMS: Dict[str, List[str]] = {
    "red": ["red", "crimson", "burgundy", "maroon", "scarlet", "wine",
            "kuq", "kuqe", "e kuqe"],
    "black": ["black", "ebony", "onyx", "zi", "zezë", "zeze", "e zezë"],
    "brown": ["brown", "tan", "camel", "chocolate", "cognac", "luggage",
              "kafe", "kafë", "ngjyrë kafe"],
    "blue": ["blue", "navy", "azure", "royal blue", "sky blue", "denim blue", "blu"],
    "green": ["green", "emerald", "olive", "mint", "forest",
              "jeshile", "gjelbër", "gjelber", "e gjelbër"],
    "white": ["white", "ivory", "cream", "pearl", "optic white",
              "bardhë", "bardhe", "e bardhë"],
    "gray": ["gray", "grey", "charcoal", "silver", "heather", "gri", "hiri"],
    "pink": ["pink", "rose", "blush", "magenta", "fuchsia", "rozë", "roze"],
    "purple": ["purple", "violet", "lavender", "plum", "vjollcë", "vjollce", "lejla"],
    "yellow": ["yellow", "gold", "lemon", "mustard", "amber", "verdhë", "verdhe"],
    "orange": ["orange", "peach", "coral", "tangerine", "portokalli"],
    "beige": ["beige", "sand", "nude", "taupe", "bezhë", "bezhe"],
}


# =============================================================================
# Materials and sizes
# =============================================================================

MATERIAL_SYNONYMS: Dict[str, List[str]] = {
    "leather": ["leather", "saffiano", "pebbled", "genuine leather", "nappa",
                "lëkurë", "lekure", "lëkure"],
    "canvas": ["canvas", "cotton", "kanavacë", "kanavace"],
    "suede": ["suede", "nubuck", "kamosh"],
    "nylon": ["nylon", "recycled nylon", "najlon"],
    "fabric": ["fabric", "textile", "pëlhurë", "pelhure"],
    "denim": ["denim", "xhins"],
}

SIZE_SYNONYMS: Dict[str, List[str]] = {
    "small": ["small", "mini", "compact", "petite", "vogël", "vogel", "e vogël"],
    "medium": ["medium", "mid", "regular", "standard", "mesme", "e mesme"],
    "large": ["large", "big", "spacious", "roomy", "oversized",
              "madh", "madhe", "e madhe"],
}

# Words that suggest quality/texture for a material without naming it.
MATERIAL_HINTS: Dict[str, List[str]] = {
    "leather": ["genuine", "real", "premium"],
    "canvas": ["fabric", "cotton", "denim"],
    "suede": ["soft", "textured", "velvet"],
}

STYLE_WORDS = ["casual", "formal", "elegant", "sporty", "vintage", "modern", "chic"]


# =============================================================================
# Occasions
# =============================================================================

# Ordered: the first occasion with a matching keyword wins. Several keywords
# are shared in everyday speech ("elegant", "casual"), so each keyword
# appears under exactly one occasion here.
OCCASION_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("evening", ["evening", "night out", "night", "party", "dinner", "cocktail",
                 "elegant", "chic", "mbrëmje", "mbremje", "festë", "feste"]),
    ("work", ["work", "office", "business", "professional", "corporate",
              "punë", "pune", "zyrë", "zyre"]),
    ("travel", ["travel", "vacation", "trip", "journey", "weekend away",
                "udhëtim", "udhetim", "pushime"]),
    ("formal", ["formal", "sophisticated", "wedding", "ceremony", "zyrtare"]),
    ("everyday", ["everyday", "daily", "casual", "regular", "relaxed",
                  "comfortable", "përditshme", "perditshme"]),
]


# =============================================================================
# Product types
# =============================================================================

# canonical type -> (scope, catalog value, regex variants)
# scope "category" matches Product.category, "subcategory" Product.subcategory.
PRODUCT_TYPES: Dict[str, Tuple[str, str, List[str]]] = {
    "bag": ("category", "bags", [
        r"(?:hand)?bags?", r"purses?",
        r"[çc]ant[ëe]", r"[çc]anta", r"[çc]ant[ëe]n", r"[çc]antat", r"[çc]antave", r"[çc]antash",
    ]),
    "tote": ("subcategory", "tote", [r"totes?", r"shoppers?"]),
    "crossbody": ("subcategory", "crossbody", [
        r"cross[\s-]?body", r"messengers?", r"[çc]ant[ëea] krahu",
    ]),
    "satchel": ("subcategory", "satchel", [r"satchels?"]),
    "clutch": ("subcategory", "clutch", [r"clutch(?:es)?", r"[çc]ant[ëea] dore mbr[ëe]mjeje"]),
    "backpack": ("subcategory", "backpack", [
        r"backpacks?", r"rucksacks?", r"[çc]ant[ëea] shpin[ëe]",
    ]),
    "shoulder": ("subcategory", "shoulder bag", [r"shoulder[\s-]bags?"]),
    "wallet": ("subcategory", "wallet", [
        r"wallets?", r"card ?holders?", r"card cases?",
        r"portofol(?:i|in|e|et)?", r"kulet[ëe]", r"kuleta",
    ]),
    "shoes": ("category", "shoes", [
        r"shoes?", r"sneakers?", r"heels?", r"boots?",
        r"k[ëe]puc[ëe](?:t)?", r"atlete",
    ]),
    "watch": ("subcategory", "watch", [r"watch(?:es)?", r"or[ëe]", r"ora"]),
    "belt": ("subcategory", "belt", [r"belts?", r"rrip(?:i)?"]),
}


# =============================================================================
# Brands
# =============================================================================

CATALOG_BRANDS: Dict[str, List[str]] = {
    "michael kors": ["michael kors", "mk", "kors"],
}

COMPETING_BRANDS: List[str] = [
    "louis vuitton", "lv", "gucci", "chanel", "prada", "hermes", "hermès",
    "dior", "balenciaga", "versace", "givenchy", "coach", "kate spade",
]

# Display names for brands whose title case is not just str.title()
BRAND_DISPLAY_NAMES = {
    "lv": "Louis Vuitton",
    "hermes": "Hermès",
    "hermès": "Hermès",
}


# =============================================================================
# Albanian -> English indexing terms
# =============================================================================

# The search provider indexes English product text, so Albanian words in a
# query are rewritten before the provider call. Extraction does NOT use this.
ALBANIAN_TO_ENGLISH: Dict[str, str] = {
    "çantë shpine": "backpack",
    "çanta shpine": "backpack",
    "çantë krahu": "crossbody bag",
    "çantë": "bag",
    "çanta": "bag",
    "çantën": "bag",
    "çantat": "bags",
    "cante": "bag",
    "canta": "bag",
    "portofol": "wallet",
    "portofoli": "wallet",
    "kuletë": "wallet",
    "këpucë": "shoes",
    "kepuce": "shoes",
    "lëkurë": "leather",
    "lekure": "leather",
    "e kuqe": "red",
    "kuqe": "red",
    "e zezë": "black",
    "zezë": "black",
    "zeze": "black",
    "kafe": "brown",
    "blu": "blue",
    "jeshile": "green",
    "e bardhë": "white",
    "bardhë": "white",
    "gri": "gray",
    "rozë": "pink",
    "vogël": "small",
    "madhe": "large",
    "punë": "work",
    "mbrëmje": "evening",
    "udhëtim": "travel",
    "nën": "under",
    "mbi": "over",
    "deri": "up to",
    "rreth": "around",
    "më e lirë": "cheaper",
    "më lirë": "cheaper",
}

# General rewrite table for free text (kept small; applied longest first)
SYNONYMS = {
    "hand bag": "handbag",
    "cross body": "crossbody",
    "back pack": "backpack",
    "carry all": "carryall",
    **ALBANIAN_TO_ENGLISH,
}


def _replace_terms(text: str, table: Dict[str, str]) -> str:
    expanded = text
    # Longest first so multi-word phrases win over their parts
    for term, replacement in sorted(table.items(), key=lambda x: -len(x[0])):
        pattern = r'(?<!\w)' + re.escape(term) + r'(?!\w)'
        expanded = re.sub(pattern, replacement, expanded)
    return expanded


def expand_synonyms(text: str) -> str:
    """
    Expand common spelling variants and synonyms in user queries.

    Args:
        text: User query text

    Returns:
        Lower-cased text with synonyms expanded

    Example:
        >>> expand_synonyms("Red cross body bag")
        "red crossbody bag"
    """
    return _replace_terms(text.lower(), SYNONYMS)


def translate_query(text: str) -> str:
    """Rewrite Albanian vocabulary to the English terms the provider indexes."""
    return _replace_terms(text.lower(), ALBANIAN_TO_ENGLISH)


def canonical_color(word: str) -> Optional[str]:
    """Return the canonical color for a color word or synonym."""
    word = word.lower().strip()
    for canonical, variants in COLOR_SYNONYMS.items():
        if word == canonical or word in variants:
            return canonical
    return None


def color_terms(canonical: str) -> List[str]:
    """All words that count as a match for a canonical color."""
    return COLOR_SYNONYMS.get(canonical, [canonical])


def brand_display_name(brand: str) -> str:
    return BRAND_DISPLAY_NAMES.get(brand.lower(), brand.title())
