"""
Regex patterns for structured data extraction.

Price phrases, conversational cues and input-safety checks. Every list
carries English and Albanian forms side by side so extraction never needs
a translation step.
"""

import re
from typing import List, Tuple

# === Price Patterns ===

# Amount with optional currency prefix/suffix: "$100", "100 eur", "99.99€", "5000 lekë"
AMOUNT = (
    r'(?:\$|€)?\s*(\d+(?:\.\d{1,2})?)\s*'
    r'(?:usd|dollars?|eur|euros?|€|lek[ëe]?)?'
)

# Amount with a required currency marker: "$100", "80 eur", "5000 lekë"
PRICED_AMOUNT = (
    r'(?:(?:\$|€)\s*(\d+(?:\.\d{1,2})?)'
    r'|(\d+(?:\.\d{1,2})?)\s*(?:usd|dollars?|eur|euros?|€|lek[ëe]?))'
)

# Words that make a bare "X-Y" pair a price range
PRICE_WORDS = r'(?:price[sd]?|priced at|costs?|costing|[çc]mim(?:i|et)?|kushton)'

# Price patterns applied in order. Each entry: (name, kind, regex).
# kind is one of: max, min, range, around, less_than.
# Later patterns may overwrite bounds set by earlier, looser ones.
PRICE_PATTERNS: List[Tuple[str, str, str]] = [
    ("under", "max", rf'\b(?:under|below|beneath|n[ëe]n|posht[ëe])\s+{AMOUNT}'),
    ("over", "min", rf'\b(?:over|above|(?<!no )more than|mbi|m[ëe] shum[ëe] se)\s+{AMOUNT}'),
    # A bare "6-8" is a size, not a price: one side needs a currency or a price word before it
    ("range", "range",
     rf'(?:{PRICED_AMOUNT}\s*[-–]\s*{AMOUNT}'
     rf'|{AMOUNT}\s*[-–]\s*{PRICED_AMOUNT}'
     rf'|\b{PRICE_WORDS}\s+{AMOUNT}\s*[-–]\s*{AMOUNT})'),
    ("between", "range",
     rf'\b(?:between|from|nga|midis|nd[ëe]rmjet)\s+{AMOUNT}\s*'
     rf'(?:and|to|dhe|deri(?:\s+n[ëe])?)\s+{AMOUNT}'),
    ("up_to", "max", rf'\b(?:up to|no more than|max(?:imum)?|deri(?:\s+n[ëe])?)\s+{AMOUNT}'),
    ("around", "around", rf'\b(?:around|about|approximately|roughly|rreth|af[ëe]rsisht)\s+{AMOUNT}'),
    ("less_than", "less_than", rf'\b(?:less than|m[ëe] pak se|m[ëe] pak\s+(?:nga|se))\s+{AMOUNT}'),
    ("budget", "max", rf'{AMOUNT}\s*(?:budget|buxhet)\b'),
    ("budget_of", "max", rf'\b(?:budget(?: of| is)?|buxhet(?:i)?(?: im)?(?: [ëe]sht[ëe])?)\s+{AMOUNT}'),
]

# Half-width of the "around X" window
AROUND_MARGIN = 50


# === Follow-up Cues ===

# Comparative or bounding price words
PRICE_CUE_PATTERNS = [
    r'\bcheaper\b',
    r'\bless expensive\b',
    r'\bmore affordable\b',
    r'\bmore expensive\b',
    r'\bpricier\b',
    r'\bunder\b',
    r'\bbelow\b',
    r'\bless than\b',
    r'\bup to\b',
    r'\bbudget\b',
    r'\bover\b',
    r'\babove\b',
    r'\bn[ëe]n\b',
    r'\bmbi\b',
    r'\bderi\b',
    r'\blir[ëe]\b',
    r'\bbuxhet',
]

# Short acknowledgements and detail requests
ACKNOWLEDGEMENT_PATTERNS = [
    r'^\s*(?:yes|yeah|yep|yup|sure|ok(?:ay)?|please|definitely)\b',
    r'\bshow (?:me|it)\b',
    r'\bdetails?\b',
    r'\btell me more\b',
    r'\bmore info(?:rmation)?\b',
    r'\b(?:that|this) one\b',
    r'^\s*po\b',
    r'^\s*mir[ëe]\b',
    r'\bm[ëe] trego\b',
    r'\btregom[ëe]\b',
    r'\bdetaje\b',
    r'\bm[ëe] shum[ëe] (?:info|detaje)\b',
]

# Acknowledgements are only treated as such when the message is this short
ACKNOWLEDGEMENT_MAX_WORDS = 6

# "Something cheaper" requests
CHEAPER_PATTERNS = [
    r'\bcheaper\b',
    r'\bless expensive\b',
    r'\bmore affordable\b',
    r'\blower price',
    r'\bbudget option',
    r'\bm[ëe] (?:e |t[ëe] )?lir[ëe]\b',
]


# === Intent Detection Patterns ===

GREETING_PATTERNS = [
    r'\bhello\b',
    r'\bhi\b',
    r'\bhey\b',
    r'\bgood\s+(?:morning|afternoon|evening)\b',
    r'\bp[ëe]rsh[ëe]ndetje\b',
    r'\bmir[ëe]dita\b',
    r'\bmir[ëe]m[ëe]ngjes\b',
    r'\btungjatjeta\b',
    r'\b[çc]\'?kemi\b',
]

FAREWELL_PATTERNS = [
    r'\bbye\b',
    r'\bgoodbye\b',
    r'\bthanks?\b',
    r'\bthank\s+you\b',
    r'\bsee\s+you\b',
    r'\bmirupafshim\b',
    r'\bfaleminderit\b',
    r'\bfalemnderit\b',
]


# === Input Safety ===

SUSPICIOUS_PATTERNS = [
    r'<\s*script',
    r'<\s*iframe',
    r'javascript\s*:',
    r'data\s*:\s*text/html',
    r'\bon\w+\s*=',
]

# Stripped from messages before processing
SANITIZE_PATTERNS = [
    r'[<>]',
    r'javascript\s*:',
    r'\bon\w+\s*=',
]


def has_pattern(text: str, patterns: list[str]) -> bool:
    """
    Check if any pattern matches text.

    Args:
        text: Input text
        patterns: List of regex patterns

    Returns:
        True if any pattern matches
    """
    text_lower = text.lower()
    return any(re.search(pat, text_lower) for pat in patterns)
