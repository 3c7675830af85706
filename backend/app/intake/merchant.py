"""
Merchant keys: the comparable core of a statement merchant string.

The same shop shows up decorated differently between exports and feeds
("SQ *BLUE BOTTLE #12", "Blue Bottle Coffee 0042"), so keys drop processor
prefixes, digits, punctuation and statement boilerplate words.
"""

from __future__ import annotations

import re
from typing import List, Optional

# "SQ *", "TST*", "PAYPAL *" ... written in front of the merchant name
_PROCESSOR_PREFIX = re.compile(r"^\s*(?:sq|tst|pp|paypal|sp|py)\s*\*\s*")
_NON_WORD = re.compile(r"[^a-z0-9\s]")
_DIGITS = re.compile(r"\d+")

_BOILERPLATE = frozenset({
    "pos", "ach", "debit", "credit", "card", "purchase", "payment", "pmt",
    "online", "web", "www", "inc", "llc", "co", "company", "corp",
    "corporation", "the", "sq", "tst",
})

MAX_KEY_TOKENS = 6


def _tokens(text: Optional[str]) -> List[str]:
    s = (text or "").lower().replace("'", "").replace("’", "")
    s = _PROCESSOR_PREFIX.sub("", s)
    s = _DIGITS.sub(" ", _NON_WORD.sub(" ", s))
    return [t for t in s.split() if t not in _BOILERPLATE]


def merchant_key(text: Optional[str]) -> str:
    return " ".join(_tokens(text)[:MAX_KEY_TOKENS])
