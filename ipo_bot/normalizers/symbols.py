"""Symbol normalization so that the same offering collides across sources."""

import re


MAX_SYMBOL_LENGTH = 15

# Corporate suffix words dropped from company names before keying
_SUFFIX_RE = re.compile(
    r"\s+(?:Ltd|Limited|IPO|India|Private|Pvt|Technologies|Tech|Industries|Infra"
    r"|Services|Solutions|Corporation|Corp)\b\.?",
    re.IGNORECASE,
)
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")


def normalize_symbol(name: str) -> str:
    """Derive a merge key from a company name or exchange symbol.

    Strips corporate suffix words, drops every non-alphanumeric character,
    uppercases and truncates to 15 characters. Applying it twice gives the
    same result as applying it once.

    Examples:
        >>> normalize_symbol("Alpha Tech Ltd")
        'ALPHA'
        >>> normalize_symbol("ALPHA")
        'ALPHA'
    """
    if not name:
        return ""
    stripped = _SUFFIX_RE.sub("", name)
    return _NON_ALNUM_RE.sub("", stripped).upper()[:MAX_SYMBOL_LENGTH]
