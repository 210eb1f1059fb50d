"""Comparison keys for free-text metadata.

Both the live resolver paths and the backfill match through `normalize`, so a
change here changes what counts as "the same" everywhere.
"""
from __future__ import annotations

import re
import unicodedata
from typing import Any, List

# \s is Unicode-aware for str patterns (covers ideographic and no-break spaces)
_SEPARATORS_RE = re.compile(r"[\s_\-]+")


def normalize(raw: Any) -> str:
    """Return the canonical comparison key for `raw`.

    Lowercase, NFKC, then drop whitespace, hyphens and underscores:
    'DAIWA', 'Ｄａｉｗａ' and ' dai-wa ' all become 'daiwa'. The second
    lower() catches compatibility characters that fold to upper case
    ('℃' -> '°C') so the key is stable under re-normalization.
    """
    if not raw:
        return ""
    s = unicodedata.normalize("NFKC", str(raw).lower()).lower()
    return _SEPARATORS_RE.sub("", s)


def normalize_aliases(aliases: Any) -> List[str]:
    """Trim, drop blanks and exact duplicates; keep first-seen order."""
    if not isinstance(aliases, (list, tuple)):
        return []
    out: List[str] = []
    seen = set()
    for alias in aliases:
        if alias is None:
            continue
        a = str(alias).strip()
        if not a or a in seen:
            continue
        seen.add(a)
        out.append(a)
    return out
