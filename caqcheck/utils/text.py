from __future__ import annotations

import re
import unicodedata


def fold(value: str | None) -> str:
    """Lowercase, strip accents and collapse whitespace for loose comparisons."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"\s+", " ", stripped).strip().lower()
