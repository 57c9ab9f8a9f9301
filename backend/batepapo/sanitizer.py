from typing import Any, Dict, Mapping

import bleach


def clean_text(value: str) -> str:
    """Strip markup and surrounding whitespace from a single value.

    Tags are dropped and anything left that could read as markup stays
    entity-escaped, so encoded tags never come back out as real ones.
    """
    return bleach.clean(value, tags=[], attributes={}, strip=True, strip_comments=True).strip()


def sanitize(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a new dict with every string value cleaned.

    Non-string values are copied as they are so that validation can still
    report them. The input mapping is left untouched.
    """
    return {
        key: clean_text(value) if isinstance(value, str) else value
        for key, value in payload.items()
    }
