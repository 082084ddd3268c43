"""Identifier, text and timestamp normalization for cross-system comparisons."""

import re
from datetime import datetime, timezone
from typing import Any

# scheme://namespace/type/ prefix, e.g. gid://shopify/ProductVariant/
_GLOBAL_ID_PREFIX = re.compile(r"^[a-z][a-z0-9+.-]*://[^/]+/[^/]+/", re.IGNORECASE)

_SINGLE_QUOTES = re.compile(r"[\u2018\u2019\u201a\u201b]")
_DOUBLE_QUOTES = re.compile(r"[\u201c\u201d\u201e\u201f]")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def normalize_id(raw: Any) -> str | None:
    """
    Reduce a product or variant identifier to its canonical string form.

    Global IDs such as ``gid://shopify/Product/123`` become ``"123"``; plain
    values are returned as strings unchanged. Two identifiers refer to the
    same object only if their canonical forms are equal.
    """
    if raw is None or raw == "":
        return None
    value = str(raw)
    if _GLOBAL_ID_PREFIX.match(value):
        return value.rsplit("/", 1)[-1]
    return value


def normalize_quotes(text: str) -> str:
    """Replace curly and low quote glyphs with their straight ASCII forms."""
    return _DOUBLE_QUOTES.sub('"', _SINGLE_QUOTES.sub("'", text))


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp into an aware UTC datetime, or None."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
