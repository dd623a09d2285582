from __future__ import annotations

import json
import logging
from typing import Any

from lxml import etree, html

from osint_tracker.utils import text_hash

logger = logging.getLogger(__name__)

MAX_SNIPPET_CHARS = 4000


def normalize_whitespace(text: str) -> str:
    return " ".join(text.replace("\xa0", " ").split())


def extract_text(nodes: list[Any]) -> str:
    out = " ".join(" ".join(node.itertext()) for node in nodes)
    return normalize_whitespace(out)


def html_to_text(fragment: Any) -> str:
    """Flatten an HTML snippet (search engines return ``<b>`` highlights) to plain text."""
    if fragment is None or fragment == "":
        return ""
    fragment = str(fragment)
    if "<" not in fragment:
        return normalize_whitespace(fragment)[:MAX_SNIPPET_CHARS]
    try:
        tree = html.fromstring(fragment)
    except (etree.ParserError, etree.XMLSyntaxError, ValueError):
        logger.debug("Unparseable HTML snippet, keeping raw text")
        return normalize_whitespace(fragment)[:MAX_SNIPPET_CHARS]
    for node in tree.xpath("//script | //style"):
        node.drop_tree()
    return extract_text([tree])[:MAX_SNIPPET_CHARS]


def synthetic_locator(source: str, payload: dict[str, Any]) -> str:
    """Stable identifier for records that have no URL."""
    return f"{source}:{text_hash(payload)[:16]}"


def as_int(value: Any) -> int | None:
    text = str(value or "").strip()
    if not text:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


def split_values(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item or "").strip()]
    text = str(value).strip()
    if not text:
        return []
    if text.startswith("[") and text.endswith("]"):
        try:
            parsed = json.loads(text)
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        except json.JSONDecodeError:
            pass
    return [part.strip() for part in text.replace(";", ",").split(",") if part.strip()]
