from __future__ import annotations

import hashlib
import json
import re
import unicodedata
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlparse

STREET_ABBREVIATIONS: dict[str, str] = {
    "street": "st",
    "avenue": "ave",
    "drive": "dr",
    "road": "rd",
    "lane": "ln",
    "court": "ct",
    "boulevard": "blvd",
    "place": "pl",
    "circle": "cir",
    "terrace": "ter",
    "parkway": "pkwy",
    "highway": "hwy",
    "square": "sq",
    "trail": "trl",
    "apartment": "apt",
    "suite": "ste",
    "north": "n",
    "south": "s",
    "east": "e",
    "west": "w",
}

_STREET_WORD_RE = re.compile(r"\b(" + "|".join(STREET_ABBREVIATIONS) + r")\b")
_PHONE_RUN_RE = re.compile(r"\+?\d[\d\s().\-]{5,}\d")
_LOCATION_RE = re.compile(r",\s*([^,]+),\s*([A-Za-z]{2})\b")

MIN_PHONE_DIGITS = 7


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def normalize_name(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value)
    normalized = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    normalized = normalized.casefold()
    normalized = re.sub(r"[^a-z0-9]+", " ", normalized)
    normalized = re.sub(r"\s+", " ", normalized).strip()
    return normalized


def name_tokens(full_name: str) -> list[str]:
    """Lower-cased name tokens longer than one character (initials dropped)."""
    tokens = [token.strip(".,;'\"()") for token in full_name.casefold().split()]
    return [token for token in tokens if len(token) > 1]


def first_last(full_name: str) -> tuple[str, str]:
    tokens = name_tokens(full_name)
    if len(tokens) < 2:
        return (tokens[0] if tokens else "", "")
    return tokens[0], tokens[-1]


def surname_of(full_name: str) -> str:
    return first_last(full_name)[1]


def normalize_url(url: str | None) -> str:
    if not url:
        return ""
    candidate = url.strip()
    if not candidate:
        return ""
    if "://" not in candidate:
        candidate = f"//{candidate}"
    parsed = urlparse(candidate)
    host = parsed.netloc.casefold()
    if host.startswith("www."):
        host = host[4:]
    path = parsed.path.rstrip("/")
    return f"{host}{path}".casefold()


def _canonical_street_text(text: str) -> str:
    lowered = text.casefold()
    lowered = _STREET_WORD_RE.sub(lambda m: STREET_ABBREVIATIONS[m.group(1)], lowered)
    lowered = re.sub(r"[^\w\s]", " ", lowered)
    return re.sub(r"\s+", " ", lowered).strip()


def normalize_address(address: str | None) -> str:
    if not address:
        return ""
    street = address.split(",")[0]
    return _canonical_street_text(street)


def normalize_street_text(text: str) -> str:
    """Same canonical form as ``normalize_address`` but over a whole text blob."""
    return _canonical_street_text(text or "")


def key_contains(haystack: str, needle: str) -> bool:
    if not haystack or not needle:
        return False
    return f" {needle} " in f" {haystack} "


def addresses_match(left: str | None, right: str | None) -> bool:
    left_key = normalize_address(left)
    right_key = normalize_address(right)
    return key_contains(left_key, right_key) or key_contains(right_key, left_key)


def normalize_phone(phone: str | None) -> str:
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    return digits


def normalize_email(email: str | None) -> str:
    return (email or "").strip().casefold()


def phone_in_text(phone: str | None, text: str) -> bool:
    target = normalize_phone(phone)
    if len(target) < MIN_PHONE_DIGITS:
        return False
    for run in _PHONE_RUN_RE.findall(text or ""):
        if target in re.sub(r"\D", "", run):
            return True
    return False


def parse_location_from_address(address: str | None) -> tuple[str | None, str | None]:
    if not address:
        return None, None
    match = _LOCATION_RE.search(address)
    if not match:
        return None, None
    return match.group(1).strip(), match.group(2).strip().upper()


def unique_list(items: list[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for item in items:
        normalized = item.strip()
        if not normalized:
            continue
        key = normalized.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(normalized)
    return out


def clip(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True, default=str)


def from_json(value: str | None, default: Any) -> Any:
    if not value:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return default


def text_hash(payload: Any) -> str:
    return hashlib.sha256(to_json(payload).encode("utf-8")).hexdigest()
