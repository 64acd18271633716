"""Candidate search strings for one address, most specific first.

Downstream ranking rewards hits found through earlier queries, so the order
returned by ``build_queries`` is part of the contract.
"""

import re

from core.errors import InvalidInputError
from models.types import MatchLevel

# Entity names at or below this length are too ambiguous to search alone.
ENTITY_NAME_MIN_LENGTH = 10

ADDRESS_DELIMITERS = re.compile(r"[,.\s]+")

_CORPORATE_PREFIXES = re.compile(r"(?:บริษัท|ห้างหุ้นส่วนจำกัด|หจก\.|บจก\.)\s*")
_THAI_CORPORATE_SUFFIX = re.compile(r"\s*จำกัด.*$")
_ENGLISH_CORPORATE_SUFFIX = re.compile(
    r"[\s,]*(?:public\s+company\s+limited|company\s+limited|co\.?\s*,?\s*ltd\.?"
    r"|limited|ltd\.?|pcl\.?|inc\.?|corporation|corp\.?)\s*$",
    re.IGNORECASE,
)

_PROVINCE_PREFIX = r"(?:จ\.|จังหวัด)?\s*"

# Provinces whose Thai spelling geocodes poorly; swapped for the romanized name.
REGIONAL_VARIANTS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(_PROVINCE_PREFIX + "ปทุมธานี"), "Pathum Thani"),
    (re.compile(_PROVINCE_PREFIX + "นนทบุรี"), "Nonthaburi"),
    (re.compile(_PROVINCE_PREFIX + "สมุทรปราการ"), "Samut Prakan"),
    (re.compile(_PROVINCE_PREFIX + "สมุทรสาคร"), "Samut Sakhon"),
    (re.compile(_PROVINCE_PREFIX + "นครปฐม"), "Nakhon Pathom"),
    (re.compile(r"กรุงเทพมหานคร|กรุงเทพฯ?|กทม\.?"), "Bangkok"),
]

PROVINCE_KEYWORDS = ("จังหวัด", "จ.", "กรุงเทพ", "กทม")


def _normalize(text: str) -> str:
    text = " ".join(text.split())
    return re.sub(r"\s+,", ",", text).strip(" ,")


def shorten_entity_name(entity_name: str) -> str:
    """Strip common corporate prefixes and suffixes (Thai and English)."""
    short = _CORPORATE_PREFIXES.sub("", entity_name)
    short = _THAI_CORPORATE_SUFFIX.sub("", short)
    previous = None
    while previous != short:
        previous = short
        short = _ENGLISH_CORPORATE_SUFFIX.sub("", short)
    return _normalize(short)


def address_tokens(address: str) -> list[str]:
    return [part for part in ADDRESS_DELIMITERS.split(address) if part.strip()]


def build_queries(address: str, entity_name: str | None = None, *, country: str = "Thailand") -> list[str]:
    if not address or not address.strip():
        raise InvalidInputError("Address is required")

    address = _normalize(address)
    if not address_tokens(address):
        raise InvalidInputError("Address has no searchable text")
    entity = _normalize(entity_name) if entity_name else ""
    queries: list[str] = []

    def add(query: str) -> None:
        query = _normalize(query)
        if query and query not in queries:
            queries.append(query)

    add(f"{address}, {country}")

    if entity:
        short = shorten_entity_name(entity)
        if short and short != entity:
            add(f"{short} {address}, {country}")
        add(f"{entity} {address}, {country}")
        if len(entity) > ENTITY_NAME_MIN_LENGTH:
            add(f"{entity}, {country}")

    for pattern, romanized in REGIONAL_VARIANTS:
        if pattern.search(address):
            add(f"{pattern.sub(f' {romanized}', address)}, {country}")

    tokens = address_tokens(address)
    if len(tokens) >= 2:
        add(f"{' '.join(tokens[-2:])}, {country}")
    for keyword in PROVINCE_KEYWORDS:
        if keyword in address:
            add(f"{address[address.rfind(keyword):]}, {country}")
            break
    if tokens:
        add(f"{tokens[-1]}, {country}")

    return queries


def classify_match_level(query: str, address: str, entity_name: str | None = None) -> MatchLevel:
    if not query:
        return MatchLevel.UNKNOWN
    address = _normalize(address)
    entity = _normalize(entity_name) if entity_name else ""

    if entity and entity in query and address in query:
        return MatchLevel.EXACT
    if address in query:
        return MatchLevel.FULL_ADDRESS

    tokens = address_tokens(address)
    if len(tokens) >= 2 and " ".join(tokens[-2:]) in query:
        return MatchLevel.DISTRICT_PROVINCE
    if tokens and tokens[-1] in query:
        return MatchLevel.PROVINCE_ONLY
    return MatchLevel.PARTIAL
