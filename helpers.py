import itertools
import re
from typing import Any, Iterable

from pymongo.collection import Collection

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    return _NON_SLUG.sub("-", (text or "").lower()).strip("-")


def is_url_end_taken(collections: Iterable[Collection], url_end: str) -> bool:
    for collection in collections:
        if collection.find_one({"urlEnd": url_end}, {"_id": 1}) is not None:
            return True
    return False


def generate_unique_url_end(collections: Iterable[Collection], url_end: str) -> str:
    """Return ``url_end``, or ``url_end-N`` for the first N that no listing collection uses.

    Every candidate is checked against all collections. Nothing is locked, so two
    concurrent callers may be handed the same slug.
    """
    collections = list(collections)
    if not is_url_end_taken(collections, url_end):
        return url_end
    for n in itertools.count(1):
        candidate = f"{url_end}-{n}"
        if not is_url_end_taken(collections, candidate):
            return candidate


def truncate(text: str, length: int = 50) -> str:
    text = text or ""
    return f"{text[:length]}..." if len(text) > length else text


def format_string_as_number(value: Any) -> str:
    try:
        number = float(str(value).replace(",", ""))
    except (TypeError, ValueError):
        return str(value)
    return f"{number:,.2f}"
