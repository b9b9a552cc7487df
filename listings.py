"""
Browsable table of one listing kind at /listings/<kind>
"""
from html import escape
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse
from pymongo.collection import Collection

from database import get_collections, get_documents
from helpers import format_string_as_number, truncate
from schemas import KINDS

router = APIRouter(prefix="/listings", tags=["listings"])

SORT_KEYS = ("name", "price")


def _as_number(value: Any) -> Optional[float]:
    try:
        return float(str(value).replace(",", ""))
    except (TypeError, ValueError):
        return None


def _text(entry: Dict[str, Any], key: str) -> str:
    return str(entry.get(key) or "")


def _type_prices(entry: Dict[str, Any]) -> List[float]:
    types_and_prices = entry.get("typesAndPrices") or []
    if not isinstance(types_and_prices, list):
        return []
    # documents written outside the API may hold anything here
    prices = (_as_number(tp.get("price")) for tp in types_and_prices if isinstance(tp, dict))
    return sorted(p for p in prices if p is not None)


def price_sort_value(entry: Dict[str, Any]) -> float:
    if "typesAndPrices" in entry:
        prices = _type_prices(entry)
        return min(prices) if prices else 0.0
    return _as_number(entry.get("price")) or 0.0


def price_label(entry: Dict[str, Any]) -> str:
    if "typesAndPrices" in entry:
        prices = _type_prices(entry)
        if not prices:
            return ""
        if prices[0] == prices[-1]:
            return f"${format_string_as_number(prices[0])}"
        return f"${format_string_as_number(prices[0])} - ${format_string_as_number(prices[-1])}"
    return f"${format_string_as_number(entry.get('price') or 0)}"


def select_rows(entries: List[Dict[str, Any]], active_only: bool = False, sort: str = "name", desc: bool = False) -> List[Dict[str, Any]]:
    rows = [e for e in entries if e.get("isActive")] if active_only else list(entries)
    if sort == "price":
        rows.sort(key=price_sort_value, reverse=desc)
    else:
        rows.sort(key=lambda e: _text(e, "name").lower(), reverse=desc)
    return rows


def render_table(title: str, rows: List[Dict[str, Any]]) -> str:
    body = "\n".join(
        '<tr onclick="window.location.href=\'/{href}\'">'
        "<td>{name}</td><td>{description}</td><td>{price}</td></tr>".format(
            href=escape(_text(e, "urlEnd"), quote=True),
            name=escape(_text(e, "name")),
            description=escape(truncate(_text(e, "description"))),
            price=escape(price_label(e)),
        )
        for e in rows
    )
    return (
        f"<!DOCTYPE html><html lang=\"en\"><head><meta charset=\"utf-8\"><title>CPM Inventory - {escape(title)}</title></head>"
        f"<body><h1>{escape(title)}</h1><table>"
        f"<thead><tr><th>Name</th><th>Description</th><th>Price</th></tr></thead>"
        f"<tbody>\n{body}\n</tbody></table></body></html>"
    )


@router.get("/{kind_name}", response_class=HTMLResponse)
def list_table(
    kind_name: str,
    active_only: bool = False,
    sort: str = Query("name"),
    desc: bool = False,
    collections: Dict[str, Collection] = Depends(get_collections),
):
    if kind_name not in KINDS:
        raise HTTPException(status_code=404, detail="Unknown listing kind")
    if sort not in SORT_KEYS:
        raise HTTPException(status_code=400, detail=f"sort must be one of: {', '.join(SORT_KEYS)}")
    entries = get_documents(collections[KINDS[kind_name].collection])
    rows = select_rows(entries, active_only=active_only, sort=sort, desc=desc)
    return render_table(kind_name.capitalize(), rows)
