"""Builders for the staged property listing query.

Each builder returns one stage (or a list of stages) or None when the stage
does not apply; ``build_pipeline`` drops the None entries.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from src.models.account import ACCOUNT_PRIVATE_FIELDS
from src.models.search import Viewport
from src.utils.config import AppConfig
from src.utils.parsing import parse_number

FILTERABLE_FIELDS = (
    "type",
    "purpose",
    "price",
    "area",
    "areaBuilt",
    "yearBuilt",
    "fenced",
    "bathrooms",
    "garages",
    "kitchens",
    "livingRooms",
    "diningRooms",
    "pools",
    "rooms",
)

NUMERIC_FILTER_FIELDS = frozenset(FILTERABLE_FIELDS) - {"type", "purpose", "fenced"}
BOOLEAN_FILTER_FIELDS = frozenset({"fenced"})

RANGE_OPERATORS = {
    "lte": "$lte",
    "gte": "$gte",
    "$lte": "$lte",
    "$gte": "$gte",
}

VISIBLE_STATUSES = ["listed", "pending"]
CLOSED_STATUSES = ["sold", "rented"]
RECENTLY_CLOSED_WINDOW = timedelta(days=7)

TEXT_SEARCH_PATHS = ["title", "tags", "description", "address"]


def _point(coordinates: list) -> dict:
    return {"type": "Point", "coordinates": list(coordinates)}


def build_search_stage(
    search_term: Optional[str],
    viewport: Optional[Viewport],
    index: Optional[str] = None,
    text_enabled: Optional[bool] = None,
) -> Optional[dict]:
    """
    Build the ``$search`` stage scoping results to the viewport box.

    Without both corners there is no search stage at all.
    """
    if viewport is None or not viewport.is_complete:
        return None

    index = index or AppConfig.SEARCH_INDEX
    if text_enabled is None:
        text_enabled = AppConfig.SEARCH_TEXT_ENABLED

    geo_query = {
        "path": "location",
        "box": {
            "bottomLeft": _point(viewport.south_west),
            "topRight": _point(viewport.north_east),
        },
    }

    term = search_term.strip() if isinstance(search_term, str) else ""
    if text_enabled and term:
        return {
            "$search": {
                "index": index,
                "compound": {
                    "must": [{"text": {"query": term, "path": TEXT_SEARCH_PATHS, "fuzzy": {}}}],
                    "filter": [{"geoWithin": geo_query}],
                },
            }
        }

    return {"$search": {"index": index, "geoWithin": geo_query}}


def _rewrite_operators(value: Any) -> Any:
    """Turn ``lte``/``gte`` keys into store operators, dropping any other operator."""
    if isinstance(value, Mapping):
        rewritten = {}
        for key, inner in value.items():
            key = str(key)
            if key in RANGE_OPERATORS:
                rewritten[RANGE_OPERATORS[key]] = _rewrite_operators(inner)
            elif not key.startswith("$"):
                rewritten[key] = _rewrite_operators(inner)
        return rewritten
    if isinstance(value, list):
        return [_rewrite_operators(item) for item in value]
    return value


def _coerce(field: str, value: Any) -> Any:
    """Query strings only carry text; give numeric and boolean fields their type back."""
    if isinstance(value, dict):
        return {key: _coerce(field, inner) for key, inner in value.items()}
    if isinstance(value, list):
        return [_coerce(field, item) for item in value]
    if not isinstance(value, str):
        return value

    if field in BOOLEAN_FILTER_FIELDS and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    if field in NUMERIC_FILTER_FIELDS:
        number = parse_number(value)
        if number is not None:
            return number
    return value


def build_filter_stage(query: Mapping[str, Any], now: Optional[datetime] = None) -> dict:
    """
    Build the ``$match`` stage from allow-listed query fields.

    The visibility rule is always present: listed and pending properties, plus
    sold or rented ones whose status changed within the last week.
    """
    now = now or datetime.now(timezone.utc)
    week_ago = now - RECENTLY_CLOSED_WINDOW

    match: dict[str, Any] = {
        "$or": [
            {"status": {"$in": list(VISIBLE_STATUSES)}},
            {
                "status": {"$in": list(CLOSED_STATUSES)},
                "statusChangeDate": {"$lte": now, "$gte": week_ago},
            },
        ]
    }

    for field in FILTERABLE_FIELDS:
        value = (query or {}).get(field)
        if value is None:
            continue
        match[field] = _coerce(field, _rewrite_operators(value))

    return {"$match": match}


def build_sort_stage(sort_by: Any) -> Optional[dict]:
    """
    ``"-price"`` sorts descending on price, ``"price"`` ascending.

    Ties are broken by ``_id`` descending so pages stay stable.
    """
    if not isinstance(sort_by, str):
        return None

    sort_by = sort_by.strip()
    descending = sort_by.startswith("-")
    field = sort_by[1:] if descending else sort_by
    if not field:
        return None

    sort = {field: -1 if descending else 1}
    if field != "_id":
        sort["_id"] = -1
    return {"$sort": sort}


def owner_lookup_stage(accounts_collection: str = "accounts") -> list[dict]:
    """Join ``ownerId`` into an ``owner`` object without credentials."""
    return [
        {
            "$lookup": {
                "from": accounts_collection,
                "localField": "ownerId",
                "foreignField": "_id",
                "as": "owner",
            }
        },
        {"$set": {"owner": {"$arrayElemAt": ["$owner", 0]}}},
        {"$unset": [f"owner.{field}" for field in ACCOUNT_PRIVATE_FIELDS]},
    ]


def build_pipeline(*stages: Any) -> list[dict]:
    """Compose stages in order, skipping the ones that do not apply."""
    pipeline: list[dict] = []
    for stage in stages:
        if not stage:
            continue
        if isinstance(stage, list):
            pipeline.extend(item for item in stage if item)
        else:
            pipeline.append(stage)
    return pipeline
