"""
Query-string to MongoDB query translation for post listings.

Only allow-listed fields can be filtered, sorted or selected, and every
filter value is converted to the field's type before it reaches the driver:

    ?published=true&created_at[gte]=2024-01-01&tags[in]=python,web
    -> {"published": True,
        "created_at": {"$gte": datetime(2024, 1, 1)},
        "tags": {"$in": ["python", "web"]}}
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING

from database import to_object_id
from errors import BadRequestError

RESERVED_PARAMS = ("select", "sort", "page", "limit")
OPERATORS = ("gt", "gte", "lt", "lte", "in")
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_SORT = [("created_at", DESCENDING)]

_KEY = re.compile(r"^(?P<field>\w+)(?:\[(?P<op>\w+)\])?$")


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    raise BadRequestError(f"Invalid boolean value '{raw}'")


def _parse_object_id(raw: str):
    try:
        return to_object_id(raw.strip())
    except InvalidId:
        raise BadRequestError(f"Invalid id value '{raw}'")


def _parse_datetime(raw: str) -> datetime:
    text = raw.strip()
    # fromisoformat only accepts a "Z" suffix from Python 3.11 on
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    try:
        value = datetime.fromisoformat(text)
    except ValueError:
        raise BadRequestError(f"Invalid date value '{raw}'")
    # stored dates are naive UTC
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


FILTERABLE_FIELDS: Dict[str, Callable[[str], object]] = {
    "title": str,
    "slug": str,
    "category": _parse_object_id,
    "author": _parse_object_id,
    "published": _parse_bool,
    "tags": str,
    "created_at": _parse_datetime,
    "updated_at": _parse_datetime,
}

SORTABLE_FIELDS = ("title", "slug", "published", "created_at", "updated_at")

SELECTABLE_FIELDS = (
    "title", "slug", "content", "image", "category", "author", "published",
    "tags", "likes", "comments", "created_at", "updated_at",
)


@dataclass
class ListQuery:
    filter: dict = field(default_factory=dict)
    projection: Optional[dict] = None
    sort: List[Tuple[str, int]] = field(default_factory=lambda: list(DEFAULT_SORT))
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def selects(self, name: str) -> bool:
        return self.projection is None or name in self.projection


def build_filter(params: Dict[str, str]) -> dict:
    """Typed filter from query parameters; reserved pagination keys are ignored."""
    query: dict = {}
    for key, raw in params.items():
        if key in RESERVED_PARAMS:
            continue
        match = _KEY.match(key)
        if not match or match.group("field") not in FILTERABLE_FIELDS:
            raise BadRequestError(f"Cannot filter by '{key}'")

        name, op = match.group("field"), match.group("op")
        convert = FILTERABLE_FIELDS[name]
        if op is None:
            query[name] = convert(raw)
            continue
        if op not in OPERATORS:
            raise BadRequestError(f"Unsupported operator '{op}'")

        if op == "in":
            value = [convert(v) for v in raw.split(",") if v.strip()]
        else:
            value = convert(raw)
        condition = query.get(name)
        if not isinstance(condition, dict):
            condition = {}
        condition[f"${op}"] = value
        query[name] = condition
    return query


def parse_sort(raw: Optional[str]) -> List[Tuple[str, int]]:
    if not raw:
        return list(DEFAULT_SORT)
    sort = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        direction = DESCENDING if part.startswith("-") else ASCENDING
        name = part.lstrip("-+")
        if name not in SORTABLE_FIELDS:
            raise BadRequestError(f"Cannot sort by '{name}'")
        sort.append((name, direction))
    return sort or list(DEFAULT_SORT)


def parse_select(raw: Optional[str]) -> Optional[dict]:
    if not raw:
        return None
    fields = [f.strip() for f in raw.split(",") if f.strip()]
    unknown = [f for f in fields if f not in SELECTABLE_FIELDS]
    if unknown:
        raise BadRequestError(f"Cannot select '{', '.join(unknown)}'")
    return {f: 1 for f in fields} or None


def _positive_int(raw: Optional[str], default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def build_list_query(params: Dict[str, str], base_filter: Optional[dict] = None) -> ListQuery:
    query_filter = build_filter(params)
    if base_filter:
        query_filter.update(base_filter)
    return ListQuery(
        filter=query_filter,
        projection=parse_select(params.get("select")),
        sort=parse_sort(params.get("sort")),
        page=_positive_int(params.get("page"), DEFAULT_PAGE),
        limit=_positive_int(params.get("limit"), DEFAULT_LIMIT),
    )


def pagination(page: int, limit: int, total: int) -> dict:
    """next iff page*limit < total, prev iff page > 1."""
    result = {}
    if page * limit < total:
        result["next"] = {"page": page + 1, "limit": limit}
    if page > 1:
        result["prev"] = {"page": page - 1, "limit": limit}
    return result
