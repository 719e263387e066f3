"""
Takeoff Normalization

Decodes the raw takeoff blob stored for a plan into TakeoffItem objects.

The blob arrives in one of three shapes (list of items, JSON string, or an
envelope with an ``items``/``takeoffs`` key) and items use inconsistent
field names depending on which extractor produced them. Each logical
attribute is resolved from a prioritized candidate list; the lists are
module constants so tests can enumerate them.
"""

import json
import logging
import math
import re
from typing import Any, Dict, List, Optional, Sequence

from ..common.schemas import TakeoffItem

logger = logging.getLogger("planchat.retriever.takeoff")

ENVELOPE_KEYS = ("takeoffs", "items")

ID_FIELDS = ("id", "uuid", "item_id")
CATEGORY_FIELDS = ("category", "Category", "trade_category", "discipline", "scope", "segment", "group")
SUBCATEGORY_FIELDS = ("subcategory", "sub_category", "Subcategory", "scope_detail")
NAME_FIELDS = ("name", "item_name", "title", "label", "description")
DESCRIPTION_FIELDS = ("description", "details", "notes", "item_description", "summary")
LOCATION_FIELDS = (
    "location", "location_reference", "location_ref", "area", "room", "zone",
    "sheet_reference", "sheet", "sheetTitle",
)
PAGE_NUMBER_FIELDS = ("page_number", "pageNumber", "page", "plan_page_number", "sheet_page", "sheetNumber")
PAGE_REFERENCE_FIELDS = ("page_reference", "sheet_reference", "sheet", "sheet_title", "sheetName", "page_label")
QUANTITY_FIELDS = ("quantity", "qty", "amount")
UNIT_FIELDS = ("unit", "units", "measure_unit")
UNIT_COST_FIELDS = ("unit_cost", "unitCost", "unit_price")
TOTAL_COST_FIELDS = ("total_cost", "totalCost", "extended_price")
NOTES_FIELDS = ("notes", "assumptions", "comments")

DEFAULT_CATEGORY = "Uncategorized"

_LEADING_NUMBER_RE = re.compile(r"-?\d[\d,]*(\.\d+)?")


def parse_number(value: Any) -> Optional[float]:
    """Parse a number literal, or the first number inside text like '150.5 LF'."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None

    match = _LEADING_NUMBER_RE.search(str(value))
    if not match:
        return None
    try:
        numeric = float(match.group(0).replace(",", ""))
    except ValueError:
        return None
    return numeric if math.isfinite(numeric) else None


def coalesce_string(*values: Any) -> Optional[str]:
    """First value that is non-empty after str() and strip()"""
    for value in values:
        if value is None:
            continue
        text = value if isinstance(value, str) else str(value)
        text = text.strip()
        if text:
            return text
    return None


def _first_present(raw: Dict[str, Any], fields: Sequence[str]) -> Any:
    """First candidate field whose value is not None"""
    for name in fields:
        value = raw.get(name)
        if value is not None:
            return value
    return None


def _strings(raw: Dict[str, Any], fields: Sequence[str]) -> List[Any]:
    return [raw.get(name) for name in fields]


def _page_number(raw: Dict[str, Any]) -> Optional[int]:
    value = _first_present(raw, PAGE_NUMBER_FIELDS)
    if value is None:
        bbox = raw.get("bounding_box")
        if isinstance(bbox, dict):
            value = bbox.get("page")
    number = parse_number(value)
    return int(number) if number is not None else None


def decode_takeoff_blob(raw: Any) -> List[Dict[str, Any]]:
    """
    Decode the stored blob into a list of raw item dicts.

    Accepts a list, a JSON-encoded string of either shape, or an envelope
    dict with a ``takeoffs`` or ``items`` list. Anything else yields [].
    """
    if raw is None:
        return []

    if isinstance(raw, (str, bytes)):
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Failed to parse takeoff items string: %s", e)
            return []
        if isinstance(parsed, (str, bytes)):
            return []
        return decode_takeoff_blob(parsed)

    if isinstance(raw, list):
        source = raw
    elif isinstance(raw, dict):
        source = None
        for key in ENVELOPE_KEYS:
            if isinstance(raw.get(key), list):
                source = raw[key]
                break
        if source is None:
            return []
    else:
        return []

    return [item for item in source if isinstance(item, dict)]


def normalize_item(raw: Dict[str, Any], index: int) -> TakeoffItem:
    """Resolve one raw item dict into a TakeoffItem (index is 0-based)."""
    name = coalesce_string(*_strings(raw, NAME_FIELDS))
    description = coalesce_string(*_strings(raw, DESCRIPTION_FIELDS), name)

    return TakeoffItem(
        id=coalesce_string(*_strings(raw, ID_FIELDS)) or f"item-{index + 1}",
        category=coalesce_string(*_strings(raw, CATEGORY_FIELDS)) or DEFAULT_CATEGORY,
        subcategory=coalesce_string(*_strings(raw, SUBCATEGORY_FIELDS)),
        name=name,
        description=description,
        quantity=parse_number(_first_present(raw, QUANTITY_FIELDS)),
        unit=coalesce_string(*_strings(raw, UNIT_FIELDS)),
        unit_cost=parse_number(_first_present(raw, UNIT_COST_FIELDS)),
        total_cost=parse_number(_first_present(raw, TOTAL_COST_FIELDS)),
        location=coalesce_string(*_strings(raw, LOCATION_FIELDS)),
        page_number=_page_number(raw),
        page_reference=coalesce_string(*_strings(raw, PAGE_REFERENCE_FIELDS)),
        notes=coalesce_string(*_strings(raw, NOTES_FIELDS)),
    )


def normalize_takeoff_items(raw: Any) -> List[TakeoffItem]:
    """Normalize a stored takeoff blob of any accepted shape."""
    return [normalize_item(item, i) for i, item in enumerate(decode_takeoff_blob(raw))]
