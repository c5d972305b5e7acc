# utils/query_utils.py

from bson.objectid import ObjectId
from bson.errors import InvalidId
from datetime import datetime, date, time
from typing import Any, Dict, List, Optional, Tuple
import re


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """
    Convert a path parameter to an ObjectId.

    Returns None for anything that is not a valid 24-character hex id, so
    callers can treat malformed ids the same way as unknown ones.
    """
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def serialize_document(data):
    """
    Recursively replace ObjectId values with their string form in dictionaries and lists.

    Args:
        data: The data structure to clean (dict, list, or primitive value)

    Returns:
        The cleaned data structure, safe for JSON encoding
    """
    if isinstance(data, dict):
        return {k: serialize_document(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [serialize_document(item) for item in data]
    elif isinstance(data, ObjectId):
        return str(data)
    else:
        return data


def contains_filter(term: str) -> Dict[str, Any]:
    """Case-insensitive substring match on a single field."""
    return {"$regex": re.escape(term), "$options": "i"}


def build_search_filter(term: str, fields: List[str], array_fields: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Builds an $or filter that matches the search term anywhere in any of the given fields.
    Array fields match when any element contains the term.
    """
    clauses = [{field: contains_filter(term)} for field in fields]
    for field in array_fields or []:
        clauses.append({field: {"$in": [re.compile(re.escape(term), re.IGNORECASE)]}})
    return {"$or": clauses}


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a datetime to naive local server time, the form stored in Mongo.
    Plain dates are taken as local midnight.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    return value


def day_bounds(day: Optional[date] = None) -> Tuple[datetime, datetime]:
    """
    Return the first and last instant of a calendar day in local server time.

    The upper bound is 23:59:59.999, the finest resolution Mongo stores.
    """
    day = day or datetime.now().date()
    start = datetime.combine(day, time.min)
    end = datetime.combine(day, time(23, 59, 59, 999000))
    return start, end
