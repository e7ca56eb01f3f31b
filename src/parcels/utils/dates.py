"""
Date Helpers

County pages print dates as MM/DD/YYYY (sometimes two-digit years or ISO).
"""
from datetime import date, datetime, timezone
from typing import Any, Callable, List, Optional

DATE_FORMATS = ("%m/%d/%Y", "%m/%d/%y", "%Y-%m-%d", "%m-%d-%Y")


def parse_date(text: Optional[str]) -> Optional[date]:
    if not text:
        return None
    value = text.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def sort_by_date_desc(records: List[Any], get_date: Callable[[Any], Optional[str]]) -> List[Any]:
    """Most recent first; records with unparseable dates go last, in input order."""
    dated = [r for r in records if parse_date(get_date(r))]
    undated = [r for r in records if not parse_date(get_date(r))]
    dated.sort(key=lambda r: parse_date(get_date(r)), reverse=True)
    return dated + undated


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")
