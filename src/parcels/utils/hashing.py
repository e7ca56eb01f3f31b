"""
Hashing Utilities

Stable content hashes used for change detection (raw fetch bodies, DOM
signatures) and for sale-record deduplication.
"""
import hashlib
import json
from typing import Any, Iterable, Optional, Union


def sha256(value: Union[str, bytes]) -> str:
    """Hex SHA-256 digest of a string (UTF-8) or bytes."""
    if isinstance(value, str):
        value = value.encode("utf-8")
    return hashlib.sha256(value).hexdigest()


def sha256_json(payload: Any) -> str:
    """Digest of a JSON document with sorted keys so equal payloads hash equally."""
    return sha256(json.dumps(payload, sort_keys=True, default=str, separators=(",", ":")))


def _format_price(price: Optional[float]) -> str:
    if price is None:
        return ""
    # 300000.0 and 300000 must produce the same key
    if float(price).is_integer():
        return str(int(price))
    return str(price)


def compute_sale_key_sha256(
    sale_date: Optional[str] = None,
    sale_price: Optional[float] = None,
    book_page: Optional[str] = None,
    instrument: Optional[str] = None,
    grantee: Optional[str] = None,
) -> str:
    """
    Dedup key for a sale: ``sha256("date|price|bookPage|instrument|grantee")``
    with empty strings for missing values.
    """
    parts = [
        sale_date or "",
        _format_price(sale_price),
        book_page or "",
        instrument or "",
        grantee or "",
    ]
    return sha256("|".join(parts))


def compute_dom_signature(signatures: Iterable[Optional[str]]) -> str:
    """Order-independent hash of the structural markers found on a page."""
    present = sorted(s for s in signatures if s)
    return sha256("|".join(present))
