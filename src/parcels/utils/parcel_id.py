"""
Parcel ID Normalization

County parcel identifiers arrive with spaces, dots and dashes depending on
the page they were read from. These helpers reduce them to the canonical
form used in the ``parcels`` natural key.
"""
import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

_NON_ID_CHARS = re.compile(r"[^a-zA-Z0-9-]")
_SARASOTA_URL_ID = re.compile(r"/parcel(?:/details)?/(\d+)")
_PARID_QUERY = re.compile(r"parid=([^&#]+)", re.IGNORECASE)


def normalize_parcel_id(raw: Optional[str]) -> str:
    """
    Canonical parcel id: trimmed, non-alphanumerics removed (hyphens kept),
    uppercased. Leading zeros are preserved.

    >>> normalize_parcel_id(" 12-345 ab ")
    '12-345AB'
    """
    if not raw:
        return ""
    return _NON_ID_CHARS.sub("", raw.strip()).upper()


def normalize_numeric_parcel_id(raw: Optional[str]) -> str:
    """Digits only."""
    if not raw:
        return ""
    return re.sub(r"\D", "", raw)


def extract_parcel_id_from_manatee_url(url: Optional[str]) -> Optional[str]:
    """
    Manatee detail pages carry the id in the ``parid`` query parameter,
    e.g. ``https://www.manateepao.gov/parcel/?parid=1234567890``.
    """
    if not url:
        return None
    values = parse_qs(urlparse(url).query).get("parid")
    if values and values[0]:
        return normalize_parcel_id(values[0])
    match = _PARID_QUERY.search(url)
    return normalize_parcel_id(match.group(1)) if match else None


def extract_parcel_id_from_sarasota_url(url: Optional[str]) -> Optional[str]:
    """
    Sarasota detail pages carry the id in the path:
    ``/propertysearch/parcel/details/1234567890`` or ``/parcel/1234567890``.
    """
    if not url:
        return None
    match = _SARASOTA_URL_ID.search(url)
    return normalize_parcel_id(match.group(1)) if match else None
