"""
Address Parsing Transformer

Splits a free-form search address ("5692 Bentgrass Dr #14-209, Sarasota,
FL 34235") into the components the county search forms and the result
matchers need, and normalizes street suffixes/directionals to USPS
abbreviations so "Boulevard" on the lead matches "BLVD" on the PAO site.
"""
import re
from typing import List, Optional
from dataclasses import dataclass, field

from src.parcels.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ParsedAddress:
    """
    Search address components.

    Attributes:
        street: Street line with the unit removed, as typed
        street_number: House/building number
        street_name: USPS-normalized street name including suffix
        unit: Unit designator value (e.g. "14-209")
        city: City name
        state: State abbreviation
        zip_code: 5-digit ZIP code
    """
    street: str = ""
    street_number: Optional[str] = None
    street_name: Optional[str] = None
    unit: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    tokens: List[str] = field(default_factory=list)

    @property
    def normalized_street(self) -> str:
        """Street number plus normalized name, the form typed into search boxes."""
        return " ".join(p for p in (self.street_number, self.street_name) if p)

    def significant_street_tokens(self) -> List[str]:
        """Street-name words long enough to discriminate between rows."""
        return [t for t in self.tokens if len(t) > 2]


class AddressParser:
    """
    Parses and normalizes search addresses for PAO lookups.
    """

    # Street type abbreviations (USPS Publication 28)
    STREET_TYPES = {
        'ALLEY': 'ALY', 'AVENUE': 'AVE', 'BOULEVARD': 'BLVD', 'CIRCLE': 'CIR',
        'COURT': 'CT', 'COVE': 'CV', 'CROSSING': 'XING', 'DRIVE': 'DR',
        'EXPRESSWAY': 'EXPY', 'HIGHWAY': 'HWY', 'LANE': 'LN', 'PARKWAY': 'PKWY',
        'PLACE': 'PL', 'ROAD': 'RD', 'STREET': 'ST', 'TERRACE': 'TER',
        'TRAIL': 'TRL', 'WAY': 'WAY', 'LOOP': 'LOOP', 'PATH': 'PATH',
        'PIKE': 'PIKE', 'PLAZA': 'PLZ', 'POINT': 'PT', 'RIDGE': 'RDG',
        'RUN': 'RUN', 'SQUARE': 'SQ', 'CIRCLES': 'CIRS', 'ISLE': 'ISLE',
    }

    # Directional abbreviations
    DIRECTIONS = {
        'NORTH': 'N', 'SOUTH': 'S', 'EAST': 'E', 'WEST': 'W',
        'NORTHEAST': 'NE', 'NORTHWEST': 'NW', 'SOUTHEAST': 'SE', 'SOUTHWEST': 'SW'
    }

    # Trailing unit designator: "#13", "Unit 13", "Apt #5", "Unit #14-209", "Ste A-101"
    UNIT_PATTERN = re.compile(r'\s*(?:#|Unit|Apt|Suite|Ste)[.\s]*#?([\w-]+)\s*$', re.IGNORECASE)

    STATE_ZIP_PATTERN = re.compile(r'^([A-Z]{2})\s*(\d{5})?', re.IGNORECASE)

    def __init__(self, default_state: Optional[str] = "FL"):
        self.default_state = default_state

    def parse(self, address: str) -> ParsedAddress:
        """
        Parse a comma-separated address.

        Args:
            address: "street[, city[, state [zip][, zip]]]"

        Returns:
            ParsedAddress; state falls back to the parser's default state
        """
        if not address or not address.strip():
            logger.debug("empty_address_provided")
            return ParsedAddress(state=self.default_state)

        parts = [p.strip() for p in address.split(",")]
        street = parts[0]

        unit = None
        unit_match = self.UNIT_PATTERN.search(street)
        if unit_match:
            unit = unit_match.group(1)
            street = street[:unit_match.start()].strip()

        city = parts[1] or None if len(parts) >= 2 else None
        state = None
        zip_code = None

        if len(parts) >= 3:
            state_zip = parts[2]
            match = self.STATE_ZIP_PATTERN.match(state_zip)
            if match:
                state = match.group(1).upper()
                zip_code = match.group(2)
            elif re.match(r'^\d{5}', state_zip):
                zip_code = state_zip[:5]

        if len(parts) >= 4 and not zip_code and re.match(r'^\d{5}', parts[3]):
            zip_code = parts[3][:5]

        street_number = None
        street_rest = street
        number_match = re.match(r'^(\d+)\s+(.+)$', street)
        if number_match:
            street_number = number_match.group(1)
            street_rest = number_match.group(2)

        street_name = self.normalize_street(street_rest) or None

        parsed = ParsedAddress(
            street=street,
            street_number=street_number,
            street_name=street_name,
            unit=unit,
            city=city,
            state=state or self.default_state,
            zip_code=zip_code,
            tokens=street_name.lower().split() if street_name else [],
        )

        logger.debug(
            "address_parsed",
            street=parsed.normalized_street,
            unit=unit,
            zip_code=zip_code,
        )
        return parsed

    def normalize_street(self, street: str) -> str:
        """
        Uppercase and abbreviate suffixes and directionals.

        "123 North Main Street" -> "123 N MAIN ST"
        """
        if not street:
            return ""

        words = re.sub(r'[.,]', ' ', street.upper()).split()
        normalized = []
        for index, word in enumerate(words):
            if word in self.DIRECTIONS:
                normalized.append(self.DIRECTIONS[word])
            elif word in self.STREET_TYPES and index > 0:
                normalized.append(self.STREET_TYPES[word])
            else:
                normalized.append(word)
        return " ".join(normalized)


_default_parser = AddressParser()


def parse_address(address: str) -> ParsedAddress:
    """Parse with the Florida-defaulting parser."""
    return _default_parser.parse(address)


def normalize_street_for_usps(street: str) -> str:
    return _default_parser.normalize_street(street)
